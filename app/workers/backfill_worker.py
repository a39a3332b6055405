"""Backfill worker reconstructing a session's snapshot history interval by interval."""
import logging
import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from app.core.config import settings
from app.providers import LookupFailure, OptionChainProvider, ProviderError
from app.providers.models import AnalysisResult, OptionChainSnapshot, SnapshotSummary
from app.providers.parser import MalformedPayload, parse_snapshot
from app.services.analytics import analyze_option_chain, pcr_change_oi
from app.services.option_chain_service import resolve_nearest_expiry, resolve_stock_id
from app.services.snapshot_store import SnapshotStore, build_summary
from app.utils.time import backfill_end_time, generate_time_intervals, market_now

logger = logging.getLogger(__name__)


class BackfillState(str, Enum):
    IDLE = "Idle"
    RESOLVING = "Resolving"
    RESOLVING_EXPIRY = "ResolvingExpiry"
    ITERATING = "Iterating"
    SAVING = "Saving"
    ABORTED = "Aborted"


@dataclass
class BackfillResult:
    """Outcome of one backfill run."""
    symbol: str
    state: BackfillState = BackfillState.IDLE
    expiry_date: Optional[str] = None
    intervals: List[str] = field(default_factory=list)
    summaries: List[SnapshotSummary] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    latest_snapshot: Optional[OptionChainSnapshot] = None
    latest_analysis: Optional[AnalysisResult] = None
    latest_time: Optional[str] = None
    saved: bool = False
    error: Optional[str] = None

    @property
    def aborted(self) -> bool:
        return self.state == BackfillState.ABORTED


class BackfillWorker:
    """Fetch, analyze and collect snapshots for each interval of the session.

    Intervals are fetched strictly one after another with a short delay.
    A failed interval is skipped; only a failed id or expiry lookup aborts
    the run.
    """

    def __init__(
        self,
        provider: OptionChainProvider,
        store: SnapshotStore,
        on_progress: Optional[Callable[[str], None]] = None,
        request_delay: Optional[float] = None,
        interval_minutes: Optional[int] = None,
        lookup_timeout: Optional[float] = None
    ):
        self.provider = provider
        self.store = store
        self.on_progress = on_progress
        self.request_delay = settings.backfill_request_delay if request_delay is None else request_delay
        self.interval_minutes = interval_minutes or settings.backfill_step_minutes
        self.lookup_timeout = lookup_timeout
        self.state = BackfillState.IDLE
        self.progress = ""

    def _report(self, message: str):
        """Publish a progress message."""
        self.progress = message
        logger.info(f"[backfill] {message}")
        if self.on_progress is not None:
            self.on_progress(message)

    def _abort(self, result: BackfillResult, message: str) -> BackfillResult:
        self.state = BackfillState.ABORTED
        result.state = BackfillState.ABORTED
        result.error = message
        logger.error(f"Backfill for {result.symbol} aborted: {message}")
        self._report(message)
        return result

    def intervals_for(self, now: datetime) -> List[str]:
        """Interval labels from market open up to now (or close, post-market)."""
        return generate_time_intervals(settings.market_open, backfill_end_time(now), self.interval_minutes)

    async def fetch_interval(self, stock_id: str, expiry_date: str, time_label: str, symbol: str):
        """
        Fetch and analyze a single interval.

        Returns:
            (snapshot, analysis, summary) tuple
        """
        payload = await self.provider.get_snapshot_payload(stock_id, expiry_date, time_label)
        snapshot = parse_snapshot(payload, expiry_date, time_label, symbol)
        analysis = analyze_option_chain(snapshot)
        summary = build_summary(
            snapshot,
            analysis,
            summary_id=f"backfill-{time_label}-{int(time.time() * 1000)}",
            pcr_change_oi=pcr_change_oi(analysis.put_change_oi, analysis.call_change_oi)
        )
        return snapshot, analysis, summary

    async def run(self, symbol: str, now: Optional[datetime] = None) -> BackfillResult:
        """
        Run a backfill for a symbol.

        Args:
            symbol: Index symbol
            now: Current exchange time (defaults to now)

        Returns:
            BackfillResult; ``aborted`` is set when the id or expiry lookup failed
        """
        symbol = symbol.upper()
        result = BackfillResult(symbol=symbol)
        self._report("Initializing...")

        # Resolve identifier
        self.state = BackfillState.RESOLVING
        try:
            stock_id = await resolve_stock_id(self.provider, symbol, timeout=self.lookup_timeout)
        except LookupFailure as e:
            return self._abort(
                result,
                f"Connection Failed: Could not find stock id for {symbol}. "
                f"The provider lookup may be unreachable ({e})."
            )
        self._report("Found stock id...")

        # Resolve expiry
        self.state = BackfillState.RESOLVING_EXPIRY
        try:
            expiry_date = await resolve_nearest_expiry(self.provider, stock_id)
        except LookupFailure as e:
            return self._abort(
                result,
                f"Could not fetch expiry dates for {symbol}. The provider might be unreachable ({e})."
            )
        result.expiry_date = expiry_date
        self._report(f"Using expiry: {expiry_date}")

        # Iterate intervals in order
        self.state = BackfillState.ITERATING
        result.intervals = self.intervals_for(now or market_now())

        for time_label in result.intervals:
            self._report(f"Fetching {time_label}...")
            await asyncio.sleep(self.request_delay)

            try:
                snapshot, analysis, summary = await self.fetch_interval(stock_id, expiry_date, time_label, symbol)
            except (ProviderError, MalformedPayload) as e:
                logger.warning(f"Skipping {symbol} interval {time_label}: {e}")
                result.skipped.append(time_label)
                self._report(f"Skipped {time_label}: {e}")
                continue
            except Exception as e:
                logger.error(f"Unexpected error on {symbol} interval {time_label}: {e}", exc_info=True)
                result.skipped.append(time_label)
                self._report(f"Skipped {time_label}: {e}")
                continue

            result.summaries.append(summary)
            result.latest_snapshot = snapshot
            result.latest_analysis = analysis
            result.latest_time = time_label

        # Save everything in one batch
        self.state = BackfillState.SAVING
        self._report(f"Saving {len(result.summaries)} records...")
        result.saved = await self.store.record_batch(result.summaries)

        self.state = BackfillState.IDLE
        result.state = BackfillState.IDLE
        logger.info(
            f"Backfill for {symbol} complete: {len(result.summaries)} fetched, "
            f"{len(result.skipped)} skipped of {len(result.intervals)} intervals"
        )
        return result
