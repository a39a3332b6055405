"""Analyzer session: current view, history and backfill for the dashboard."""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from app.providers import OptionChainProvider
from app.providers.models import AnalysisResult, OptionChainSnapshot, SnapshotSummary
from app.providers.trendlyne import TrendlyneProvider
from app.services.analytics import analyze_option_chain
from app.services.demo_data import generate_mock_chain
from app.services.option_chain_service import fetch_option_chain
from app.services.snapshot_store import RedisSnapshotPersistence, SnapshotStore
from app.utils.formatting import build_export_document, export_filename
from app.utils.time import market_now
from app.workers.backfill_worker import BackfillResult, BackfillState, BackfillWorker

logger = logging.getLogger(__name__)


SUPPORTED_INDICES = {
    "NIFTY": "NIFTY 50",
    "BANKNIFTY": "BANK NIFTY",
    "FINNIFTY": "FIN NIFTY",
}

SOURCE_LIVE = "live"
SOURCE_MOCK = "mock"
SOURCE_BACKFILL = "backfill"


def validate_index_symbol(symbol: str) -> str:
    """
    Validate and normalize an index symbol.

    Raises:
        ValueError: If the symbol is not a supported index
    """
    symbol = (symbol or "").upper().strip()
    if symbol not in SUPPORTED_INDICES:
        raise ValueError(f"Unsupported index {symbol!r}; choose one of {', '.join(SUPPORTED_INDICES)}")
    return symbol


@dataclass
class LiveView:
    """What the dashboard currently shows for one index."""
    symbol: str
    snapshot: OptionChainSnapshot
    analysis: AnalysisResult
    source: str
    updated_at: datetime
    label: str
    error: Optional[str] = None


@dataclass
class BackfillStatus:
    """Progress of the most recent backfill run."""
    symbol: Optional[str] = None
    running: bool = False
    state: BackfillState = BackfillState.IDLE
    progress: str = ""
    records: int = 0
    skipped: int = 0
    error: Optional[str] = None
    messages: List[str] = field(default_factory=list)


class AnalyzerSession:
    """Per-process state shared by the API and the refresh scheduler.

    Live fetch failures fall back to a synthetic chain so there is always
    something to render; synthetic chains are not recorded in the history.
    """

    def __init__(
        self,
        provider: OptionChainProvider,
        store: SnapshotStore,
        fallback_to_mock: bool = True
    ):
        self.provider = provider
        self.store = store
        self.fallback_to_mock = fallback_to_mock
        self.views: Dict[str, LiveView] = {}
        self.backfill_status = BackfillStatus()
        self._backfill_lock = asyncio.Lock()

    def current(self, symbol: str) -> Optional[LiveView]:
        return self.views.get(symbol.upper())

    async def refresh(self, symbol: str) -> Optional[LiveView]:
        """
        Fetch, analyze and record the latest chain for a symbol.

        Returns:
            The new view, or None when the fetch failed and fallback is off
        """
        symbol = symbol.upper()
        now = market_now()
        result = await fetch_option_chain(self.provider, symbol, now)

        if result.ok:
            snapshot = result.snapshot
            source, error = SOURCE_LIVE, None
        elif self.fallback_to_mock:
            logger.warning(f"Falling back to mock data for {symbol}: {result.error}")
            snapshot = generate_mock_chain(symbol)
            source, error = SOURCE_MOCK, str(result.error)
        else:
            return None

        analysis = analyze_option_chain(snapshot)
        if source == SOURCE_LIVE:
            await self.store.record(snapshot, analysis)

        view = LiveView(
            symbol=symbol,
            snapshot=snapshot,
            analysis=analysis,
            source=source,
            updated_at=now,
            label=now.strftime("%H:%M:%S"),
            error=error,
        )
        self.views[symbol] = view
        return view

    def _on_progress(self, message: str):
        self.backfill_status.progress = message
        self.backfill_status.messages.append(message)

    async def backfill(self, symbol: str, now: Optional[datetime] = None) -> BackfillResult:
        """
        Backfill today's history for a symbol.

        Only one backfill runs at a time. The last fetched interval becomes
        the current view.
        """
        symbol = symbol.upper()
        async with self._backfill_lock:
            self.backfill_status = BackfillStatus(symbol=symbol, running=True)
            worker = BackfillWorker(self.provider, self.store, on_progress=self._on_progress)
            try:
                result = await worker.run(symbol, now=now)
            finally:
                self.backfill_status.running = False
                self.backfill_status.state = worker.state

            self.backfill_status.records = len(result.summaries)
            self.backfill_status.skipped = len(result.skipped)
            self.backfill_status.error = result.error

            if result.latest_snapshot is not None:
                self.views[symbol] = LiveView(
                    symbol=symbol,
                    snapshot=result.latest_snapshot,
                    analysis=result.latest_analysis,
                    source=SOURCE_BACKFILL,
                    updated_at=market_now(),
                    label=f"Backfilled {result.latest_time}",
                )
            return result

    @property
    def backfill_running(self) -> bool:
        return self._backfill_lock.locked()

    async def history(self) -> List[SnapshotSummary]:
        return await self.store.list()

    async def clear_history(self) -> bool:
        return await self.store.clear()

    def export_current(self, symbol: str) -> Optional[Tuple[str, Dict[str, Any]]]:
        """
        Export the current view as a JSON document.

        Returns:
            (filename, document) tuple, or None if nothing is loaded
        """
        view = self.current(symbol)
        if view is None:
            return None
        return export_filename(view.symbol), build_export_document(view.snapshot, view.analysis, view.source)


def create_session() -> AnalyzerSession:
    """Build a session wired to the Trendlyne provider and Redis history."""
    return AnalyzerSession(
        provider=TrendlyneProvider(),
        store=SnapshotStore(RedisSnapshotPersistence()),
    )
