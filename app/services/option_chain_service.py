"""Live option chain fetch returning an explicit result."""
import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.core.config import settings
from app.providers import LookupFailure, OptionChainProvider, ProviderError
from app.providers.models import OptionChainSnapshot
from app.providers.parser import MalformedPayload, parse_snapshot
from app.utils.time import live_cutoff_time, market_now


logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of a live fetch: either a snapshot or the error that prevented it."""
    snapshot: Optional[OptionChainSnapshot] = None
    expiry_date: Optional[str] = None
    time_label: Optional[str] = None
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None and self.error is None


async def resolve_stock_id(provider: OptionChainProvider, symbol: str, timeout: Optional[float] = None) -> str:
    """
    Resolve a symbol with a bounded wait.

    Raises:
        LookupFailure: If no id is found or the lookup does not finish in time
    """
    timeout = timeout if timeout is not None else settings.lookup_timeout_seconds
    try:
        stock_id = await asyncio.wait_for(provider.resolve_stock_id(symbol), timeout=timeout)
    except asyncio.TimeoutError:
        raise LookupFailure(f"Stock id lookup for {symbol} timed out after {timeout}s")
    except ProviderError as e:
        raise LookupFailure(f"Stock id lookup for {symbol} failed: {e}")

    if not stock_id:
        raise LookupFailure(f"Stock id not found for {symbol}")
    return stock_id


async def resolve_nearest_expiry(provider: OptionChainProvider, stock_id: str) -> str:
    """
    Get the nearest expiry (first in provider order).

    Raises:
        LookupFailure: If the provider returns no expiry dates
    """
    try:
        expiries = await provider.get_expiry_dates(stock_id)
    except ProviderError as e:
        raise LookupFailure(f"Expiry lookup for {stock_id} failed: {e}")

    if not expiries:
        raise LookupFailure(f"No expiry dates found for stock id {stock_id}")
    return expiries[0]


async def fetch_option_chain(
    provider: OptionChainProvider,
    symbol: str,
    now: Optional[datetime] = None
) -> FetchResult:
    """
    Fetch and parse the latest option chain for a symbol.

    Never raises for lookup, transport or parse problems; these are
    returned in ``FetchResult.error`` and the caller decides on a fallback.

    Args:
        provider: Upstream data provider
        symbol: Index symbol
        now: Current exchange time (defaults to now)

    Returns:
        FetchResult
    """
    now = now or market_now()
    time_label = live_cutoff_time(now)
    logger.info(f"Fetching live option chain for {symbol} at {time_label}")

    try:
        stock_id = await resolve_stock_id(provider, symbol)
        expiry_date = await resolve_nearest_expiry(provider, stock_id)
        logger.info(f"Using expiry {expiry_date} for {symbol}")

        payload = await provider.get_snapshot_payload(stock_id, expiry_date, time_label)
        snapshot = parse_snapshot(payload, expiry_date, time_label, symbol)
    except (LookupFailure, ProviderError, MalformedPayload) as e:
        logger.error(f"Live fetch for {symbol} failed: {e}")
        return FetchResult(time_label=time_label, error=e)

    logger.info(f"Fetched {len(snapshot.strikes)} strikes for {symbol} (spot {snapshot.underlying_value})")
    return FetchResult(snapshot=snapshot, expiry_date=expiry_date, time_label=time_label)
