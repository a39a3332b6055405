"""Unit tests for the live option chain fetch."""
import asyncio
import pytest
from datetime import datetime
from unittest.mock import AsyncMock

from app.providers import LookupFailure, ProviderError
from app.providers.parser import MalformedPayload
from app.services.option_chain_service import (
    fetch_option_chain,
    resolve_nearest_expiry,
    resolve_stock_id,
)
from tests.conftest import create_payload


NOW = datetime(2024, 3, 28, 10, 42)


@pytest.fixture
def mock_provider(sample_payload):
    """Provider returning a valid chain."""
    provider = AsyncMock()
    provider.resolve_stock_id.return_value = "1887"
    provider.get_expiry_dates.return_value = ["28-Mar-2024", "04-Apr-2024"]
    provider.get_snapshot_payload.return_value = sample_payload
    return provider


@pytest.mark.unit
@pytest.mark.asyncio
class TestResolveStockId:
    """Test bounded id lookup."""

    async def test_found(self, mock_provider):
        """✅ Id returned."""
        assert await resolve_stock_id(mock_provider, "NIFTY") == "1887"

    async def test_not_found(self, mock_provider):
        """✅ None → LookupFailure."""
        mock_provider.resolve_stock_id.return_value = None

        with pytest.raises(LookupFailure):
            await resolve_stock_id(mock_provider, "NIFTY")

    async def test_timeout(self, mock_provider):
        """✅ Slow lookup → LookupFailure instead of hanging."""
        async def slow(symbol):
            await asyncio.sleep(10)
            return "1887"
        mock_provider.resolve_stock_id.side_effect = slow

        with pytest.raises(LookupFailure, match="timed out"):
            await resolve_stock_id(mock_provider, "NIFTY", timeout=0.01)

    async def test_provider_error(self, mock_provider):
        """✅ Transport failure → LookupFailure."""
        mock_provider.resolve_stock_id.side_effect = ProviderError("down")

        with pytest.raises(LookupFailure):
            await resolve_stock_id(mock_provider, "NIFTY")


@pytest.mark.unit
@pytest.mark.asyncio
class TestResolveNearestExpiry:
    """Test expiry selection."""

    async def test_first_in_provider_order(self, mock_provider):
        """✅ Nearest is first as returned."""
        assert await resolve_nearest_expiry(mock_provider, "1887") == "28-Mar-2024"

    async def test_empty(self, mock_provider):
        """✅ No expiries → LookupFailure."""
        mock_provider.get_expiry_dates.return_value = []

        with pytest.raises(LookupFailure):
            await resolve_nearest_expiry(mock_provider, "1887")


@pytest.mark.unit
@pytest.mark.asyncio
class TestFetchOptionChain:
    """Test fetch_option_chain."""

    async def test_success(self, mock_provider):
        """✅ Snapshot for the nearest expiry at the current minute."""
        result = await fetch_option_chain(mock_provider, "NIFTY", now=NOW)

        assert result.ok
        assert result.expiry_date == "28-Mar-2024"
        assert result.time_label == "10:42"
        assert len(result.snapshot.strikes) == 3
        mock_provider.get_snapshot_payload.assert_awaited_once_with("1887", "28-Mar-2024", "10:42")

    async def test_after_close_requests_closing_snapshot(self, mock_provider):
        """✅ Post-market fetch uses the close as cutoff."""
        result = await fetch_option_chain(mock_provider, "NIFTY", now=datetime(2024, 3, 28, 19, 0))

        assert result.time_label == "15:30"

    async def test_lookup_failure_is_returned(self, mock_provider):
        """✅ Missing id → error result, no snapshot request."""
        mock_provider.resolve_stock_id.return_value = None

        result = await fetch_option_chain(mock_provider, "NIFTY", now=NOW)

        assert not result.ok
        assert isinstance(result.error, LookupFailure)
        mock_provider.get_snapshot_payload.assert_not_called()

    async def test_transport_failure_is_returned(self, mock_provider):
        """✅ ProviderError → error result."""
        mock_provider.get_snapshot_payload.side_effect = ProviderError("timeout")

        result = await fetch_option_chain(mock_provider, "NIFTY", now=NOW)

        assert isinstance(result.error, ProviderError)

    async def test_malformed_payload_is_returned(self, mock_provider):
        """✅ MalformedPayload → error result."""
        mock_provider.get_snapshot_payload.return_value = create_payload(oi_data={}, lp=0)

        result = await fetch_option_chain(mock_provider, "NIFTY", now=NOW)

        assert isinstance(result.error, MalformedPayload)
        assert result.snapshot is None
