"""Unit tests for Option Chain Routes.

This module tests the current-view, refresh and export endpoints.
"""
import json
import pytest
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock
from fastapi import HTTPException, status

from app.api.routes.option_chain import (
    export_option_chain,
    get_option_chain,
    refresh_option_chain,
    serialize_view,
)
from app.services.analytics import analyze_option_chain
from app.services.analyzer_session import LiveView
from tests.conftest import create_snapshot, create_strike


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def live_view():
    """Live view over five strikes around 18000."""
    snapshot = create_snapshot(
        strikes=[create_strike(17800.0 + 100 * i) for i in range(5)],
        underlying_value=18010.0,
    )
    return LiveView(
        symbol="NIFTY",
        snapshot=snapshot,
        analysis=analyze_option_chain(snapshot),
        source="live",
        updated_at=datetime(2024, 3, 28, 10, 30, 5),
        label="10:30:05",
    )


@pytest.fixture
def mock_session(live_view):
    """Mock analyzer session."""
    session = MagicMock()
    session.current.return_value = live_view
    session.refresh = AsyncMock(return_value=live_view)
    session.backfill_running = False
    return session


# ============================================================================
# Tests for serialize_view
# ============================================================================

@pytest.mark.unit
class TestSerializeView:
    """Test view serialization."""

    def test_full_chain(self, live_view):
        """✅ All strikes and analysis included."""
        data = serialize_view(live_view)

        assert data["symbol"] == "NIFTY"
        assert data["lastUpdated"] == "10:30:05"
        assert data["analysis"]["atmStrike"] == 18000.0
        assert len(data["records"]["data"]) == 5

    def test_strike_window(self, live_view):
        """✅ Only strikes within ATM +/- window."""
        data = serialize_view(live_view, strike_window=100)

        assert [row["strikePrice"] for row in data["records"]["data"]] == [17900.0, 18000.0, 18100.0]


# ============================================================================
# Tests for GET /api/option-chain/{symbol}
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestGetOptionChain:
    """Test get option chain endpoint."""

    async def test_returns_current_view(self, mock_session):
        """✅ Existing view returned without fetching."""
        data = await get_option_chain("nifty", session=mock_session)

        assert data["source"] == "live"
        mock_session.refresh.assert_not_called()

    async def test_fetches_on_first_access(self, mock_session):
        """✅ No view yet → refresh."""
        mock_session.current.return_value = None

        data = await get_option_chain("NIFTY", session=mock_session)

        mock_session.refresh.assert_awaited_once_with("NIFTY")
        assert data["symbol"] == "NIFTY"

    async def test_unsupported_symbol(self, mock_session):
        """✅ Unknown index → 400."""
        with pytest.raises(HTTPException) as exc:
            await get_option_chain("SENSEX", session=mock_session)

        assert exc.value.status_code == status.HTTP_400_BAD_REQUEST

    async def test_no_data(self, mock_session):
        """✅ No view and failed refresh → 503."""
        mock_session.current.return_value = None
        mock_session.refresh.return_value = None

        with pytest.raises(HTTPException) as exc:
            await get_option_chain("NIFTY", session=mock_session)

        assert exc.value.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


# ============================================================================
# Tests for POST /api/option-chain/{symbol}/refresh
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestRefreshOptionChain:
    """Test refresh endpoint."""

    async def test_refresh(self, mock_session):
        """✅ Refresh always fetches."""
        await refresh_option_chain("BANKNIFTY", session=mock_session)

        mock_session.refresh.assert_awaited_once_with("BANKNIFTY")

    async def test_refresh_during_backfill(self, mock_session):
        """✅ Backfill running → 409."""
        mock_session.backfill_running = True

        with pytest.raises(HTTPException) as exc:
            await refresh_option_chain("NIFTY", session=mock_session)

        assert exc.value.status_code == status.HTTP_409_CONFLICT
        mock_session.refresh.assert_not_called()


# ============================================================================
# Tests for GET /api/option-chain/{symbol}/export
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestExportOptionChain:
    """Test export endpoint."""

    async def test_export(self, mock_session):
        """✅ JSON attachment with the export filename."""
        mock_session.export_current.return_value = ("NSE_NIFTY_1.json", {"symbol": "NIFTY", "records": {}})

        response = await export_option_chain("NIFTY", session=mock_session)

        assert response.headers["content-disposition"] == 'attachment; filename="NSE_NIFTY_1.json"'
        assert json.loads(response.body) == {"symbol": "NIFTY", "records": {}}

    async def test_nothing_loaded(self, mock_session):
        """✅ No current snapshot → 404."""
        mock_session.export_current.return_value = None

        with pytest.raises(HTTPException) as exc:
            await export_option_chain("NIFTY", session=mock_session)

        assert exc.value.status_code == status.HTTP_404_NOT_FOUND
