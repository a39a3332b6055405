"""Option chain API routes: current view, refresh and export."""
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from typing import Any, Dict, Optional
import logging

from app.api.session import get_session
from app.services.analyzer_session import AnalyzerSession, LiveView, validate_index_symbol

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/option-chain", tags=["option-chain"])


def _validate(symbol: str) -> str:
    try:
        return validate_index_symbol(symbol)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )


def serialize_view(view: LiveView, strike_window: Optional[float] = None) -> Dict[str, Any]:
    """
    Serialize a live view for the dashboard.

    Args:
        view: Current view
        strike_window: Only include strikes within ATM +/- this many points
    """
    records = view.snapshot.to_document()["records"]
    atm = view.analysis.atm_strike
    if strike_window is not None and atm:
        records["data"] = [
            row for row in records["data"]
            if atm - strike_window <= row["strikePrice"] <= atm + strike_window
        ]

    return {
        "symbol": view.symbol,
        "source": view.source,
        "lastUpdated": view.label,
        "updatedAt": view.updated_at.isoformat(),
        "error": view.error,
        "analysis": view.analysis.to_dict(),
        "records": records,
    }


@router.get("/{symbol}")
async def get_option_chain(
    symbol: str,
    strike_window: Optional[float] = None,
    session: AnalyzerSession = Depends(get_session)
):
    """
    Get the current option chain and analysis for an index.

    Fetches on first access; afterwards returns the last refreshed view.
    """
    symbol = _validate(symbol)
    view = session.current(symbol)
    if view is None:
        view = await session.refresh(symbol)
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"No data available for {symbol}"
        )
    return serialize_view(view, strike_window)


@router.post("/{symbol}/refresh")
async def refresh_option_chain(
    symbol: str,
    strike_window: Optional[float] = None,
    session: AnalyzerSession = Depends(get_session)
):
    """Fetch the latest chain now and record it in the history."""
    symbol = _validate(symbol)
    if session.backfill_running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A backfill is in progress"
        )

    view = await session.refresh(symbol)
    if view is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"No data available for {symbol}"
        )
    logger.info(f"Refreshed {symbol} ({view.source})")
    return serialize_view(view, strike_window)


@router.get("/{symbol}/export")
async def export_option_chain(
    symbol: str,
    session: AnalyzerSession = Depends(get_session)
):
    """Download the current snapshot as a JSON document."""
    symbol = _validate(symbol)
    exported = session.export_current(symbol)
    if exported is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No snapshot loaded for {symbol}"
        )

    filename, document = exported
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )
