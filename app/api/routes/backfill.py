"""Backfill API routes."""
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, status

from app.api.session import get_session
from app.services.analyzer_session import AnalyzerSession, validate_index_symbol

router = APIRouter(prefix="/api/backfill", tags=["backfill"])


@router.post("/{symbol}", status_code=status.HTTP_202_ACCEPTED)
async def start_backfill(
    symbol: str,
    background_tasks: BackgroundTasks,
    session: AnalyzerSession = Depends(get_session)
):
    """
    Start backfilling today's snapshots for an index.

    The run continues in the background; poll /api/backfill/status.
    """
    try:
        symbol = validate_index_symbol(symbol)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )

    if session.backfill_running:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A backfill is already in progress"
        )

    background_tasks.add_task(session.backfill, symbol)
    return {"message": f"Backfill started for {symbol}", "symbol": symbol}


@router.get("/status")
async def get_backfill_status(session: AnalyzerSession = Depends(get_session)):
    """Get progress of the current or most recent backfill."""
    backfill = session.backfill_status
    return {
        "symbol": backfill.symbol,
        "running": backfill.running,
        "state": backfill.state.value,
        "progress": backfill.progress,
        "records": backfill.records,
        "skipped": backfill.skipped,
        "error": backfill.error,
    }
