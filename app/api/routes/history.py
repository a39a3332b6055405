"""Snapshot history API routes."""
from fastapi import APIRouter, Depends, HTTPException, status
from typing import Optional

from app.api.session import get_session
from app.services.analyzer_session import AnalyzerSession

router = APIRouter(prefix="/api/history", tags=["history"])


@router.get("")
async def get_history(
    limit: Optional[int] = None,
    session: AnalyzerSession = Depends(get_session)
):
    """
    Get recorded snapshots, most recent first.

    Args:
        limit: Return at most this many snapshots
    """
    snapshots = await session.history()
    if limit is not None:
        snapshots = snapshots[:max(limit, 0)]

    return {
        "count": len(snapshots),
        "snapshots": [s.to_dict() for s in snapshots]
    }


@router.delete("", status_code=status.HTTP_200_OK)
async def clear_history(session: AnalyzerSession = Depends(get_session)):
    """Delete all recorded snapshots."""
    if not await session.clear_history():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="History storage is unavailable"
        )
    return {"message": "History cleared"}
