"""Process-wide analyzer session for API routes."""
from typing import Optional

from app.services.analyzer_session import AnalyzerSession, create_session


# Global session, created on first use
_session: Optional[AnalyzerSession] = None


def get_session() -> AnalyzerSession:
    """FastAPI dependency returning the shared analyzer session."""
    global _session
    if _session is None:
        _session = create_session()
    return _session


async def close_session():
    """Close the shared session's provider."""
    global _session
    if _session is not None:
        await _session.provider.close()
        _session = None
