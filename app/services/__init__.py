"""Services package initialization."""
from app.services.analytics import analyze_option_chain
from app.services.snapshot_store import (
    SnapshotStore,
    RedisSnapshotPersistence,
    InMemorySnapshotPersistence,
    PersistenceUnavailable
)
from app.services.option_chain_service import FetchResult, fetch_option_chain

__all__ = [
    "analyze_option_chain",
    "SnapshotStore",
    "RedisSnapshotPersistence",
    "InMemorySnapshotPersistence",
    "PersistenceUnavailable",
    "FetchResult",
    "fetch_option_chain"
]
