"""Workers package initialization."""
from app.workers.backfill_worker import BackfillWorker, BackfillResult, BackfillState

__all__ = ["BackfillWorker", "BackfillResult", "BackfillState"]
