"""Bounded, de-duplicated snapshot history backed by a key-value store."""
import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

import redis.asyncio as redis

from app.core.config import settings
from app.core.redis import get_redis
from app.providers.models import AnalysisResult, OptionChainSnapshot, SnapshotSummary


logger = logging.getLogger(__name__)


class PersistenceUnavailable(Exception):
    """Raised when the history cannot be read from or written to storage."""
    pass


class SnapshotPersistence(ABC):
    """Key-value storage holding the whole history as one JSON array."""

    @abstractmethod
    async def load(self) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    async def save(self, records: List[Dict[str, Any]]) -> None:
        pass


class InMemorySnapshotPersistence(SnapshotPersistence):
    """Process-local persistence for development and tests."""

    def __init__(self, records: Optional[List[Dict[str, Any]]] = None):
        self._payload = json.dumps(records or [])

    async def load(self) -> List[Dict[str, Any]]:
        return json.loads(self._payload)

    async def save(self, records: List[Dict[str, Any]]) -> None:
        self._payload = json.dumps(records)


class RedisSnapshotPersistence(SnapshotPersistence):
    """Persist the history under a single Redis key."""

    def __init__(self, key: Optional[str] = None):
        self.key = key or settings.history_key
        self.redis = None
        self._lock = asyncio.Lock()

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self.redis is None:
            async with self._lock:
                if self.redis is None:
                    self.redis = await get_redis()
        return self.redis

    async def load(self) -> List[Dict[str, Any]]:
        try:
            client = await self._get_redis()
            raw = await client.get(self.key)
        except redis.RedisError as e:
            raise PersistenceUnavailable(f"Failed to read {self.key}: {e}")

        if not raw:
            return []
        try:
            records = json.loads(raw)
        except json.JSONDecodeError as e:
            raise PersistenceUnavailable(f"Corrupt history under {self.key}: {e}")
        if not isinstance(records, list):
            raise PersistenceUnavailable(f"History under {self.key} is not a list")
        return records

    async def save(self, records: List[Dict[str, Any]]) -> None:
        try:
            client = await self._get_redis()
            await client.set(self.key, json.dumps(records))
        except redis.RedisError as e:
            raise PersistenceUnavailable(f"Failed to write {self.key}: {e}")


def merge_snapshots(
    new: Iterable[SnapshotSummary],
    existing: Iterable[SnapshotSummary],
    limit: int
) -> List[SnapshotSummary]:
    """
    Merge new summaries into the history.

    New entries are placed first, then everything is stable-sorted by
    timestamp (newest first). Only the first entry per timestamp is kept
    and the result is truncated to ``limit``.
    """
    combined = list(new) + list(existing)
    # sorted() is stable, so new entries win timestamp ties
    combined = sorted(combined, key=lambda s: s.timestamp, reverse=True)

    seen = set()
    unique = []
    for summary in combined:
        if summary.timestamp in seen:
            continue
        seen.add(summary.timestamp)
        unique.append(summary)
    return unique[:limit]


def build_summary(
    snapshot: OptionChainSnapshot,
    analysis: AnalysisResult,
    summary_id: Optional[str] = None,
    pcr_change_oi: Optional[float] = None
) -> SnapshotSummary:
    """Compress a snapshot and its analysis into a history point."""
    return SnapshotSummary(
        id=summary_id or str(int(time.time() * 1000)),
        timestamp=snapshot.timestamp,
        underlying_value=snapshot.underlying_value,
        pcr=analysis.pcr,
        max_pain=analysis.max_pain,
        ce_total_oi=analysis.call_oi,
        pe_total_oi=analysis.put_oi,
        pcr_change_oi=pcr_change_oi,
    )


class SnapshotStore:
    """Own the persisted snapshot history.

    Every mutation reads the whole collection, merges and writes it back
    under a lock. Persistence failures are logged and never raised to the
    caller.
    """

    def __init__(
        self,
        persistence: SnapshotPersistence,
        limit: Optional[int] = None,
        batch_limit: Optional[int] = None
    ):
        self.persistence = persistence
        self.limit = limit or settings.history_limit
        self.batch_limit = batch_limit or settings.backfill_history_limit
        self._lock = asyncio.Lock()

    async def _load(self) -> List[SnapshotSummary]:
        records = await self.persistence.load()
        summaries = []
        for record in records:
            try:
                summaries.append(SnapshotSummary.from_dict(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Dropping unreadable history record {record!r}: {e}")
        return summaries

    async def _merge_and_save(self, new: List[SnapshotSummary], limit: int) -> bool:
        async with self._lock:
            try:
                existing = await self._load()
                merged = merge_snapshots(new, existing, limit)
                await self.persistence.save([s.to_dict() for s in merged])
                return True
            except PersistenceUnavailable as e:
                logger.error(f"Failed to save snapshot history: {e}")
                return False

    async def record(self, snapshot: OptionChainSnapshot, analysis: AnalysisResult) -> SnapshotSummary:
        """
        Summarize an analyzed snapshot and merge it into the history.

        Args:
            snapshot: Snapshot that was analyzed
            analysis: Its analysis result

        Returns:
            The summary that was built, whether or not it could be saved
        """
        summary = build_summary(snapshot, analysis)
        saved = await self._merge_and_save([summary], self.limit)
        if saved:
            logger.debug(f"Recorded snapshot {summary.id} at {summary.timestamp}")
        return summary

    async def record_batch(self, summaries: List[SnapshotSummary]) -> bool:
        """
        Merge precomputed summaries (from a backfill) into the history.

        Returns:
            True if the history was saved
        """
        saved = await self._merge_and_save(list(summaries), self.batch_limit)
        if saved:
            logger.info(f"Recorded batch of {len(summaries)} snapshots")
        return saved

    async def list(self) -> List[SnapshotSummary]:
        """Get a copy of the history, most recent first (empty if unavailable)."""
        try:
            return list(await self._load())
        except PersistenceUnavailable as e:
            logger.error(f"Failed to load snapshot history: {e}")
            return []

    async def clear(self) -> bool:
        """
        Empty the history.

        Returns:
            True if the history was cleared
        """
        async with self._lock:
            try:
                await self.persistence.save([])
                logger.info("Snapshot history cleared")
                return True
            except PersistenceUnavailable as e:
                logger.error(f"Failed to clear snapshot history: {e}")
                return False
