# src/storage/memory_store.py — v1
"""In-process quota store and repository.

Used by the CLI and tests; a web deployment supplies database-backed
implementations of the same interfaces.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime, timezone

from offerscope.analysis.models import AnalysisMetadata, AnalysisResult
from offerscope.storage.base_quota_store import BaseQuotaStore
from offerscope.storage.base_repository import BaseRepository
from offerscope.storage.models import AnalysisRecord

logger = logging.getLogger(__name__)


def generate_record_id() -> str:
    """Generate a record ID: yyyymmdd_hhmmss_{uuid4_short}."""
    ts = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{ts}_{uuid.uuid4().hex[:8]}"


class InMemoryQuotaStore(BaseQuotaStore):
    """Fixed per-user limit with an in-memory usage counter."""

    def __init__(self, limit: int, usage: dict[str, int] | None = None) -> None:
        self._limit = limit
        self._usage: dict[str, int] = dict(usage or {})
        self._lock = asyncio.Lock()

    async def remaining(self, user_id: str) -> int:
        async with self._lock:
            return self._limit - self._usage.get(user_id, 0)

    async def increment(self, user_id: str) -> None:
        async with self._lock:
            self._usage[user_id] = self._usage.get(user_id, 0) + 1
            logger.debug("Quota usage for %s: %d/%d", user_id, self._usage[user_id], self._limit)

    def usage(self, user_id: str) -> int:
        return self._usage.get(user_id, 0)


class InMemoryRepository(BaseRepository):
    """Keeps every saved record in a dict keyed by record id."""

    def __init__(self) -> None:
        self.records: dict[str, AnalysisRecord] = {}

    async def save(
        self,
        result: AnalysisResult,
        metadata: AnalysisMetadata,
        user_id: str,
    ) -> str:
        record = AnalysisRecord(
            record_id=generate_record_id(),
            user_id=user_id,
            document_type=result.document_type,
            created_at=datetime.now(timezone.utc),
            result=result,
            metadata=metadata,
        )
        self.records[record.record_id] = record
        return record.record_id

    def for_user(self, user_id: str) -> list[AnalysisRecord]:
        return [r for r in self.records.values() if r.user_id == user_id]
