# tests/unit/storage/test_memory_store.py — v1
"""Tests for storage/memory_store.py — quota counter and in-memory repository."""

from __future__ import annotations

import re

import pytest

from offerscope.analysis.models import AnalysisMetadata, AnalysisResult
from offerscope.storage.memory_store import (
    InMemoryQuotaStore,
    InMemoryRepository,
    generate_record_id,
)


class TestGenerateRecordId:
    def test_format(self):
        assert re.fullmatch(r"\d{8}_\d{6}_[0-9a-f]{8}", generate_record_id())

    def test_uniqueness(self):
        assert len({generate_record_id() for _ in range(50)}) == 50


class TestInMemoryQuotaStore:
    @pytest.mark.asyncio
    async def test_remaining_counts_down(self):
        store = InMemoryQuotaStore(limit=2)
        assert await store.remaining("u1") == 2
        await store.increment("u1")
        assert await store.remaining("u1") == 1
        assert store.usage("u1") == 1

    @pytest.mark.asyncio
    async def test_users_independent(self):
        store = InMemoryQuotaStore(limit=1, usage={"a": 1})
        assert await store.remaining("a") == 0
        assert await store.remaining("b") == 1

    @pytest.mark.asyncio
    async def test_initial_usage_copied(self):
        usage = {"a": 0}
        store = InMemoryQuotaStore(limit=1, usage=usage)
        await store.increment("a")
        assert usage == {"a": 0}


class TestInMemoryRepository:
    @pytest.mark.asyncio
    async def test_save_and_list(self):
        repo = InMemoryRepository()
        result = AnalysisResult(document_type="coe", summary="s")
        record_id = await repo.save(result, AnalysisMetadata(degraded=True), "u1")
        await repo.save(result, AnalysisMetadata(), "u2")

        record = repo.records[record_id]
        assert record.user_id == "u1"
        assert record.document_type == "coe"
        assert record.metadata.degraded is True
        assert [r.record_id for r in repo.for_user("u1")] == [record_id]
