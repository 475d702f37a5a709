# src/cache/models.py — v1
"""Cache domain models: CacheEntry, CacheStats."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from offerscope.analysis.models import AnalysisResult


class CacheEntry(BaseModel):
    """Single cache entry linking a fingerprint key to an analysis result."""

    model_config = ConfigDict(frozen=True)

    key: str
    value: AnalysisResult
    stored_at: datetime
    degraded: bool = False


class CacheStats(BaseModel):
    """Point-in-time counters for an in-process result cache."""

    size: int
    capacity: int
    ttl_seconds: int
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    expirations: int = 0
    keys: list[str] = []
