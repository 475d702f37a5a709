# src/cache/result_cache.py — v1
"""Bounded, TTL-expiring in-process store of AnalysisResults.

Entries are keyed by ``build_cache_key(document_type, text)``. Inserting into
a full cache evicts the oldest inserted entry first; expiry is checked lazily
on read. All public methods hold one lock, so the cache can be shared by
concurrent runs in different tasks or threads. Concurrent writes of the same
key are last-write-wins.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Callable

from offerscope.analysis.models import AnalysisResult
from offerscope.cache.models import CacheEntry, CacheStats

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResultCache:
    """Keyed store of analysis results with capacity and TTL bounds."""

    def __init__(
        self,
        capacity: int = 100,
        ttl_seconds: int = 3600,
        clock: Clock | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self._capacity = capacity
        self._ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock or _utcnow
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0
        self._expirations = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def lookup(self, key: str) -> CacheEntry | None:
        """Return the live entry for *key*, deleting it first if expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None
            if self._clock() - entry.stored_at >= self._ttl:
                del self._entries[key]
                self._expirations += 1
                self._misses += 1
                logger.debug("Cache entry expired: %s", key)
                return None
            self._hits += 1
            return entry

    def get(self, key: str) -> AnalysisResult | None:
        entry = self.lookup(key)
        return entry.value if entry is not None else None

    def put(self, key: str, value: AnalysisResult, degraded: bool = False) -> None:
        """Insert or overwrite *key*; never grows past capacity."""
        entry = CacheEntry(
            key=key, value=value, stored_at=self._clock(), degraded=degraded
        )
        with self._lock:
            if key in self._entries:
                # Overwrite counts as a fresh insertion for eviction order.
                del self._entries[key]
            elif len(self._entries) >= self._capacity:
                evicted_key, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug("Cache full (%d), evicted %s", self._capacity, evicted_key)
            self._entries[key] = entry

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
        logger.info("Result cache cleared")

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                size=len(self._entries),
                capacity=self._capacity,
                ttl_seconds=int(self._ttl.total_seconds()),
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                expirations=self._expirations,
                keys=list(self._entries),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
