# tests/unit/cache/test_result_cache.py — v2
"""Tests for cache/result_cache.py — capacity, TTL, eviction order and thread safety."""

from __future__ import annotations

import threading

import pytest

from offerscope.analysis.models import AnalysisResult
from offerscope.cache.result_cache import ResultCache


def _result(summary: str = "cached") -> AnalysisResult:
    return AnalysisResult(document_type="offer_letter", summary=summary)


class TestResultCacheInit:
    def test_defaults(self):
        cache = ResultCache()
        assert cache.capacity == 100
        assert cache.stats().ttl_seconds == 3600
        assert len(cache) == 0

    @pytest.mark.parametrize("kwargs", [{"capacity": 0}, {"ttl_seconds": 0}, {"capacity": -1}])
    def test_invalid_bounds(self, kwargs):
        with pytest.raises(ValueError):
            ResultCache(**kwargs)


class TestLookup:
    def test_miss(self):
        cache = ResultCache()
        assert cache.lookup("offer_letter:abc") is None
        assert cache.stats().misses == 1

    def test_hit_returns_entry(self):
        cache = ResultCache()
        cache.put("k", _result("first"))
        entry = cache.lookup("k")
        assert entry is not None
        assert entry.value.summary == "first"
        assert entry.degraded is False
        assert cache.stats().hits == 1

    def test_get_returns_value(self):
        cache = ResultCache()
        cache.put("k", _result("first"))
        assert cache.get("k").summary == "first"
        assert cache.get("missing") is None

    def test_degraded_flag_kept(self):
        cache = ResultCache()
        cache.put("k", _result(), degraded=True)
        assert cache.lookup("k").degraded is True


class TestExpiry:
    def test_live_before_ttl(self, clock):
        cache = ResultCache(ttl_seconds=60, clock=clock)
        cache.put("k", _result())
        clock.advance(59)
        assert cache.get("k") is not None

    def test_expired_at_ttl_is_deleted(self, clock):
        cache = ResultCache(ttl_seconds=60, clock=clock)
        cache.put("k", _result())
        clock.advance(60)
        assert cache.get("k") is None
        assert "k" not in cache
        stats = cache.stats()
        assert stats.expirations == 1
        assert stats.misses == 1

    def test_overwrite_refreshes_timestamp(self, clock):
        cache = ResultCache(ttl_seconds=60, clock=clock)
        cache.put("k", _result("old"))
        clock.advance(50)
        cache.put("k", _result("new"))
        clock.advance(50)
        assert cache.get("k").summary == "new"


class TestEviction:
    def test_never_exceeds_capacity(self):
        cache = ResultCache(capacity=3)
        for i in range(10):
            cache.put(f"k{i}", _result(str(i)))
            assert len(cache) <= 3
        assert cache.stats().evictions == 7

    def test_oldest_inserted_evicted_first(self):
        cache = ResultCache(capacity=2)
        cache.put("a", _result("a"))
        cache.put("b", _result("b"))
        cache.get("a")  # reads do not refresh insertion order
        cache.put("c", _result("c"))
        assert "a" not in cache
        assert "b" in cache and "c" in cache

    def test_overwrite_does_not_evict(self):
        cache = ResultCache(capacity=2)
        cache.put("a", _result())
        cache.put("b", _result())
        cache.put("a", _result("again"))
        assert len(cache) == 2
        assert cache.stats().evictions == 0
        # "a" was reinserted, so "b" is now the oldest.
        cache.put("c", _result())
        assert "b" not in cache
        assert "a" in cache


class TestClearAndStats:
    def test_clear(self):
        cache = ResultCache()
        cache.put("a", _result())
        cache.clear()
        assert len(cache) == 0

    def test_stats_keys_in_insertion_order(self):
        cache = ResultCache()
        cache.put("x", _result())
        cache.put("y", _result())
        stats = cache.stats()
        assert stats.keys == ["x", "y"]
        assert stats.size == 2
        assert stats.capacity == 100


class TestThreadSafety:
    def test_concurrent_put_get_stays_bounded(self):
        cache = ResultCache(capacity=5)
        shared = _result()
        errors: list[BaseException] = []
        barrier = threading.Barrier(8)

        def worker(n: int) -> None:
            try:
                barrier.wait()
                for i in range(500):
                    key = f"k{(n * 7 + i) % 20}"
                    cache.put(key, shared, degraded=i % 2 == 0)
                    value = cache.get(key)
                    assert value is None or value == shared
                    assert len(cache) <= 5
            except BaseException as exc:
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert len(cache) <= cache.capacity
        stats = cache.stats()
        assert stats.size == len(stats.keys) <= 5
        assert stats.hits + stats.misses == 8 * 500
