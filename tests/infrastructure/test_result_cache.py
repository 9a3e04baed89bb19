"""Tests for ResultCache and cache keys."""

from __future__ import annotations

import pytest

from pharma_assurance.infrastructure.result_cache import (
    DEFAULT_MAX_ENTRIES,
    ResultCache,
    cache_key,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


class TestResultCache:
    def test_put_and_get(self) -> None:
        cache = ResultCache()
        cache.put("k", {"value": 1})
        assert cache.get("k") == {"value": 1}
        assert cache.get("missing") is None

    def test_entries_expire(self) -> None:
        clock = FakeClock()
        cache = ResultCache(ttl=10.0, clock=clock)
        cache.put("k", "v")

        clock.now += 9.9
        assert cache.get("k") == "v"
        clock.now += 0.1
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_max_entries_evicts_oldest(self) -> None:
        cache = ResultCache(max_entries=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("c", 3)
        assert cache.get("a") is None
        assert cache.get("b") == 2
        assert cache.get("c") == 3

    def test_overwrite_does_not_evict(self) -> None:
        cache = ResultCache(max_entries=2)
        cache.put("a", 1)
        cache.put("b", 2)
        cache.put("a", 10)
        assert cache.get("a") == 10
        assert cache.get("b") == 2

    def test_put_purges_expired_entries(self) -> None:
        clock = FakeClock()
        cache = ResultCache(ttl=10.0, clock=clock)
        for key in ("a", "b", "c"):
            cache.put(key, key)
        clock.now += 10.0
        cache.put("d", "d")
        assert len(cache) == 1
        assert cache.get("d") == "d"

    def test_bounded_by_default(self) -> None:
        cache = ResultCache()
        for i in range(DEFAULT_MAX_ENTRIES + 5):
            cache.put(f"k{i}", i)
        assert len(cache) == DEFAULT_MAX_ENTRIES
        assert cache.get("k0") is None

    def test_non_positive_max_entries_is_unbounded(self) -> None:
        cache = ResultCache(max_entries=0)
        for i in range(5):
            cache.put(f"k{i}", i)
        assert len(cache) == 5

    def test_invalidate_and_clear(self) -> None:
        cache = ResultCache()
        cache.put("a", 1)
        cache.put("b", 2)
        assert cache.invalidate("a")
        assert not cache.invalidate("a")
        cache.clear()
        assert len(cache) == 0

    @pytest.mark.parametrize("ttl", [0, -5])
    def test_rejects_non_positive_ttl(self, ttl: float) -> None:
        with pytest.raises(ValueError):
            ResultCache(ttl=ttl)


class TestCacheKey:
    def test_stable_for_equal_mappings(self) -> None:
        assert cache_key({"a": 1, "b": 2}, "report") == cache_key({"b": 2, "a": 1}, "report")

    def test_part_order_matters(self) -> None:
        assert cache_key("x", "y") != cache_key("y", "x")

    def test_hex_digest(self) -> None:
        key = cache_key({"target": "LPA1"})
        assert len(key) == 64
        int(key, 16)
