"""
Tests for the per-call score cache.
"""

from therapyscheduler.config import CacheConfig
from therapyscheduler.domain.cache import BoundedScoreCache, NullScoreCache, memoized


class TestBoundedScoreCache:
    """Tests for BoundedScoreCache."""

    def test_get_and_set(self):
        cache = BoundedScoreCache()
        cache.set(("compatibility", "t1", "c1"), 0.75)

        assert cache.get(("compatibility", "t1", "c1")) == 0.75
        assert cache.get(("compatibility", "t1", "c2")) is None
        assert cache.hits == 1
        assert cache.misses == 1

    def test_size_is_bounded(self):
        cache = BoundedScoreCache.from_config(CacheConfig(max_entries=2, ttl_seconds=60))
        for n in range(5):
            cache.set(n, n)

        assert len(cache) == 2

    def test_clear(self):
        cache = BoundedScoreCache()
        cache.set("key", 1.0)
        cache.get("key")
        cache.clear()

        assert cache.get("key") is None
        assert cache.hits == 0


class TestMemoized:
    """Tests for memoized."""

    def test_computes_once(self):
        cache = BoundedScoreCache()
        calls = []

        def compute():
            calls.append(1)
            return 0.5

        assert memoized(cache, "key", compute) == 0.5
        assert memoized(cache, "key", compute) == 0.5
        assert len(calls) == 1

    def test_caches_falsy_values(self):
        cache = BoundedScoreCache()
        calls = []

        def compute():
            calls.append(1)
            return 0.0

        memoized(cache, "key", compute)
        memoized(cache, "key", compute)

        assert len(calls) == 1

    def test_without_cache(self):
        calls = []

        def compute():
            calls.append(1)
            return 1.0

        memoized(None, "key", compute)
        memoized(NullScoreCache(), "key", compute)
        memoized(NullScoreCache(), "key", compute)

        assert len(calls) == 3
