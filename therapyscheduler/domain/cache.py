"""
Score memoization scoped to a single scheduling call.

Scores are pure for a given snapshot of inputs, so the same
(pair, time) combination can be reused within one run. A cache instance is
created per call (or injected by the caller) and is never module-global.
"""

from typing import Any, Callable, Hashable, Optional, Protocol, TypeVar

from cachetools import TTLCache

from ..config import CacheConfig

T = TypeVar("T")

_MISSING = object()


class ScoreCache(Protocol):
    """Protocol describing the cache behaviour needed by the scorer."""

    def get(self, key: Hashable, default: Any = None) -> Any:
        """Return the cached value or default."""

    def set(self, key: Hashable, value: Any) -> None:
        """Store a value."""

    def clear(self) -> None:
        """Drop every cached value."""


class BoundedScoreCache:
    """Size- and TTL-bounded cache backed by ``cachetools.TTLCache``."""

    def __init__(self, max_entries: int = 50_000, ttl_seconds: float = 300.0) -> None:
        self._entries: TTLCache = TTLCache(maxsize=max_entries, ttl=ttl_seconds)
        self.hits = 0
        self.misses = 0

    @classmethod
    def from_config(cls, config: CacheConfig) -> "BoundedScoreCache":
        return cls(max_entries=config.max_entries, ttl_seconds=config.ttl_seconds)

    def get(self, key: Hashable, default: Any = None) -> Any:
        value = self._entries.get(key, _MISSING)
        if value is _MISSING:
            self.misses += 1
            return default
        self.hits += 1
        return value

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = value

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)


class NullScoreCache:
    """Cache that stores nothing; useful to measure uncached behaviour."""

    def get(self, key: Hashable, default: Any = None) -> Any:
        return default

    def set(self, key: Hashable, value: Any) -> None:
        return None

    def clear(self) -> None:
        return None


def memoized(cache: Optional[ScoreCache], key: Hashable, compute: Callable[[], T]) -> T:
    """Return the cached value for key, computing and storing it on a miss."""
    if cache is None:
        return compute()
    value = cache.get(key, _MISSING)
    if value is _MISSING:
        value = compute()
        cache.set(key, value)
    return value
