"""
ResponseCache - In-memory cache of successful API responses with per-entry TTL.

Features:
- Lazy expiry: stale entries are dropped by the lookup that finds them
- Capacity bound with oldest-first eviction
- Injectable clock so expiry can be simulated in tests
- No awaits inside any operation, so each one completes within a single
  event-loop turn and interleaved callers never observe a partial write
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Generic, Mapping, TypeVar

from loguru import logger

from company_lookup.constants import CacheTTL

T = TypeVar("T")


def make_cache_key(endpoint: str, params: Mapping[str, Any] | None = None) -> str:
    """Build a cache key from the endpoint and its sorted parameters."""
    if not params:
        return endpoint
    sorted_params = "&".join(f"{k}={v}" for k, v in sorted(params.items()))
    return f"{endpoint}?{sorted_params}"


@dataclass
class CacheEntry(Generic[T]):
    """A single cache entry with metadata."""

    data: T
    timestamp: datetime
    ttl: timedelta

    def age(self, now: datetime) -> timedelta:
        return now - self.timestamp

    def is_valid(self, now: datetime) -> bool:
        """An entry is valid while its age is strictly below its TTL."""
        return self.age(now) < self.ttl


class ResponseCache:
    """
    Key-value cache for successful responses.

    Usage:
        cache = ResponseCache(max_size=100)

        data = cache.get(key)
        if data is None:
            data = await fetch()
            cache.set(key, data, ttl=CacheTTL.SEARCH)
    """

    def __init__(
        self,
        max_size: int = 256,
        default_ttl: timedelta = CacheTTL.DEFAULT,
        clock: Callable[[], datetime] = datetime.now,
        debug: bool = False,
    ):
        self._memory: dict[str, CacheEntry[Any]] = {}
        self._max_size = max_size
        self._default_ttl = default_ttl
        self._clock = clock
        self._debug = debug
        self._stats = CacheStats()

    def get(self, key: str) -> Any | None:
        """Return the cached payload, or None if absent or expired."""
        entry = self._memory.get(key)
        if entry is None:
            self._stats.misses += 1
            self._log(f"MISS: {key[:80]}")
            return None

        if not entry.is_valid(self._clock()):
            del self._memory[key]
            self._stats.misses += 1
            self._stats.expirations += 1
            self._log(f"EXPIRED: {key[:80]}")
            return None

        self._stats.hits += 1
        self._log(f"HIT: {key[:80]}")
        return entry.data

    def set(self, key: str, data: Any, ttl: timedelta | None = None) -> None:
        """Store ``data`` under ``key`` for ``ttl`` (default TTL if omitted)."""
        ttl = self._default_ttl if ttl is None else ttl

        if len(self._memory) >= self._max_size and key not in self._memory:
            self._evict_oldest()

        self._memory[key] = CacheEntry(data=data, timestamp=self._clock(), ttl=ttl)
        self._log(f"SET: {key[:80]} (TTL: {ttl.total_seconds()}s)")

    def delete(self, key: str) -> bool:
        """Delete a specific key from cache."""
        if key in self._memory:
            del self._memory[key]
            self._log(f"DELETE: {key[:80]}")
            return True
        return False

    def invalidate(self, pattern: str) -> int:
        """
        Invalidate all keys containing ``pattern``.

        Returns:
            Number of entries invalidated
        """
        keys_to_delete = [k for k in self._memory if pattern in k]
        for key in keys_to_delete:
            del self._memory[key]

        if keys_to_delete:
            self._log(f"INVALIDATE: {len(keys_to_delete)} entries matching '{pattern}'")

        return len(keys_to_delete)

    def clear(self) -> None:
        """Clear all cache entries."""
        count = len(self._memory)
        self._memory.clear()
        logger.debug(f"Response cache cleared ({count} entries)")

    def cleanup_expired(self) -> int:
        """Remove all expired entries. Returns count of removed entries."""
        now = self._clock()
        expired_keys = [k for k, v in self._memory.items() if not v.is_valid(now)]
        for key in expired_keys:
            del self._memory[key]

        if expired_keys:
            self._stats.expirations += len(expired_keys)
            self._log(f"CLEANUP: {len(expired_keys)} expired entries removed")

        return len(expired_keys)

    def entries(self) -> list[dict[str, Any]]:
        """Describe every stored entry (key, age and TTL in seconds)."""
        now = self._clock()
        return [
            {
                "key": key,
                "age": entry.age(now).total_seconds(),
                "ttl": entry.ttl.total_seconds(),
            }
            for key, entry in self._memory.items()
        ]

    def __len__(self) -> int:
        return len(self._memory)

    def __contains__(self, key: str) -> bool:
        entry = self._memory.get(key)
        return entry is not None and entry.is_valid(self._clock())

    def _evict_oldest(self) -> None:
        if not self._memory:
            return

        oldest_key = min(
            self._memory.keys(),
            key=lambda k: self._memory[k].timestamp,
        )
        del self._memory[oldest_key]
        self._stats.evictions += 1
        self._log(f"EVICT: {oldest_key[:80]}")

    def get_stats(self) -> "CacheStats":
        """Get cache statistics."""
        self._stats.size = len(self._memory)
        self._stats.max_size = self._max_size
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[ResponseCache] {message}")


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    expirations: int = 0
    evictions: int = 0
    size: int = 0
    max_size: int = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate."""
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expirations": self.expirations,
            "evictions": self.evictions,
            "size": self.size,
            "max_size": self.max_size,
            "hit_rate": f"{self.hit_rate:.2%}",
        }
