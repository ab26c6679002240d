"""
Response Cache - Short-TTL cache with stale-on-error serving.

============================================================
RESPONSIBILITY
============================================================
Wraps an expensive producer (an orchestrator run) per logical
endpoint key.

- Hit within TTL: cached value, producer not called
- Miss: producer called, value stored
- Producer failure with a previous entry: previous value, STALE
- Producer failure without one: CacheProducerError

============================================================
DESIGN PRINCIPLES
============================================================
- Whole-value replacement only, no partial writes
- A per-key asyncio.Lock bounds duplicate producer calls
- FIFO-ish eviction of the oldest quarter above max_entries

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from core.clock import ClockProtocol, get_clock
from data_sources.exceptions import CacheProducerError


logger = logging.getLogger(__name__)

T = TypeVar("T")

Producer = Callable[[], Awaitable[T]]
StorePredicate = Callable[[Any], bool]


class CacheStatus(Enum):
    """Value of the X-Cache header."""
    HIT = "HIT"
    MISS = "MISS"
    STALE = "STALE"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Stored value and the clock timestamp it was stored at."""
    value: T
    stored_at: float


@dataclass(frozen=True)
class CachedResult(Generic[T]):
    """Value returned by the cache and how it was obtained."""
    value: T
    status: CacheStatus
    stored_at: Optional[float] = None

    @property
    def is_stale(self) -> bool:
        return self.status == CacheStatus.STALE


def _always_store(value: Any) -> bool:
    return True


class ResponseCache:
    """
    Process-wide response cache.

    Usage:
        cache = ResponseCache(max_entries=100)
        result = await cache.get_or_fetch("funding", 30, produce_funding)
        response.headers["X-Cache"] = result.status.value
    """

    EVICTION_FRACTION = 0.25

    def __init__(
        self,
        max_entries: int = 100,
        clock: Optional[ClockProtocol] = None,
        should_store: Optional[StorePredicate] = None,
    ) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._clock = clock or get_clock()
        self._should_store = should_store or _always_store
        self._entries: dict[str, CacheEntry] = {}
        self._locks: dict[str, asyncio.Lock] = {}

        self._hits = 0
        self._misses = 0
        self._stale_serves = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Get the stored entry without touching freshness."""
        return self._entries.get(key)

    async def get_or_fetch(
        self,
        key: str,
        ttl_seconds: float,
        producer: Producer,
    ) -> CachedResult:
        """
        Return a fresh cached value or refresh it through the producer.

        Args:
            key: Logical endpoint key
            ttl_seconds: Freshness window
            producer: Coroutine function computing a new value

        Returns:
            CachedResult with HIT, MISS or STALE status

        Raises:
            CacheProducerError: Producer failed and nothing was cached
        """
        fresh = self._fresh_entry(key, ttl_seconds)
        if fresh is not None:
            self._hits += 1
            return CachedResult(fresh.value, CacheStatus.HIT, fresh.stored_at)

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            # Another caller may have refreshed while we waited
            fresh = self._fresh_entry(key, ttl_seconds)
            if fresh is not None:
                self._hits += 1
                return CachedResult(fresh.value, CacheStatus.HIT, fresh.stored_at)

            previous = self._entries.get(key)
            try:
                value = await producer()
            except Exception as e:
                if previous is not None:
                    return self._serve_stale(key, previous, e)
                raise CacheProducerError(
                    f"Refresh of '{key}' failed with nothing cached",
                    cache_key=key,
                    original_error=e,
                ) from e

            if not self._should_store(value):
                if previous is not None:
                    return self._serve_stale(key, previous, "value rejected")
                self._misses += 1
                logger.info(f"[cache] {key}: value not stored, nothing to fall back to")
                return CachedResult(value, CacheStatus.MISS)

            stored_at = self._store(key, value)
            self._misses += 1
            return CachedResult(value, CacheStatus.MISS, stored_at)

    def invalidate(self, key: str) -> bool:
        """Drop one entry."""
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        self._locks.clear()

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        return {
            "entries": len(self._entries),
            "max_entries": self._max_entries,
            "hits": self._hits,
            "misses": self._misses,
            "stale_serves": self._stale_serves,
        }

    def _fresh_entry(self, key: str, ttl_seconds: float) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock.timestamp() - entry.stored_at < ttl_seconds:
            return entry
        return None

    def _serve_stale(self, key: str, entry: CacheEntry, reason: Any) -> CachedResult:
        self._stale_serves += 1
        logger.warning(f"[cache] {key}: serving stale value ({reason})")
        return CachedResult(entry.value, CacheStatus.STALE, entry.stored_at)

    def _store(self, key: str, value: Any) -> float:
        stored_at = self._clock.timestamp()
        # Re-insert so dict order tracks the latest store
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value, stored_at)

        if len(self._entries) > self._max_entries:
            self._evict()
        return stored_at

    def _evict(self) -> None:
        count = max(1, int(len(self._entries) * self.EVICTION_FRACTION))
        oldest = list(self._entries)[:count]
        for key in oldest:
            del self._entries[key]
            lock = self._locks.get(key)
            if lock is not None and not lock.locked():
                del self._locks[key]
        logger.debug(f"[cache] evicted {count} entries")
