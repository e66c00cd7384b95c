"""
In-process TTL cache used to memoize expensive statistics reads.

State is local to one process; each worker in a multi-worker deployment
holds its own copy, so a value may be computed once per worker.
"""

import asyncio
import math
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

Clock = Callable[[], float]

_MISSING = object()


@dataclass
class CacheEntry:
    """A cached value and the instant it was stored."""

    value: Any
    timestamp_ms: float
    ttl_ms: int

    def is_valid(self, now_ms: float) -> bool:
        return now_ms - self.timestamp_ms < self.ttl_ms


class TTLCache:
    """Mapping from string key to a value that expires ``ttl_ms`` after it was stored.

    ``clock`` returns seconds (``time.time`` by default) and is injectable so
    tests can move time forward deterministically.
    """

    def __init__(
        self,
        default_ttl_ms: int = 60_000,
        max_entries: Optional[int] = None,
        *,
        name: str = "default",
        clock: Clock = time.time,
        metrics: Optional["MetricsCollector"] = None,
    ):
        if default_ttl_ms <= 0:
            raise ValueError("default_ttl_ms must be positive")
        if max_entries is not None and max_entries <= 0:
            raise ValueError("max_entries must be positive")

        self.default_ttl_ms = default_ttl_ms
        self.max_entries = max_entries
        self.name = name
        self._clock = clock
        self._metrics = metrics
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._inflight: Dict[str, asyncio.Future] = {}
        self._hits = 0
        self._misses = 0
        self.logger = get_logger("api.cache")

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return self.has(key)

    def _now_ms(self) -> int:
        return round(self._clock() * 1000)

    def _resolve_ttl(self, ttl_ms: Optional[int]) -> int:
        ttl = self.default_ttl_ms if ttl_ms is None else ttl_ms
        if ttl <= 0:
            raise ValueError("ttl_ms must be positive")
        return ttl

    def _lookup(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is not None and entry.is_valid(self._now_ms()):
            self._hits += 1
            if self._metrics:
                self._metrics.increment_counter("cache_hits_total", cache_type=self.name)
            return entry.value

        self._misses += 1
        if self._metrics:
            self._metrics.increment_counter("cache_misses_total", cache_type=self.name)
        return _MISSING

    def get(self, key: str, default: Any = None) -> Any:
        """Return the live value for ``key`` or ``default``."""
        value = self._lookup(key)
        return default if value is _MISSING else value

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.is_valid(self._now_ms())

    def set(self, key: str, value: Any, ttl_ms: Optional[int] = None) -> None:
        """Store ``value``, replacing any previous entry for ``key``."""
        ttl = self._resolve_ttl(ttl_ms)
        self._entries.pop(key, None)
        if self.max_entries is not None and len(self._entries) >= self.max_entries:
            self._evict()

        self._entries[key] = CacheEntry(value=value, timestamp_ms=self._now_ms(), ttl_ms=ttl)
        self._report_size()

    def get_or_compute(self, key: str, producer: Callable[[], Any], ttl_ms: Optional[int] = None) -> Any:
        """Return the cached value for ``key``, calling ``producer`` on a miss.

        Exceptions from ``producer`` propagate and leave the cache untouched.
        """
        ttl = self._resolve_ttl(ttl_ms)
        value = self._lookup(key)
        if value is not _MISSING:
            return value

        value = producer()
        self.set(key, value, ttl)
        return value

    async def aget_or_compute(
        self,
        key: str,
        producer: Callable[[], Awaitable[Any]],
        ttl_ms: Optional[int] = None,
    ) -> Any:
        """Async ``get_or_compute`` for coroutine producers.

        Concurrent misses on the same key share a single producer call; if it
        fails every waiter sees the exception and nothing is cached.
        """
        ttl = self._resolve_ttl(ttl_ms)
        value = self._lookup(key)
        if value is not _MISSING:
            return value

        pending = self._inflight.get(key)
        if pending is not None:
            return await asyncio.shield(pending)

        future = asyncio.get_running_loop().create_future()
        self._inflight[key] = future
        try:
            value = await producer()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so an unawaited future does not log at GC
            future.exception()
            raise
        else:
            # Skip the store if the key was invalidated while computing
            if self._inflight.get(key) is future:
                self.set(key, value, ttl)
            future.set_result(value)
            return value
        finally:
            if self._inflight.get(key) is future:
                del self._inflight[key]

    def invalidate(self, key: str) -> bool:
        """Drop ``key``; returns whether an entry was removed."""
        # Later misses must not join a producer that started before the write
        self._inflight.pop(key, None)
        removed = self._entries.pop(key, None) is not None
        if removed:
            self.logger.debug("Cache invalidated", cache=self.name, key=key)
            self._report_size()
        return removed

    def invalidate_prefix(self, prefix: str) -> int:
        """Drop every key starting with ``prefix``."""
        for key in [key for key in self._inflight if key.startswith(prefix)]:
            del self._inflight[key]
        doomed = [key for key in self._entries if key.startswith(prefix)]
        for key in doomed:
            del self._entries[key]
        if doomed:
            self.logger.info("Cache invalidated by prefix", cache=self.name, prefix=prefix, count=len(doomed))
            self._report_size()
        return len(doomed)

    def clear(self) -> None:
        self._entries.clear()
        self._inflight.clear()
        self._hits = 0
        self._misses = 0
        self._report_size()
        self.logger.info("Cache cleared", cache=self.name)

    def cleanup(self) -> int:
        """Purge expired entries; returns how many were dropped."""
        now_ms = self._now_ms()
        expired = [key for key, entry in self._entries.items() if not entry.is_valid(now_ms)]
        for key in expired:
            del self._entries[key]
        if expired:
            self.logger.debug("Cleaned up expired cache entries", cache=self.name, count=len(expired))
            self._report_size()
        return len(expired)

    def _evict(self) -> None:
        if self.cleanup() and len(self._entries) < self.max_entries:
            return

        # Oldest-first: entries are re-inserted on every set
        count = max(1, math.ceil(len(self._entries) * 0.1))
        for _ in range(count):
            self._entries.popitem(last=False)
        self.logger.debug("Evicted oldest cache entries", cache=self.name, count=count)

    def _report_size(self) -> None:
        if self._metrics:
            self._metrics.set_gauge("cache_entries", len(self._entries), cache_type=self.name)

    def stats(self) -> Dict[str, Any]:
        """Size and hit/miss counters for monitoring."""
        now_ms = self._now_ms()
        lookups = self._hits + self._misses
        return {
            "name": self.name,
            "size": len(self._entries),
            "max_entries": self.max_entries,
            "default_ttl_ms": self.default_ttl_ms,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
            "expired_entries": sum(1 for entry in self._entries.values() if not entry.is_valid(now_ms)),
            "in_flight": len(self._inflight),
        }
