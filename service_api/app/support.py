"""
Request-support container: the cache and rate limiter shared by route handlers.

One instance is built per application and torn down with it; tests build
their own with a fake clock.
"""

import asyncio
import time
from typing import Any, Dict, Optional, TYPE_CHECKING

from shared.config import BaseConfig
from shared.logging import get_logger

from .caching import TTLCache
from .ratelimit import FixedWindowRateLimiter, RateLimitGuard

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


class RequestSupport:
    """Owns the stats cache, the rate limiter and the sweeper that prunes them."""

    def __init__(
        self,
        config: BaseConfig,
        *,
        clock=time.time,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config
        self.logger = get_logger("api.support")
        self.cache = TTLCache(
            default_ttl_ms=config.cache_default_ttl_ms,
            max_entries=config.cache_max_entries,
            name="stats",
            clock=clock,
            metrics=metrics,
        )
        self.rate_limiter = FixedWindowRateLimiter(clock=clock)
        self.guard = RateLimitGuard(
            self.rate_limiter,
            profiles=config.rate_limit_overrides,
            enabled=config.rate_limiting_enabled,
            metrics=metrics,
        )
        self._sweeper: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._sweeper is not None and not self._sweeper.done()

    async def start(self) -> None:
        """Start the periodic sweeper."""
        if self.running:
            return
        self._sweeper = asyncio.create_task(self._sweep_loop())
        self.logger.info("Request support started", sweep_interval_seconds=self.config.sweep_interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweeper and drop all cached state."""
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None
        self.cache.clear()
        self.logger.info("Request support stopped")

    def sweep(self) -> Dict[str, int]:
        """Drop expired cache entries and rate windows."""
        return {
            "cache_entries": self.cache.cleanup(),
            "rate_windows": self.rate_limiter.cleanup(),
        }

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.sweep_interval_seconds)
            removed = self.sweep()
            if any(removed.values()):
                self.logger.debug("Swept expired request state", **removed)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "cache": self.cache.stats(),
            "rate_limits": {
                "active_windows": len(self.rate_limiter.active_windows()),
                "profiles": {
                    name: {"max_requests": limit, "window_ms": window_ms}
                    for name, (limit, window_ms) in self.guard.profiles.items()
                },
                "enabled": self.guard.enabled,
            },
        }
