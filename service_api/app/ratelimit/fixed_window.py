"""
Fixed-window rate limiter for the SiteFlow API.

Window state lives in this process only. Behind several server instances
each one enforces its own budget, so a client can get up to N times the
limit; enforcing a global budget needs a shared store with atomic
increment and expiry.
"""

import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from fastapi import Request

from shared.errors import RateLimitError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector

Clock = Callable[[], float]

MINUTE_MS = 60 * 1000

# profile -> (max_requests, window_ms)
RATE_LIMIT_PROFILES: Dict[str, Tuple[int, int]] = {
    "general": (100, 15 * MINUTE_MS),
    "auth": (5, 15 * MINUTE_MS),
    "upload": (10, 60 * MINUTE_MS),
    "reports": (5, 10 * MINUTE_MS),
    "webhook": (50, MINUTE_MS),
    "daily_log_list": (50, 15 * MINUTE_MS),
    "daily_log_create": (10, 15 * MINUTE_MS),
    "daily_log_update": (20, 15 * MINUTE_MS),
    "daily_log_delete": (5, 15 * MINUTE_MS),
    "daily_log_photos": (20, 60 * MINUTE_MS),
    "daily_log_stats": (30, 5 * MINUTE_MS),
}


@dataclass
class RateWindow:
    count: int
    reset_at_ms: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at_ms: float
    retry_after_seconds: Optional[int] = None

    def headers(self) -> Dict[str, str]:
        """Standard rate-limit headers for this decision."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(self.reset_at_ms)),
        }
        if self.retry_after_seconds is not None:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class FixedWindowRateLimiter:
    """Counts requests per key in fixed windows that start on the first request."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock
        self._windows: Dict[str, RateWindow] = {}
        self.logger = get_logger("api.rate_limiter")

    def _now_ms(self) -> int:
        return round(self._clock() * 1000)

    def allow(self, key: str, limit: int, window_ms: int) -> bool:
        """Record a request for ``key``; False means the caller must reject it."""
        return self.check(key, limit, window_ms).allowed

    def check(self, key: str, limit: int, window_ms: int) -> RateLimitDecision:
        """Like ``allow`` but reports remaining budget and reset time."""
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_ms <= 0:
            raise ValueError("window_ms must be positive")

        now_ms = self._now_ms()
        window = self._windows.get(key)

        if window is None or now_ms >= window.reset_at_ms:
            window = RateWindow(count=1, reset_at_ms=now_ms + window_ms)
            self._windows[key] = window
            return RateLimitDecision(True, limit, limit - 1, window.reset_at_ms)

        if window.count >= limit:
            retry_after = max(1, math.ceil((window.reset_at_ms - now_ms) / 1000))
            self.logger.warning(
                "Rate limit exceeded",
                key=key,
                count=window.count,
                limit=limit,
                retry_after=retry_after,
            )
            return RateLimitDecision(False, limit, 0, window.reset_at_ms, retry_after)

        window.count += 1
        return RateLimitDecision(True, limit, limit - window.count, window.reset_at_ms)

    def reset(self, key: str) -> bool:
        """Forget the window for ``key``."""
        removed = self._windows.pop(key, None) is not None
        if removed:
            self.logger.info("Rate limit reset", key=key)
        return removed

    def status(self, key: str) -> Optional[Dict[str, Any]]:
        """Current window for ``key``, or None when there is no live window."""
        window = self._windows.get(key)
        if window is None or self._now_ms() >= window.reset_at_ms:
            return None
        return {"count": window.count, "reset_at_ms": window.reset_at_ms}

    def active_windows(self) -> List[Dict[str, Any]]:
        """Live windows, for monitoring."""
        now_ms = self._now_ms()
        return [
            {"key": key, "count": window.count, "reset_at_ms": window.reset_at_ms}
            for key, window in self._windows.items()
            if now_ms < window.reset_at_ms
        ]

    def cleanup(self) -> int:
        """Drop expired windows; returns how many were removed."""
        now_ms = self._now_ms()
        expired = [key for key, window in self._windows.items() if now_ms >= window.reset_at_ms]
        for key in expired:
            del self._windows[key]
        if expired:
            self.logger.debug("Cleaned up expired rate limit windows", count=len(expired))
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)


class RateLimitGuard:
    """Applies named rate-limit profiles to incoming requests."""

    def __init__(
        self,
        rate_limiter: FixedWindowRateLimiter,
        profiles: Optional[Dict[str, Tuple[int, int]]] = None,
        *,
        enabled: bool = True,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.rate_limiter = rate_limiter
        self.profiles = dict(RATE_LIMIT_PROFILES)
        if profiles:
            self.profiles.update(profiles)
        self.enabled = enabled
        self.metrics = metrics
        self.logger = get_logger("api.rate_limit_guard")

    def make_key(self, profile: str, client_id: str) -> str:
        return f"rate_limit:{profile}:{client_id}"

    def check_request(self, request: Request, profile: str = "general") -> Optional[RateLimitDecision]:
        """Count the request against ``profile``; raises RateLimitError when over budget."""
        if not self.enabled:
            return None

        if profile not in self.profiles:
            raise KeyError(f"Unknown rate limit profile: {profile}")
        limit, window_ms = self.profiles[profile]

        client_id = self._get_client_id(request)
        decision = self.rate_limiter.check(self.make_key(profile, client_id), limit, window_ms)

        if not decision.allowed:
            if self.metrics:
                self.metrics.increment_counter("rate_limit_hits_total", profile=profile)
            raise RateLimitError(
                details={
                    "retryAfter": decision.retry_after_seconds,
                    "resetTime": int(decision.reset_at_ms),
                },
                headers=decision.headers(),
            )

        return decision

    def _get_client_id(self, request: Request) -> str:
        """Extract client ID from request."""
        # Set by the identity dependency for authenticated callers
        user_info = getattr(request.state, "user_info", None)
        if isinstance(user_info, dict) and user_info.get("user_id"):
            return f"user:{user_info['user_id']}"

        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            first_hop = forwarded_for.split(",")[0].strip()
            if first_hop:
                return first_hop

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        return request.client.host if request.client else "unknown"
