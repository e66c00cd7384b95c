"""
Rate limiting package for the SiteFlow API.

Holds the fixed-window limiter and the request guard that enforces
per-client budgets for named route profiles.
"""

from .fixed_window import (
    RATE_LIMIT_PROFILES,
    FixedWindowRateLimiter,
    RateLimitDecision,
    RateLimitGuard,
)

__all__ = [
    "RATE_LIMIT_PROFILES",
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RateLimitGuard",
]
