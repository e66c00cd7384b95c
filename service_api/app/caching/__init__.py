"""
Statistics caching package.

Provides the in-process TTL cache used to memoize aggregate reads and the
key builders that name them. Prefer short TTLs and explicit invalidation
after writes.
"""

from .keys import cache_keys, project_prefix
from .ttl_cache import CacheEntry, TTLCache

__all__ = ["CacheEntry", "TTLCache", "cache_keys", "project_prefix"]
