"""
Caching Package - Process-wide state shared by all requests.

- ResponseCache: short-TTL endpoint cache with stale-on-error serving
- AllowlistCache: top-N by market cap noise gate (fail-open)
"""

from caching.allowlist import AllowlistCache, base_symbol, is_allowed
from caching.response_cache import (
    CachedResult,
    CacheEntry,
    CacheStatus,
    ResponseCache,
)


__all__ = [
    "AllowlistCache",
    "base_symbol",
    "is_allowed",
    "CachedResult",
    "CacheEntry",
    "CacheStatus",
    "ResponseCache",
]
