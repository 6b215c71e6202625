"""
Cache Infrastructure

Two-tier (memory + JSON file) cache for aggregated paper lists.
"""

from __future__ import annotations

from paper_stream.infrastructure.cache.paper_cache import (
    CacheEntry,
    CacheStats,
    CacheStore,
    cache_key,
)

__all__ = [
    "CacheEntry",
    "CacheStats",
    "CacheStore",
    "cache_key",
]
