"""
In-memory caching: per-entry TTL, key builders and single-flight misses.
"""
from .core import CacheEntry, DataCategory
from .ttl_policies import (
    TTL_CONFIG,
    get_ttl_for_category,
    corners_key,
    season_key,
)
from .coalescer import RequestCoalescer
from .manager import TTLCache, get_cache

__all__ = [
    # Core types
    "CacheEntry",
    "DataCategory",
    # TTL policies and keys
    "TTL_CONFIG",
    "get_ttl_for_category",
    "corners_key",
    "season_key",
    # Coalescing
    "RequestCoalescer",
    # Cache
    "TTLCache",
    "get_cache",
]
