"""Local product cache."""

from scanscore.cache.store import CacheStore, from_cache_row, is_fresh_at, to_cache_row

__all__ = [
    "CacheStore",
    "from_cache_row",
    "is_fresh_at",
    "to_cache_row",
]
