"""
Serving Module
"""
from .cache import CacheManager, LocalCache, init_redis, close_redis, get_redis, cache_get, cache_set

__all__ = [
    "CacheManager",
    "LocalCache",
    "init_redis",
    "close_redis",
    "get_redis",
    "cache_get",
    "cache_set",
]
