"""
Cache Module

Async caches shared by the realtime and export layers:
- Redis connection pooling with JSON serialization and TTLs
- Namespaced CacheManager on Redis
- LocalCache, an in-process equivalent used when Redis is disabled
"""

import json
import time
from datetime import timedelta
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Union

import structlog
from redis.asyncio import ConnectionPool, Redis

from src.config import get_settings

logger = structlog.get_logger(__name__)

_redis_pool: Optional[ConnectionPool] = None
_redis_client: Optional[Redis] = None

TTL = Union[int, float, timedelta]


def _ttl_ms(ttl: Optional[TTL]) -> Optional[int]:
    if ttl is None:
        return None
    if isinstance(ttl, timedelta):
        ttl = ttl.total_seconds()
    return max(1, int(ttl * 1000))


async def init_redis() -> Redis:
    """Initialize Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client is not None:
        return _redis_client

    settings = get_settings()
    _redis_pool = ConnectionPool.from_url(
        settings.redis.get_url(),
        max_connections=settings.redis.max_connections,
        socket_timeout=settings.redis.socket_timeout,
    )
    _redis_client = Redis(connection_pool=_redis_pool)

    try:
        await _redis_client.ping()
        logger.info("Redis connection established")
    except Exception as e:
        logger.error(f"Redis connection failed: {e}")
        raise

    return _redis_client


async def close_redis() -> None:
    """Close Redis connection pool"""
    global _redis_pool, _redis_client

    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None

    if _redis_pool:
        await _redis_pool.disconnect()
        _redis_pool = None

    logger.info("Redis connection closed")


def get_redis() -> Redis:
    """Get Redis client instance"""
    if _redis_client is None:
        raise RuntimeError("Redis not initialized. Call init_redis() first.")
    return _redis_client


async def cache_get(key: str) -> Optional[Any]:
    """Get a JSON value from Redis, or None if absent."""
    value = await get_redis().get(key)
    if value is None:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return value


async def cache_set(key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
    """Store ``value`` as JSON with an optional TTL."""
    try:
        serialized = json.dumps(value, default=str)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to serialize value for cache: {e}")
        return False
    await get_redis().set(key, serialized, px=_ttl_ms(ttl))
    return True


async def cache_delete(key: str) -> bool:
    """Delete key from cache"""
    return await get_redis().delete(key) > 0


async def cache_delete_pattern(pattern: str) -> int:
    """Delete all keys matching pattern"""
    client = get_redis()
    keys = [key async for key in client.scan_iter(match=pattern)]
    if not keys:
        return 0
    return await client.delete(*keys)


class CacheManager:
    """
    Redis cache with namespace support.

    Example:
        cache = CacheManager("realtime", default_ttl=60)
        await cache.set("active_users", payload)
        payload = await cache.get("active_users")
    """

    def __init__(self, namespace: str, default_ttl: TTL = 3600):
        self.namespace = namespace
        self.default_ttl = default_ttl

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    async def get(self, key: str) -> Optional[Any]:
        return await cache_get(self._key(key))

    async def set(self, key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
        return await cache_set(self._key(key), value, ttl or self.default_ttl)

    async def delete(self, key: str) -> bool:
        return await cache_delete(self._key(key))

    async def invalidate_all(self) -> int:
        """Invalidate all keys in namespace"""
        return await cache_delete_pattern(f"{self.namespace}:*")

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[TTL] = None,
    ) -> Any:
        value = await self.get(key)
        if value is not None:
            return value
        value = await factory()
        await self.set(key, value, ttl)
        return value


class LocalCache:
    """
    In-process cache with the CacheManager interface.

    Entries past their TTL are dropped when read.

    Example:
        cache = LocalCache("realtime", default_ttl=60)
        await cache.set("active_users", payload)
    """

    def __init__(
        self,
        namespace: str = "local",
        default_ttl: TTL = 3600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.namespace = namespace
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, Optional[float]]] = {}

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl: Optional[TTL] = None) -> bool:
        ms = _ttl_ms(ttl or self.default_ttl)
        expires_at = self._clock() + ms / 1000 if ms else None
        self._entries[key] = (value, expires_at)
        return True

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def invalidate_all(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        ttl: Optional[TTL] = None,
    ) -> Any:
        value = await self.get(key)
        if value is not None:
            return value
        value = await factory()
        await self.set(key, value, ttl)
        return value
