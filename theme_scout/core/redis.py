"""Redis client helpers."""

import logging

from redis.asyncio import Redis

from theme_scout.config import settings

logger = logging.getLogger(__name__)

_redis_client: Redis | None = None


class RedisCacheStore:
    """String key/value cache with per-key expiry."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def get(self, key: str) -> str | None:
        value = await self._client.get(key)
        if value is None:
            return None
        return str(value)

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self._client.set(key, value, ex=max(1, int(ttl_seconds)))


def get_redis_client() -> Redis:
    """Get a shared Redis client."""
    global _redis_client
    if _redis_client is None:
        _redis_client = Redis.from_url(settings.redis_url, decode_responses=True)
    return _redis_client


def get_cache_store() -> RedisCacheStore:
    """Get the cache store backed by the shared Redis client."""
    return RedisCacheStore(get_redis_client())


async def close_redis() -> None:
    """Close Redis client connections."""
    global _redis_client
    if _redis_client is None:
        return

    await _redis_client.aclose()
    _redis_client = None
    logger.info("Redis connection closed")
