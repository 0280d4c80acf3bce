"""Process-wide redis client for publishing swap events. Opened and closed by the app lifespan."""
import logging

import redis.asyncio as aioredis

from skillswap.config import settings

logger = logging.getLogger(__name__)

_redis: aioredis.Redis | None = None


def open_redis() -> aioredis.Redis:
    global _redis
    _redis = aioredis.from_url(settings.REDIS_URL)
    logger.info("redis client created")
    return _redis


async def get_redis() -> aioredis.Redis:
    if _redis is None:
        raise RuntimeError("Redis not initialized")
    return _redis


async def close_redis() -> None:
    global _redis
    client, _redis = _redis, None
    if client is not None:
        await client.aclose()
