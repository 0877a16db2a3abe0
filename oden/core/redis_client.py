"""
Redis client for distributed locks and small caches.
"""
import json
from typing import Any, Optional

import redis.asyncio as redis

from oden.core.config import settings

redis_client: Optional[redis.Redis] = None


def _create_redis_client() -> redis.Redis:
    # redis-py builds the client without network I/O; the connection opens on first command
    return redis.from_url(settings.REDIS_URL, decode_responses=True)


def get_redis() -> redis.Redis:
    """Lazy-init so importing modules never needs a running Redis."""
    global redis_client
    if redis_client is None:
        redis_client = _create_redis_client()
    return redis_client


async def close_redis():
    global redis_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None


async def cache_get(key: str) -> Optional[Any]:
    data = await get_redis().get(key)
    if data:
        return json.loads(data)
    return None


async def cache_set(key: str, value: Any, expire: int = 300):
    await get_redis().setex(key, expire, json.dumps(value))
