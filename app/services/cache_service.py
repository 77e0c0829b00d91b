"""
Cache Service

Short-lived Redis keys in front of cheap-but-frequent queries
(the unread badge counter is polled by every open tab).
"""

import json
import logging
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)


def unread_count_key(user_id: UUID) -> str:
    return f"notification:unread:{user_id}"


class CacheService:
    """
    JSON values stored under TTL keys.

    Redis outages degrade to computing the value every time.
    """

    def __init__(self, redis: Redis):
        self.redis = redis

    async def get_or_set(
        self,
        key: str,
        compute: Callable[[], Awaitable[Any]],
        ttl: int,
    ) -> Any:
        """
        Return the cached value for key, computing and storing it on a miss.

        Args:
            key: Cache key
            compute: Coroutine factory producing the fresh value
            ttl: Lifetime of the stored value in seconds
        """
        cached: Optional[str] = None
        try:
            cached = await self.redis.get(key)
        except RedisError as e:
            logger.warning(f"Cache read failed for {key}: {e}")

        if cached is not None:
            return json.loads(cached)

        value = await compute()

        try:
            await self.redis.setex(key, ttl, json.dumps(value))
        except RedisError as e:
            logger.warning(f"Cache write failed for {key}: {e}")

        return value

    async def invalidate(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except RedisError as e:
            logger.warning(f"Cache invalidation failed for {key}: {e}")
