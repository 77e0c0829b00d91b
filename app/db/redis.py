"""
Redis Connection Module

This module provides async Redis connection management for:
1. The unread-count cache (short TTL keys)
2. Real-time fan-out between API instances (Pub/Sub)
3. ARQ cron worker settings (digest jobs)
"""

import logging
from typing import Optional

from redis.asyncio import Redis, ConnectionPool
from arq.connections import RedisSettings

from app.core.config import settings

# ============================================================
# Logging Setup
# ============================================================
logger = logging.getLogger(__name__)

# ============================================================
# Redis Connection Pool (for general Redis operations)
# ============================================================

# Global connection pool - initialized once, reused everywhere
_redis_pool: Optional[ConnectionPool] = None


def get_redis_pool() -> ConnectionPool:
    """
    Get or create the Redis connection pool.

    Uses singleton pattern - creates pool once, reuses thereafter.
    This is called during app startup.
    """
    global _redis_pool

    if _redis_pool is None:
        _redis_pool = ConnectionPool.from_url(
            settings.REDIS_URL,
            max_connections=20,
            decode_responses=True,  # Cache values and pub/sub payloads are JSON text
        )
        logger.info(f"Redis connection pool created: {settings.REDIS_URL}")

    return _redis_pool


async def get_redis() -> Redis:
    """
    Dependency injection function for getting Redis client.

    Usage in FastAPI endpoints:
        @router.get("/")
        async def my_endpoint(redis: Redis = Depends(get_redis)):
            await redis.set("key", "value")
    """
    pool = get_redis_pool()
    return Redis(connection_pool=pool)


async def close_redis_pool():
    """
    Close Redis connection pool during app shutdown.

    Called from FastAPI lifespan events to clean up resources.
    """
    global _redis_pool

    if _redis_pool is not None:
        await _redis_pool.disconnect()
        _redis_pool = None
        logger.info("Redis connection pool closed")


# ============================================================
# ARQ Redis Settings (for the cron worker)
# ============================================================

def get_arq_redis_settings() -> RedisSettings:
    """
    Get Redis settings for the ARQ worker.

    Returns:
        RedisSettings configured from REDIS_URL
    """
    redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)
    redis_settings.conn_timeout = 10      # Timeout for initial connection (seconds)
    redis_settings.conn_retries = 5       # Number of retry attempts
    redis_settings.conn_retry_delay = 1   # Delay between retries (seconds)
    return redis_settings


# ============================================================
# Health Check
# ============================================================

async def check_redis_connection() -> bool:
    """
    Check if Redis is reachable.

    Used for health checks and startup verification.

    Returns:
        True if Redis responds to PING, False otherwise
    """
    try:
        redis = await get_redis()
        response = await redis.ping()
        logger.info("Redis health check: OK")
        return response
    except Exception as e:
        logger.error(f"Redis health check failed: {e}")
        return False
