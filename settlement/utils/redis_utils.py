"""Redis connection utilities."""

import redis.asyncio as redis

from settlement.config.settings import Settings


def get_redis_client(settings: Settings) -> redis.Redis:
    """
    Create a Redis client with settings from config.

    Returns:
        redis.Redis: Configured Redis client with decode_responses=True
    """
    return redis.Redis(
        host=settings.redis_host,
        port=settings.redis_port,
        password=settings.redis_password,
        db=settings.redis_db,
        decode_responses=True,
    )


def get_redis_url_masked(settings: Settings) -> str:
    """Build Redis URL with masked password for safe logging."""
    auth = ":***@" if settings.redis_password else ""
    return f"redis://{auth}{settings.redis_host}:{settings.redis_port}/{settings.redis_db}"
