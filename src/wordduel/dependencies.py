"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from redis.asyncio import Redis

from wordduel.redis_client import get_optional_redis


async def get_redis_dep() -> AsyncGenerator[Redis | None, None]:
    """Yield the Redis client, or None when Redis is disabled.

    Services take ``redis=None`` to mean: skip realtime pushes and caching.
    """
    yield get_optional_redis()
