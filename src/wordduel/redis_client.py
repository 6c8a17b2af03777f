"""Shared Redis client.

Redis carries realtime pushes, rate-limit counters, login lockouts and the
leaderboard cache. All of these degrade gracefully, so an empty
``WD_REDIS_URL`` runs the API without Redis.
"""

import redis.asyncio as redis
from redis.exceptions import RedisError

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 50) -> redis.Redis | None:
    """Create the client. Returns None (and stays disabled) for an empty URL."""
    global _client  # noqa: PLW0603
    if not url:
        return None
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=max_connections,
    )
    return _client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """The client, for code that cannot run without Redis."""
    if _client is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _client


def get_optional_redis() -> redis.Redis | None:
    return _client


async def redis_status() -> str:
    """``ok``, ``disabled`` or ``error: ...`` for the readiness probe."""
    if _client is None:
        return "disabled"
    try:
        await _client.ping()
    except (RedisError, OSError) as exc:
        return f"error: {exc}"
    return "ok"
