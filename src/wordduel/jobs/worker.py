"""arq worker running the maintenance jobs on a schedule.

Import path for arq CLI: arq wordduel.jobs.worker.WorkerSettings
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from arq import cron
from arq.connections import RedisSettings
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.config import get_settings
from wordduel.database import close_db, get_session, init_db
from wordduel.jobs.tasks import run_job

logger = logging.getLogger(__name__)


async def _get_db_session() -> AsyncSession:
    """Get a database session for the worker."""
    async for session in get_session():
        return session
    raise RuntimeError("Failed to get database session")


async def _run(ctx: dict, name: str) -> dict:
    db = await _get_db_session()
    try:
        return await run_job(name, db, ctx.get("redis"))
    finally:
        await db.close()


async def expire_battle_invites(ctx: dict) -> dict:
    """Runs every minute."""
    return await _run(ctx, "expire-battle-invites")


async def expire_matches(ctx: dict) -> dict:
    """Runs every minute."""
    return await _run(ctx, "expire-stale-matches")


async def update_challenge_stats(ctx: dict) -> dict:
    """Runs every 15 minutes."""
    return await _run(ctx, "update-challenge-stats")


async def recompute_team_ranks(ctx: dict) -> dict:
    """Runs every 15 minutes."""
    return await _run(ctx, "recompute-team-ranks")


async def award_leaderboard_cards(ctx: dict) -> dict:
    """Runs daily at 00:05 UTC."""
    return await _run(ctx, "award-leaderboard-cards")


async def award_season_rewards(ctx: dict) -> dict:
    """Runs hourly. Stats are refreshed first so rewards use final standings."""
    await _run(ctx, "update-challenge-stats")
    return await _run(ctx, "award-season-rewards")


async def worker_startup(ctx: dict) -> None:
    """Initialize connections on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    ctx["redis"] = aioredis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=10,
    )
    logger.info("Job worker started")


async def worker_shutdown(ctx: dict) -> None:
    """Clean up on worker shutdown."""
    redis_client = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Job worker shut down")


_QUARTER_HOURS = {0, 15, 30, 45}


class WorkerSettings:
    """arq worker settings for scheduled maintenance."""

    functions = [
        expire_battle_invites,
        expire_matches,
        update_challenge_stats,
        recompute_team_ranks,
        award_leaderboard_cards,
        award_season_rewards,
    ]
    cron_jobs = [
        cron(expire_battle_invites, second=0),
        cron(expire_matches, second=30),
        cron(update_challenge_stats, minute=_QUARTER_HOURS),
        cron(recompute_team_ranks, minute=_QUARTER_HOURS, second=30),
        cron(award_leaderboard_cards, hour=0, minute=5),
        cron(award_season_rewards, minute=1),
    ]
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    on_startup = worker_startup
    on_shutdown = worker_shutdown
    max_jobs = 4
    job_timeout = 300
