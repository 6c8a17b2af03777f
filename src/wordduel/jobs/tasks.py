"""Scheduled maintenance jobs.

Each job takes a session and returns ``{"success": True, "message": ...}``
so the HTTP trigger and the arq worker share one implementation.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.battle.match_service import expire_stale_matches
from wordduel.seasons.challenge_service import update_challenge_stats
from wordduel.seasons.name_card_service import award_leaderboard_cards
from wordduel.seasons.reward_service import award_season_rewards
from wordduel.social.invite_service import expire_stale_invites
from wordduel.teams.service import recompute_team_ranks

logger = logging.getLogger(__name__)

JobFn = Callable[[AsyncSession, object | None, datetime | None], Awaitable[dict]]


async def season_rewards_job(db: AsyncSession, redis: object | None = None, now: datetime | None = None) -> dict:
    return await award_season_rewards(db, redis, now)


async def challenge_stats_job(db: AsyncSession, redis: object | None = None, now: datetime | None = None) -> dict:
    return await update_challenge_stats(db)


async def leaderboard_cards_job(db: AsyncSession, redis: object | None = None, now: datetime | None = None) -> dict:
    return await award_leaderboard_cards(db)


async def expire_invites_job(db: AsyncSession, redis: object | None = None, now: datetime | None = None) -> dict:
    expired = await expire_stale_invites(db, now)
    return {"success": True, "message": f"Expired {expired} battle invites"}


async def expire_matches_job(db: AsyncSession, redis: object | None = None, now: datetime | None = None) -> dict:
    expired = await expire_stale_matches(db, now)
    return {"success": True, "message": f"Expired {expired} stale matches"}


async def team_ranks_job(db: AsyncSession, redis: object | None = None, now: datetime | None = None) -> dict:
    ranked = await recompute_team_ranks(db)
    return {"success": True, "message": f"Ranked {ranked} teams"}


# HTTP function name -> job
JOBS: dict[str, JobFn] = {
    "award-season-rewards": season_rewards_job,
    "update-challenge-stats": challenge_stats_job,
    "award-leaderboard-cards": leaderboard_cards_job,
    "expire-battle-invites": expire_invites_job,
    "expire-stale-matches": expire_matches_job,
    "recompute-team-ranks": team_ranks_job,
}


async def run_job(name: str, db: AsyncSession, redis: object | None = None, now: datetime | None = None) -> dict:
    """Run a job by name and commit its work."""
    job = JOBS.get(name)
    if job is None:
        raise KeyError(name)
    result = await job(db, redis, now)
    await db.commit()
    logger.info("Job %s finished: %s", name, result.get("message"))
    return result
