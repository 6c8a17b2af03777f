"""End-of-season rewards for the top classes and grades."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import ChallengeReward, ClassChallenge, GradeChallenge, Profile, Season
from wordduel.gamification.badge_service import award_badge
from wordduel.gamification.economy import add_coins

logger = logging.getLogger(__name__)

CLASS_REWARDS = {
    1: (500, "class_champion"),
    2: (300, "class_runner_up"),
    3: (150, "class_third"),
}
GRADE_REWARDS = {
    1: (1000, "grade_star"),
    2: (600, "grade_pioneer"),
    3: (300, "grade_pioneer"),
}


async def _reward_members(
    db: AsyncSession,
    redis: object | None,
    season: Season,
    member_ids: list[int],
    reward_type: str,
    rank: int,
    coins: int,
    badge_slug: str,
) -> int:
    for pid in member_ids:
        await add_coins(db, pid, coins)
        await award_badge(db, redis, pid, badge_slug)
        db.add(ChallengeReward(
            season_id=season.id,
            profile_id=pid,
            reward_type=reward_type,
            rank_position=rank,
            coins_awarded=coins,
            badge_slug=badge_slug,
        ))
    await db.flush()
    return len(member_ids)


async def _reward_season(db: AsyncSession, redis: object | None, season: Season) -> int:
    rewarded = 0

    top_classes = (
        await db.execute(
            select(ClassChallenge)
            .where(ClassChallenge.season_id == season.id)
            .order_by(ClassChallenge.rank_position, ClassChallenge.class_name)
            .limit(len(CLASS_REWARDS))
        )
    ).scalars().all()
    for rank, row in enumerate(top_classes, start=1):
        coins, badge = CLASS_REWARDS[rank]
        members = (
            await db.execute(
                select(Profile.id).where(Profile.grade == row.grade, Profile.class_name == row.class_name)
            )
        ).scalars().all()
        logger.info("Season %d: class %s placed %d (%d members)", season.id, row.class_name, rank, len(members))
        rewarded += await _reward_members(db, redis, season, list(members), "class", rank, coins, badge)

    # Grade rows are ranked across seasons by the stats job
    grade_row = (
        await db.execute(select(GradeChallenge).where(GradeChallenge.season_id == season.id))
    ).scalar_one_or_none()
    if grade_row is not None and grade_row.rank_position in GRADE_REWARDS:
        coins, badge = GRADE_REWARDS[grade_row.rank_position]
        members = (await db.execute(select(Profile.id).where(Profile.grade == grade_row.grade))).scalars().all()
        logger.info(
            "Season %d: grade %d placed %d (%d members)",
            season.id, grade_row.grade, grade_row.rank_position, len(members),
        )
        rewarded += await _reward_members(
            db, redis, season, list(members), "grade", grade_row.rank_position, coins, badge
        )
    return rewarded


async def award_season_rewards(
    db: AsyncSession,
    redis: object | None = None,
    now: datetime | None = None,
) -> dict:
    """Reward every ended, still-active season and close it.

    Closing the season in the same transaction makes a re-run a no-op.
    """
    now = now or datetime.now(timezone.utc)
    seasons = (
        await db.execute(select(Season).where(Season.end_date < now, Season.is_active.is_(True)))
    ).scalars().all()
    if not seasons:
        return {"success": True, "message": "No ended seasons to process", "totalRewardsDistributed": 0}

    total = 0
    for season in seasons:
        total += await _reward_season(db, redis, season)
        season.is_active = False
        logger.info("Season %s (%d) processed and closed", season.name, season.id)
    await db.flush()
    return {
        "success": True,
        "message": f"Processed {len(seasons)} ended seasons",
        "totalRewardsDistributed": total,
    }


async def get_profile_rewards(db: AsyncSession, profile_id: int) -> list[ChallengeReward]:
    result = await db.execute(
        select(ChallengeReward)
        .where(ChallengeReward.profile_id == profile_id)
        .order_by(ChallengeReward.created_at.desc(), ChallengeReward.id.desc())
    )
    return list(result.scalars().all())
