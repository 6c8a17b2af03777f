"""Personal season milestones: progress tracking and reward claims."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import (
    LearningProgress,
    LevelProgress,
    Profile,
    Season,
    SeasonMilestone,
    UserSeasonMilestone,
)
from wordduel.errors import NotFoundError
from wordduel.gamification.rewards import pay_reward

logger = logging.getLogger(__name__)

TARGET_TYPES = frozenset({"xp", "levels", "words", "battles", "accuracy"})
MASTERED = 3
MIN_ANSWERS_FOR_ACCURACY = 100


def progress_percent(current: int, target: int) -> float:
    """Completion percentage, clamped to 0..100."""
    if target <= 0:
        return 100.0
    return max(0.0, min(100.0, current / target * 100))


async def _accuracy(db: AsyncSession, profile_id: int) -> int:
    rows, correct, answered = (
        await db.execute(
            select(
                func.count(),
                func.coalesce(func.sum(LearningProgress.correct_count), 0),
                func.coalesce(func.sum(LearningProgress.correct_count + LearningProgress.incorrect_count), 0),
            ).where(LearningProgress.profile_id == profile_id)
        )
    ).one()
    if rows < MIN_ANSWERS_FOR_ACCURACY or not answered:
        return 0
    return round(correct / answered * 100)


async def current_value(db: AsyncSession, profile: Profile, target_type: str) -> int:
    """The profile's current value for a milestone target type."""
    if target_type == "xp":
        return profile.total_xp
    if target_type == "battles":
        return profile.wins
    if target_type == "levels":
        result = await db.execute(
            select(func.count()).where(
                LevelProgress.profile_id == profile.id, LevelProgress.status == "completed"
            )
        )
        return result.scalar_one()
    if target_type == "words":
        result = await db.execute(
            select(func.count()).where(
                LearningProgress.profile_id == profile.id, LearningProgress.mastery_level >= MASTERED
            )
        )
        return result.scalar_one()
    if target_type == "accuracy":
        return await _accuracy(db, profile.id)
    raise ValueError(f"Unknown milestone target: {target_type}")


def _available_to(profile: Profile) -> Any:
    """Global milestones plus those of an active season for the profile's grade."""
    active_seasons = select(Season.id).where(Season.is_active.is_(True), Season.grade == profile.grade)
    return or_(SeasonMilestone.season_id.is_(None), SeasonMilestone.season_id.in_(active_seasons))


async def _available_milestones(db: AsyncSession, profile: Profile) -> list[SeasonMilestone]:
    result = await db.execute(
        select(SeasonMilestone)
        .where(_available_to(profile))
        .order_by(SeasonMilestone.sort_order, SeasonMilestone.id)
    )
    return list(result.scalars().all())


async def _sync_progress(
    db: AsyncSession,
    profile: Profile,
    milestone: SeasonMilestone,
    values: dict[str, int],
    now: datetime,
) -> UserSeasonMilestone:
    if milestone.target_type not in values:
        values[milestone.target_type] = await current_value(db, profile, milestone.target_type)
    value = values[milestone.target_type]

    row = (
        await db.execute(
            select(UserSeasonMilestone).where(
                UserSeasonMilestone.profile_id == profile.id,
                UserSeasonMilestone.milestone_id == milestone.id,
            )
        )
    ).scalar_one_or_none()
    if row is None:
        row = UserSeasonMilestone(
            profile_id=profile.id, milestone_id=milestone.id, completed=False, claimed=False
        )
        db.add(row)
    row.current_progress = value
    # Completion is permanent even if the value later drops
    if not row.completed and value >= milestone.target_value:
        row.completed = True
        row.completed_at = now
    return row


def _payload(milestone: SeasonMilestone, row: UserSeasonMilestone) -> dict:
    return {
        "id": milestone.id,
        "season_id": milestone.season_id,
        "name": milestone.name,
        "target_type": milestone.target_type,
        "target_value": milestone.target_value,
        "reward_type": milestone.reward_type,
        "reward_value": milestone.reward_value,
        "current_progress": row.current_progress,
        "progress_percent": round(progress_percent(row.current_progress, milestone.target_value), 1),
        "completed": row.completed,
        "completed_at": row.completed_at,
        "claimed": row.claimed,
    }


async def get_milestones(db: AsyncSession, profile: Profile, now: datetime | None = None) -> list[dict]:
    """Milestones available to the profile, with progress brought up to date."""
    now = now or datetime.now(timezone.utc)
    values: dict[str, int] = {}
    out = []
    for milestone in await _available_milestones(db, profile):
        row = await _sync_progress(db, profile, milestone, values, now)
        out.append(_payload(milestone, row))
    await db.flush()
    return out


async def claim_milestone(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    milestone_id: int,
    now: datetime | None = None,
) -> dict:
    """Pay a completed milestone's reward once.

    Raises:
        NotFoundError: Unknown milestone, or one outside the profile's grade or
            active seasons.
        ValueError: Not completed yet or already claimed.
    """
    now = now or datetime.now(timezone.utc)
    milestone = (
        await db.execute(
            select(SeasonMilestone).where(SeasonMilestone.id == milestone_id, _available_to(profile))
        )
    ).scalar_one_or_none()
    if milestone is None:
        raise NotFoundError("Milestone not found")

    row = await _sync_progress(db, profile, milestone, {}, now)
    await db.flush()
    if not row.completed:
        raise ValueError("Milestone not completed yet")

    claimed = await db.execute(
        update(UserSeasonMilestone)
        .where(UserSeasonMilestone.id == row.id, UserSeasonMilestone.claimed.is_(False))
        .values(claimed=True, claimed_at=now)
        .returning(UserSeasonMilestone.id)
        .execution_options(synchronize_session=False)
    )
    if claimed.scalar_one_or_none() is None:
        raise ValueError("Milestone already claimed")
    await db.refresh(row)

    await pay_reward(
        db, redis, profile, milestone.reward_type, milestone.reward_value,
        source="season_milestone", source_id=str(milestone.id),
    )
    logger.info("Profile %d claimed season milestone %d", profile.id, milestone.id)
    return {
        "milestone_id": milestone.id,
        "reward_type": milestone.reward_type,
        "reward_value": milestone.reward_value,
    }
