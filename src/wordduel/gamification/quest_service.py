"""Daily quests: per-day progress counters with a one-time reward claim."""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import DailyQuest, Profile, QuestProgress
from wordduel.errors import NotFoundError
from wordduel.gamification.rewards import pay_reward

logger = logging.getLogger(__name__)

QUEST_METRICS = frozenset({"words_studied", "battles_played", "battles_won"})


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


async def _get_or_create_progress(
    db: AsyncSession, profile_id: int, quest_id: int, day: date
) -> QuestProgress:
    result = await db.execute(
        select(QuestProgress).where(
            QuestProgress.profile_id == profile_id,
            QuestProgress.quest_id == quest_id,
            QuestProgress.quest_date == day,
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        progress = QuestProgress(profile_id=profile_id, quest_id=quest_id, quest_date=day, progress=0)
        db.add(progress)
        await db.flush()
    return progress


async def record_quest_event(
    db: AsyncSession,
    profile_id: int,
    metric: str,
    amount: int = 1,
    day: date | None = None,
) -> int:
    """Advance today's progress on every active quest tracking ``metric``.

    Returns the number of quests advanced.
    """
    if metric not in QUEST_METRICS:
        raise ValueError(f"Unknown quest metric: {metric}")
    day = day or today_utc()
    quests = (
        await db.execute(select(DailyQuest).where(DailyQuest.metric == metric, DailyQuest.is_active.is_(True)))
    ).scalars().all()
    for quest in quests:
        progress = await _get_or_create_progress(db, profile_id, quest.id, day)
        progress.progress = min(quest.target, progress.progress + amount)
    await db.flush()
    return len(quests)


async def get_daily_quests(db: AsyncSession, profile_id: int, day: date | None = None) -> list[dict]:
    """Today's quests with progress and claim state."""
    day = day or today_utc()
    quests = (
        await db.execute(select(DailyQuest).where(DailyQuest.is_active.is_(True)).order_by(DailyQuest.id))
    ).scalars().all()
    progress_rows = {
        p.quest_id: p
        for p in (
            await db.execute(
                select(QuestProgress).where(QuestProgress.profile_id == profile_id, QuestProgress.quest_date == day)
            )
        ).scalars().all()
    }
    items = []
    for quest in quests:
        row = progress_rows.get(quest.id)
        current = row.progress if row else 0
        items.append({
            "quest_id": quest.id,
            "slug": quest.slug,
            "title": quest.title,
            "metric": quest.metric,
            "target": quest.target,
            "progress": current,
            "completed": current >= quest.target,
            "claimed": bool(row and row.claimed),
            "reward_type": quest.reward_type,
            "reward_value": quest.reward_value,
        })
    return items


async def claim_quest_reward(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    quest_id: int,
    day: date | None = None,
) -> dict:
    """Pay a completed quest's reward once."""
    day = day or today_utc()
    quest = (await db.execute(select(DailyQuest).where(DailyQuest.id == quest_id))).scalar_one_or_none()
    if quest is None:
        raise NotFoundError("Quest not found")

    progress = await _get_or_create_progress(db, profile.id, quest.id, day)
    if progress.claimed:
        raise ValueError("Quest reward already claimed")
    if progress.progress < quest.target:
        raise ValueError("Quest not completed yet")

    progress.claimed = True
    progress.claimed_at = datetime.now(timezone.utc)
    await db.flush()

    await pay_reward(
        db, redis, profile, quest.reward_type, quest.reward_value,
        source="quest", source_id=f"{quest.slug}:{day.isoformat()}",
    )
    logger.info("Profile %d claimed quest %s", profile.id, quest.slug)
    return {"quest_id": quest.id, "reward_type": quest.reward_type, "reward_value": quest.reward_value}

