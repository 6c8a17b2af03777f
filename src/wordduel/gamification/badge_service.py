"""Badge evaluation and awarding with duplicate prevention."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.battle.stats import win_streak
from wordduel.battle.tiers import tier_index
from wordduel.db.models import Badge, LearningProgress, Match, Profile, UserBadge, Word
from wordduel.social.notification_push import broadcast
from wordduel.social.notification_service import create_notification

logger = logging.getLogger(__name__)

RECENT_MATCHES_FOR_STREAK = 50


async def get_badge_by_slug(db: AsyncSession, slug: str) -> Badge | None:
    result = await db.execute(select(Badge).where(Badge.slug == slug))
    return result.scalar_one_or_none()


async def get_earned_badge_ids(db: AsyncSession, profile_id: int) -> set[int]:
    result = await db.execute(select(UserBadge.badge_id).where(UserBadge.profile_id == profile_id))
    return set(result.scalars().all())


async def _learned_by_subject(db: AsyncSession, profile_id: int) -> dict[str, int]:
    result = await db.execute(
        select(LearningProgress.subject, func.count())
        .where(LearningProgress.profile_id == profile_id)
        .group_by(LearningProgress.subject)
    )
    return {subject: count for subject, count in result.all()}


async def _words_by_subject(db: AsyncSession) -> dict[str, int]:
    result = await db.execute(select(Word.subject, func.count()).group_by(Word.subject))
    return {subject: count for subject, count in result.all()}


async def collect_badge_stats(db: AsyncSession, profile: Profile) -> dict[str, int]:
    """Gather every metric a badge condition can reference."""
    learned = await _learned_by_subject(db, profile.id)
    totals = await _words_by_subject(db)

    def completion(subject: str) -> int:
        total = totals.get(subject, 0)
        return int(learned.get(subject, 0) * 100 / total) if total else 0

    recent = await db.execute(
        select(Match)
        .where(
            Match.status == "completed",
            Match.is_free.is_(False),
            or_(Match.player1_id == profile.id, Match.player2_id == profile.id),
        )
        .order_by(Match.ended_at.desc(), Match.id.desc())
        .limit(RECENT_MATCHES_FOR_STREAK)
    )
    outcomes: list[str] = []
    perfect = 0
    for match in recent.scalars().all():
        if match.winner_id == profile.id:
            outcomes.append("win")
            opponent_points = match.player2_points if match.player1_id == profile.id else match.player1_points
            if opponent_points == 0:
                perfect += 1
        elif match.is_draw:
            outcomes.append("draw")
        else:
            outcomes.append("loss")

    return {
        "words_learned": learned.get("english", 0),
        "math_words_learned": learned.get("math", 0),
        "science_words_learned": learned.get("science", 0),
        "math_completion_pct": completion("math"),
        "science_completion_pct": completion("science"),
        "wins": profile.wins,
        "win_streak": win_streak(outcomes),
        "perfect_matches": perfect,
        "coins": profile.coins,
        "rank_tier_index": tier_index(profile.rank_tier),
    }


def evaluate_badges(stats: dict[str, int], badges: list[Badge], earned_ids: set[int]) -> list[Badge]:
    """Badges whose condition is met and which the profile does not hold yet."""
    return [
        badge
        for badge in badges
        if badge.id not in earned_ids
        and badge.condition_metric is not None
        and stats.get(badge.condition_metric, 0) >= badge.condition_threshold
    ]


async def award_badge(
    db: AsyncSession,
    redis: object | None,
    profile_id: int,
    badge_slug: str,
) -> bool:
    """Award a badge. Returns False if already held or the slug is unknown."""
    badge = await get_badge_by_slug(db, badge_slug)
    if badge is None:
        logger.warning("Badge not found: %s", badge_slug)
        return False
    return await _award(db, redis, profile_id, badge)


async def _award(db: AsyncSession, redis: object | None, profile_id: int, badge: Badge) -> bool:
    held = await db.execute(
        select(UserBadge.id).where(UserBadge.profile_id == profile_id, UserBadge.badge_id == badge.id)
    )
    if held.scalar_one_or_none() is not None:
        return False

    db.add(UserBadge(profile_id=profile_id, badge_id=badge.id, earned_at=datetime.now(timezone.utc)))
    await db.flush()

    await create_notification(
        db,
        profile_id,
        "gamification",
        "badge_earned",
        title=f'Badge Earned: "{badge.name}"',
        description=badge.description,
        metadata={"badge_slug": badge.slug, "rarity": badge.rarity},
        redis=redis,
    )
    await broadcast(redis, "pubsub:badge_earned", {
        "profile_id": profile_id,
        "badge_slug": badge.slug,
        "badge_name": badge.name,
        "rarity": badge.rarity,
    })
    return True


async def check_and_award_badges(db: AsyncSession, redis: object | None, profile: Profile) -> list[str]:
    """Award every badge whose condition the profile now meets. Returns new slugs."""
    badges = list((await db.execute(select(Badge).order_by(Badge.sort_order, Badge.id))).scalars().all())
    earned = await get_earned_badge_ids(db, profile.id)
    stats = await collect_badge_stats(db, profile)

    awarded = []
    for badge in evaluate_badges(stats, badges, earned):
        if await _award(db, redis, profile.id, badge):
            awarded.append(badge.slug)
    if awarded:
        logger.info("Profile %d earned badges: %s", profile.id, ", ".join(awarded))
    return awarded


async def get_profile_badges(db: AsyncSession, profile_id: int) -> list[dict]:
    """All badge definitions with the profile's earned state."""
    badges = (await db.execute(select(Badge).order_by(Badge.sort_order, Badge.id))).scalars().all()
    earned = {
        row.badge_id: row.earned_at
        for row in (
            await db.execute(select(UserBadge).where(UserBadge.profile_id == profile_id))
        ).scalars().all()
    }
    return [
        {
            "slug": b.slug,
            "name": b.name,
            "description": b.description,
            "category": b.category,
            "rarity": b.rarity,
            "earned": b.id in earned,
            "earned_at": earned.get(b.id),
        }
        for b in badges
    ]
