"""XP grant service with idempotency and level-up detection."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Profile, XPLedger
from wordduel.gamification.leveling import process_level_up
from wordduel.social.notification_push import broadcast
from wordduel.social.notification_service import create_notification
from wordduel.teams.contribution import add_team_contribution

logger = logging.getLogger(__name__)


async def grant_xp(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    amount: int,
    source: str,
    source_id: str | None = None,
    idempotency_key: str | None = None,
) -> bool:
    """Grant XP to a profile. Returns True if granted, False if a duplicate.

    1. Insert into xp_ledger (skipped if the idempotency key was seen)
    2. Roll the in-level balance over as many levels as it covers
    3. Update total_xp and the profile's team contribution
    4. On level up, notify the player
    """
    if amount <= 0:
        return False

    if idempotency_key is not None:
        existing = await db.execute(
            select(XPLedger.id).where(XPLedger.idempotency_key == idempotency_key)
        )
        if existing.scalar_one_or_none() is not None:
            return False

    now = datetime.now(timezone.utc)
    db.add(XPLedger(
        profile_id=profile.id,
        amount=amount,
        source=source,
        source_id=source_id,
        idempotency_key=idempotency_key,
        created_at=now,
    ))

    old_level = profile.level
    result = process_level_up(profile.level, profile.xp, amount)
    profile.level = result["level"]
    profile.xp = result["xp"]
    profile.xp_to_next_level = result["xp_to_next_level"]
    profile.total_xp += amount
    await db.flush()

    await add_team_contribution(db, profile.id, xp=amount)

    if profile.level > old_level:
        await _emit_level_up(db, redis, profile, old_level)

    return True


async def _emit_level_up(db: AsyncSession, redis: object | None, profile: Profile, old_level: int) -> None:
    """Persist and push a level-up notification, then broadcast for live feeds."""
    await create_notification(
        db,
        profile.id,
        "gamification",
        "level_up",
        title="Level Up!",
        description=f"You reached level {profile.level}",
        metadata={"old_level": old_level, "new_level": profile.level},
        redis=redis,
    )
    await broadcast(redis, "pubsub:level_up", {
        "profile_id": profile.id,
        "username": profile.username,
        "old_level": old_level,
        "new_level": profile.level,
    })
    logger.info("Profile %d levelled up %d -> %d", profile.id, old_level, profile.level)
