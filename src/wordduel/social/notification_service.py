"""Notification persistence and delivery."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Notification
from wordduel.social.notification_push import publish_to_profile

logger = logging.getLogger(__name__)

VALID_TYPES = frozenset({"battle", "social", "team", "gamification", "season", "system"})


async def create_notification(
    db: AsyncSession,
    profile_id: int,
    type_: str,
    subtype: str,
    title: str,
    description: str | None = None,
    metadata: dict[str, Any] | None = None,
    redis: Any | None = None,
) -> Notification:
    """Create a notification and push it to the profile's WebSocket connections."""
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {sorted(VALID_TYPES)}")

    notification = Notification(
        profile_id=profile_id,
        type=type_,
        subtype=subtype,
        title=title,
        description=description,
        notification_metadata=metadata or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()

    await publish_to_profile(redis, profile_id, "notification", notification_payload(notification))
    return notification


async def get_notifications(
    db: AsyncSession,
    profile_id: int,
    page: int = 1,
    per_page: int = 20,
    unread_only: bool = False,
) -> tuple[list[Notification], int]:
    """List a profile's notifications, newest first."""
    conditions = [Notification.profile_id == profile_id]
    if unread_only:
        conditions.append(Notification.read.is_(False))

    total = (
        await db.execute(select(func.count()).select_from(Notification).where(*conditions))
    ).scalar_one()
    result = await db.execute(
        select(Notification)
        .where(*conditions)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def mark_read(db: AsyncSession, profile_id: int, notification_ids: list[int] | None = None) -> int:
    """Mark the caller's unread notifications read; all of them when no ids are given.

    Ids belonging to other profiles are ignored. Returns how many changed.
    """
    stmt = update(Notification).where(Notification.profile_id == profile_id, Notification.read.is_(False))
    if notification_ids is not None:
        if not notification_ids:
            return 0
        stmt = stmt.where(Notification.id.in_(notification_ids))
    result = await db.execute(
        stmt.values(read=True).returning(Notification.id).execution_options(synchronize_session=False)
    )
    return len(result.all())


async def get_unread_count(db: AsyncSession, profile_id: int) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.profile_id == profile_id, Notification.read.is_(False))
    )
    return result.scalar_one()


def notification_payload(notification: Notification) -> dict[str, Any]:
    """The client-facing shape, also used for realtime pushes."""
    return {
        "id": str(notification.id),
        "type": notification.type,
        "subtype": notification.subtype,
        "title": notification.title,
        "description": notification.description,
        "timestamp": notification.created_at,
        "read": notification.read,
        "metadata": notification.notification_metadata or {},
    }
