"""Direct messages between friends, plus user reports."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Message, Profile, Report
from wordduel.errors import NotFoundError
from wordduel.social.friend_service import are_friends, is_blocked
from wordduel.social.notification_push import publish_to_profile

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 500
REPORT_REASONS = frozenset({"spam", "harassment", "cheating", "inappropriate_name", "other"})


async def send_message(
    db: AsyncSession,
    redis: object | None,
    sender: Profile,
    receiver_id: int,
    content: str,
) -> Message:
    """Send a message to a friend.

    Raises:
        ValueError: Empty or over-long content, not friends, or blocked.
    """
    content = content.strip()
    if not content:
        raise ValueError("Message cannot be empty")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise ValueError(f"Message cannot exceed {MAX_MESSAGE_LENGTH} characters")
    if receiver_id == sender.id:
        raise ValueError("Cannot message yourself")
    if await is_blocked(db, sender.id, receiver_id):
        raise ValueError("Cannot message this user")
    if not await are_friends(db, sender.id, receiver_id):
        raise ValueError("You can only message friends")

    message = Message(sender_id=sender.id, receiver_id=receiver_id, content=content)
    db.add(message)
    await db.flush()

    await publish_to_profile(redis, receiver_id, "chat_message", {
        "id": message.id,
        "sender_id": sender.id,
        "sender_name": sender.username,
        "content": message.content,
        "created_at": message.created_at,
    })
    return message


async def get_conversation(
    db: AsyncSession,
    profile_id: int,
    other_id: int,
    limit: int = 50,
    before_id: int | None = None,
) -> list[Message]:
    """Messages between two profiles, oldest first (latest ``limit``)."""
    query = select(Message).where(
        or_(
            and_(Message.sender_id == profile_id, Message.receiver_id == other_id),
            and_(Message.sender_id == other_id, Message.receiver_id == profile_id),
        )
    )
    if before_id is not None:
        query = query.where(Message.id < before_id)
    result = await db.execute(query.order_by(Message.id.desc()).limit(limit))
    return list(reversed(result.scalars().all()))


async def mark_conversation_read(db: AsyncSession, profile_id: int, other_id: int) -> int:
    """Mark every unread message from ``other_id`` to the profile as read."""
    result = await db.execute(
        update(Message)
        .where(Message.receiver_id == profile_id, Message.sender_id == other_id, Message.read_at.is_(None))
        .values(read_at=datetime.now(timezone.utc))
        .returning(Message.id)
        .execution_options(synchronize_session=False)
    )
    return len(result.all())


async def get_unread_counts(db: AsyncSession, profile_id: int) -> dict[int, int]:
    """Unread message count per sender."""
    result = await db.execute(
        select(Message.sender_id, func.count())
        .where(Message.receiver_id == profile_id, Message.read_at.is_(None))
        .group_by(Message.sender_id)
    )
    return {sender_id: count for sender_id, count in result.all()}


async def report_user(
    db: AsyncSession,
    reporter: Profile,
    reported_id: int,
    reason: str,
    details: str | None = None,
) -> Report:
    if reported_id == reporter.id:
        raise ValueError("Cannot report yourself")
    reason = reason.strip()
    if not reason:
        raise ValueError("A reason is required")
    if reason not in REPORT_REASONS:
        raise ValueError(f"Reason must be one of {sorted(REPORT_REASONS)}")
    if await db.get(Profile, reported_id) is None:
        raise NotFoundError("Profile not found")

    report = Report(reporter_id=reporter.id, reported_id=reported_id, reason=reason, details=details)
    db.add(report)
    await db.flush()
    logger.info("Profile %d reported %d for %s", reporter.id, reported_id, reason)
    return report
