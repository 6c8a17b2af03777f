"""Friend battle invites with a server-enforced expiry."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.config import get_settings
from wordduel.db.base import as_utc
from wordduel.battle.match_service import get_current_match
from wordduel.db.models import BattleInvite, Match, Profile
from wordduel.errors import ForbiddenError, NotFoundError
from wordduel.learning.service import pick_battle_words
from wordduel.social.friend_service import are_friends, is_blocked
from wordduel.social.notification_push import publish_to_profile

logger = logging.getLogger(__name__)


def _invite_payload(invite: BattleInvite, **extra: object) -> dict:
    return {
        "invite_id": invite.id,
        "sender_id": invite.sender_id,
        "receiver_id": invite.receiver_id,
        "status": invite.status,
        "match_id": invite.match_id,
        "expires_at": invite.expires_at,
        **extra,
    }


async def get_invite(db: AsyncSession, invite_id: int) -> BattleInvite:
    invite = (await db.execute(select(BattleInvite).where(BattleInvite.id == invite_id))).scalar_one_or_none()
    if invite is None:
        raise NotFoundError("Invite not found")
    return invite


async def send_invite(
    db: AsyncSession,
    redis: object | None,
    sender: Profile,
    receiver_id: int,
    now: datetime | None = None,
) -> BattleInvite:
    """Invite a friend to a battle, expiring the sender's earlier pending invites."""
    now = now or datetime.now(timezone.utc)
    if receiver_id == sender.id:
        raise ValueError("Cannot invite yourself")
    if not await are_friends(db, sender.id, receiver_id):
        raise ValueError("You can only invite friends")
    if await is_blocked(db, sender.id, receiver_id):
        raise ValueError("Cannot invite this user")

    await db.execute(
        update(BattleInvite)
        .where(BattleInvite.sender_id == sender.id, BattleInvite.status == "pending")
        .values(status="expired")
    )

    ttl = timedelta(seconds=get_settings().battle_invite_ttl_seconds)
    invite = BattleInvite(
        sender_id=sender.id,
        receiver_id=receiver_id,
        status="pending",
        created_at=now,
        expires_at=now + ttl,
    )
    db.add(invite)
    await db.flush()

    await publish_to_profile(
        redis, receiver_id, "battle_invite",
        _invite_payload(invite, sender_name=sender.username, sender_avatar=sender.avatar_url),
    )
    return invite


async def list_pending_invites(db: AsyncSession, profile_id: int, now: datetime | None = None) -> list[BattleInvite]:
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(BattleInvite)
        .where(
            BattleInvite.receiver_id == profile_id,
            BattleInvite.status == "pending",
            BattleInvite.expires_at > now,
        )
        .order_by(BattleInvite.created_at.desc())
    )
    return list(result.scalars().all())


async def _load_pending_for_receiver(
    db: AsyncSession, invite_id: int, profile: Profile, now: datetime
) -> BattleInvite:
    invite = await get_invite(db, invite_id)
    if invite.receiver_id != profile.id:
        raise ForbiddenError("Not your invite")
    if invite.status != "pending":
        raise ValueError(f"Invite is {invite.status}")
    # The expire-battle-invites job records the status change
    if as_utc(invite.expires_at) <= now:
        raise ValueError("Invite has expired")
    return invite


async def accept_invite(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    invite_id: int,
    now: datetime | None = None,
) -> Match:
    """Accept an invite, starting an unranked match on the receiver's grade."""
    now = now or datetime.now(timezone.utc)
    invite = await _load_pending_for_receiver(db, invite_id, profile, now)
    sender = await db.get(Profile, invite.sender_id)
    if sender is None:
        raise NotFoundError("Sender no longer exists")

    if await get_current_match(db, profile.id) is not None:
        raise ValueError("Already in a match")
    if await get_current_match(db, sender.id) is not None:
        raise ValueError(f"{sender.username} is already in a match")

    # Only one accept may win the pending invite
    claimed = await db.execute(
        update(BattleInvite)
        .where(BattleInvite.id == invite.id, BattleInvite.status == "pending")
        .values(status="accepted")
        .returning(BattleInvite.id)
        .execution_options(synchronize_session=False)
    )
    if claimed.first() is None:
        await db.refresh(invite)
        raise ValueError(f"Invite is {invite.status}")
    await db.refresh(invite)

    settings = get_settings()
    match = Match(
        player1_id=sender.id,
        player2_id=profile.id,
        grade=profile.grade,
        is_free=True,
        status="in_progress",
        player1_elo=sender.elo_free,
        player2_elo=profile.elo_free,
        words=await pick_battle_words(db, profile.grade, settings.match_word_count),
        created_at=now,
        started_at=now,
    )
    db.add(match)
    await db.flush()

    invite.match_id = match.id
    await db.flush()

    await publish_to_profile(redis, sender.id, "battle_invite_accepted", _invite_payload(invite))
    logger.info("Invite %d accepted, match %d started", invite.id, match.id)
    return match


async def reject_invite(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    invite_id: int,
    now: datetime | None = None,
) -> BattleInvite:
    now = now or datetime.now(timezone.utc)
    invite = await _load_pending_for_receiver(db, invite_id, profile, now)
    invite.status = "rejected"
    await db.flush()
    await publish_to_profile(redis, invite.sender_id, "battle_invite_rejected", _invite_payload(invite))
    return invite


async def cancel_invite(db: AsyncSession, redis: object | None, profile: Profile, invite_id: int) -> BattleInvite:
    """Withdraw a pending invite. A withdrawn invite counts as expired."""
    invite = await get_invite(db, invite_id)
    if invite.sender_id != profile.id:
        raise ForbiddenError("Not your invite")
    if invite.status != "pending":
        raise ValueError(f"Invite is {invite.status}")
    invite.status = "expired"
    await db.flush()
    await publish_to_profile(redis, invite.receiver_id, "battle_invite_cancelled", _invite_payload(invite))
    return invite


async def expire_stale_invites(db: AsyncSession, now: datetime | None = None) -> int:
    """Mark pending invites past their expiry as expired."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        update(BattleInvite)
        .where(BattleInvite.status == "pending", BattleInvite.expires_at <= now)
        .values(status="expired")
        .returning(BattleInvite.id)
        .execution_options(synchronize_session=False)
    )
    expired = len(result.all())
    if expired:
        logger.info("Expired %d battle invites", expired)
    return expired
