"""Friend requests, friendships and blocks."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import and_, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.base import as_utc
from wordduel.db.models import BlockedUser, FriendRequest, Friendship, Match, Profile
from wordduel.errors import ForbiddenError, NotFoundError
from wordduel.social.notification_push import publish_to_profile
from wordduel.social.notification_service import create_notification

logger = logging.getLogger(__name__)

ONLINE_WINDOW = timedelta(minutes=5)
SEARCH_LIMIT = 20


def ordered_pair(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)


async def are_friends(db: AsyncSession, a: int, b: int) -> bool:
    user1, user2 = ordered_pair(a, b)
    result = await db.execute(
        select(Friendship.id).where(Friendship.user1_id == user1, Friendship.user2_id == user2)
    )
    return result.scalar_one_or_none() is not None


async def is_blocked(db: AsyncSession, a: int, b: int) -> bool:
    """True if either profile has blocked the other."""
    result = await db.execute(
        select(BlockedUser.id).where(
            or_(
                and_(BlockedUser.blocker_id == a, BlockedUser.blocked_id == b),
                and_(BlockedUser.blocker_id == b, BlockedUser.blocked_id == a),
            )
        )
    )
    return result.first() is not None


async def search_profiles(db: AsyncSession, searcher_id: int, query: str) -> list[dict]:
    """Profiles whose username contains ``query`` (case-insensitive), minus the searcher."""
    term = query.strip().lower()
    if not term:
        return []
    result = await db.execute(
        select(Profile)
        .where(func.lower(Profile.username).contains(term), Profile.id != searcher_id)
        .order_by(Profile.username)
        .limit(SEARCH_LIMIT)
    )
    return [
        {
            "profile_id": p.id,
            "username": p.username,
            "avatar_url": p.avatar_url,
            "grade": p.grade,
            "level": p.level,
            "rank_tier": p.rank_tier,
        }
        for p in result.scalars().all()
    ]


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


async def send_friend_request(
    db: AsyncSession,
    redis: object | None,
    sender: Profile,
    receiver_id: int,
) -> FriendRequest:
    """Send a friend request.

    Raises:
        ValueError: Self-request, already friends, a pending request in
            either direction, or a block between the two.
    """
    if receiver_id == sender.id:
        raise ValueError("Cannot send a friend request to yourself")
    receiver = await db.get(Profile, receiver_id)
    if receiver is None:
        raise NotFoundError("Profile not found")
    if await is_blocked(db, sender.id, receiver_id):
        raise ValueError("Cannot send a friend request to this user")
    if await are_friends(db, sender.id, receiver_id):
        raise ValueError("Already friends")
    pending = await db.execute(
        select(FriendRequest.id).where(
            FriendRequest.status == "pending",
            or_(
                and_(FriendRequest.sender_id == sender.id, FriendRequest.receiver_id == receiver_id),
                and_(FriendRequest.sender_id == receiver_id, FriendRequest.receiver_id == sender.id),
            ),
        )
    )
    if pending.first() is not None:
        raise ValueError("A friend request is already pending")

    request = FriendRequest(sender_id=sender.id, receiver_id=receiver_id, status="pending")
    db.add(request)
    await db.flush()

    await create_notification(
        db, receiver_id, "social", "friend_request",
        title=f"{sender.username} sent you a friend request",
        metadata={"request_id": request.id, "sender_id": sender.id},
        redis=redis,
    )
    return request


async def list_friend_requests(db: AsyncSession, profile_id: int) -> list[dict]:
    """Pending requests addressed to the profile, newest first."""
    result = await db.execute(
        select(FriendRequest, Profile)
        .join(Profile, Profile.id == FriendRequest.sender_id)
        .where(FriendRequest.receiver_id == profile_id, FriendRequest.status == "pending")
        .order_by(FriendRequest.created_at.desc())
    )
    return [
        {
            "id": req.id,
            "sender_id": sender.id,
            "sender_name": sender.username,
            "sender_avatar": sender.avatar_url,
            "created_at": req.created_at,
        }
        for req, sender in result.all()
    ]


async def respond_to_request(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    request_id: int,
    accept: bool,
) -> FriendRequest:
    """Accept or reject a pending request addressed to ``profile``."""
    request = (await db.execute(select(FriendRequest).where(FriendRequest.id == request_id))).scalar_one_or_none()
    if request is None:
        raise NotFoundError("Friend request not found")
    if request.receiver_id != profile.id:
        raise ForbiddenError("Not your friend request")
    if request.status != "pending":
        raise ValueError("Friend request already answered")

    request.status = "accepted" if accept else "rejected"
    request.responded_at = datetime.now(timezone.utc)
    if accept and not await are_friends(db, request.sender_id, request.receiver_id):
        user1, user2 = ordered_pair(request.sender_id, request.receiver_id)
        db.add(Friendship(user1_id=user1, user2_id=user2))
    await db.flush()

    if accept:
        await create_notification(
            db, request.sender_id, "social", "friend_accepted",
            title=f"{profile.username} accepted your friend request",
            metadata={"profile_id": profile.id},
            redis=redis,
        )
    return request


# ---------------------------------------------------------------------------
# Friends
# ---------------------------------------------------------------------------


async def list_friends(db: AsyncSession, profile_id: int, now: datetime | None = None) -> list[dict]:
    """Friends with online and in-battle status."""
    now = now or datetime.now(timezone.utc)
    result = await db.execute(
        select(Friendship).where(or_(Friendship.user1_id == profile_id, Friendship.user2_id == profile_id))
    )
    friend_ids = [f.user2_id if f.user1_id == profile_id else f.user1_id for f in result.scalars().all()]
    if not friend_ids:
        return []

    profiles = (await db.execute(select(Profile).where(Profile.id.in_(friend_ids)))).scalars().all()
    in_battle: set[int] = set()
    battle_rows = await db.execute(
        select(Match.player1_id, Match.player2_id).where(
            Match.status == "in_progress",
            or_(Match.player1_id.in_(friend_ids), Match.player2_id.in_(friend_ids)),
        )
    )
    for p1, p2 in battle_rows.all():
        in_battle.update({p1, p2})

    friends = []
    for p in profiles:
        last_seen = as_utc(p.last_seen_at)
        friends.append({
            "profile_id": p.id,
            "username": p.username,
            "avatar_url": p.avatar_url,
            "level": p.level,
            "rank_tier": p.rank_tier,
            "is_online": last_seen is not None and now - last_seen <= ONLINE_WINDOW,
            "in_battle": p.id in in_battle,
            "last_seen_at": p.last_seen_at,
        })
    friends.sort(key=lambda f: (not f["is_online"], f["username"].lower()))
    return friends


async def remove_friend(db: AsyncSession, profile_id: int, friend_id: int) -> bool:
    user1, user2 = ordered_pair(profile_id, friend_id)
    result = await db.execute(
        delete(Friendship).where(Friendship.user1_id == user1, Friendship.user2_id == user2)
    )
    await db.flush()
    return (result.rowcount or 0) > 0


async def block_user(db: AsyncSession, redis: object | None, profile: Profile, blocked_id: int) -> BlockedUser:
    """Block a profile. Removes any friendship and pending requests between the two."""
    if blocked_id == profile.id:
        raise ValueError("Cannot block yourself")
    if await db.get(Profile, blocked_id) is None:
        raise NotFoundError("Profile not found")
    existing = await db.execute(
        select(BlockedUser.id).where(BlockedUser.blocker_id == profile.id, BlockedUser.blocked_id == blocked_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise ValueError("User already blocked")

    block = BlockedUser(blocker_id=profile.id, blocked_id=blocked_id)
    db.add(block)
    await remove_friend(db, profile.id, blocked_id)
    await db.execute(
        delete(FriendRequest).where(
            FriendRequest.status == "pending",
            or_(
                and_(FriendRequest.sender_id == profile.id, FriendRequest.receiver_id == blocked_id),
                and_(FriendRequest.sender_id == blocked_id, FriendRequest.receiver_id == profile.id),
            ),
        )
    )
    await db.flush()
    await publish_to_profile(redis, blocked_id, "friend_removed", {"profile_id": profile.id})
    logger.info("Profile %d blocked %d", profile.id, blocked_id)
    return block


async def unblock_user(db: AsyncSession, profile_id: int, blocked_id: int) -> bool:
    result = await db.execute(
        delete(BlockedUser).where(BlockedUser.blocker_id == profile_id, BlockedUser.blocked_id == blocked_id)
    )
    await db.flush()
    return (result.rowcount or 0) > 0


async def list_blocked(db: AsyncSession, profile_id: int) -> list[dict]:
    result = await db.execute(
        select(BlockedUser, Profile)
        .join(Profile, Profile.id == BlockedUser.blocked_id)
        .where(BlockedUser.blocker_id == profile_id)
        .order_by(BlockedUser.created_at.desc())
    )
    return [
        {"profile_id": p.id, "username": p.username, "blocked_at": b.created_at}
        for b, p in result.all()
    ]
