"""Social API endpoints.

Friends (8), Battle invites (5), Chat (4), Reports (1).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_profile
from wordduel.battle.schemas import MatchResponse
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.dependencies import get_redis_dep
from wordduel.social import chat_service, friend_service, invite_service
from wordduel.social.schemas import (
    BlockedResponse,
    BlockRequest,
    FriendRequestCreate,
    FriendRequestRespond,
    FriendRequestResponse,
    FriendResponse,
    IncomingFriendRequest,
    InviteCreate,
    InviteResponse,
    MessageCreate,
    MessageResponse,
    ProfileSearchResult,
    ReportCreate,
    ReportResponse,
)

router = APIRouter(prefix="/api/v1/social", tags=["Social"])


# ── Friends ──


@router.get("/search", response_model=list[ProfileSearchResult])
async def search_profiles(
    q: str = Query(..., min_length=1, max_length=32),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    """Find players by username."""
    return [ProfileSearchResult(**r) for r in await friend_service.search_profiles(db, profile.id, q)]


@router.get("/friends", response_model=list[FriendResponse])
async def list_friends(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    return [FriendResponse(**f) for f in await friend_service.list_friends(db, profile.id)]


@router.delete("/friends/{friend_id}", status_code=204)
async def remove_friend(
    friend_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    if not await friend_service.remove_friend(db, profile.id, friend_id):
        raise HTTPException(status_code=404, detail="Friend not found")
    await db.commit()


@router.get("/friend-requests", response_model=list[IncomingFriendRequest])
async def incoming_requests(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    return [IncomingFriendRequest(**r) for r in await friend_service.list_friend_requests(db, profile.id)]


@router.post("/friend-requests", response_model=FriendRequestResponse, status_code=201)
async def send_friend_request(
    body: FriendRequestCreate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        request = await friend_service.send_friend_request(db, redis, profile, body.receiver_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return FriendRequestResponse.model_validate(request)


@router.post("/friend-requests/{request_id}/respond", response_model=FriendRequestResponse)
async def respond_friend_request(
    request_id: int,
    body: FriendRequestRespond,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        request = await friend_service.respond_to_request(db, redis, profile, request_id, body.accept)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return FriendRequestResponse.model_validate(request)


@router.get("/blocks", response_model=list[BlockedResponse])
async def list_blocked(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    return [BlockedResponse(**b) for b in await friend_service.list_blocked(db, profile.id)]


@router.post("/blocks", status_code=201)
async def block_user(
    body: BlockRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        await friend_service.block_user(db, redis, profile, body.profile_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"detail": "User blocked"}


@router.delete("/blocks/{blocked_id}", status_code=204)
async def unblock_user(
    blocked_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    if not await friend_service.unblock_user(db, profile.id, blocked_id):
        raise HTTPException(status_code=404, detail="Block not found")
    await db.commit()


# ── Battle invites ──


@router.get("/invites", response_model=list[InviteResponse])
async def pending_invites(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    invites = await invite_service.list_pending_invites(db, profile.id)
    return [InviteResponse.model_validate(i) for i in invites]


@router.post("/invites", response_model=InviteResponse, status_code=201)
async def send_invite(
    body: InviteCreate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        invite = await invite_service.send_invite(db, redis, profile, body.receiver_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return InviteResponse.model_validate(invite)


@router.post("/invites/{invite_id}/accept", response_model=MatchResponse)
async def accept_invite(
    invite_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        match = await invite_service.accept_invite(db, redis, profile, invite_id)
    except ValueError as e:
        status = 409 if "already" in str(e).lower() else 400
        raise HTTPException(status_code=status, detail=str(e)) from e
    await db.commit()
    return MatchResponse.model_validate(match)


@router.post("/invites/{invite_id}/reject", response_model=InviteResponse)
async def reject_invite(
    invite_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        invite = await invite_service.reject_invite(db, redis, profile, invite_id)
    except ValueError as e:
        await db.commit()
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return InviteResponse.model_validate(invite)


@router.post("/invites/{invite_id}/cancel", response_model=InviteResponse)
async def cancel_invite(
    invite_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        invite = await invite_service.cancel_invite(db, redis, profile, invite_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return InviteResponse.model_validate(invite)


# ── Chat ──


@router.post("/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    body: MessageCreate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        message = await chat_service.send_message(db, redis, profile, body.receiver_id, body.content)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return MessageResponse.model_validate(message)


@router.get("/messages/unread", response_model=dict[int, int])
async def unread_counts(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    """Unread message count per sender."""
    return await chat_service.get_unread_counts(db, profile.id)


@router.get("/messages/{other_id}", response_model=list[MessageResponse])
async def conversation(
    other_id: int,
    limit: int = Query(50, ge=1, le=200),
    before_id: int | None = Query(None),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    messages = await chat_service.get_conversation(db, profile.id, other_id, limit, before_id)
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("/messages/{other_id}/read")
async def mark_read(
    other_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    count = await chat_service.mark_conversation_read(db, profile.id, other_id)
    await db.commit()
    return {"detail": f"Marked {count} messages as read"}


# ── Reports ──


@router.post("/reports", response_model=ReportResponse, status_code=201)
async def report_user(
    body: ReportCreate,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    try:
        report = await chat_service.report_user(db, profile, body.reported_id, body.reason, body.details)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return ReportResponse.model_validate(report)
