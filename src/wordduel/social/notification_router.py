"""Notification inbox endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_profile
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.social.notification_service import (
    get_notifications,
    get_unread_count,
    mark_read,
    notification_payload,
)
from wordduel.social.schemas import (
    MarkReadRequest,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


@router.get("", response_model=NotificationListResponse)
async def list_notifications(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> NotificationListResponse:
    """The caller's inbox, newest first, with the unread badge count."""
    notifications, total = await get_notifications(db, profile.id, page, per_page, unread_only)
    return NotificationListResponse(
        notifications=[NotificationResponse(**notification_payload(n)) for n in notifications],
        total=total,
        unread_count=await get_unread_count(db, profile.id),
        page=page,
        per_page=per_page,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> UnreadCountResponse:
    return UnreadCountResponse(unread_count=await get_unread_count(db, profile.id))


@router.post("/read", response_model=UnreadCountResponse)
async def mark_notifications_read(
    body: MarkReadRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> UnreadCountResponse:
    """Mark the listed notifications read, or every one when ``ids`` is omitted."""
    await mark_read(db, profile.id, body.ids)
    await db.commit()
    return UnreadCountResponse(unread_count=await get_unread_count(db, profile.id))
