"""Pydantic models for social and notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


# ── Friends ──


class ProfileSearchResult(BaseModel):
    profile_id: int
    username: str
    avatar_url: str | None = None
    grade: int
    level: int
    rank_tier: str


class FriendRequestCreate(BaseModel):
    receiver_id: int


class FriendRequestRespond(BaseModel):
    accept: bool


class FriendRequestResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    status: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class IncomingFriendRequest(BaseModel):
    id: int
    sender_id: int
    sender_name: str
    sender_avatar: str | None = None
    created_at: datetime | None = None


class FriendResponse(BaseModel):
    profile_id: int
    username: str
    avatar_url: str | None = None
    level: int
    rank_tier: str
    is_online: bool
    in_battle: bool
    last_seen_at: datetime | None = None


class BlockRequest(BaseModel):
    profile_id: int


class BlockedResponse(BaseModel):
    profile_id: int
    username: str
    blocked_at: datetime | None = None


# ── Battle invites ──


class InviteCreate(BaseModel):
    receiver_id: int


class InviteResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    status: str
    match_id: int | None = None
    created_at: datetime | None = None
    expires_at: datetime

    model_config = {"from_attributes": True}


# ── Chat ──


class MessageCreate(BaseModel):
    receiver_id: int
    content: str = Field(..., min_length=1, max_length=2000)


class MessageResponse(BaseModel):
    id: int
    sender_id: int
    receiver_id: int
    content: str
    read_at: datetime | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class ReportCreate(BaseModel):
    reported_id: int
    reason: str = Field(..., min_length=1, max_length=64)
    details: str | None = Field(None, max_length=1000)


class ReportResponse(BaseModel):
    id: int
    reported_id: int
    reason: str
    status: str

    model_config = {"from_attributes": True}


# ── Notifications ──


class NotificationResponse(BaseModel):
    id: str
    type: str
    subtype: str
    title: str
    description: str | None = None
    timestamp: datetime
    read: bool
    metadata: dict[str, Any] = {}


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread_count: int
    page: int
    per_page: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class MarkReadRequest(BaseModel):
    ids: list[int] | None = Field(None, max_length=100)
