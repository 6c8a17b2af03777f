"""Pydantic models for profile endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ProfileResponse(BaseModel):
    id: int
    username: str
    grade: int
    class_name: str | None = None
    avatar_url: str | None = None
    level: int
    xp: int
    xp_to_next_level: int
    level_progress: float
    total_xp: int
    coins: int
    energy: int
    max_energy: int
    wins: int
    losses: int
    free_match_wins: int
    free_match_losses: int
    elo_rating: int
    rank_tier: str
    rank_stars: int
    rank_points: int
    tier_progress: float
    max_combo: int
    created_at: datetime | None = None


class PublicProfileResponse(BaseModel):
    id: int
    username: str
    grade: int
    class_name: str | None = None
    avatar_url: str | None = None
    level: int
    total_xp: int
    wins: int
    losses: int
    rank_tier: str
    rank_stars: int
    max_combo: int
    badges_earned: int
    team_name: str | None = None
    name_card: str | None = None


class ProfileUpdateRequest(BaseModel):
    username: str | None = Field(None, min_length=2, max_length=32)
    avatar_url: str | None = Field(None, max_length=2048)
    class_name: str | None = Field(None, max_length=32)


class GradeChangeRequest(BaseModel):
    grade: int


class XPHistoryEntry(BaseModel):
    amount: int
    source: str
    source_id: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    total: int
    page: int
    per_page: int
