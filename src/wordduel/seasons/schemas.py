"""Pydantic models for season endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class SeasonResponse(BaseModel):
    id: int
    name: str
    grade: int
    start_date: datetime
    end_date: datetime
    is_active: bool

    model_config = {"from_attributes": True}


class ChallengeRowResponse(BaseModel):
    grade: int
    class_name: str | None = None
    total_xp: int
    total_correct: int
    total_answered: int
    total_levels_completed: int
    member_count: int
    composite_score: float
    rank_position: int

    model_config = {"from_attributes": True}


class StandingsResponse(BaseModel):
    season: SeasonResponse
    classes: list[ChallengeRowResponse]
    grade: ChallengeRowResponse | None = None


class ChallengeRewardResponse(BaseModel):
    season_id: int
    reward_type: str
    rank_position: int
    coins_awarded: int
    badge_slug: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class MilestoneResponse(BaseModel):
    id: int
    season_id: int | None = None
    name: str
    target_type: str
    target_value: int
    reward_type: str
    reward_value: int
    current_progress: int
    progress_percent: float
    completed: bool
    completed_at: datetime | None = None
    claimed: bool


class MilestoneClaimResponse(BaseModel):
    milestone_id: int
    reward_type: str
    reward_value: int


class NameCardResponse(BaseModel):
    name_card_id: int
    name: str
    category: str
    rarity: str
    background_gradient: str | None = None
    rank_position: int | None = None
    is_equipped: bool
    earned_at: datetime | None = None
