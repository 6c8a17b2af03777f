"""Pydantic models for team endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreateTeamRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=20)
    description: str | None = Field(None, max_length=256)


class ApplyRequest(BaseModel):
    message: str | None = Field(None, max_length=256)


class ReviewRequest(BaseModel):
    approve: bool


class TransferRequest(BaseModel):
    new_leader_id: int


class RoleRequest(BaseModel):
    role: str = Field(..., pattern="^(officer|member)$")


class TeamResponse(BaseModel):
    id: int
    name: str
    description: str | None = None
    leader_id: int
    member_count: int
    total_xp: int
    total_wins: int
    total_battles: int
    rank_position: int
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class TeamMemberResponse(BaseModel):
    profile_id: int
    username: str
    avatar_url: str | None = None
    level: int
    role: str
    contributed_xp: int
    contributed_wins: int
    joined_at: datetime | None = None


class TeamDetailResponse(BaseModel):
    team: TeamResponse
    members: list[TeamMemberResponse]


class ApplicationResponse(BaseModel):
    id: int
    team_id: int
    profile_id: int
    message: str | None = None
    status: str
    created_at: datetime | None = None

    model_config = {"from_attributes": True}


class TeamMilestoneResponse(BaseModel):
    id: int
    name: str
    target_type: str
    target_value: int
    reward_type: str
    reward_value: int
    claimed: bool
    current: int
    progress_percent: float
    completed: bool


class MilestoneClaimResponse(BaseModel):
    milestone_id: int
    reward_type: str
    reward_value: int
    members_rewarded: int
