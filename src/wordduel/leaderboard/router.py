"""Leaderboard endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_profile
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.dependencies import get_redis_dep
from wordduel.leaderboard.service import get_leaderboard, get_profile_rank

router = APIRouter(prefix="/api/v1/leaderboard", tags=["Leaderboard"])


class LeaderboardEntryResponse(BaseModel):
    rank: int
    profile_id: int
    username: str
    grade: int
    class_name: str | None = None
    avatar_url: str | None = None
    level: int
    rank_tier: str
    value: float
    rank_stars: int | None = None
    wins: int | None = None
    losses: int | None = None
    qualified: bool | None = None


class ProfileRankResponse(BaseModel):
    board: str
    rank: int | None = None
    value: float
    total: int


@router.get("/{board}", response_model=list[LeaderboardEntryResponse])
async def leaderboard(
    board: str,
    grade: int | None = Query(None, ge=1, le=12),
    limit: int = Query(50, ge=1, le=100),
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> list[LeaderboardEntryResponse]:
    """Board is one of xp, wins, coins, rank, free, combo."""
    try:
        entries = await get_leaderboard(db, redis, board, grade, limit)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return [LeaderboardEntryResponse(**e) for e in entries]


@router.get("/{board}/me", response_model=ProfileRankResponse)
async def my_rank(
    board: str,
    grade: int | None = Query(None, ge=1, le=12),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> ProfileRankResponse:
    try:
        data = await get_profile_rank(db, profile, board, grade)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return ProfileRankResponse(**data)
