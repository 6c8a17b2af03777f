"""Season API endpoints: standings, milestones, rewards and name cards."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_profile
from wordduel.database import get_session
from wordduel.db.models import Profile, Season
from wordduel.dependencies import get_redis_dep
from wordduel.errors import NotFoundError
from wordduel.seasons import challenge_service, milestone_service, name_card_service, reward_service
from wordduel.seasons.schemas import (
    ChallengeRewardResponse,
    ChallengeRowResponse,
    MilestoneClaimResponse,
    MilestoneResponse,
    NameCardResponse,
    SeasonResponse,
    StandingsResponse,
)

router = APIRouter(prefix="/api/v1/seasons", tags=["Seasons"])


@router.get("", response_model=list[SeasonResponse])
async def list_seasons(
    grade: int | None = Query(None),
    active_only: bool = Query(True),
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    seasons = await challenge_service.list_seasons(db, grade, active_only)
    return [SeasonResponse.model_validate(s) for s in seasons]


@router.get("/milestones", response_model=list[MilestoneResponse])
async def my_milestones(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    """Season milestones with the caller's current progress."""
    milestones = await milestone_service.get_milestones(db, profile)
    await db.commit()
    return [MilestoneResponse(**m) for m in milestones]


@router.post("/milestones/{milestone_id}/claim", response_model=MilestoneClaimResponse)
async def claim_milestone(
    milestone_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        result = await milestone_service.claim_milestone(db, redis, profile, milestone_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return MilestoneClaimResponse(**result)


@router.get("/rewards", response_model=list[ChallengeRewardResponse])
async def my_rewards(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    rewards = await reward_service.get_profile_rewards(db, profile.id)
    return [ChallengeRewardResponse.model_validate(r) for r in rewards]


@router.get("/name-cards", response_model=list[NameCardResponse])
async def my_name_cards(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    return [NameCardResponse(**c) for c in await name_card_service.list_name_cards(db, profile.id)]


@router.post("/name-cards/{name_card_id}/equip", status_code=200)
async def equip_name_card(
    name_card_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    await name_card_service.equip_name_card(db, profile.id, name_card_id)
    await db.commit()
    return {"detail": "Name card equipped"}


@router.get("/{season_id}/standings", response_model=StandingsResponse)
async def season_standings(
    season_id: int,
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    """Class ranking and grade row of a season."""
    season = await db.get(Season, season_id)
    if season is None:
        raise NotFoundError("Season not found")
    standings = await challenge_service.get_season_standings(db, season_id)
    grade = standings["grade"]
    return StandingsResponse(
        season=SeasonResponse.model_validate(season),
        classes=[ChallengeRowResponse.model_validate(c) for c in standings["classes"]],
        grade=ChallengeRowResponse.model_validate(grade) if grade is not None else None,
    )
