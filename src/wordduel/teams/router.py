"""Team API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_profile
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.dependencies import get_redis_dep
from wordduel.teams import service
from wordduel.teams.schemas import (
    ApplicationResponse,
    ApplyRequest,
    CreateTeamRequest,
    MilestoneClaimResponse,
    ReviewRequest,
    RoleRequest,
    TeamDetailResponse,
    TeamMemberResponse,
    TeamMilestoneResponse,
    TeamResponse,
    TransferRequest,
)

router = APIRouter(prefix="/api/v1/teams", tags=["Teams"])


@router.get("", response_model=list[TeamResponse])
async def list_teams(
    search: str | None = Query(None, max_length=64),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> list[TeamResponse]:
    teams = await service.list_teams(db, search, limit, offset)
    return [TeamResponse.model_validate(t) for t in teams]


@router.post("", response_model=TeamResponse, status_code=201)
async def create_team(
    body: CreateTeamRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> TeamResponse:
    """Create a team; costs coins."""
    try:
        team = await service.create_team(db, profile, body.name, body.description)
    except ValueError as e:
        detail = str(e)
        status = 409 if "already" in detail.lower() else 400
        raise HTTPException(status_code=status, detail=detail) from e
    await db.commit()
    return TeamResponse.model_validate(team)


@router.get("/me", response_model=TeamDetailResponse | None)
async def my_team(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> TeamDetailResponse | None:
    member = await service.get_membership(db, profile.id)
    if member is None:
        return None
    team = await service.get_team(db, member.team_id)
    members = await service.get_team_members(db, team.id)
    return TeamDetailResponse(
        team=TeamResponse.model_validate(team),
        members=[TeamMemberResponse(**m) for m in members],
    )


@router.post("/leave")
async def leave_team(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> dict:
    try:
        dissolved = await service.leave_team(db, redis, profile)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"status": "left", "dissolved": dissolved}


@router.post("/transfer", response_model=TeamResponse)
async def transfer_leadership(
    body: TransferRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> TeamResponse:
    try:
        team = await service.transfer_leadership(db, profile, body.new_leader_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return TeamResponse.model_validate(team)


@router.put("/members/{member_id}/role")
async def set_role(
    member_id: int,
    body: RoleRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> dict:
    try:
        member = await service.set_member_role(db, profile, member_id, body.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"profile_id": member.profile_id, "role": member.role}


@router.delete("/members/{member_id}", status_code=204)
async def kick_member(
    member_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> None:
    await service.kick_member(db, redis, profile, member_id)
    await db.commit()


@router.post("/applications/{application_id}/review", response_model=ApplicationResponse)
async def review_application(
    application_id: int,
    body: ReviewRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> ApplicationResponse:
    try:
        application = await service.review_application(db, redis, profile, application_id, body.approve)
    except ValueError as e:
        await db.commit()
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return ApplicationResponse.model_validate(application)


@router.post("/milestones/{milestone_id}/claim", response_model=MilestoneClaimResponse)
async def claim_milestone(
    milestone_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> MilestoneClaimResponse:
    try:
        data = await service.claim_team_milestone(db, redis, profile, milestone_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return MilestoneClaimResponse(**data)


@router.get("/{team_id}", response_model=TeamDetailResponse)
async def get_team(
    team_id: int,
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> TeamDetailResponse:
    team = await service.get_team(db, team_id)
    members = await service.get_team_members(db, team.id)
    return TeamDetailResponse(
        team=TeamResponse.model_validate(team),
        members=[TeamMemberResponse(**m) for m in members],
    )


@router.post("/{team_id}/join", response_model=TeamMemberResponse)
async def join_team(
    team_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> TeamMemberResponse:
    try:
        member = await service.join_team(db, redis, profile, team_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return TeamMemberResponse(
        profile_id=profile.id,
        username=profile.username,
        avatar_url=profile.avatar_url,
        level=profile.level,
        role=member.role,
        contributed_xp=member.contributed_xp,
        contributed_wins=member.contributed_wins,
        joined_at=member.joined_at,
    )


@router.post("/{team_id}/apply", response_model=ApplicationResponse, status_code=201)
async def apply_to_team(
    team_id: int,
    body: ApplyRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> ApplicationResponse:
    try:
        application = await service.apply_to_team(db, redis, profile, team_id, body.message)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return ApplicationResponse.model_validate(application)


@router.get("/{team_id}/applications", response_model=list[ApplicationResponse])
async def list_applications(
    team_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> list[ApplicationResponse]:
    applications = await service.list_applications(db, profile, team_id)
    return [ApplicationResponse.model_validate(a) for a in applications]


@router.get("/{team_id}/milestones", response_model=list[TeamMilestoneResponse])
async def team_milestones(
    team_id: int,
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> list[TeamMilestoneResponse]:
    return [TeamMilestoneResponse(**m) for m in await service.get_team_milestones(db, team_id)]
