"""Battle API endpoints: matchmaking, live progress, results and history."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_profile
from wordduel.battle import match_service, spectate
from wordduel.battle.schemas import (
    ActiveMatchResponse,
    BattleStatsResponse,
    FinishRequest,
    MatchHistoryEntry,
    MatchResponse,
    ProgressRequest,
    QueueRequest,
    SpectateResponse,
)
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.dependencies import get_redis_dep

router = APIRouter(prefix="/api/v1/battles", tags=["Battles"])


@router.post("/queue", response_model=MatchResponse)
async def join_queue(
    body: QueueRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> MatchResponse:
    """Pair with a waiting opponent or start waiting."""
    try:
        match = await match_service.find_or_create_match(db, redis, profile, free=body.free)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await db.commit()
    return MatchResponse.model_validate(match)


@router.post("/ai", response_model=MatchResponse)
async def start_ai_match(
    body: QueueRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> MatchResponse:
    try:
        match = await match_service.create_ai_match(db, profile, free=body.free)
    except ValueError as e:
        raise HTTPException(status_code=409, detail=str(e)) from e
    await db.commit()
    return MatchResponse.model_validate(match)


@router.get("/active", response_model=ActiveMatchResponse | None)
async def active_match(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> ActiveMatchResponse | None:
    """Reconnect support: the running match and its remaining time."""
    data = await match_service.get_active_match(db, profile)
    await db.commit()
    if data is None:
        return None
    return ActiveMatchResponse(
        match=MatchResponse.model_validate(data["match"]),
        remaining_seconds=data["remaining_seconds"],
    )


@router.get("/history", response_model=list[MatchHistoryEntry])
async def match_history(
    limit: int = Query(20, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> list[MatchHistoryEntry]:
    rows = await match_service.get_match_history(db, profile, limit)
    return [MatchHistoryEntry(**row) for row in rows]


@router.get("/stats", response_model=BattleStatsResponse)
async def battle_stats(
    free: bool = Query(False),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> BattleStatsResponse:
    return BattleStatsResponse(**await match_service.get_battle_stats(db, profile, free))


@router.get("/{match_id}", response_model=MatchResponse)
async def get_match(
    match_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> MatchResponse:
    match = await match_service.get_match(db, match_id)
    match_service.side_of(match, profile.id)
    return MatchResponse.model_validate(match)


@router.get("/{match_id}/spectate", response_model=SpectateResponse)
async def spectate_match(
    match_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> SpectateResponse:
    """Watch a friend's match: players and live progress, without the words."""
    return SpectateResponse(**await spectate.spectate_match(db, match_id, profile))


@router.post("/{match_id}/progress", response_model=MatchResponse)
async def submit_progress(
    match_id: int,
    body: ProgressRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> MatchResponse:
    """Report progress as explicit fields or a legacy packed score."""
    try:
        progress = body.to_progress()
        ai_progress = body.ai.to_progress() if body.ai else None
        match = await match_service.submit_progress(db, redis, match_id, profile, progress, ai_progress)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return MatchResponse.model_validate(match)


@router.post("/{match_id}/finish", response_model=MatchResponse)
async def finish_match(
    match_id: int,
    body: FinishRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> MatchResponse:
    try:
        match = await match_service.finish_match(db, redis, match_id, profile, body.max_combo)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return MatchResponse.model_validate(match)


@router.post("/{match_id}/cancel", response_model=MatchResponse)
async def cancel_match(
    match_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> MatchResponse:
    try:
        match = await match_service.cancel_match(db, redis, match_id, profile)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return MatchResponse.model_validate(match)
