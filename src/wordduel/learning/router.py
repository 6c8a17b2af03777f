"""Vocabulary endpoints: word lists, study answers, review book and levels."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_profile
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.dependencies import get_redis_dep
from wordduel.learning import service
from wordduel.learning.schemas import (
    AnswerRequest,
    AnswerResponse,
    LearningStatsResponse,
    LevelCompleteRequest,
    LevelCompleteResponse,
    LevelResponse,
    LevelStartResponse,
    StudySessionRequest,
    StudySessionResponse,
    WordListResponse,
    WordResponse,
    WrongWordResponse,
)

router = APIRouter(prefix="/api/v1/learning", tags=["Learning"])


@router.get("/words", response_model=WordListResponse)
async def list_words(
    subject: str = Query("english"),
    grade: int | None = Query(None, ge=1, le=12),
    unit: int | None = Query(None, ge=1),
    topic: str | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> WordListResponse:
    try:
        words, total = await service.list_words(db, subject, grade, unit, topic, limit, offset)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return WordListResponse(words=[WordResponse.model_validate(w) for w in words], total=total)


@router.post("/sessions", response_model=StudySessionResponse)
async def start_study_session(
    body: StudySessionRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> StudySessionResponse:
    """Start a study session; costs one energy."""
    try:
        data = await service.start_study_session(db, profile, body.subject, body.unit, body.count)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return StudySessionResponse(**data)


@router.post("/answers", response_model=AnswerResponse)
async def record_answer(
    body: AnswerRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> AnswerResponse:
    """Record a study answer; mastery rises on correct and resets on wrong."""
    progress = await service.record_answer(db, profile.id, body.word_id, body.correct)
    await db.commit()
    return AnswerResponse(
        word_id=progress.word_id,
        mastery_level=progress.mastery_level,
        correct_count=progress.correct_count,
        incorrect_count=progress.incorrect_count,
    )


@router.get("/wrong-words", response_model=list[WrongWordResponse])
async def wrong_words(
    subject: str | None = Query(None),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> list[WrongWordResponse]:
    """The review book: words answered wrong and not yet mastered."""
    try:
        rows = await service.get_wrong_words(db, profile.id, subject)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return [WrongWordResponse(**row) for row in rows]


@router.get("/stats", response_model=LearningStatsResponse)
async def learning_stats(
    subject: str | None = Query(None),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> LearningStatsResponse:
    try:
        stats = await service.get_learning_stats(db, profile.id, subject)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return LearningStatsResponse(**stats)


# ── Levels ──


@router.get("/levels", response_model=list[LevelResponse])
async def list_levels(
    grade: int | None = Query(None, ge=1, le=12),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> list[LevelResponse]:
    """Levels of a grade (the caller's own by default) with progress."""
    rows = await service.list_levels(db, profile.id, grade or profile.grade)
    return [LevelResponse(**row) for row in rows]


@router.post("/levels/{level_id}/start", response_model=LevelStartResponse)
async def start_level(
    level_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> LevelStartResponse:
    try:
        data = await service.start_level(db, profile, level_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return LevelStartResponse(**data)


@router.post("/levels/{level_id}/complete", response_model=LevelCompleteResponse)
async def complete_level(
    level_id: int,
    body: LevelCompleteRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> LevelCompleteResponse:
    try:
        data = await service.complete_level(db, redis, profile, level_id, body.correct, body.total)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return LevelCompleteResponse(**data)
