"""Admin endpoints. All routes require the admin role."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.admin import service
from wordduel.auth.dependencies import require_admin
from wordduel.auth.service import delete_user
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.errors import NotFoundError
from wordduel.learning.schemas import WordImportRequest, WordImportResponse
from wordduel.learning.service import import_words
from wordduel.seasons.schemas import SeasonResponse

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


class CoinGrantRequest(BaseModel):
    amount: int = Field(..., gt=0, le=1_000_000)
    profile_id: int | None = None
    grade: int | None = None


class RoleGrantRequest(BaseModel):
    role: str


class SeasonCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    grade: int
    start_date: datetime
    end_date: datetime


@router.post("/coins")
async def grant_coins(
    body: CoinGrantRequest,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Credit coins to a profile, a grade, or every profile when neither is given."""
    try:
        credited = await service.distribute_coins(db, body.amount, body.profile_id, body.grade)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"success": True, "profiles_credited": credited, "amount": body.amount}


@router.post("/words/import", response_model=WordImportResponse)
async def import_word_list(
    body: WordImportRequest,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    try:
        result = await import_words(
            db, body.text, body.subject, body.grade, body.unit, body.difficulty, body.topic,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return WordImportResponse(**result)


@router.post("/profiles/{profile_id}/roles", status_code=201)
async def grant_role(
    profile_id: int,
    body: RoleGrantRequest,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    try:
        granted = await service.grant_role(db, profile_id, body.role)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return {"granted": granted}


@router.post("/seasons", response_model=SeasonResponse, status_code=201)
async def create_season(
    body: SeasonCreateRequest,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    try:
        season = await service.create_season(db, body.name, body.grade, body.start_date, body.end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return SeasonResponse.model_validate(season)


@router.delete("/profiles/{profile_id}", status_code=204)
async def delete_account(
    profile_id: int,
    admin: Profile = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete the account that owns a profile."""
    if profile_id == admin.id:
        raise HTTPException(status_code=400, detail="Use DELETE /api/v1/auth/me to delete your own account")
    target = await db.get(Profile, profile_id)
    if target is None:
        raise NotFoundError("Profile not found")
    await delete_user(db, target.user_id)
    await db.commit()
