"""Profile endpoints under /api/v1/profiles."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_profile
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.profiles.schemas import (
    GradeChangeRequest,
    ProfileResponse,
    ProfileUpdateRequest,
    PublicProfileResponse,
    XPHistoryEntry,
    XPHistoryResponse,
)
from wordduel.profiles.service import (
    change_grade,
    get_public_profile,
    get_xp_history,
    profile_payload,
    refresh_own_profile,
    update_profile,
)

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


@router.get("/me", response_model=ProfileResponse)
async def get_my_profile(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Own full profile, with energy regeneration applied."""
    profile = await refresh_own_profile(db, profile)
    await db.commit()
    return ProfileResponse(**profile_payload(profile))


@router.patch("/me", response_model=ProfileResponse)
async def update_my_profile(
    body: ProfileUpdateRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Update username, avatar or class."""
    try:
        profile = await update_profile(
            db,
            profile,
            username=body.username,
            avatar_url=body.avatar_url,
            class_name=body.class_name,
        )
    except ValueError as e:
        detail = str(e)
        status = 409 if "taken" in detail else 400
        raise HTTPException(status_code=status, detail=detail) from e
    await db.commit()
    return ProfileResponse(**profile_payload(profile))


@router.put("/me/grade", response_model=ProfileResponse)
async def update_my_grade(
    body: GradeChangeRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    try:
        profile = await change_grade(db, profile, body.grade)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return ProfileResponse(**profile_payload(profile))


@router.get("/me/xp-history", response_model=XPHistoryResponse)
async def my_xp_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> XPHistoryResponse:
    entries, total = await get_xp_history(db, profile.id, page, per_page)
    return XPHistoryResponse(
        entries=[XPHistoryEntry.model_validate(e) for e in entries],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/{profile_id}", response_model=PublicProfileResponse)
async def public_profile(
    profile_id: int,
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> PublicProfileResponse:
    """Another player's public profile."""
    return PublicProfileResponse(**await get_public_profile(db, profile_id))
