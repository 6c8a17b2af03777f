"""Authentication endpoints: register, login, current account, deletion."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_user
from wordduel.auth.jwt import create_access_token
from wordduel.auth.password import PasswordStrengthError
from wordduel.auth.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from wordduel.auth.service import authenticate_user, delete_user, register_user
from wordduel.config import get_settings
from wordduel.database import get_session
from wordduel.db.models import Profile, User
from wordduel.dependencies import get_redis_dep

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _issue_token(user: User, profile_id: int) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, profile_id),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserResponse.model_validate(user),
        profile_id=profile_id,
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Create an account and profile, returning an access token."""
    try:
        user, profile = await register_user(
            db,
            email=body.email,
            password=body.password,
            username=body.username,
            grade=body.grade,
            class_name=body.class_name,
        )
    except PasswordStrengthError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except ValueError as e:
        detail = str(e)
        if "already" in detail.lower():
            raise HTTPException(status_code=409, detail=detail) from e
        raise HTTPException(status_code=400, detail=detail) from e

    await db.commit()
    return _issue_token(user, profile.id)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> TokenResponse:
    """Login with email + password."""
    try:
        user = await authenticate_user(db, redis, body.email, body.password)
    except ValueError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
    except PermissionError as e:
        detail = str(e)
        if "locked" in detail.lower():
            raise HTTPException(status_code=429, detail=detail) from e
        raise HTTPException(status_code=403, detail=detail) from e

    profile_id = (await db.execute(select(Profile.id).where(Profile.user_id == user.id))).scalar_one()
    await db.commit()
    return _issue_token(user, profile_id)


@router.get("/me", response_model=UserResponse)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    """Return the authenticated account."""
    return UserResponse.model_validate(user)


@router.delete("/me", status_code=204)
async def delete_me(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete the caller's account and profile."""
    await delete_user(db, user.id)
    await db.commit()
