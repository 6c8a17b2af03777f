"""FastAPI authentication dependencies."""

from __future__ import annotations

from datetime import datetime, timezone

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.jwt import decode_access_token
from wordduel.auth.service import get_user_by_id
from wordduel.database import get_session
from wordduel.db.models import Profile, User, UserRole

_bearer = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> User:
    """
    Extract and verify the bearer JWT, return the User model.

    Raises 401 on an invalid token or unknown user, 403 for banned accounts.
    """
    try:
        claims = decode_access_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    user = await get_user_by_id(db, claims.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    if user.is_banned:
        raise HTTPException(status_code=403, detail="Account is banned")
    return user


async def get_current_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> Profile:
    """Resolve the caller's gameplay profile and stamp their presence."""
    result = await db.execute(select(Profile).where(Profile.user_id == user.id))
    profile = result.scalar_one_or_none()
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    profile.last_seen_at = datetime.now(timezone.utc)
    return profile


async def has_role(db: AsyncSession, profile_id: int, role: str) -> bool:
    """Check whether a profile holds a role."""
    result = await db.execute(
        select(UserRole.id).where(UserRole.profile_id == profile_id, UserRole.role == role)
    )
    return result.scalar_one_or_none() is not None


async def require_admin(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
) -> Profile:
    """Allow only profiles holding the admin role."""
    if not await has_role(db, profile.id, "admin"):
        raise HTTPException(status_code=403, detail="Admin access required")
    return profile
