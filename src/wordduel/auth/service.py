"""
Authentication business logic.

Handles sign-up (user + profile creation), sign-in with lockout, and
account deletion.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, func, select

from wordduel.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)
from wordduel.config import get_settings
from wordduel.db.models import Profile, User, UserRole

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

VALID_GRADES = frozenset({7, 8, 9})


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    """Fetch a user by primary key."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a user by email (case-insensitive)."""
    result = await db.execute(select(User).where(User.email == email.lower().strip()))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Sign-up
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    email: str,
    password: str,
    username: str,
    grade: int,
    class_name: str | None = None,
) -> tuple[User, Profile]:
    """
    Register a new account and its gameplay profile.

    Raises:
        ValueError: If the email or username is taken, the password is weak,
            or the grade is not offered.
    """
    validate_password_strength(password)

    if grade not in VALID_GRADES:
        msg = f"Grade must be one of {sorted(VALID_GRADES)}"
        raise ValueError(msg)

    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ValueError(msg)

    username = username.strip()
    taken = await db.execute(select(Profile.id).where(func.lower(Profile.username) == username.lower()))
    if taken.scalar_one_or_none() is not None:
        msg = "Username already taken"
        raise ValueError(msg)

    now = datetime.now(timezone.utc)
    user = User(
        email=email.lower().strip(),
        password_hash=hash_password(password),
        created_at=now,
        last_login=now,
    )
    db.add(user)
    await db.flush()

    profile = Profile(
        user_id=user.id,
        username=username,
        grade=grade,
        class_name=class_name.strip() if class_name else None,
        last_energy_restore=now,
        created_at=now,
        updated_at=now,
    )
    db.add(profile)
    await db.flush()

    db.add(UserRole(profile_id=profile.id, role="user", created_at=now))
    await db.flush()

    logger.info("user_created", user_id=user.id, profile_id=profile.id, grade=grade)
    return user, profile


# ---------------------------------------------------------------------------
# Sign-in
# ---------------------------------------------------------------------------


async def authenticate_user(
    db: AsyncSession,
    redis: Redis | None,
    email: str,
    password: str,
) -> User:
    """
    Authenticate with email + password.

    Raises:
        ValueError: If credentials are invalid.
        PermissionError: If the account is locked or banned.
    """
    user = await get_user_by_email(db, email)
    if user is None:
        msg = "Invalid email or password"
        raise ValueError(msg)

    if redis is not None and await check_account_lockout(redis, user.id):
        msg = "Account temporarily locked. Try again later."
        raise PermissionError(msg)

    if user.is_banned:
        msg = "Account is banned"
        raise PermissionError(msg)

    if not verify_password(password, user.password_hash):
        if redis is not None:
            await increment_failed_login(redis, user.id)
        msg = "Invalid email or password"
        raise ValueError(msg)

    if redis is not None:
        await clear_failed_login(redis, user.id)

    user.last_login = datetime.now(timezone.utc)
    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        logger.info("password_rehashed", user_id=user.id)
    await db.flush()
    return user


async def check_account_lockout(redis: Redis, user_id: int) -> bool:
    """Check if the account is locked due to too many failed login attempts."""
    settings = get_settings()
    count_str = await redis.get(f"login_attempts:{user_id}")
    if count_str is None:
        return False
    return int(count_str) >= settings.account_lockout_threshold


async def increment_failed_login(redis: Redis, user_id: int) -> int:
    """Increment failed login counter. Returns the new count."""
    settings = get_settings()
    key = f"login_attempts:{user_id}"
    count = await redis.incr(key)
    if count == 1:
        await redis.expire(key, settings.account_lockout_duration_minutes * 60)
    return int(count)


async def clear_failed_login(redis: Redis, user_id: int) -> None:
    """Clear the failed login counter after a successful login."""
    await redis.delete(f"login_attempts:{user_id}")


# ---------------------------------------------------------------------------
# Account deletion
# ---------------------------------------------------------------------------


async def delete_user(db: AsyncSession, user_id: int) -> bool:
    """Delete an account and, through cascades, its profile and activity."""
    profile_ids = (await db.execute(select(Profile.id).where(Profile.user_id == user_id))).scalars().all()
    # SQLite does not enforce ON DELETE CASCADE unless asked to; delete explicitly
    for pid in profile_ids:
        await db.execute(delete(UserRole).where(UserRole.profile_id == pid))
    await db.execute(delete(Profile).where(Profile.user_id == user_id))
    result = await db.execute(delete(User).where(User.id == user_id))
    await db.flush()
    deleted = result.rowcount > 0
    if deleted:
        logger.info("user_deleted", user_id=user_id)
    return deleted
