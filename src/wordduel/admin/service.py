"""Administrative operations: coin grants, roles and seasons."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.service import VALID_GRADES
from wordduel.db.base import as_utc
from wordduel.db.models import Profile, Season, UserRole
from wordduel.errors import NotFoundError

logger = logging.getLogger(__name__)

ROLES = frozenset({"admin", "moderator", "user"})


async def distribute_coins(
    db: AsyncSession,
    amount: int,
    profile_id: int | None = None,
    grade: int | None = None,
) -> int:
    """Add coins to one profile, a whole grade, or everyone.

    Returns the number of profiles credited. A single increment statement
    keeps concurrent grants from losing updates.
    """
    if amount <= 0:
        raise ValueError("Amount must be positive")
    if profile_id is not None and grade is not None:
        raise ValueError("Choose a profile or a grade, not both")

    stmt = update(Profile).values(coins=Profile.coins + amount)
    if profile_id is not None:
        stmt = stmt.where(Profile.id == profile_id)
    elif grade is not None:
        if grade not in VALID_GRADES:
            raise ValueError(f"Grade must be one of {sorted(VALID_GRADES)}")
        stmt = stmt.where(Profile.grade == grade)

    result = await db.execute(stmt.returning(Profile.id).execution_options(synchronize_session=False))
    credited = len(result.all())
    if profile_id is not None and credited == 0:
        raise NotFoundError("Profile not found")
    await db.flush()
    logger.info(
        "Distributed %d coins to %d profiles (profile=%s grade=%s)", amount, credited, profile_id, grade,
    )
    return credited


async def grant_role(db: AsyncSession, profile_id: int, role: str) -> bool:
    """Grant a role. Returns False if the profile already holds it."""
    if role not in ROLES:
        raise ValueError(f"Role must be one of {sorted(ROLES)}")
    if await db.get(Profile, profile_id) is None:
        raise NotFoundError("Profile not found")
    held = await db.execute(
        select(UserRole.id).where(UserRole.profile_id == profile_id, UserRole.role == role)
    )
    if held.scalar_one_or_none() is not None:
        return False
    db.add(UserRole(profile_id=profile_id, role=role))
    await db.flush()
    logger.info("Granted role %s to profile %d", role, profile_id)
    return True


async def create_season(
    db: AsyncSession,
    name: str,
    grade: int,
    start_date: datetime,
    end_date: datetime,
) -> Season:
    if grade not in VALID_GRADES:
        raise ValueError(f"Grade must be one of {sorted(VALID_GRADES)}")
    if as_utc(end_date) <= as_utc(start_date):
        raise ValueError("Season must end after it starts")
    season = Season(name=name, grade=grade, start_date=start_date, end_date=end_date, is_active=True)
    db.add(season)
    await db.flush()
    logger.info("Created season %s for grade %d", name, grade)
    return season
