"""Profile reads and edits."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from wordduel.auth.service import VALID_GRADES
from wordduel.battle.tiers import tier_progress_percent
from wordduel.db.models import NameCard, Profile, Team, TeamMember, UserBadge, UserNameCard, XPLedger
from wordduel.errors import NotFoundError
from wordduel.gamification.economy import regenerate_energy
from wordduel.gamification.leveling import level_progress_percent

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def get_profile(db: AsyncSession, profile_id: int) -> Profile:
    profile = await db.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile


async def refresh_own_profile(db: AsyncSession, profile: Profile, now: datetime | None = None) -> Profile:
    """Apply energy regeneration and stamp the profile as seen."""
    now = now or datetime.now(timezone.utc)
    await regenerate_energy(db, profile, now)
    profile.last_seen_at = now
    await db.flush()
    return profile


async def update_profile(
    db: AsyncSession,
    profile: Profile,
    username: str | None = None,
    avatar_url: str | None = None,
    class_name: str | None = None,
) -> Profile:
    """
    Update editable profile fields.

    Raises:
        ValueError: If the username is already taken (case-insensitive).
    """
    if username is not None:
        username = username.strip()
        if not username:
            msg = "Username cannot be empty"
            raise ValueError(msg)
        result = await db.execute(
            select(Profile.id)
            .where(func.lower(Profile.username) == username.lower())
            .where(Profile.id != profile.id)
        )
        if result.scalar_one_or_none() is not None:
            msg = "Username already taken"
            raise ValueError(msg)
        profile.username = username

    if avatar_url is not None:
        profile.avatar_url = avatar_url
    if class_name is not None:
        profile.class_name = class_name.strip() or None

    await db.flush()
    return profile


async def change_grade(db: AsyncSession, profile: Profile, grade: int) -> Profile:
    """
    Move the profile to another grade.

    Raises:
        ValueError: If the grade is not offered.
    """
    if grade not in VALID_GRADES:
        msg = f"Grade must be one of {sorted(VALID_GRADES)}"
        raise ValueError(msg)
    if grade != profile.grade:
        logger.info("grade_changed", profile_id=profile.id, old=profile.grade, new=grade)
        profile.grade = grade
        await db.flush()
    return profile


def profile_payload(profile: Profile) -> dict:
    return {
        "id": profile.id,
        "username": profile.username,
        "grade": profile.grade,
        "class_name": profile.class_name,
        "avatar_url": profile.avatar_url,
        "level": profile.level,
        "xp": profile.xp,
        "xp_to_next_level": profile.xp_to_next_level,
        "level_progress": level_progress_percent(profile.xp, profile.xp_to_next_level),
        "total_xp": profile.total_xp,
        "coins": profile.coins,
        "energy": profile.energy,
        "max_energy": profile.max_energy,
        "wins": profile.wins,
        "losses": profile.losses,
        "free_match_wins": profile.free_match_wins,
        "free_match_losses": profile.free_match_losses,
        "elo_rating": profile.elo_rating,
        "rank_tier": profile.rank_tier,
        "rank_stars": profile.rank_stars,
        "rank_points": profile.rank_points,
        "tier_progress": tier_progress_percent(profile.rank_tier, profile.rank_stars),
        "max_combo": profile.max_combo,
        "created_at": profile.created_at,
    }


async def get_public_profile(db: AsyncSession, profile_id: int) -> dict:
    """Public view of a profile: no balances, plus team, badge count and equipped card."""
    profile = await get_profile(db, profile_id)

    badge_count = (
        await db.execute(select(func.count()).select_from(UserBadge).where(UserBadge.profile_id == profile.id))
    ).scalar_one()
    team_name = (
        await db.execute(
            select(Team.name)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.profile_id == profile.id)
        )
    ).scalar_one_or_none()
    name_card = (
        await db.execute(
            select(NameCard.name)
            .join(UserNameCard, UserNameCard.name_card_id == NameCard.id)
            .where(UserNameCard.profile_id == profile.id, UserNameCard.is_equipped.is_(True))
        )
    ).scalar_one_or_none()

    return {
        "id": profile.id,
        "username": profile.username,
        "grade": profile.grade,
        "class_name": profile.class_name,
        "avatar_url": profile.avatar_url,
        "level": profile.level,
        "total_xp": profile.total_xp,
        "wins": profile.wins,
        "losses": profile.losses,
        "rank_tier": profile.rank_tier,
        "rank_stars": profile.rank_stars,
        "max_combo": profile.max_combo,
        "badges_earned": badge_count,
        "team_name": team_name,
        "name_card": name_card,
    }


async def get_xp_history(
    db: AsyncSession, profile_id: int, page: int = 1, per_page: int = 20
) -> tuple[list[XPLedger], int]:
    total = (
        await db.execute(select(func.count()).select_from(XPLedger).where(XPLedger.profile_id == profile_id))
    ).scalar_one()
    result = await db.execute(
        select(XPLedger)
        .where(XPLedger.profile_id == profile_id)
        .order_by(XPLedger.created_at.desc(), XPLedger.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total
