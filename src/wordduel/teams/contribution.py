"""Roll a member's gameplay into their team's totals."""

from __future__ import annotations

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Team, TeamMember


async def add_team_contribution(
    db: AsyncSession,
    profile_id: int,
    *,
    xp: int = 0,
    wins: int = 0,
    battles: int = 0,
) -> bool:
    """Credit XP/wins/battles to the member and their team. False if teamless."""
    membership = (
        await db.execute(select(TeamMember.id, TeamMember.team_id).where(TeamMember.profile_id == profile_id))
    ).first()
    if membership is None:
        return False

    await db.execute(
        update(TeamMember)
        .where(TeamMember.id == membership.id)
        .values(
            contributed_xp=TeamMember.contributed_xp + xp,
            contributed_wins=TeamMember.contributed_wins + wins,
        )
    )
    await db.execute(
        update(Team)
        .where(Team.id == membership.team_id)
        .values(
            total_xp=Team.total_xp + xp,
            total_wins=Team.total_wins + wins,
            total_battles=Team.total_battles + battles,
        )
    )
    return True
