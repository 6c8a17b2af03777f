"""Teams: creation, membership, roles, applications and milestones.

Roles are ``leader`` (exactly one), ``officer`` and ``member``. A profile
belongs to at most one team; the unique index on team_members.profile_id
backs that up if two joins race.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.config import get_settings
from wordduel.db.models import (
    Profile,
    Team,
    TeamApplication,
    TeamMember,
    TeamMilestone,
    TeamMilestoneClaim,
)
from wordduel.errors import ForbiddenError, NotFoundError
from wordduel.gamification.economy import add_coins, spend_coins
from wordduel.gamification.rewards import pay_reward
from wordduel.social.notification_push import broadcast
from wordduel.social.notification_service import create_notification

logger = logging.getLogger(__name__)

MAX_MEMBERS = 20
MANAGER_ROLES = frozenset({"leader", "officer"})
MILESTONE_TARGETS = {"xp": "total_xp", "wins": "total_wins", "battles": "total_battles"}


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_team(db: AsyncSession, team_id: int) -> Team:
    team = (await db.execute(select(Team).where(Team.id == team_id))).scalar_one_or_none()
    if team is None:
        raise NotFoundError("Team not found")
    return team


async def get_membership(db: AsyncSession, profile_id: int) -> TeamMember | None:
    result = await db.execute(select(TeamMember).where(TeamMember.profile_id == profile_id))
    return result.scalar_one_or_none()


async def _require_role(db: AsyncSession, team_id: int, profile_id: int, roles: frozenset[str]) -> TeamMember:
    member = await get_membership(db, profile_id)
    if member is None or member.team_id != team_id:
        raise ForbiddenError("Not a member of this team")
    if member.role not in roles:
        raise ForbiddenError("Insufficient team role")
    return member


async def list_teams(
    db: AsyncSession,
    search: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Team]:
    """Teams ordered by rank (unranked last), optionally filtered by name."""
    query = select(Team)
    if search:
        query = query.where(func.lower(Team.name).contains(search.strip().lower()))
    query = query.order_by(Team.total_xp.desc(), Team.id.asc()).offset(offset).limit(limit)
    return list((await db.execute(query)).scalars().all())


async def get_team_members(db: AsyncSession, team_id: int) -> list[dict]:
    result = await db.execute(
        select(TeamMember, Profile)
        .join(Profile, Profile.id == TeamMember.profile_id)
        .where(TeamMember.team_id == team_id)
        .order_by(TeamMember.contributed_xp.desc(), TeamMember.id.asc())
    )
    return [
        {
            "profile_id": profile.id,
            "username": profile.username,
            "avatar_url": profile.avatar_url,
            "level": profile.level,
            "role": member.role,
            "contributed_xp": member.contributed_xp,
            "contributed_wins": member.contributed_wins,
            "joined_at": member.joined_at,
        }
        for member, profile in result.all()
    ]


# ---------------------------------------------------------------------------
# Creation & membership
# ---------------------------------------------------------------------------


async def create_team(
    db: AsyncSession,
    profile: Profile,
    name: str,
    description: str | None = None,
) -> Team:
    """Create a team led by ``profile``, charging the creation cost.

    Raises:
        ValueError: Name empty or taken, already in a team, or too few coins.
    """
    cost = get_settings().team_create_cost
    name = name.strip()
    if not name:
        raise ValueError("Team name is required")
    if await get_membership(db, profile.id) is not None:
        raise ValueError("Already in a team")
    taken = await db.execute(select(Team.id).where(func.lower(Team.name) == name.lower()))
    if taken.scalar_one_or_none() is not None:
        raise ValueError("Team name already exists")

    await spend_coins(db, profile.id, cost)

    now = datetime.now(timezone.utc)
    team = Team(
        name=name,
        description=description,
        leader_id=profile.id,
        member_count=1,
        created_at=now,
        updated_at=now,
    )
    db.add(team)
    await db.flush()
    db.add(TeamMember(team_id=team.id, profile_id=profile.id, role="leader", joined_at=now))
    await db.flush()
    logger.info("Team %d (%s) created by profile %d", team.id, name, profile.id)
    return team


async def _add_member(db: AsyncSession, team_id: int, profile_id: int) -> TeamMember:
    # Conditional increment keeps the cap even when joins race
    result = await db.execute(
        update(Team)
        .where(Team.id == team_id, Team.member_count < MAX_MEMBERS)
        .values(member_count=Team.member_count + 1)
        .returning(Team.member_count)
        .execution_options(synchronize_session=False)
    )
    if result.first() is None:
        raise ValueError("Team is full")
    member = TeamMember(team_id=team_id, profile_id=profile_id, role="member")
    db.add(member)
    await db.flush()
    return member


async def join_team(db: AsyncSession, redis: object | None, profile: Profile, team_id: int) -> TeamMember:
    """Join a team directly."""
    team = await get_team(db, team_id)
    if await get_membership(db, profile.id) is not None:
        raise ValueError("Already in a team")
    member = await _add_member(db, team.id, profile.id)
    await db.refresh(team)
    await broadcast(redis, "pubsub:team_update", {"team_id": team.id, "event": "member_joined",
                                                  "profile_id": profile.id})
    return member


async def leave_team(db: AsyncSession, redis: object | None, profile: Profile) -> bool:
    """Leave the current team. Returns True if the team was dissolved.

    A leader must transfer leadership first unless they are the last member.
    """
    member = await get_membership(db, profile.id)
    if member is None:
        raise ValueError("Not in a team")
    team = await get_team(db, member.team_id)

    if member.role == "leader" and team.member_count > 1:
        raise ValueError("Transfer leadership before leaving")

    await db.execute(delete(TeamMember).where(TeamMember.id == member.id))
    if team.member_count <= 1:
        await _dissolve(db, team.id)
        logger.info("Team %d dissolved", team.id)
        await broadcast(redis, "pubsub:team_update", {"team_id": team.id, "event": "dissolved"})
        return True

    await db.execute(
        update(Team)
        .where(Team.id == team.id)
        .values(member_count=Team.member_count - 1)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    await db.refresh(team)
    await broadcast(redis, "pubsub:team_update", {"team_id": team.id, "event": "member_left",
                                                  "profile_id": profile.id})
    return False


async def _dissolve(db: AsyncSession, team_id: int) -> None:
    # SQLite does not cascade without PRAGMA foreign_keys; clear children first
    await db.execute(delete(TeamApplication).where(TeamApplication.team_id == team_id))
    await db.execute(delete(TeamMilestoneClaim).where(TeamMilestoneClaim.team_id == team_id))
    await db.execute(delete(TeamMember).where(TeamMember.team_id == team_id))
    await db.execute(delete(Team).where(Team.id == team_id))
    await db.flush()


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------


async def apply_to_team(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    team_id: int,
    message: str | None = None,
) -> TeamApplication:
    team = await get_team(db, team_id)
    if await get_membership(db, profile.id) is not None:
        raise ValueError("Already in a team")
    pending = await db.execute(
        select(TeamApplication.id).where(
            TeamApplication.team_id == team.id,
            TeamApplication.profile_id == profile.id,
            TeamApplication.status == "pending",
        )
    )
    if pending.scalar_one_or_none() is not None:
        raise ValueError("Application already pending")

    application = TeamApplication(team_id=team.id, profile_id=profile.id, message=message, status="pending")
    db.add(application)
    await db.flush()

    await create_notification(
        db, team.leader_id, "team", "application",
        title=f"{profile.username} wants to join {team.name}",
        description=message,
        metadata={"team_id": team.id, "application_id": application.id},
        redis=redis,
    )
    return application


async def list_applications(db: AsyncSession, profile: Profile, team_id: int) -> list[TeamApplication]:
    await _require_role(db, team_id, profile.id, MANAGER_ROLES)
    result = await db.execute(
        select(TeamApplication)
        .where(TeamApplication.team_id == team_id, TeamApplication.status == "pending")
        .order_by(TeamApplication.created_at.asc())
    )
    return list(result.scalars().all())


async def review_application(
    db: AsyncSession,
    redis: object | None,
    reviewer: Profile,
    application_id: int,
    approve: bool,
) -> TeamApplication:
    """Approve (adding the applicant) or reject a pending application."""
    application = (
        await db.execute(select(TeamApplication).where(TeamApplication.id == application_id))
    ).scalar_one_or_none()
    if application is None:
        raise NotFoundError("Application not found")
    await _require_role(db, application.team_id, reviewer.id, MANAGER_ROLES)
    if application.status != "pending":
        raise ValueError("Application already reviewed")

    if approve:
        if await get_membership(db, application.profile_id) is not None:
            application.status = "rejected"
            await db.flush()
            raise ValueError("Applicant already joined another team")
        await _add_member(db, application.team_id, application.profile_id)

    application.status = "approved" if approve else "rejected"
    application.reviewed_by = reviewer.id
    application.reviewed_at = datetime.now(timezone.utc)
    await db.flush()

    team = await get_team(db, application.team_id)
    await create_notification(
        db, application.profile_id, "team", "application_" + application.status,
        title=f"Your application to {team.name} was {application.status}",
        metadata={"team_id": team.id},
        redis=redis,
    )
    return application


# ---------------------------------------------------------------------------
# Roles
# ---------------------------------------------------------------------------


async def transfer_leadership(db: AsyncSession, leader: Profile, new_leader_id: int) -> Team:
    current = await get_membership(db, leader.id)
    if current is None or current.role != "leader":
        raise ForbiddenError("Only the leader can transfer leadership")
    target = await get_membership(db, new_leader_id)
    if target is None or target.team_id != current.team_id:
        raise ValueError("New leader must be a member of the team")
    if target.id == current.id:
        raise ValueError("Already the leader")

    current.role = "officer"
    target.role = "leader"
    team = await get_team(db, current.team_id)
    team.leader_id = new_leader_id
    await db.flush()
    logger.info("Team %d leadership %d -> %d", team.id, leader.id, new_leader_id)
    return team


async def set_member_role(db: AsyncSession, leader: Profile, member_id: int, role: str) -> TeamMember:
    """Promote to officer or demote to member. Leader only."""
    if role not in ("officer", "member"):
        raise ValueError("Role must be officer or member")
    current = await get_membership(db, leader.id)
    if current is None or current.role != "leader":
        raise ForbiddenError("Only the leader can change roles")
    target = await get_membership(db, member_id)
    if target is None or target.team_id != current.team_id:
        raise NotFoundError("Member not found")
    if target.role == "leader":
        raise ValueError("Use transfer to change the leader")
    target.role = role
    await db.flush()
    return target


async def kick_member(db: AsyncSession, redis: object | None, actor: Profile, member_id: int) -> None:
    """Remove a member. Officers may only kick plain members."""
    current = await get_membership(db, actor.id)
    if current is None or current.role not in MANAGER_ROLES:
        raise ForbiddenError("Only the leader or officers can remove members")
    target = await get_membership(db, member_id)
    if target is None or target.team_id != current.team_id:
        raise NotFoundError("Member not found")
    if target.role == "leader":
        raise ForbiddenError("The leader cannot be removed")
    if target.role == "officer" and current.role != "leader":
        raise ForbiddenError("Only the leader can remove officers")

    await db.execute(delete(TeamMember).where(TeamMember.id == target.id))
    await db.execute(
        update(Team)
        .where(Team.id == current.team_id)
        .values(member_count=Team.member_count - 1)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    team = await get_team(db, current.team_id)
    await db.refresh(team)
    await create_notification(
        db, member_id, "team", "removed",
        title=f"You were removed from {team.name}",
        metadata={"team_id": team.id},
        redis=redis,
    )


# ---------------------------------------------------------------------------
# Ranking & milestones
# ---------------------------------------------------------------------------


async def recompute_team_ranks(db: AsyncSession) -> int:
    """Assign rank_position 1..n by total XP. Returns teams ranked."""
    teams = (await db.execute(select(Team).order_by(Team.total_xp.desc(), Team.id.asc()))).scalars().all()
    for idx, team in enumerate(teams, start=1):
        if team.rank_position != idx:
            team.rank_position = idx
    await db.flush()
    return len(teams)


def milestone_progress(team: Team, milestone: TeamMilestone) -> dict:
    column = MILESTONE_TARGETS.get(milestone.target_type)
    current = getattr(team, column) if column else 0
    percent = min(100.0, current / milestone.target_value * 100) if milestone.target_value > 0 else 100.0
    return {"current": current, "progress_percent": round(percent, 1), "completed": current >= milestone.target_value}


async def get_team_milestones(db: AsyncSession, team_id: int) -> list[dict]:
    team = await get_team(db, team_id)
    milestones = (
        await db.execute(select(TeamMilestone).order_by(TeamMilestone.sort_order, TeamMilestone.id))
    ).scalars().all()
    claimed = set(
        (
            await db.execute(select(TeamMilestoneClaim.milestone_id).where(TeamMilestoneClaim.team_id == team_id))
        ).scalars().all()
    )
    return [
        {
            "id": m.id,
            "name": m.name,
            "target_type": m.target_type,
            "target_value": m.target_value,
            "reward_type": m.reward_type,
            "reward_value": m.reward_value,
            "claimed": m.id in claimed,
            **milestone_progress(team, m),
        }
        for m in milestones
    ]


async def claim_team_milestone(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    milestone_id: int,
) -> dict:
    """Claim a reached milestone once per team, paying every member."""
    member = await get_membership(db, profile.id)
    if member is None:
        raise ValueError("Not in a team")
    team = await get_team(db, member.team_id)
    milestone = (
        await db.execute(select(TeamMilestone).where(TeamMilestone.id == milestone_id))
    ).scalar_one_or_none()
    if milestone is None:
        raise NotFoundError("Milestone not found")
    if not milestone_progress(team, milestone)["completed"]:
        raise ValueError("Milestone not reached yet")

    already = await db.execute(
        select(TeamMilestoneClaim.id).where(
            TeamMilestoneClaim.team_id == team.id,
            TeamMilestoneClaim.milestone_id == milestone.id,
        )
    )
    if already.scalar_one_or_none() is not None:
        raise ValueError("Milestone already claimed")
    db.add(TeamMilestoneClaim(team_id=team.id, milestone_id=milestone.id, claimed_by=profile.id))
    await db.flush()

    member_ids = (
        await db.execute(select(TeamMember.profile_id).where(TeamMember.team_id == team.id))
    ).scalars().all()
    for pid in member_ids:
        if milestone.reward_type == "coins":
            await add_coins(db, pid, milestone.reward_value)
            continue
        recipient = await db.get(Profile, pid)
        await pay_reward(
            db, redis, recipient, milestone.reward_type, milestone.reward_value,
            source="team_milestone", source_id=f"{team.id}:{milestone.id}",
        )
    logger.info("Team %d claimed milestone %d for %d members", team.id, milestone.id, len(member_ids))
    return {
        "milestone_id": milestone.id,
        "reward_type": milestone.reward_type,
        "reward_value": milestone.reward_value,
        "members_rewarded": len(member_ids),
    }
