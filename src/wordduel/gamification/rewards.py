"""Pay coin, energy or XP rewards from quests, milestones and seasons."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Profile
from wordduel.gamification.economy import add_coins, add_energy
from wordduel.gamification.xp_service import grant_xp

REWARD_TYPES = frozenset({"coins", "energy", "xp"})


async def pay_reward(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    reward_type: str,
    reward_value: int,
    source: str,
    source_id: str,
) -> None:
    """Pay a reward. Energy is capped at max_energy; XP grants are idempotent per source."""
    if reward_type == "coins":
        await add_coins(db, profile.id, reward_value)
    elif reward_type == "energy":
        await add_energy(db, profile.id, reward_value)
    elif reward_type == "xp":
        await grant_xp(
            db, redis, profile, reward_value, source, source_id,
            idempotency_key=f"{source}:{source_id}:{profile.id}",
        )
    else:
        raise ValueError(f"Unknown reward type: {reward_type}")
