"""Coins and energy.

Every balance change is a single conditional ``UPDATE ... RETURNING`` so two
concurrent purchases (or two admins granting coins) cannot interleave a
read-then-write and lose an update or overdraw a balance.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import case, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.util import identity_key
from sqlalchemy.orm.attributes import set_committed_value

from wordduel.config import get_settings
from wordduel.db.base import as_utc
from wordduel.db.models import Profile

logger = logging.getLogger(__name__)

# energy amount -> coin cost
ENERGY_PACKS: dict[int, int] = {1: 10, 3: 25, 5: 40, 10: 70}


def _sync_profile(db: AsyncSession, profile_id: int, row: Any) -> None:
    """Copy returned columns onto an already-loaded Profile without dirtying it."""
    instance = db.identity_map.get(identity_key(Profile, profile_id))
    if instance is None:
        return
    for key, value in row._mapping.items():
        set_committed_value(instance, key, value)


def _capped_energy(amount: int) -> Any:
    """SQL expression: energy + amount, not exceeding max_energy (never lowering a surplus)."""
    return case(
        (Profile.energy >= Profile.max_energy, Profile.energy),
        (Profile.energy + amount > Profile.max_energy, Profile.max_energy),
        else_=Profile.energy + amount,
    )


async def add_coins(db: AsyncSession, profile_id: int, amount: int) -> int:
    """Credit coins. Returns the new balance."""
    if amount < 0:
        raise ValueError("Use spend_coins to debit coins")
    result = await db.execute(
        update(Profile)
        .where(Profile.id == profile_id)
        .values(coins=Profile.coins + amount)
        .returning(Profile.coins)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is None:
        raise ValueError("Profile not found")
    _sync_profile(db, profile_id, row)
    return row.coins


async def spend_coins(db: AsyncSession, profile_id: int, cost: int) -> int:
    """Debit coins if the balance covers ``cost``. Returns the new balance.

    Raises ValueError("Insufficient coins") otherwise; the balance never
    goes negative.
    """
    if cost < 0:
        raise ValueError("Cost must not be negative")
    result = await db.execute(
        update(Profile)
        .where(Profile.id == profile_id, Profile.coins >= cost)
        .values(coins=Profile.coins - cost)
        .returning(Profile.coins)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is None:
        raise ValueError("Insufficient coins")
    _sync_profile(db, profile_id, row)
    return row.coins


async def add_energy(db: AsyncSession, profile_id: int, amount: int) -> int:
    """Grant energy as a reward, capped at max_energy. Returns the new energy."""
    result = await db.execute(
        update(Profile)
        .where(Profile.id == profile_id)
        .values(energy=_capped_energy(amount))
        .returning(Profile.energy)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is None:
        raise ValueError("Profile not found")
    _sync_profile(db, profile_id, row)
    return row.energy


async def consume_energy(db: AsyncSession, profile_id: int, amount: int) -> int:
    """Spend energy; raises ValueError when the profile has too little."""
    result = await db.execute(
        update(Profile)
        .where(Profile.id == profile_id, Profile.energy >= amount)
        .values(energy=Profile.energy - amount)
        .returning(Profile.energy)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is None:
        raise ValueError("Not enough energy")
    _sync_profile(db, profile_id, row)
    return row.energy


async def purchase_energy(db: AsyncSession, profile_id: int, amount: int) -> dict[str, int]:
    """Buy an energy pack with coins.

    A pack may lift energy above max_energy by at most its own size:
    new energy = min(energy + amount, max_energy + amount).
    """
    cost = ENERGY_PACKS.get(amount)
    if cost is None:
        raise ValueError(f"Unknown energy pack: {amount}. Choose one of {sorted(ENERGY_PACKS)}")

    base = case((Profile.energy < Profile.max_energy, Profile.energy), else_=Profile.max_energy)
    result = await db.execute(
        update(Profile)
        .where(Profile.id == profile_id, Profile.coins >= cost)
        .values(coins=Profile.coins - cost, energy=base + amount)
        .returning(Profile.coins, Profile.energy)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is None:
        raise ValueError("Insufficient coins")
    _sync_profile(db, profile_id, row)
    logger.info("Profile %d bought %d energy for %d coins", profile_id, amount, cost)
    return {"energy": row.energy, "coins": row.coins, "cost": cost}


def regenerated_energy(
    energy: int,
    max_energy: int,
    last_restore: datetime,
    now: datetime,
    interval: timedelta,
) -> tuple[int, datetime]:
    """Energy after passive regeneration, and the new restore anchor.

    One point per ``interval`` since ``last_restore``, up to max_energy.
    Partial intervals carry over; a full tank resets the anchor to ``now``.
    """
    if energy >= max_energy:
        return energy, now
    ticks = int((now - last_restore) / interval)
    if ticks <= 0:
        return energy, last_restore
    new_energy = min(max_energy, energy + ticks)
    if new_energy >= max_energy:
        return new_energy, now
    return new_energy, last_restore + ticks * interval


async def regenerate_energy(db: AsyncSession, profile: Profile, now: datetime | None = None) -> int:
    """Apply passive regeneration to a loaded profile. Returns the energy."""
    now = now or datetime.now(timezone.utc)
    interval = timedelta(minutes=get_settings().energy_regen_minutes)
    last_restore = as_utc(profile.last_energy_restore) or now
    energy, anchor = regenerated_energy(profile.energy, profile.max_energy, last_restore, now, interval)
    if energy == profile.energy and anchor == last_restore:
        return energy

    # Guard on the previous anchor so two concurrent reads cannot both apply ticks
    result = await db.execute(
        update(Profile)
        .where(Profile.id == profile.id, Profile.last_energy_restore == profile.last_energy_restore)
        .values(energy=Profile.energy + (energy - profile.energy), last_energy_restore=anchor)
        .returning(Profile.energy, Profile.last_energy_restore)
        .execution_options(synchronize_session=False)
    )
    row = result.first()
    if row is not None:
        _sync_profile(db, profile.id, row)
    return profile.energy
