"""Gamification API endpoints: badges, daily quests and energy."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.dependencies import get_current_profile
from wordduel.config import get_settings
from wordduel.database import get_session
from wordduel.db.models import Profile
from wordduel.dependencies import get_redis_dep
from wordduel.gamification.badge_service import get_profile_badges
from wordduel.gamification.economy import ENERGY_PACKS, purchase_energy, regenerate_energy
from wordduel.gamification.quest_service import claim_quest_reward, get_daily_quests
from wordduel.gamification.schemas import (
    BadgeResponse,
    EnergyPack,
    EnergyPurchaseRequest,
    EnergyPurchaseResponse,
    EnergyStatusResponse,
    QuestClaimResponse,
    QuestResponse,
)

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


# ── Badges ──


@router.get("/badges", response_model=list[BadgeResponse])
async def my_badges(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    """All badge definitions with the caller's earned state."""
    return [BadgeResponse(**b) for b in await get_profile_badges(db, profile.id)]


@router.get("/profiles/{profile_id}/badges", response_model=list[BadgeResponse])
async def profile_badges(
    profile_id: int,
    _profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    return [BadgeResponse(**b) for b in await get_profile_badges(db, profile_id) if b["earned"]]


# ── Daily quests ──


@router.get("/quests", response_model=list[QuestResponse])
async def daily_quests(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    return [QuestResponse(**q) for q in await get_daily_quests(db, profile.id)]


@router.post("/quests/{quest_id}/claim", response_model=QuestClaimResponse)
async def claim_quest(
    quest_id: int,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
):
    try:
        result = await claim_quest_reward(db, redis, profile, quest_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return QuestClaimResponse(**result)


# ── Energy ──


@router.get("/energy", response_model=EnergyStatusResponse)
async def energy_status(
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    """Current energy after regeneration, plus the purchasable packs."""
    energy = await regenerate_energy(db, profile)
    await db.commit()
    return EnergyStatusResponse(
        energy=energy,
        max_energy=profile.max_energy,
        regen_minutes=get_settings().energy_regen_minutes,
        packs=[EnergyPack(amount=amount, cost=cost) for amount, cost in ENERGY_PACKS.items()],
    )


@router.post("/energy/purchase", response_model=EnergyPurchaseResponse)
async def buy_energy(
    body: EnergyPurchaseRequest,
    profile: Profile = Depends(get_current_profile),
    db: AsyncSession = Depends(get_session),
):
    """Spend coins on an energy pack."""
    await regenerate_energy(db, profile)
    try:
        result = await purchase_energy(db, profile.id, body.amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    await db.commit()
    return EnergyPurchaseResponse(**result)
