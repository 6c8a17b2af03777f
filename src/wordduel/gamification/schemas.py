"""Pydantic models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class BadgeResponse(BaseModel):
    slug: str
    name: str
    description: str
    category: str
    rarity: str
    earned: bool = False
    earned_at: datetime | None = None


class QuestResponse(BaseModel):
    quest_id: int
    slug: str
    title: str
    metric: str
    target: int
    progress: int
    completed: bool
    claimed: bool
    reward_type: str
    reward_value: int


class QuestClaimResponse(BaseModel):
    quest_id: int
    reward_type: str
    reward_value: int


class EnergyPack(BaseModel):
    amount: int
    cost: int


class EnergyPurchaseRequest(BaseModel):
    amount: int


class EnergyPurchaseResponse(BaseModel):
    energy: int
    coins: int
    cost: int


class EnergyStatusResponse(BaseModel):
    energy: int
    max_energy: int
    regen_minutes: int
    packs: list[EnergyPack]
