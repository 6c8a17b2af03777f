"""Leaderboard name cards: awarding by rank, listing and equipping."""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.auth.service import VALID_GRADES
from wordduel.db.models import NameCard, Profile, UserNameCard
from wordduel.errors import NotFoundError

logger = logging.getLogger(__name__)

TOP_N = 10
CARD_RANKINGS = {
    "leaderboard_coins": Profile.coins,
    "leaderboard_wins": Profile.wins,
    "leaderboard_xp": Profile.total_xp,
}


async def _upsert_card(db: AsyncSession, profile_id: int, card_id: int, rank: int) -> None:
    owned = (
        await db.execute(
            select(UserNameCard).where(
                UserNameCard.profile_id == profile_id, UserNameCard.name_card_id == card_id
            )
        )
    ).scalar_one_or_none()
    if owned is None:
        db.add(UserNameCard(profile_id=profile_id, name_card_id=card_id, rank_position=rank, is_equipped=False))
    else:
        owned.rank_position = rank


async def award_leaderboard_cards(db: AsyncSession) -> dict:
    """Give each grade's top 10 by coins, wins and XP the matching card."""
    cards = {
        card.category: card
        for card in (
            await db.execute(select(NameCard).where(NameCard.category.in_(CARD_RANKINGS)))
        ).scalars().all()
    }
    awarded = 0
    for grade in sorted(VALID_GRADES):
        for category, column in CARD_RANKINGS.items():
            card = cards.get(category)
            if card is None:
                continue
            top = (
                await db.execute(
                    select(Profile.id)
                    .where(Profile.grade == grade)
                    .order_by(column.desc(), Profile.id)
                    .limit(TOP_N)
                )
            ).scalars().all()
            for rank, pid in enumerate(top, start=1):
                await _upsert_card(db, pid, card.id, rank)
                awarded += 1
            await db.flush()
    logger.info("Awarded or updated %d leaderboard name cards", awarded)
    return {"success": True, "message": f"Awarded {awarded} name cards to leaderboard top {TOP_N} users"}


async def list_name_cards(db: AsyncSession, profile_id: int) -> list[dict]:
    result = await db.execute(
        select(UserNameCard, NameCard)
        .join(NameCard, NameCard.id == UserNameCard.name_card_id)
        .where(UserNameCard.profile_id == profile_id)
        .order_by(UserNameCard.earned_at, UserNameCard.id)
    )
    return [
        {
            "name_card_id": card.id,
            "name": card.name,
            "category": card.category,
            "rarity": card.rarity,
            "background_gradient": card.background_gradient,
            "rank_position": owned.rank_position,
            "is_equipped": owned.is_equipped,
            "earned_at": owned.earned_at,
        }
        for owned, card in result.all()
    ]


async def equip_name_card(db: AsyncSession, profile_id: int, name_card_id: int) -> None:
    """Equip an owned card; any other equipped card is unequipped."""
    owned = (
        await db.execute(
            select(UserNameCard).where(
                UserNameCard.profile_id == profile_id, UserNameCard.name_card_id == name_card_id
            )
        )
    ).scalar_one_or_none()
    if owned is None:
        raise NotFoundError("Name card not owned")
    await db.execute(
        update(UserNameCard)
        .where(UserNameCard.profile_id == profile_id, UserNameCard.id != owned.id)
        .values(is_equipped=False)
        .execution_options(synchronize_session="fetch")
    )
    owned.is_equipped = True
    await db.flush()
