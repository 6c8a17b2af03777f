"""Integration tests for coins, energy, XP, badges and daily quests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from wordduel.db.models import Badge, DailyQuest, Notification, XPLedger
from wordduel.errors import NotFoundError
from wordduel.gamification.badge_service import (
    award_badge,
    check_and_award_badges,
    evaluate_badges,
    get_profile_badges,
)
from wordduel.gamification.economy import (
    add_coins,
    add_energy,
    consume_energy,
    purchase_energy,
    regenerate_energy,
    spend_coins,
)
from wordduel.gamification.quest_service import claim_quest_reward, get_daily_quests, record_quest_event
from wordduel.gamification.xp_service import grant_xp


class TestCoins:
    @pytest.mark.asyncio
    async def test_add_and_spend(self, db_session, make_profile):
        alice = await make_profile("alice")
        assert await add_coins(db_session, alice.id, 100) == 100
        assert await spend_coins(db_session, alice.id, 40) == 60
        assert alice.coins == 60

    @pytest.mark.asyncio
    async def test_overdraw_rejected(self, db_session, make_profile):
        alice = await make_profile("alice", coins=5)
        with pytest.raises(ValueError, match="Insufficient coins"):
            await spend_coins(db_session, alice.id, 10)
        assert alice.coins == 5

    @pytest.mark.asyncio
    async def test_negative_credit_rejected(self, db_session, make_profile):
        alice = await make_profile("alice")
        with pytest.raises(ValueError):
            await add_coins(db_session, alice.id, -1)


class TestEnergy:
    @pytest.mark.asyncio
    async def test_purchase_may_exceed_max_by_pack_size(self, db_session, make_profile):
        alice = await make_profile("alice", coins=100, energy=10, max_energy=10)
        result = await purchase_energy(db_session, alice.id, 5)
        assert result == {"energy": 15, "coins": 60, "cost": 40}

        # Already above max: the next pack stacks on max, not on the surplus
        result = await purchase_energy(db_session, alice.id, 1)
        assert result["energy"] == 11
        assert result["coins"] == 50

    @pytest.mark.asyncio
    async def test_purchase_below_max(self, db_session, make_profile):
        alice = await make_profile("alice", coins=70, energy=2, max_energy=10)
        result = await purchase_energy(db_session, alice.id, 10)
        assert result["energy"] == 12
        assert result["coins"] == 0

    @pytest.mark.asyncio
    async def test_insufficient_coins_changes_nothing(self, db_session, make_profile):
        alice = await make_profile("alice", coins=20, energy=3)
        with pytest.raises(ValueError, match="Insufficient coins"):
            await purchase_energy(db_session, alice.id, 3)
        await db_session.refresh(alice)
        assert alice.coins == 20
        assert alice.energy == 3

    @pytest.mark.asyncio
    async def test_unknown_pack(self, db_session, make_profile):
        alice = await make_profile("alice", coins=1000)
        with pytest.raises(ValueError, match="Unknown energy pack"):
            await purchase_energy(db_session, alice.id, 2)

    @pytest.mark.asyncio
    async def test_reward_energy_is_capped(self, db_session, make_profile):
        alice = await make_profile("alice", energy=8, max_energy=10)
        assert await add_energy(db_session, alice.id, 5) == 10

    @pytest.mark.asyncio
    async def test_consume(self, db_session, make_profile):
        alice = await make_profile("alice", energy=2)
        assert await consume_energy(db_session, alice.id, 2) == 0
        with pytest.raises(ValueError, match="Not enough energy"):
            await consume_energy(db_session, alice.id, 1)

    @pytest.mark.asyncio
    async def test_regeneration(self, db_session, make_profile):
        start = datetime.now(timezone.utc) - timedelta(minutes=65)
        alice = await make_profile("alice", energy=3, max_energy=10, last_energy_restore=start)
        energy = await regenerate_energy(db_session, alice, now=start + timedelta(minutes=65))
        assert energy == 5
        assert alice.energy == 5


class TestXP:
    @pytest.mark.asyncio
    async def test_level_up_notifies(self, db_session, make_profile):
        alice = await make_profile("alice")
        assert await grant_xp(db_session, None, alice, 250, "test") is True
        assert alice.level == 2
        assert alice.xp == 150
        assert alice.xp_to_next_level == 200
        assert alice.total_xp == 250

        notes = (await db_session.execute(select(Notification))).scalars().all()
        assert [n.subtype for n in notes] == ["level_up"]

    @pytest.mark.asyncio
    async def test_idempotency_key(self, db_session, make_profile):
        alice = await make_profile("alice")
        assert await grant_xp(db_session, None, alice, 10, "test", idempotency_key="k1") is True
        assert await grant_xp(db_session, None, alice, 10, "test", idempotency_key="k1") is False
        assert alice.total_xp == 10
        rows = (await db_session.execute(select(XPLedger))).scalars().all()
        assert len(rows) == 1

    @pytest.mark.asyncio
    async def test_non_positive_ignored(self, db_session, make_profile):
        alice = await make_profile("alice")
        assert await grant_xp(db_session, None, alice, 0, "test") is False


class TestBadges:
    def test_evaluate_skips_held_and_manual(self):
        badges = [
            Badge(id=1, slug="first_win", condition_metric="wins", condition_threshold=1),
            Badge(id=2, slug="win_streak_3", condition_metric="win_streak", condition_threshold=3),
            Badge(id=3, slug="class_champion", condition_metric=None, condition_threshold=0),
            Badge(id=4, slug="coins_1000", condition_metric="coins", condition_threshold=1000),
        ]
        stats = {"wins": 4, "win_streak": 3, "coins": 10}
        earned = evaluate_badges(stats, badges, earned_ids={1})
        assert [b.slug for b in earned] == ["win_streak_3"]

    @pytest.mark.asyncio
    async def test_check_awards_once(self, db_session, make_profile):
        alice = await make_profile("alice", coins=1500, wins=1)
        awarded = await check_and_award_badges(db_session, None, alice)
        assert set(awarded) == {"first_win", "coins_1000"}
        assert await check_and_award_badges(db_session, None, alice) == []

    @pytest.mark.asyncio
    async def test_manual_award(self, db_session, make_profile):
        alice = await make_profile("alice")
        assert await award_badge(db_session, None, alice.id, "class_champion") is True
        assert await award_badge(db_session, None, alice.id, "class_champion") is False
        assert await award_badge(db_session, None, alice.id, "no_such_badge") is False

        badges = {b["slug"]: b for b in await get_profile_badges(db_session, alice.id)}
        assert badges["class_champion"]["earned"] is True
        assert badges["first_win"]["earned"] is False


class TestQuests:
    @pytest.mark.asyncio
    async def test_progress_and_claim(self, db_session, make_profile):
        alice = await make_profile("alice", energy=5, max_energy=10)
        quest = (await db_session.execute(select(DailyQuest).where(DailyQuest.slug == "win_1_battle"))).scalar_one()

        with pytest.raises(ValueError, match="not completed"):
            await claim_quest_reward(db_session, None, alice, quest.id)

        await record_quest_event(db_session, alice.id, "battles_won")
        quests = {q["slug"]: q for q in await get_daily_quests(db_session, alice.id)}
        assert quests["win_1_battle"]["completed"] is True
        assert quests["play_3_battles"]["progress"] == 0

        result = await claim_quest_reward(db_session, None, alice, quest.id)
        assert result == {"quest_id": quest.id, "reward_type": "energy", "reward_value": 2}
        assert alice.energy == 7

        with pytest.raises(ValueError, match="already claimed"):
            await claim_quest_reward(db_session, None, alice, quest.id)

    @pytest.mark.asyncio
    async def test_progress_caps_at_target(self, db_session, make_profile):
        alice = await make_profile("alice")
        await record_quest_event(db_session, alice.id, "battles_played", amount=10)
        quests = {q["slug"]: q for q in await get_daily_quests(db_session, alice.id)}
        assert quests["play_3_battles"]["progress"] == 3

    @pytest.mark.asyncio
    async def test_unknown_metric_and_quest(self, db_session, make_profile):
        alice = await make_profile("alice")
        with pytest.raises(ValueError, match="Unknown quest metric"):
            await record_quest_event(db_session, alice.id, "jumping")
        with pytest.raises(NotFoundError):
            await claim_quest_reward(db_session, None, alice, 9999)
