"""Tests for profile reads and edits."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Badge, NameCard, Team, TeamMember, UserBadge, UserNameCard
from wordduel.errors import NotFoundError
from wordduel.gamification.xp_service import grant_xp
from wordduel.profiles.service import (
    change_grade,
    get_public_profile,
    get_xp_history,
    profile_payload,
    refresh_own_profile,
    update_profile,
)


class TestUpdateProfile:
    @pytest.mark.asyncio
    async def test_rename(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        await update_profile(db_session, alice, username="  Alicia ")
        assert alice.username == "Alicia"

    @pytest.mark.asyncio
    async def test_username_taken_ignores_case(self, db_session: AsyncSession, make_profile) -> None:
        await make_profile("alice")
        bob = await make_profile("bob")
        with pytest.raises(ValueError, match="already taken"):
            await update_profile(db_session, bob, username="ALICE")

    @pytest.mark.asyncio
    async def test_keep_own_name_in_other_case(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        await update_profile(db_session, alice, username="Alice")
        assert alice.username == "Alice"

    @pytest.mark.asyncio
    async def test_blank_username(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        with pytest.raises(ValueError, match="empty"):
            await update_profile(db_session, alice, username="   ")

    @pytest.mark.asyncio
    async def test_clear_class_name(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice", class_name="7A")
        await update_profile(db_session, alice, class_name=" ", avatar_url="https://example.com/a.png")
        assert alice.class_name is None
        assert alice.avatar_url == "https://example.com/a.png"


class TestChangeGrade:
    @pytest.mark.asyncio
    async def test_change(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice", grade=7)
        await change_grade(db_session, alice, 9)
        assert alice.grade == 9

    @pytest.mark.asyncio
    async def test_invalid_grade(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice", grade=7)
        with pytest.raises(ValueError, match="Grade"):
            await change_grade(db_session, alice, 10)
        assert alice.grade == 7


class TestProfileViews:
    @pytest.mark.asyncio
    async def test_payload_progress(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice", xp=50)
        payload = profile_payload(alice)
        assert payload["level_progress"] == 50.0
        assert payload["rank_tier"] == "bronze"
        assert payload["energy"] == 10

    @pytest.mark.asyncio
    async def test_refresh_stamps_last_seen(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        now = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
        await refresh_own_profile(db_session, alice, now)
        assert alice.last_seen_at == now
        assert alice.energy == 10

    @pytest.mark.asyncio
    async def test_public_profile(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice", coins=500)
        team = Team(name="Owls", leader_id=alice.id)
        db_session.add(team)
        await db_session.flush()
        db_session.add(TeamMember(team_id=team.id, profile_id=alice.id, role="leader"))
        badge = (await db_session.execute(select(Badge).where(Badge.slug == "first_win"))).scalar_one()
        db_session.add(UserBadge(profile_id=alice.id, badge_id=badge.id))
        card = (
            await db_session.execute(select(NameCard).where(NameCard.category == "leaderboard_xp"))
        ).scalar_one()
        db_session.add(UserNameCard(profile_id=alice.id, name_card_id=card.id, rank_position=1, is_equipped=True))
        await db_session.commit()

        view = await get_public_profile(db_session, alice.id)

        assert view["username"] == "alice"
        assert view["team_name"] == "Owls"
        assert view["badges_earned"] == 1
        assert view["name_card"] == card.name
        assert "coins" not in view

    @pytest.mark.asyncio
    async def test_public_profile_missing(self, db_session: AsyncSession) -> None:
        with pytest.raises(NotFoundError):
            await get_public_profile(db_session, 9999)


class TestXPHistory:
    @pytest.mark.asyncio
    async def test_newest_first_with_paging(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        for i in range(3):
            await grant_xp(db_session, None, alice, 10 + i, "study", idempotency_key=f"hist:{i}")
        await db_session.commit()

        entries, total = await get_xp_history(db_session, alice.id, page=1, per_page=2)
        assert total == 3
        assert [e.amount for e in entries] == [12, 11]

        entries, _ = await get_xp_history(db_session, alice.id, page=2, per_page=2)
        assert [e.amount for e in entries] == [10]
