"""Tests for admin operations and the maintenance job registry."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.admin.service import create_season, distribute_coins, grant_role
from wordduel.db.models import UserRole
from wordduel.errors import NotFoundError
from wordduel.jobs.tasks import JOBS, run_job


class TestDistributeCoins:
    @pytest.mark.asyncio
    async def test_single_profile(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        bob = await make_profile("bob")

        credited = await distribute_coins(db_session, 250, profile_id=alice.id)
        await db_session.commit()
        await db_session.refresh(alice)
        await db_session.refresh(bob)

        assert credited == 1
        assert alice.coins == 250
        assert bob.coins == 0

    @pytest.mark.asyncio
    async def test_whole_grade(self, db_session: AsyncSession, make_profile) -> None:
        a = await make_profile("a", grade=7)
        b = await make_profile("b", grade=7)
        c = await make_profile("c", grade=8)

        credited = await distribute_coins(db_session, 100, grade=7)
        await db_session.commit()
        for p in (a, b, c):
            await db_session.refresh(p)

        assert credited == 2
        assert (a.coins, b.coins, c.coins) == (100, 100, 0)

    @pytest.mark.asyncio
    async def test_everyone(self, db_session: AsyncSession, make_profile) -> None:
        a = await make_profile("a", grade=7, coins=5)
        b = await make_profile("b", grade=9)

        credited = await distribute_coins(db_session, 10)
        await db_session.commit()
        await db_session.refresh(a)
        await db_session.refresh(b)

        assert credited == 2
        assert a.coins == 15
        assert b.coins == 10

    @pytest.mark.asyncio
    async def test_unknown_profile(self, db_session: AsyncSession) -> None:
        with pytest.raises(NotFoundError):
            await distribute_coins(db_session, 10, profile_id=9999)

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self, db_session: AsyncSession) -> None:
        with pytest.raises(ValueError, match="positive"):
            await distribute_coins(db_session, 0)

    @pytest.mark.asyncio
    async def test_rejects_profile_and_grade_together(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        with pytest.raises(ValueError, match="not both"):
            await distribute_coins(db_session, 10, profile_id=alice.id, grade=7)

    @pytest.mark.asyncio
    async def test_rejects_unknown_grade(self, db_session: AsyncSession) -> None:
        with pytest.raises(ValueError, match="Grade"):
            await distribute_coins(db_session, 10, grade=12)


class TestGrantRole:
    @pytest.mark.asyncio
    async def test_grant_once(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")

        assert await grant_role(db_session, alice.id, "moderator") is True
        assert await grant_role(db_session, alice.id, "moderator") is False

        rows = await db_session.execute(select(UserRole.role).where(UserRole.profile_id == alice.id))
        assert rows.scalars().all() == ["moderator"]

    @pytest.mark.asyncio
    async def test_unknown_role(self, db_session: AsyncSession, make_profile) -> None:
        alice = await make_profile("alice")
        with pytest.raises(ValueError, match="Role"):
            await grant_role(db_session, alice.id, "superuser")

    @pytest.mark.asyncio
    async def test_unknown_profile(self, db_session: AsyncSession) -> None:
        with pytest.raises(NotFoundError):
            await grant_role(db_session, 9999, "admin")


class TestCreateSeason:
    @pytest.mark.asyncio
    async def test_creates_active_season(self, db_session: AsyncSession) -> None:
        start = datetime(2026, 9, 1, tzinfo=timezone.utc)
        season = await create_season(db_session, "Autumn", 8, start, start + timedelta(days=60))

        assert season.id is not None
        assert season.is_active is True
        assert season.grade == 8

    @pytest.mark.asyncio
    async def test_end_before_start(self, db_session: AsyncSession) -> None:
        start = datetime(2026, 9, 1, tzinfo=timezone.utc)
        with pytest.raises(ValueError, match="end after"):
            await create_season(db_session, "Backwards", 7, start, start - timedelta(days=1))

    @pytest.mark.asyncio
    async def test_unknown_grade(self, db_session: AsyncSession) -> None:
        start = datetime(2026, 9, 1, tzinfo=timezone.utc)
        with pytest.raises(ValueError, match="Grade"):
            await create_season(db_session, "Grade 5", 5, start, start + timedelta(days=1))


class TestJobs:
    def test_registry_names(self) -> None:
        assert set(JOBS) == {
            "award-season-rewards",
            "update-challenge-stats",
            "award-leaderboard-cards",
            "expire-battle-invites",
            "expire-stale-matches",
            "recompute-team-ranks",
        }

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", sorted(JOBS))
    async def test_every_job_runs_on_empty_data(self, db_session: AsyncSession, name: str) -> None:
        result = await run_job(name, db_session)
        assert result["success"] is True
        assert result["message"]

    @pytest.mark.asyncio
    async def test_messages(self, db_session: AsyncSession) -> None:
        assert (await run_job("expire-battle-invites", db_session))["message"] == "Expired 0 battle invites"
        assert (await run_job("expire-stale-matches", db_session))["message"] == "Expired 0 stale matches"
        assert (await run_job("recompute-team-ranks", db_session))["message"] == "Ranked 0 teams"
        assert (await run_job("update-challenge-stats", db_session))["message"] == "No active seasons"

    @pytest.mark.asyncio
    async def test_unknown_job(self, db_session: AsyncSession) -> None:
        with pytest.raises(KeyError):
            await run_job("drop-everything", db_session)
