"""Integration tests for leaderboards, ranking and the Redis snapshot cache."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.leaderboard.service import build_cache_key, get_leaderboard, get_profile_rank


@pytest_asyncio.fixture
async def ladder(db_session: AsyncSession, make_profile):
    players = {
        "ann": await make_profile("ann", total_xp=500, coins=10, wins=4, rank_tier="silver", rank_stars=2,
                                  free_match_wins=4, free_match_losses=1),
        "ben": await make_profile("ben", total_xp=900, coins=30, wins=4, rank_tier="gold", rank_stars=0,
                                  free_match_wins=2, free_match_losses=0, max_combo=6),
        "cat": await make_profile("cat", total_xp=500, coins=20, wins=1, rank_tier="silver", rank_stars=5,
                                  free_match_wins=6, free_match_losses=4),
        "dan": await make_profile("dan", grade=8, total_xp=2000),
    }
    return db_session, players


class TestBoards:
    @pytest.mark.asyncio
    async def test_xp_ties_break_on_id(self, ladder):
        db, _ = ladder
        entries = await get_leaderboard(db, None, "xp", grade=7)
        assert [(e["username"], e["rank"], e["value"]) for e in entries] == [
            ("ben", 1, 900),
            ("ann", 2, 500),
            ("cat", 3, 500),
        ]

    @pytest.mark.asyncio
    async def test_all_grades(self, ladder):
        db, _ = ladder
        entries = await get_leaderboard(db, None, "xp")
        assert entries[0]["username"] == "dan"
        assert len(entries) == 4

    @pytest.mark.asyncio
    async def test_rank_orders_by_tier_then_stars(self, ladder):
        db, _ = ladder
        entries = await get_leaderboard(db, None, "rank", grade=7)
        assert [e["username"] for e in entries] == ["ben", "cat", "ann"]

    @pytest.mark.asyncio
    async def test_free_board_minimum_sample(self, ladder):
        db, _ = ladder
        entries = await get_leaderboard(db, None, "free", grade=7)
        # ann 80% and cat 60% qualify; ben has only 2 matches
        assert [(e["username"], e["qualified"]) for e in entries] == [
            ("ann", True),
            ("cat", True),
            ("ben", False),
        ]
        assert entries[0]["value"] == 80.0

    @pytest.mark.asyncio
    async def test_combo_skips_zero(self, ladder):
        db, _ = ladder
        entries = await get_leaderboard(db, None, "combo")
        assert [e["username"] for e in entries] == ["ben"]

    @pytest.mark.asyncio
    async def test_limit_and_unknown_board(self, ladder):
        db, _ = ladder
        assert len(await get_leaderboard(db, None, "coins", limit=2)) == 2
        with pytest.raises(ValueError, match="Unknown leaderboard"):
            await get_leaderboard(db, None, "height")


class TestProfileRank:
    @pytest.mark.asyncio
    async def test_column_board(self, ladder):
        db, players = ladder
        rank = await get_profile_rank(db, players["cat"], "xp", grade=7)
        assert rank == {"board": "xp", "rank": 3, "value": 500, "total": 3}

    @pytest.mark.asyncio
    async def test_rank_board(self, ladder):
        db, players = ladder
        rank = await get_profile_rank(db, players["ann"], "rank", grade=7)
        assert rank["rank"] == 3

    @pytest.mark.asyncio
    async def test_free_board(self, ladder):
        db, players = ladder
        rank = await get_profile_rank(db, players["ben"], "free")
        assert rank["rank"] == 3
        assert rank["total"] == 3

    @pytest.mark.asyncio
    async def test_unranked_combo(self, ladder):
        db, players = ladder
        rank = await get_profile_rank(db, players["ann"], "combo")
        assert rank["rank"] is None


class TestCache:
    @pytest.mark.asyncio
    async def test_miss_populates_cache(self, ladder):
        db, _ = ladder
        redis = AsyncMock()
        redis.get.return_value = None

        entries = await get_leaderboard(db, redis, "coins", grade=7, limit=1)
        assert [e["username"] for e in entries] == ["ben"]

        key, payload = redis.set.call_args.args
        assert key == build_cache_key("coins", 7) == "leaderboard:coins:7"
        assert len(json.loads(payload)) == 3
        assert redis.set.call_args.kwargs == {"ex": 30}

    @pytest.mark.asyncio
    async def test_hit_skips_database(self, db_session):
        redis = AsyncMock()
        redis.get.return_value = json.dumps([{"rank": 1, "username": "cached"}])
        entries = await get_leaderboard(db_session, redis, "wins")
        assert entries == [{"rank": 1, "username": "cached"}]
        redis.set.assert_not_called()

    @pytest.mark.asyncio
    async def test_cache_failure_falls_back_to_query(self, ladder):
        db, _ = ladder
        redis = AsyncMock()
        redis.get.side_effect = ConnectionError("down")
        redis.set.side_effect = ConnectionError("down")
        entries = await get_leaderboard(db, redis, "wins", grade=7)
        assert [e["username"] for e in entries] == ["ann", "ben", "cat"]
