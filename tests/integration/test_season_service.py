"""Integration tests for season challenges, rewards, milestones and name cards."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import (
    ChallengeReward,
    ClassChallenge,
    GradeChallenge,
    NameCard,
    Season,
    SeasonMilestone,
    UserBadge,
)
from wordduel.errors import NotFoundError
from wordduel.seasons.challenge_service import get_season_standings, list_seasons, update_challenge_stats
from wordduel.seasons.milestone_service import claim_milestone, current_value, get_milestones
from wordduel.seasons.name_card_service import award_leaderboard_cards, equip_name_card, list_name_cards
from wordduel.seasons.reward_service import award_season_rewards, get_profile_rewards


def _season(grade: int, ends_in: timedelta, name: str | None = None) -> Season:
    now = datetime.now(timezone.utc)
    return Season(
        name=name or f"Grade {grade} season",
        grade=grade,
        start_date=now - timedelta(days=30),
        end_date=now + ends_in,
        is_active=True,
    )


@pytest_asyncio.fixture
async def grade7(db_session: AsyncSession, make_profile):
    """A grade-7 season with two classes, plus a grade-8 player who must be ignored."""
    season = _season(7, timedelta(days=7))
    db_session.add(season)
    await db_session.commit()
    players = {
        "ann": await make_profile("ann", class_name="7A", total_xp=1000),
        "ben": await make_profile("ben", class_name="7A", total_xp=0),
        "cat": await make_profile("cat", class_name="7B", total_xp=200),
        "dan": await make_profile("dan", grade=8, class_name="8A", total_xp=5000),
    }
    return db_session, season, players


class TestChallengeStats:
    @pytest.mark.asyncio
    async def test_no_active_seasons(self, db_session):
        assert await update_challenge_stats(db_session) == {"success": True, "message": "No active seasons"}

    @pytest.mark.asyncio
    async def test_aggregates_and_ranks_classes(self, grade7):
        db, season, _ = grade7
        result = await update_challenge_stats(db)
        await db.commit()
        assert result["message"] == "Updated 3 challenge stats across 1 seasons"

        standings = await get_season_standings(db, season.id)
        classes = standings["classes"]
        assert [(c.class_name, c.rank_position) for c in classes] == [("7A", 1), ("7B", 2)]
        assert classes[0].member_count == 2
        assert classes[0].total_xp == 1000
        assert classes[0].composite_score == pytest.approx(2.0)

        grade = standings["grade"]
        assert grade.member_count == 3
        assert grade.total_xp == 1200
        assert grade.rank_position == 1

    @pytest.mark.asyncio
    async def test_rerun_updates_in_place(self, grade7):
        db, season, players = grade7
        await update_challenge_stats(db)
        players["cat"].total_xp = 3000
        await db.commit()
        await update_challenge_stats(db)
        await db.commit()

        rows = (await db.execute(select(ClassChallenge).order_by(ClassChallenge.rank_position))).scalars().all()
        assert [(r.class_name, r.total_xp) for r in rows] == [("7B", 3000), ("7A", 1000)]
        assert len((await db.execute(select(GradeChallenge))).scalars().all()) == 1

    @pytest.mark.asyncio
    async def test_grades_ranked_across_active_seasons(self, grade7):
        db, _, _ = grade7
        db.add(_season(8, timedelta(days=7)))
        await db.commit()
        await update_challenge_stats(db)
        await db.commit()

        rows = (await db.execute(select(GradeChallenge).order_by(GradeChallenge.rank_position))).scalars().all()
        assert [(r.grade, r.rank_position) for r in rows] == [(8, 1), (7, 2)]

    @pytest.mark.asyncio
    async def test_list_seasons(self, grade7):
        db, season, _ = grade7
        ended = _season(7, timedelta(days=-60), name="Old season")
        ended.is_active = False
        db.add(ended)
        await db.commit()

        assert [s.id for s in await list_seasons(db)] == [season.id]
        assert len(await list_seasons(db, grade=7, active_only=False)) == 2
        assert await list_seasons(db, grade=9) == []


class TestSeasonRewards:
    @pytest.mark.asyncio
    async def test_nothing_ended(self, grade7):
        db, _, _ = grade7
        result = await award_season_rewards(db)
        assert result == {"success": True, "message": "No ended seasons to process", "totalRewardsDistributed": 0}

    @pytest.mark.asyncio
    async def test_rewards_top_classes_and_grade_then_closes(self, grade7):
        db, season, players = grade7
        await update_challenge_stats(db)
        await db.commit()

        result = await award_season_rewards(db, now=datetime.now(timezone.utc) + timedelta(days=8))
        await db.commit()
        assert result["message"] == "Processed 1 ended seasons"
        # 7A (2 members) + 7B (1 member) + the whole grade (3 members)
        assert result["totalRewardsDistributed"] == 6
        assert season.is_active is False

        for name in ("ann", "ben", "cat", "dan"):
            await db.refresh(players[name])
        assert players["ann"].coins == 1500
        assert players["cat"].coins == 1300
        assert players["dan"].coins == 0

        rewards = await get_profile_rewards(db, players["ann"].id)
        assert {(r.reward_type, r.badge_slug) for r in rewards} == {
            ("class", "class_champion"),
            ("grade", "grade_star"),
        }
        badges = (await db.execute(select(UserBadge).where(UserBadge.profile_id == players["cat"].id))).scalars().all()
        assert len(badges) == 2

        again = await award_season_rewards(db, now=datetime.now(timezone.utc) + timedelta(days=8))
        assert again["totalRewardsDistributed"] == 0
        assert len((await db.execute(select(ChallengeReward))).scalars().all()) == 6


class TestMilestones:
    @pytest.mark.asyncio
    async def test_progress_and_claim(self, db_session, make_profile):
        ann = await make_profile("ann", total_xp=600)
        milestones = {m["name"]: m for m in await get_milestones(db_session, ann)}
        assert len(milestones) == 5

        xp = milestones["Earn 500 XP"]
        assert xp["completed"] is True
        assert xp["progress_percent"] == 100.0
        battles = milestones["Win 10 battles"]
        assert battles["completed"] is False
        assert battles["current_progress"] == 0

        result = await claim_milestone(db_session, None, ann, xp["id"])
        assert result == {"milestone_id": xp["id"], "reward_type": "coins", "reward_value": 50}
        assert ann.coins == 50

        with pytest.raises(ValueError, match="already claimed"):
            await claim_milestone(db_session, None, ann, xp["id"])
        with pytest.raises(ValueError, match="not completed"):
            await claim_milestone(db_session, None, ann, battles["id"])
        with pytest.raises(NotFoundError):
            await claim_milestone(db_session, None, ann, 9999)

    @pytest.mark.asyncio
    async def test_completion_is_permanent(self, db_session, make_profile):
        ann = await make_profile("ann", total_xp=600)
        await get_milestones(db_session, ann)
        ann.total_xp = 0
        milestones = {m["name"]: m for m in await get_milestones(db_session, ann)}
        assert milestones["Earn 500 XP"]["completed"] is True
        assert milestones["Earn 500 XP"]["current_progress"] == 0

    @pytest.mark.asyncio
    async def test_season_milestones_follow_grade(self, db_session, make_profile):
        season = _season(8, timedelta(days=7))
        db_session.add(season)
        await db_session.flush()
        db_session.add(SeasonMilestone(
            season_id=season.id, name="Grade 8 sprint", target_type="xp", target_value=50,
            reward_type="xp", reward_value=20, sort_order=9,
        ))
        await db_session.commit()

        ann = await make_profile("ann", grade=7)
        dan = await make_profile("dan", grade=8)
        assert "Grade 8 sprint" not in {m["name"] for m in await get_milestones(db_session, ann)}
        assert "Grade 8 sprint" in {m["name"] for m in await get_milestones(db_session, dan)}

    @pytest.mark.asyncio
    async def test_claim_limited_to_own_grade_and_active_seasons(self, db_session, make_profile):
        grade8 = _season(8, timedelta(days=7))
        ended = _season(7, timedelta(days=-1), name="Old grade 7 season")
        ended.is_active = False
        db_session.add_all([grade8, ended])
        await db_session.flush()
        other_grade = SeasonMilestone(
            season_id=grade8.id, name="Grade 8 bounty", target_type="xp", target_value=50,
            reward_type="coins", reward_value=500,
        )
        past = SeasonMilestone(
            season_id=ended.id, name="Last season bounty", target_type="xp", target_value=50,
            reward_type="coins", reward_value=500,
        )
        db_session.add_all([other_grade, past])
        await db_session.commit()

        ann = await make_profile("ann", grade=7, total_xp=1000)
        dan = await make_profile("dan", grade=8, total_xp=1000)
        for milestone in (other_grade, past):
            with pytest.raises(NotFoundError):
                await claim_milestone(db_session, None, ann, milestone.id)
        assert ann.coins == 0

        result = await claim_milestone(db_session, None, dan, other_grade.id)
        assert result["reward_value"] == 500
        with pytest.raises(NotFoundError):
            await claim_milestone(db_session, None, dan, past.id)

    @pytest.mark.asyncio
    async def test_unknown_target(self, db_session, make_profile):
        ann = await make_profile("ann")
        with pytest.raises(ValueError, match="Unknown milestone target"):
            await current_value(db_session, ann, "height")


class TestNameCards:
    @pytest.mark.asyncio
    async def test_award_equip_and_reaward(self, db_session, make_profile):
        ann = await make_profile("ann", coins=50, wins=3)
        ben = await make_profile("ben", coins=100, wins=1)
        await make_profile("dan", grade=8)

        result = await award_leaderboard_cards(db_session)
        await db_session.commit()
        assert result["message"] == "Awarded 9 name cards to leaderboard top 10 users"

        cards = {c["category"]: c for c in await list_name_cards(db_session, ben.id)}
        assert cards["leaderboard_coins"]["rank_position"] == 1
        assert cards["leaderboard_wins"]["rank_position"] == 2

        coins_card = (
            await db_session.execute(select(NameCard).where(NameCard.category == "leaderboard_coins"))
        ).scalar_one()
        wins_card = (
            await db_session.execute(select(NameCard).where(NameCard.category == "leaderboard_wins"))
        ).scalar_one()
        await equip_name_card(db_session, ann.id, coins_card.id)
        await equip_name_card(db_session, ann.id, wins_card.id)
        await db_session.commit()

        equipped = {c["category"]: c["is_equipped"] for c in await list_name_cards(db_session, ann.id)}
        assert equipped == {"leaderboard_coins": False, "leaderboard_wins": True, "leaderboard_xp": False}

        await award_leaderboard_cards(db_session)
        await db_session.commit()
        equipped = {c["category"]: c["is_equipped"] for c in await list_name_cards(db_session, ann.id)}
        assert equipped["leaderboard_wins"] is True

    @pytest.mark.asyncio
    async def test_equip_unowned(self, db_session, make_profile):
        ann = await make_profile("ann")
        with pytest.raises(NotFoundError):
            await equip_name_card(db_session, ann.id, 1)
