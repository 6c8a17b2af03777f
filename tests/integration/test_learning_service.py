"""Integration tests for study sessions, mastery, levels and word import."""

from __future__ import annotations

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Level, LevelProgress, Word
from wordduel.errors import NotFoundError
from wordduel.learning.service import (
    complete_level,
    get_learning_stats,
    get_wrong_words,
    import_words,
    list_levels,
    list_words,
    record_answer,
    start_level,
    start_study_session,
)


@pytest_asyncio.fixture
async def level(db_session: AsyncSession, words) -> Level:
    row = Level(name="Unit 1 - Part 1", grade=7, unit=1, order_index=0, word_count=5, energy_cost=2)
    db_session.add(row)
    await db_session.commit()
    return row


class TestWords:
    @pytest.mark.asyncio
    async def test_list_by_subject_and_unit(self, db_session, words):
        rows, total = await list_words(db_session, subject="english", grade=7, unit=2)
        assert total == 10
        assert all(w.unit == 2 for w in rows)

    @pytest.mark.asyncio
    async def test_topic_filter(self, db_session, words):
        rows, total = await list_words(db_session, subject="math", topic="algebra")
        assert total == 5

    @pytest.mark.asyncio
    async def test_unknown_subject(self, db_session):
        with pytest.raises(ValueError, match="Unknown subject"):
            await list_words(db_session, subject="history")


class TestStudySession:
    @pytest.mark.asyncio
    async def test_costs_one_energy(self, db_session, make_profile, words):
        alice = await make_profile("alice")
        session = await start_study_session(db_session, alice, count=5)
        assert session["energy"] == 9
        assert len(session["words"]) == 5

    @pytest.mark.asyncio
    async def test_no_energy(self, db_session, make_profile, words):
        alice = await make_profile("alice", energy=0, max_energy=0)
        with pytest.raises(ValueError, match="Not enough energy"):
            await start_study_session(db_session, alice)


class TestMastery:
    @pytest.mark.asyncio
    async def test_answers_update_mastery(self, db_session, make_profile, words):
        alice = await make_profile("alice")
        word = words[0]
        await record_answer(db_session, alice.id, word.id, True)
        progress = await record_answer(db_session, alice.id, word.id, True)
        assert progress.mastery_level == 2
        assert progress.subject == "english"

        progress = await record_answer(db_session, alice.id, word.id, False)
        assert progress.mastery_level == 0
        assert progress.correct_count == 2
        assert progress.incorrect_count == 1

    @pytest.mark.asyncio
    async def test_wrong_book(self, db_session, make_profile, words):
        alice = await make_profile("alice")
        await record_answer(db_session, alice.id, words[0].id, False)
        await record_answer(db_session, alice.id, words[0].id, False)
        await record_answer(db_session, alice.id, words[1].id, False)
        await record_answer(db_session, alice.id, words[2].id, True)

        wrong = await get_wrong_words(db_session, alice.id)
        assert [w["word_id"] for w in wrong] == [words[0].id, words[1].id]

    @pytest.mark.asyncio
    async def test_stats(self, db_session, make_profile, words):
        alice = await make_profile("alice")
        for _ in range(3):
            await record_answer(db_session, alice.id, words[0].id, True)
        await record_answer(db_session, alice.id, words[1].id, False)
        await record_answer(db_session, alice.id, words[20].id, True)

        stats = await get_learning_stats(db_session, alice.id)
        assert stats["total_studied"] == 3
        assert stats["mastered"] == 1
        assert stats["familiar"] == 1
        assert stats["new"] == 1
        assert stats["accuracy"] == 80.0

        english = await get_learning_stats(db_session, alice.id, subject="english")
        assert english["total_studied"] == 2

    @pytest.mark.asyncio
    async def test_missing_word(self, db_session, make_profile):
        alice = await make_profile("alice")
        with pytest.raises(NotFoundError):
            await record_answer(db_session, alice.id, 9999, True)


class TestLevels:
    @pytest.mark.asyncio
    async def test_start_spends_energy_and_returns_slice(self, db_session, make_profile, level):
        alice = await make_profile("alice")
        started = await start_level(db_session, alice, level.id)
        assert started["energy"] == 8
        assert [w["word"] for w in started["words"]] == [f"word{i}" for i in range(5)]

        levels = await list_levels(db_session, alice.id, 7)
        assert levels[0]["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_complete_pays_and_keeps_best(self, db_session, make_profile, level):
        alice = await make_profile("alice")
        await start_level(db_session, alice, level.id)
        result = await complete_level(db_session, None, alice, level.id, correct=5, total=5)
        assert result["stars"] == 3
        assert result["status"] == "completed"
        assert alice.total_xp == 100

        await start_level(db_session, alice, level.id)
        await complete_level(db_session, None, alice, level.id, correct=1, total=5)
        await db_session.commit()

        progress = (await db_session.execute(select(LevelProgress))).scalar_one()
        assert progress.best_score == 100
        assert progress.stars == 3
        assert progress.attempts == 2

    @pytest.mark.asyncio
    async def test_failed_attempt_stays_in_progress(self, db_session, make_profile, level):
        alice = await make_profile("alice")
        await start_level(db_session, alice, level.id)
        result = await complete_level(db_session, None, alice, level.id, correct=1, total=5)
        assert result["stars"] == 0
        assert result["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_complete_without_start(self, db_session, make_profile, level):
        alice = await make_profile("alice")
        with pytest.raises(ValueError, match="not started"):
            await complete_level(db_session, None, alice, level.id, correct=3, total=5)

    @pytest.mark.asyncio
    async def test_one_start_pays_once(self, db_session, make_profile, level):
        alice = await make_profile("alice")
        await start_level(db_session, alice, level.id)
        await complete_level(db_session, None, alice, level.id, correct=5, total=5)
        coins = alice.coins

        for _ in range(3):
            with pytest.raises(ValueError, match="already completed"):
                await complete_level(db_session, None, alice, level.id, correct=5, total=5)
        assert alice.total_xp == 100
        assert alice.coins == coins

        await start_level(db_session, alice, level.id)
        await complete_level(db_session, None, alice, level.id, correct=5, total=5)
        assert alice.total_xp == 200

    @pytest.mark.asyncio
    async def test_unknown_level(self, db_session, make_profile):
        alice = await make_profile("alice")
        with pytest.raises(NotFoundError):
            await start_level(db_session, alice, 424242)

    @pytest.mark.asyncio
    async def test_untouched_levels_are_locked(self, db_session, make_profile, level):
        alice = await make_profile("alice")
        levels = await list_levels(db_session, alice.id, 7)
        assert levels[0]["status"] == "locked"
        assert await list_levels(db_session, alice.id, 9) == []


class TestImport:
    @pytest.mark.asyncio
    async def test_import_inserts_and_reports(self, db_session):
        result = await import_words(
            db_session,
            "ratio - a comparison of two numbers\nnonsense\nprime - divisible only by 1 and itself",
            subject="math",
            grade=8,
            unit=3,
            topic="numbers",
        )
        await db_session.commit()
        assert result["inserted"] == 2
        assert len(result["errors"]) == 1

        rows = (await db_session.execute(select(Word).where(Word.grade == 8))).scalars().all()
        assert {w.word for w in rows} == {"ratio", "prime"}
        assert all(w.topic == "numbers" for w in rows)
