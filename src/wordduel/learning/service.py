"""Vocabulary study: word lists, answer recording, levels and review.

Rules:
- Mastery runs 0..5; a correct answer raises it by one, a wrong one resets it
- A word counts as learned at mastery >= 1 and mastered at mastery >= 3
- Starting a level costs its energy; finishing pays XP and coins by accuracy
"""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import Level, LevelProgress, LearningProgress, Profile, Word
from wordduel.errors import NotFoundError
from wordduel.gamification.badge_service import check_and_award_badges
from wordduel.gamification.economy import add_coins, consume_energy, regenerate_energy
from wordduel.gamification.quest_service import record_quest_event
from wordduel.gamification.xp_service import grant_xp
from wordduel.learning.word_import import batched, parse_word_list

logger = logging.getLogger(__name__)

SUBJECTS = frozenset({"english", "math", "science"})
MAX_MASTERY = 5
LEARNED_MASTERY = 1
MASTERED_MASTERY = 3
WRONG_BOOK_LIMIT = 200
STUDY_SESSION_ENERGY = 1


def _check_subject(subject: str) -> None:
    if subject not in SUBJECTS:
        raise ValueError(f"Unknown subject: {subject}. Must be one of {sorted(SUBJECTS)}")


# ---------------------------------------------------------------------------
# Words
# ---------------------------------------------------------------------------


async def list_words(
    db: AsyncSession,
    subject: str = "english",
    grade: int | None = None,
    unit: int | None = None,
    topic: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> tuple[list[Word], int]:
    """Filtered word listing ordered by grade, unit and id."""
    _check_subject(subject)
    conditions = [Word.subject == subject]
    if grade is not None:
        conditions.append(Word.grade == grade)
    if unit is not None:
        conditions.append(Word.unit == unit)
    if topic is not None:
        conditions.append(Word.topic == topic)

    total = (await db.execute(select(func.count()).select_from(Word).where(*conditions))).scalar_one()
    result = await db.execute(
        select(Word).where(*conditions).order_by(Word.grade, Word.unit, Word.id).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), total


async def get_word(db: AsyncSession, word_id: int) -> Word:
    word = (await db.execute(select(Word).where(Word.id == word_id))).scalar_one_or_none()
    if word is None:
        raise NotFoundError("Word not found")
    return word


async def pick_battle_words(db: AsyncSession, grade: int, count: int, subject: str = "english") -> list[dict]:
    """Random word snapshot for a match. Grade 0 draws from every grade."""
    query = select(Word).where(Word.subject == subject)
    if grade:
        query = query.where(Word.grade == grade)
    words = list((await db.execute(query)).scalars().all())
    chosen = random.sample(words, min(count, len(words)))
    return [
        {"id": w.id, "word": w.word, "meaning": w.meaning, "phonetic": w.phonetic}
        for w in chosen
    ]


async def start_study_session(
    db: AsyncSession,
    profile: Profile,
    subject: str = "english",
    unit: int | None = None,
    count: int = 10,
) -> dict:
    """Spend one energy and draw a study set from the profile's grade."""
    _check_subject(subject)
    await regenerate_energy(db, profile)
    remaining = await consume_energy(db, profile.id, STUDY_SESSION_ENERGY)

    query = select(Word).where(Word.subject == subject, Word.grade == profile.grade)
    if unit is not None:
        query = query.where(Word.unit == unit)
    words = list((await db.execute(query)).scalars().all())
    chosen = random.sample(words, min(count, len(words)))
    return {
        "energy": remaining,
        "words": [{"id": w.id, "word": w.word, "meaning": w.meaning, "phonetic": w.phonetic} for w in chosen],
    }


# ---------------------------------------------------------------------------
# Answers & mastery
# ---------------------------------------------------------------------------


def next_mastery(current: int, correct: bool) -> int:
    return min(MAX_MASTERY, current + 1) if correct else 0


async def record_answer(
    db: AsyncSession,
    profile_id: int,
    word_id: int,
    correct: bool,
) -> LearningProgress:
    """Record one study answer and update the word's mastery."""
    word = await get_word(db, word_id)
    result = await db.execute(
        select(LearningProgress).where(
            LearningProgress.profile_id == profile_id,
            LearningProgress.word_id == word_id,
        )
    )
    progress = result.scalar_one_or_none()
    if progress is None:
        progress = LearningProgress(
            profile_id=profile_id,
            word_id=word_id,
            subject=word.subject,
            correct_count=0,
            incorrect_count=0,
            mastery_level=0,
        )
        db.add(progress)

    if correct:
        progress.correct_count += 1
    else:
        progress.incorrect_count += 1
    progress.mastery_level = next_mastery(progress.mastery_level, correct)
    progress.last_reviewed_at = datetime.now(timezone.utc)
    await db.flush()

    await record_quest_event(db, profile_id, "words_studied")
    return progress


async def get_wrong_words(db: AsyncSession, profile_id: int, subject: str | None = None) -> list[dict]:
    """Words answered wrong at least once and not yet mastered, worst first."""
    conditions = [
        LearningProgress.profile_id == profile_id,
        LearningProgress.incorrect_count > 0,
        LearningProgress.mastery_level < MASTERED_MASTERY,
    ]
    if subject is not None:
        _check_subject(subject)
        conditions.append(LearningProgress.subject == subject)

    result = await db.execute(
        select(LearningProgress, Word)
        .join(Word, Word.id == LearningProgress.word_id)
        .where(*conditions)
        .order_by(LearningProgress.incorrect_count.desc(), LearningProgress.mastery_level.asc())
        .limit(WRONG_BOOK_LIMIT)
    )
    return [
        {
            "word_id": word.id,
            "word": word.word,
            "meaning": word.meaning,
            "phonetic": word.phonetic,
            "subject": word.subject,
            "correct_count": lp.correct_count,
            "incorrect_count": lp.incorrect_count,
            "mastery_level": lp.mastery_level,
        }
        for lp, word in result.all()
    ]


async def get_learning_stats(db: AsyncSession, profile_id: int, subject: str | None = None) -> dict:
    """Mastery buckets and accuracy over every studied word."""
    conditions = [LearningProgress.profile_id == profile_id]
    if subject is not None:
        _check_subject(subject)
        conditions.append(LearningProgress.subject == subject)

    rows = (await db.execute(select(LearningProgress).where(*conditions))).scalars().all()
    buckets = {"new": 0, "familiar": 0, "proficient": 0, "mastered": 0}
    correct = answered = 0
    for lp in rows:
        if lp.mastery_level >= MASTERED_MASTERY:
            buckets["mastered"] += 1
        elif lp.mastery_level == 2:
            buckets["proficient"] += 1
        elif lp.mastery_level == 1:
            buckets["familiar"] += 1
        else:
            buckets["new"] += 1
        correct += lp.correct_count
        answered += lp.correct_count + lp.incorrect_count

    return {
        "total_studied": len(rows),
        **buckets,
        "total_correct": correct,
        "total_answered": answered,
        "accuracy": round(correct / answered * 100, 1) if answered else 0.0,
    }


# ---------------------------------------------------------------------------
# Levels
# ---------------------------------------------------------------------------


def level_stars(accuracy: float) -> int:
    if accuracy >= 0.9:
        return 3
    if accuracy >= 0.7:
        return 2
    if accuracy >= 0.5:
        return 1
    return 0


def level_rewards(correct: int, total: int) -> dict[str, int]:
    """XP and coins for finishing a level: base plus an accuracy bonus."""
    accuracy = correct / total if total else 0.0
    xp = 50 + int(accuracy * 50)
    coins = 20 + (30 if accuracy == 1 else int(accuracy * 20))
    return {"xp": xp, "coins": coins, "stars": level_stars(accuracy)}


async def list_levels(db: AsyncSession, profile_id: int, grade: int) -> list[dict]:
    levels = (
        await db.execute(select(Level).where(Level.grade == grade).order_by(Level.unit, Level.order_index))
    ).scalars().all()
    progress = {
        lp.level_id: lp
        for lp in (
            await db.execute(select(LevelProgress).where(LevelProgress.profile_id == profile_id))
        ).scalars().all()
    }
    return [
        {
            "id": lvl.id,
            "name": lvl.name,
            "unit": lvl.unit,
            "order_index": lvl.order_index,
            "word_count": lvl.word_count,
            "energy_cost": lvl.energy_cost,
            "status": progress[lvl.id].status if lvl.id in progress else "locked",
            "stars": progress[lvl.id].stars if lvl.id in progress else 0,
            "best_score": progress[lvl.id].best_score if lvl.id in progress else 0,
        }
        for lvl in levels
    ]


async def start_level(db: AsyncSession, profile: Profile, level_id: int) -> dict:
    """Spend the level's energy and return its word list."""
    level = (await db.execute(select(Level).where(Level.id == level_id))).scalar_one_or_none()
    if level is None:
        raise NotFoundError("Level not found")

    await regenerate_energy(db, profile)
    remaining = await consume_energy(db, profile.id, level.energy_cost)

    progress = (
        await db.execute(
            select(LevelProgress).where(LevelProgress.profile_id == profile.id, LevelProgress.level_id == level.id)
        )
    ).scalar_one_or_none()
    if progress is None:
        progress = LevelProgress(profile_id=profile.id, level_id=level.id, status="in_progress", attempts=0)
        db.add(progress)
    progress.attempts += 1
    progress.attempt_open = True
    await db.flush()

    words = (
        await db.execute(
            select(Word)
            .where(Word.subject == "english", Word.grade == level.grade, Word.unit == level.unit)
            .order_by(Word.id)
            .offset(level.order_index * level.word_count)
            .limit(level.word_count)
        )
    ).scalars().all()
    return {
        "level_id": level.id,
        "energy": remaining,
        "words": [{"id": w.id, "word": w.word, "meaning": w.meaning, "phonetic": w.phonetic} for w in words],
    }


async def complete_level(
    db: AsyncSession,
    redis: object | None,
    profile: Profile,
    level_id: int,
    correct: int,
    total: int,
) -> dict:
    """Record a level result and pay its rewards."""
    if total <= 0 or not 0 <= correct <= total:
        raise ValueError("correct must be between 0 and total, and total positive")

    # Each start pays out once: the completion closes the attempt it consumes
    claimed = (
        await db.execute(
            update(LevelProgress)
            .where(
                LevelProgress.profile_id == profile.id,
                LevelProgress.level_id == level_id,
                LevelProgress.attempt_open.is_(True),
            )
            .values(attempt_open=False)
            .returning(LevelProgress.id, LevelProgress.attempts)
            .execution_options(synchronize_session=False)
        )
    ).first()
    if claimed is None:
        raise ValueError("Level was not started or the attempt was already completed")
    progress = await db.get(LevelProgress, claimed.id, populate_existing=True)

    rewards = level_rewards(correct, total)
    score = round(correct / total * 100)
    progress.best_score = max(progress.best_score, score)
    progress.stars = max(progress.stars, rewards["stars"])
    if rewards["stars"] >= 1 and progress.status != "completed":
        progress.status = "completed"
        progress.completed_at = datetime.now(timezone.utc)
    await db.flush()

    await grant_xp(
        db, redis, profile, rewards["xp"], "level", str(level_id),
        idempotency_key=f"level:{profile.id}:{level_id}:{claimed.attempts}",
    )
    await add_coins(db, profile.id, rewards["coins"])
    badges = await check_and_award_badges(db, redis, profile)
    return {**rewards, "score": score, "status": progress.status, "badges": badges}


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


async def import_words(
    db: AsyncSession,
    text: str,
    subject: str,
    grade: int,
    unit: int,
    difficulty: int = 1,
    topic: str | None = None,
) -> dict:
    """Parse a pasted list and insert it in batches."""
    _check_subject(subject)
    parsed = parse_word_list(text)
    inserted = 0
    for batch in batched(parsed.words):
        db.add_all([
            Word(
                subject=subject,
                word=item.word,
                meaning=item.meaning,
                grade=grade,
                unit=unit,
                difficulty=difficulty,
                topic=topic,
            )
            for item in batch
        ])
        await db.flush()
        inserted += len(batch)
    logger.info("Imported %d %s words (grade %d unit %d)", inserted, subject, grade, unit)
    return {"inserted": inserted, "errors": parsed.errors}
