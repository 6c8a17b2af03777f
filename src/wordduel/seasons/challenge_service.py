"""Season class/grade challenge aggregation.

For every active season the profiles of the season's grade are rolled up
into one row per class and one row for the grade. Rows are keyed on their
natural keys so the job can run repeatedly.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.db.models import (
    ClassChallenge,
    GradeChallenge,
    LearningProgress,
    LevelProgress,
    Profile,
    Season,
)

logger = logging.getLogger(__name__)

# Math and science have no level table; every ten learned terms count as one level
TERMS_PER_LEVEL = 10


@dataclass
class ChallengeTotals:
    total_xp: int = 0
    total_correct: int = 0
    total_answered: int = 0
    total_levels_completed: int = 0
    member_count: int = 0

    def add(self, xp: int, correct: int, answered: int, levels: int) -> None:
        self.total_xp += xp
        self.total_correct += correct
        self.total_answered += answered
        self.total_levels_completed += levels
        self.member_count += 1

    @property
    def composite_score(self) -> float:
        return composite_score(
            self.total_xp,
            self.total_correct,
            self.total_answered,
            self.total_levels_completed,
            self.member_count,
        )


def composite_score(total_xp: int, correct: int, answered: int, levels: int, members: int) -> float:
    """Weighted score: 40% average XP/100, 30% accuracy, 30% average levels*10."""
    if members <= 0:
        return 0.0
    accuracy = correct / answered * 100 if answered > 0 else 0.0
    avg_xp = total_xp / members
    avg_levels = levels / members
    return (avg_xp / 100) * 0.4 + accuracy * 0.3 + (avg_levels * 10) * 0.3


async def _answer_totals(db: AsyncSession, profile_ids: list[int]) -> dict[int, tuple[int, int]]:
    result = await db.execute(
        select(
            LearningProgress.profile_id,
            func.coalesce(func.sum(LearningProgress.correct_count), 0),
            func.coalesce(func.sum(LearningProgress.correct_count + LearningProgress.incorrect_count), 0),
        )
        .where(LearningProgress.profile_id.in_(profile_ids))
        .group_by(LearningProgress.profile_id)
    )
    return {pid: (int(correct), int(answered)) for pid, correct, answered in result.all()}


async def _levels_completed(db: AsyncSession, profile_ids: list[int]) -> dict[int, int]:
    levels: dict[int, int] = defaultdict(int)
    result = await db.execute(
        select(LevelProgress.profile_id, func.count())
        .where(LevelProgress.profile_id.in_(profile_ids), LevelProgress.status == "completed")
        .group_by(LevelProgress.profile_id)
    )
    for pid, count in result.all():
        levels[pid] += count

    result = await db.execute(
        select(LearningProgress.profile_id, LearningProgress.subject, func.count())
        .where(
            LearningProgress.profile_id.in_(profile_ids),
            LearningProgress.subject.in_(("math", "science")),
            LearningProgress.mastery_level >= 1,
        )
        .group_by(LearningProgress.profile_id, LearningProgress.subject)
    )
    for pid, _subject, count in result.all():
        levels[pid] += count // TERMS_PER_LEVEL
    return levels


async def aggregate_season(db: AsyncSession, season: Season) -> tuple[dict[str, ChallengeTotals], ChallengeTotals]:
    """Totals per class name and for the whole grade."""
    profiles = (
        await db.execute(select(Profile.id, Profile.total_xp, Profile.class_name).where(Profile.grade == season.grade))
    ).all()
    by_class: dict[str, ChallengeTotals] = defaultdict(ChallengeTotals)
    grade_totals = ChallengeTotals()
    if not profiles:
        return by_class, grade_totals

    ids = [p.id for p in profiles]
    answers = await _answer_totals(db, ids)
    levels = await _levels_completed(db, ids)

    for p in profiles:
        correct, answered = answers.get(p.id, (0, 0))
        completed = levels.get(p.id, 0)
        grade_totals.add(p.total_xp, correct, answered, completed)
        if p.class_name:
            by_class[p.class_name].add(p.total_xp, correct, answered, completed)
    return by_class, grade_totals


def _apply_totals(row: ClassChallenge | GradeChallenge, totals: ChallengeTotals) -> None:
    row.total_xp = totals.total_xp
    row.total_correct = totals.total_correct
    row.total_answered = totals.total_answered
    row.total_levels_completed = totals.total_levels_completed
    row.member_count = totals.member_count
    row.composite_score = totals.composite_score


async def _upsert_class_rows(db: AsyncSession, season: Season, by_class: dict[str, ChallengeTotals]) -> int:
    existing = {
        row.class_name: row
        for row in (
            await db.execute(
                select(ClassChallenge).where(
                    ClassChallenge.season_id == season.id, ClassChallenge.grade == season.grade
                )
            )
        ).scalars().all()
    }
    ranked = sorted(by_class.items(), key=lambda item: (-item[1].composite_score, item[0]))
    for position, (class_name, totals) in enumerate(ranked, start=1):
        row = existing.get(class_name)
        if row is None:
            row = ClassChallenge(season_id=season.id, grade=season.grade, class_name=class_name)
            db.add(row)
        _apply_totals(row, totals)
        row.rank_position = position
    return len(ranked)


async def _upsert_grade_row(db: AsyncSession, season: Season, totals: ChallengeTotals) -> None:
    row = (
        await db.execute(
            select(GradeChallenge).where(
                GradeChallenge.season_id == season.id, GradeChallenge.grade == season.grade
            )
        )
    ).scalar_one_or_none()
    if row is None:
        row = GradeChallenge(season_id=season.id, grade=season.grade)
        db.add(row)
    _apply_totals(row, totals)


async def rerank_grades(db: AsyncSession) -> None:
    """Rank the grade rows of active seasons against each other."""
    rows = (
        await db.execute(
            select(GradeChallenge)
            .join(Season, Season.id == GradeChallenge.season_id)
            .where(Season.is_active.is_(True))
            .order_by(GradeChallenge.composite_score.desc(), GradeChallenge.grade)
        )
    ).scalars().all()
    for position, row in enumerate(rows, start=1):
        row.rank_position = position


async def update_challenge_stats(db: AsyncSession) -> dict:
    """Recompute class and grade challenge rows for every active season."""
    seasons = (await db.execute(select(Season).where(Season.is_active.is_(True)))).scalars().all()
    if not seasons:
        return {"success": True, "message": "No active seasons"}

    updated = 0
    for season in seasons:
        by_class, grade_totals = await aggregate_season(db, season)
        updated += await _upsert_class_rows(db, season, by_class)
        await _upsert_grade_row(db, season, grade_totals)
        updated += 1
        logger.info(
            "Season %d (grade %d): %d classes, %d members",
            season.id, season.grade, len(by_class), grade_totals.member_count,
        )

    await db.flush()
    await rerank_grades(db)
    await db.flush()
    return {"success": True, "message": f"Updated {updated} challenge stats across {len(seasons)} seasons"}


async def get_season_standings(db: AsyncSession, season_id: int) -> dict:
    classes = (
        await db.execute(
            select(ClassChallenge)
            .where(ClassChallenge.season_id == season_id)
            .order_by(ClassChallenge.rank_position, ClassChallenge.class_name)
        )
    ).scalars().all()
    grade = (
        await db.execute(select(GradeChallenge).where(GradeChallenge.season_id == season_id))
    ).scalar_one_or_none()
    return {"classes": list(classes), "grade": grade}


async def list_seasons(db: AsyncSession, grade: int | None = None, active_only: bool = True) -> list[Season]:
    query = select(Season)
    if active_only:
        query = query.where(Season.is_active.is_(True))
    if grade is not None:
        query = query.where(Season.grade == grade)
    result = await db.execute(query.order_by(Season.start_date.desc(), Season.id.desc()))
    return list(result.scalars().all())
