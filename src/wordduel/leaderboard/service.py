"""Leaderboards computed from profile counters.

Boards are read from PostgreSQL and, when Redis is available, cached as a
short-lived JSON snapshot per board and grade. Ties always break on
profile id ascending so rankings are deterministic.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from wordduel.battle.stats import rank_by_win_rate
from wordduel.battle.tiers import TIER_ORDER, tier_index
from wordduel.db.models import Profile

logger = logging.getLogger(__name__)

BOARDS = ("xp", "wins", "coins", "rank", "free", "combo")
MAX_LIMIT = 100
CACHE_TTL_SECONDS = 30

_COLUMN_BOARDS = {
    "xp": Profile.total_xp,
    "wins": Profile.wins,
    "coins": Profile.coins,
    "combo": Profile.max_combo,
}

_tier_rank = case({tier: idx for idx, tier in enumerate(TIER_ORDER)}, value=Profile.rank_tier, else_=0)


def build_cache_key(board: str, grade: int | None) -> str:
    return f"leaderboard:{board}:{grade or 'all'}"


def _check_board(board: str) -> None:
    if board not in BOARDS:
        raise ValueError(f"Unknown leaderboard: {board}. Must be one of {list(BOARDS)}")


def _entry(profile: Profile, rank: int, value: Any) -> dict[str, Any]:
    return {
        "rank": rank,
        "profile_id": profile.id,
        "username": profile.username,
        "grade": profile.grade,
        "class_name": profile.class_name,
        "avatar_url": profile.avatar_url,
        "level": profile.level,
        "rank_tier": profile.rank_tier,
        "value": value,
    }


async def _query_board(
    db: AsyncSession, board: str, grade: int | None, limit: int | None
) -> list[dict[str, Any]]:
    base = select(Profile)
    if grade is not None:
        base = base.where(Profile.grade == grade)

    if board in _COLUMN_BOARDS:
        column = _COLUMN_BOARDS[board]
        query = base.order_by(column.desc(), Profile.id.asc()).limit(limit)
        if board == "combo":
            query = query.where(Profile.max_combo > 0)
        profiles = (await db.execute(query)).scalars().all()
        return [_entry(p, idx + 1, getattr(p, column.key)) for idx, p in enumerate(profiles)]

    if board == "rank":
        query = base.order_by(
            _tier_rank.desc(), Profile.rank_stars.desc(), Profile.rank_points.desc(), Profile.id.asc()
        ).limit(limit)
        profiles = (await db.execute(query)).scalars().all()
        return [
            {**_entry(p, idx + 1, p.rank_points), "rank_stars": p.rank_stars}
            for idx, p in enumerate(profiles)
        ]

    # free: win rate with the minimum-sample rule, over everyone who has played
    query = base.where((Profile.free_match_wins + Profile.free_match_losses) > 0)
    profiles = {p.id: p for p in (await db.execute(query)).scalars().all()}
    ranked = rank_by_win_rate(
        {"profile_id": p.id, "wins": p.free_match_wins, "losses": p.free_match_losses}
        for p in profiles.values()
    )
    return [
        {
            **_entry(profiles[e["profile_id"]], e["rank"], e["win_rate"]),
            "wins": e["wins"],
            "losses": e["losses"],
            "qualified": e["qualified"],
        }
        for e in ranked[:limit]
    ]


async def get_leaderboard(
    db: AsyncSession,
    redis: object | None,
    board: str,
    grade: int | None = None,
    limit: int = 50,
) -> list[dict[str, Any]]:
    """Top ``limit`` (at most 100) entries of a board."""
    _check_board(board)
    limit = max(1, min(limit, MAX_LIMIT))
    key = build_cache_key(board, grade)

    if redis is not None:
        try:
            cached = await redis.get(key)  # type: ignore[attr-defined]
        except Exception:
            logger.warning("Leaderboard cache read failed for %s", key, exc_info=True)
            cached = None
        if cached:
            entries = json.loads(cached)
            return entries[:limit]

    entries = await _query_board(db, board, grade, MAX_LIMIT if redis is not None else limit)
    if redis is not None:
        try:
            await redis.set(key, json.dumps(entries, default=str), ex=CACHE_TTL_SECONDS)  # type: ignore[attr-defined]
        except Exception:
            logger.warning("Leaderboard cache write failed for %s", key, exc_info=True)
    return entries[:limit]


async def get_profile_rank(
    db: AsyncSession,
    profile: Profile,
    board: str,
    grade: int | None = None,
) -> dict[str, Any]:
    """The profile's 1-based position on a board (None if not ranked)."""
    _check_board(board)
    scope = [Profile.grade == grade] if grade is not None else []

    if board in _COLUMN_BOARDS:
        column = _COLUMN_BOARDS[board]
        mine = getattr(profile, column.key)
        if board == "combo" and mine <= 0:
            return {"board": board, "rank": None, "value": mine, "total": 0}
        ahead_cond = or_(column > mine, and_(column == mine, Profile.id < profile.id))
        total_cond = [Profile.max_combo > 0] if board == "combo" else []
    elif board == "rank":
        mine_tier = tier_index(profile.rank_tier)
        mine = profile.rank_points
        ahead_cond = or_(
            _tier_rank > mine_tier,
            and_(_tier_rank == mine_tier, Profile.rank_stars > profile.rank_stars),
            and_(
                _tier_rank == mine_tier,
                Profile.rank_stars == profile.rank_stars,
                or_(
                    Profile.rank_points > profile.rank_points,
                    and_(Profile.rank_points == profile.rank_points, Profile.id < profile.id),
                ),
            ),
        )
        total_cond = []
    else:
        entries = await _query_board(db, "free", grade, limit=None)
        for e in entries:
            if e["profile_id"] == profile.id:
                return {"board": board, "rank": e["rank"], "value": e["value"], "total": len(entries)}
        return {"board": board, "rank": None, "value": 0.0, "total": len(entries)}

    ahead = (
        await db.execute(select(func.count()).select_from(Profile).where(ahead_cond, *scope, *total_cond))
    ).scalar_one()
    total = (await db.execute(select(func.count()).select_from(Profile).where(*scope, *total_cond))).scalar_one()
    return {"board": board, "rank": ahead + 1, "value": mine, "total": total}
