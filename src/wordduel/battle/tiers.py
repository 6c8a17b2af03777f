"""Ranked ladder: tiers, stars and rank points.

A win adds one star; reaching the tier's threshold promotes to the next tier
with zero stars. A loss removes the tier's star penalty without going below
zero, and never demotes. Gold keeps a player's last star (1-star protection).
"""

from __future__ import annotations

from dataclasses import dataclass

TIER_ORDER: tuple[str, ...] = ("bronze", "silver", "gold", "platinum", "diamond", "champion")

STARS_TO_PROMOTE: dict[str, int | None] = {
    "bronze": 30,
    "silver": 40,
    "gold": 50,
    "platinum": 50,
    "diamond": 60,
    "champion": None,
}

STARS_LOST_ON_LOSS: dict[str, int] = {
    "bronze": 0,
    "silver": 1,
    "gold": 1,
    "platinum": 1,
    "diamond": 2,
    "champion": 2,
}

PROTECTED_TIERS = frozenset({"gold"})

WIN_RANK_POINTS = 25
LOSS_RANK_POINTS = 10


@dataclass(frozen=True)
class RankState:
    tier: str
    stars: int
    rank_points: int


def tier_index(tier: str) -> int:
    """Position of a tier on the ladder (unknown tiers sort as bronze)."""
    try:
        return TIER_ORDER.index(tier)
    except ValueError:
        return 0


def apply_win(state: RankState) -> RankState:
    threshold = STARS_TO_PROMOTE.get(state.tier)
    stars = state.stars + 1
    tier = state.tier
    if threshold is not None and stars >= threshold:
        tier = TIER_ORDER[min(tier_index(tier) + 1, len(TIER_ORDER) - 1)]
        stars = 0
    return RankState(tier=tier, stars=stars, rank_points=state.rank_points + WIN_RANK_POINTS)


def apply_loss(state: RankState) -> RankState:
    lost = STARS_LOST_ON_LOSS.get(state.tier, 0)
    if state.tier in PROTECTED_TIERS and state.stars <= 1:
        lost = 0
    return RankState(
        tier=state.tier,
        stars=max(0, state.stars - lost),
        rank_points=max(0, state.rank_points - LOSS_RANK_POINTS),
    )


def tier_progress_percent(tier: str, stars: int) -> float:
    """Progress toward promotion; champion is always complete."""
    threshold = STARS_TO_PROMOTE.get(tier)
    if not threshold:
        return 100.0
    return min(100.0, stars / threshold * 100)
