"""Elo rating math and the widening matchmaking window."""

from __future__ import annotations

K_FACTOR = 32
NEW_PLAYER_K_FACTOR = 48
NEW_PLAYER_MATCHES = 30
MIN_RATING = 100

BASE_SEARCH_RANGE = 50
SEARCH_RANGE_STEP = 25
SEARCH_STEP_SECONDS = 5
MAX_SEARCH_RANGE = 200


def expected_score(rating: int, opponent_rating: int) -> float:
    """Probability that ``rating`` beats ``opponent_rating``."""
    return 1 / (1 + 10 ** ((opponent_rating - rating) / 400))


def k_factor(matches_played: int) -> int:
    return NEW_PLAYER_K_FACTOR if matches_played < NEW_PLAYER_MATCHES else K_FACTOR


def elo_change(
    rating: int,
    opponent_rating: int,
    won: bool,
    *,
    draw: bool = False,
    matches_played: int = NEW_PLAYER_MATCHES,
) -> int:
    """Signed rating change for one side of a finished match."""
    actual = 0.5 if draw else (1.0 if won else 0.0)
    return round(k_factor(matches_played) * (actual - expected_score(rating, opponent_rating)))


def apply_change(rating: int, change: int) -> int:
    """New rating, floored at MIN_RATING."""
    return max(MIN_RATING, rating + change)


def search_range(waited_seconds: float) -> int:
    """Rating window for matchmaking: +-50, widening by 25 every 5s up to 200."""
    steps = int(max(0.0, waited_seconds) // SEARCH_STEP_SECONDS)
    return min(MAX_SEARCH_RANGE, BASE_SEARCH_RANGE + steps * SEARCH_RANGE_STEP)


def streak_bonus(win_streak: int) -> float:
    """Reward multiplier for consecutive wins."""
    if win_streak >= 4:
        return 1.3
    if win_streak >= 3:
        return 1.2
    if win_streak >= 2:
        return 1.1
    return 1.0
