"""Win/loss aggregates: streaks, win rates and the free-match ranking.

All functions are pure so ranking rules can be tested without a database.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

MIN_RANKED_MATCHES = 5


@dataclass(frozen=True)
class StreakSummary:
    current_streak: int
    streak_type: str | None
    best_win_streak: int
    best_loss_streak: int


def compute_streaks(results: Sequence[str]) -> StreakSummary:
    """Summarise outcomes ordered most-recent-first.

    ``results`` holds ``"win"`` / ``"loss"``; draws break every run.
    The current streak counts the run that starts at the most recent result.
    """
    if not results or results[0] not in ("win", "loss"):
        current, current_type = 0, None
    else:
        current_type = results[0]
        current = 0
        for outcome in results:
            if outcome != current_type:
                break
            current += 1

    best = {"win": 0, "loss": 0}
    run_type: str | None = None
    run = 0
    for outcome in results:
        if outcome == run_type:
            run += 1
        else:
            run_type, run = outcome, 1
        if run_type in best:
            best[run_type] = max(best[run_type], run)

    return StreakSummary(
        current_streak=current,
        streak_type=current_type,
        best_win_streak=best["win"],
        best_loss_streak=best["loss"],
    )


def win_streak(results: Iterable[str]) -> int:
    """Leading consecutive wins in a most-recent-first sequence."""
    count = 0
    for outcome in results:
        if outcome != "win":
            break
        count += 1
    return count


def win_rate(wins: int, losses: int) -> float:
    """Percentage of matches won, 0 when none were played."""
    total = wins + losses
    return wins / total * 100 if total else 0.0


def rank_by_win_rate(
    entries: Iterable[dict[str, Any]],
    min_matches: int = MIN_RANKED_MATCHES,
) -> list[dict[str, Any]]:
    """Rank players by win rate with a minimum-sample rule.

    Players with at least ``min_matches`` matches come first, ordered by win
    rate desc then wins desc. Everyone else follows, ordered by wins desc.
    Remaining ties fall back to profile_id asc so output is deterministic.

    Each entry needs ``profile_id``, ``wins`` and ``losses``; the returned
    dicts gain ``total``, ``win_rate``, ``qualified`` and a 1-based ``rank``.
    """
    enriched = []
    for entry in entries:
        total = entry["wins"] + entry["losses"]
        enriched.append({
            **entry,
            "total": total,
            "win_rate": round(win_rate(entry["wins"], entry["losses"]), 1),
            "qualified": total >= min_matches,
        })

    def sort_key(e: dict[str, Any]) -> tuple[int, float, int, int]:
        if e["qualified"]:
            return (0, -e["win_rate"], -e["wins"], e["profile_id"])
        return (1, 0.0, -e["wins"], e["profile_id"])

    ranked = sorted(enriched, key=sort_key)
    for idx, e in enumerate(ranked):
        e["rank"] = idx + 1
    return ranked
