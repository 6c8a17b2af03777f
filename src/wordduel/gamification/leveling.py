"""Level curve: reaching level N+1 from level N costs 100 * N XP."""

from __future__ import annotations

XP_PER_LEVEL = 100


def xp_for_level(level: int) -> int:
    """XP needed to advance from ``level`` to the next one."""
    return XP_PER_LEVEL * max(1, level)


def process_level_up(level: int, xp: int, gained: int) -> dict:
    """Add ``gained`` XP to an in-level balance, rolling over as many levels as it covers.

    Returns the new level, in-level xp, xp_to_next_level and levels_gained.
    """
    xp += gained
    start = level
    while xp >= xp_for_level(level):
        xp -= xp_for_level(level)
        level += 1
    return {
        "level": level,
        "xp": xp,
        "xp_to_next_level": xp_for_level(level),
        "levels_gained": level - start,
    }


def level_progress_percent(xp: int, xp_to_next_level: int) -> float:
    if xp_to_next_level <= 0:
        return 100.0
    return min(100.0, xp / xp_to_next_level * 100)
