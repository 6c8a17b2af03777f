"""Match progress value and the legacy packed-integer score format.

Older clients report a single integer per player::

    packed = points + questions_answered * 100 + (10000 if finished else 0)

Matches now store the three fields explicitly; this module converts between
the two forms for clients that still send or expect the packed value.
"""

from __future__ import annotations

from dataclasses import dataclass

FIELD_LIMIT = 100  # points and questions_answered each occupy two decimal digits
FINISHED_FLAG = 10000


@dataclass(frozen=True)
class MatchProgress:
    """One player's progress in a match."""

    points: int = 0
    questions_answered: int = 0
    finished: bool = False

    def __post_init__(self) -> None:
        for name in ("points", "questions_answered"):
            value = getattr(self, name)
            if not 0 <= value < FIELD_LIMIT:
                msg = f"{name} must be between 0 and {FIELD_LIMIT - 1}, got {value}"
                raise ValueError(msg)


def encode_progress(progress: MatchProgress) -> int:
    """Pack progress into the legacy integer."""
    return (
        progress.points
        + progress.questions_answered * FIELD_LIMIT
        + (FINISHED_FLAG if progress.finished else 0)
    )


def decode_progress(raw: int) -> MatchProgress:
    """Unpack a legacy integer.

    Raises ValueError for negative values or values whose answered-count
    field overflows two digits.
    """
    if raw < 0:
        msg = f"Packed score cannot be negative, got {raw}"
        raise ValueError(msg)
    finished = raw >= FINISHED_FLAG
    base = raw - FINISHED_FLAG if finished else raw
    return MatchProgress(
        points=base % FIELD_LIMIT,
        questions_answered=base // FIELD_LIMIT,
        finished=finished,
    )


def decode_points(raw: int) -> int:
    """Points only, exactly as clients have always read them."""
    return (raw - FINISHED_FLAG) % FIELD_LIMIT if raw >= FINISHED_FLAG else raw % FIELD_LIMIT
