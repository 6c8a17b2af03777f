"""Tests for the season composite score and milestone percentages."""

import pytest

from wordduel.seasons.challenge_service import ChallengeTotals, composite_score
from wordduel.seasons.milestone_service import progress_percent


class TestCompositeScore:
    def test_weights(self):
        # avg xp 500 -> 2.0, accuracy 80 -> 24.0, avg levels 2 -> 6.0
        assert composite_score(1000, 80, 100, 4, 2) == pytest.approx(32.0)

    def test_no_members(self):
        assert composite_score(1000, 10, 10, 5, 0) == 0.0

    def test_no_answers_means_zero_accuracy(self):
        assert composite_score(300, 0, 0, 0, 1) == pytest.approx(1.2)

    def test_totals_accumulate(self):
        totals = ChallengeTotals()
        totals.add(xp=400, correct=9, answered=10, levels=1)
        totals.add(xp=200, correct=7, answered=10, levels=3)
        assert totals.member_count == 2
        assert totals.total_levels_completed == 4
        assert totals.composite_score == pytest.approx(composite_score(600, 16, 20, 4, 2))


class TestProgressPercent:
    @pytest.mark.parametrize(
        ("current", "target", "expected"),
        [(50, 100, 50.0), (150, 100, 100.0), (-5, 10, 0.0), (5, 0, 100.0)],
    )
    def test_clamped(self, current, target, expected):
        assert progress_percent(current, target) == expected
