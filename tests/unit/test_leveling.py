"""Tests for the level curve and level/study rewards."""

from datetime import datetime, timedelta, timezone

import pytest

from wordduel.gamification.economy import regenerated_energy
from wordduel.gamification.leveling import level_progress_percent, process_level_up, xp_for_level
from wordduel.learning.service import level_rewards, level_stars, next_mastery


class TestLevelCurve:
    def test_xp_for_level(self):
        assert xp_for_level(1) == 100
        assert xp_for_level(5) == 500

    def test_no_level_up(self):
        result = process_level_up(level=1, xp=20, gained=50)
        assert result == {"level": 1, "xp": 70, "xp_to_next_level": 100, "levels_gained": 0}

    def test_multi_level_rollover(self):
        # 1->2 costs 100, 2->3 costs 200
        result = process_level_up(level=1, xp=0, gained=350)
        assert result["level"] == 3
        assert result["xp"] == 50
        assert result["xp_to_next_level"] == 300
        assert result["levels_gained"] == 2

    def test_progress_percent(self):
        assert level_progress_percent(50, 200) == 25.0
        assert level_progress_percent(10, 0) == 100.0


class TestLevelRewards:
    @pytest.mark.parametrize(
        ("accuracy", "stars"),
        [(1.0, 3), (0.9, 3), (0.75, 2), (0.5, 1), (0.49, 0)],
    )
    def test_stars(self, accuracy, stars):
        assert level_stars(accuracy) == stars

    def test_perfect_run(self):
        assert level_rewards(10, 10) == {"xp": 100, "coins": 50, "stars": 3}

    def test_half_right(self):
        assert level_rewards(5, 10) == {"xp": 75, "coins": 30, "stars": 1}


class TestMastery:
    def test_correct_increments_to_cap(self):
        assert next_mastery(0, True) == 1
        assert next_mastery(5, True) == 5

    def test_wrong_resets(self):
        assert next_mastery(4, False) == 0


class TestEnergyRegeneration:
    interval = timedelta(minutes=30)
    start = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

    def test_partial_interval_carries_over(self):
        energy, anchor = regenerated_energy(10, 30, self.start, self.start + timedelta(minutes=75), self.interval)
        assert energy == 12
        assert anchor == self.start + timedelta(minutes=60)

    def test_caps_at_max_and_resets_anchor(self):
        now = self.start + timedelta(hours=20)
        energy, anchor = regenerated_energy(25, 30, self.start, now, self.interval)
        assert energy == 30
        assert anchor == now

    def test_surplus_untouched(self):
        now = self.start + timedelta(hours=2)
        assert regenerated_energy(40, 30, self.start, now, self.interval) == (40, now)

    def test_too_early(self):
        now = self.start + timedelta(minutes=10)
        assert regenerated_energy(5, 30, self.start, now, self.interval) == (5, self.start)
