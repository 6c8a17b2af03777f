"""Tests for Elo math and the matchmaking window."""

import pytest

from wordduel.battle.elo import (
    MIN_RATING,
    apply_change,
    elo_change,
    expected_score,
    k_factor,
    search_range,
    streak_bonus,
)


class TestExpectedScore:
    def test_equal_ratings(self):
        assert expected_score(1000, 1000) == pytest.approx(0.5)

    def test_symmetry(self):
        assert expected_score(1200, 1000) + expected_score(1000, 1200) == pytest.approx(1.0)

    def test_400_points_is_ten_to_one(self):
        assert expected_score(1400, 1000) == pytest.approx(10 / 11)


class TestEloChange:
    def test_even_win_and_loss(self):
        assert elo_change(1000, 1000, won=True) == 16
        assert elo_change(1000, 1000, won=False) == -16

    def test_even_draw_is_zero(self):
        assert elo_change(1000, 1000, won=False, draw=True) == 0

    def test_underdog_gains_more(self):
        assert elo_change(900, 1100, won=True) > elo_change(1100, 900, won=True)

    def test_new_player_k(self):
        assert k_factor(0) == 48
        assert k_factor(29) == 48
        assert k_factor(30) == 32
        assert elo_change(1000, 1000, won=True, matches_played=3) == 24

    def test_rating_floor(self):
        assert apply_change(110, -30) == MIN_RATING
        assert apply_change(1000, 16) == 1016


class TestSearchRange:
    @pytest.mark.parametrize(
        ("waited", "expected"),
        [(0, 50), (4.9, 50), (5, 75), (12, 100), (30, 200), (600, 200), (-3, 50)],
    )
    def test_widening(self, waited, expected):
        assert search_range(waited) == expected


class TestStreakBonus:
    @pytest.mark.parametrize(
        ("streak", "bonus"),
        [(0, 1.0), (1, 1.0), (2, 1.1), (3, 1.2), (4, 1.3), (9, 1.3)],
    )
    def test_multiplier(self, streak, bonus):
        assert streak_bonus(streak) == bonus
