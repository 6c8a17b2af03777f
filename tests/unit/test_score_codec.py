"""Tests for the packed match-progress format."""

import pytest

from wordduel.battle.score_codec import (
    MatchProgress,
    decode_points,
    decode_progress,
    encode_progress,
)


class TestEncode:
    def test_unfinished(self):
        assert encode_progress(MatchProgress(points=7, questions_answered=4)) == 407

    def test_finished_adds_flag(self):
        assert encode_progress(MatchProgress(points=10, questions_answered=10, finished=True)) == 11010

    def test_zero(self):
        assert encode_progress(MatchProgress()) == 0

    def test_field_overflow_rejected(self):
        with pytest.raises(ValueError, match="points"):
            MatchProgress(points=100)
        with pytest.raises(ValueError, match="questions_answered"):
            MatchProgress(questions_answered=-1)


class TestDecode:
    def test_finished_value(self):
        progress = decode_progress(10509)
        assert progress == MatchProgress(points=9, questions_answered=5, finished=True)

    def test_unfinished_value(self):
        progress = decode_progress(812)
        assert progress.points == 12
        assert progress.questions_answered == 8
        assert progress.finished is False

    def test_negative_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            decode_progress(-1)

    def test_answered_overflow_rejected(self):
        # 99 answered is the last value that fits below the finished flag
        with pytest.raises(ValueError):
            decode_progress(10000 + 100 * 100)

    def test_points_only(self):
        assert decode_points(10509) == 9
        assert decode_points(407) == 7
        assert decode_points(0) == 0
