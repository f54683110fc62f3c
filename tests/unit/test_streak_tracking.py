"""
Unit tests for streak helpers and the mastery projection.
"""

from datetime import date, datetime, timedelta, timezone

import pytest

from vocab_srs.enums.learning import CardState, MasteryLevel
from vocab_srs.services.learning.mastery import classify_mastery
from vocab_srs.services.learning.streak_tracking import (
    current_streak,
    is_consecutive_day,
    is_new_day,
    next_streak,
    review_date,
)

TODAY = date(2024, 3, 1)
YESTERDAY = TODAY - timedelta(days=1)


class TestNextStreak:
    def test_first_review(self):
        assert next_streak(0, None, TODAY) == 1

    def test_same_day(self):
        assert next_streak(5, TODAY, TODAY) == 5

    def test_consecutive_day(self):
        assert next_streak(5, YESTERDAY, TODAY) == 6

    def test_after_gap(self):
        assert next_streak(5, TODAY - timedelta(days=3), TODAY) == 1


class TestCurrentStreak:
    def test_never_reviewed(self):
        assert current_streak(0, None, TODAY) == 0

    @pytest.mark.parametrize("last", [TODAY, YESTERDAY])
    def test_alive(self, last):
        assert current_streak(4, last, TODAY) == 4

    def test_broken(self):
        assert current_streak(4, TODAY - timedelta(days=2), TODAY) == 0


class TestDayHelpers:
    def test_is_consecutive_day(self):
        assert is_consecutive_day(YESTERDAY, TODAY)
        assert not is_consecutive_day(TODAY, TODAY)
        assert not is_consecutive_day(None, TODAY)

    def test_is_new_day(self):
        assert is_new_day(None, TODAY)
        assert is_new_day(YESTERDAY, TODAY)
        assert not is_new_day(TODAY, TODAY)

    def test_review_date_converts_to_utc(self):
        tokyo = timezone(timedelta(hours=9))

        assert review_date(datetime(2024, 3, 2, 8, 0, tzinfo=tokyo)) == TODAY


class TestClassifyMastery:
    @pytest.mark.parametrize(
        "state,stability,expected",
        [
            (CardState.NEW, 0.0, MasteryLevel.NEW),
            (CardState.LEARNING, 50.0, MasteryLevel.LEARNING),
            (CardState.RELEARNING, 50.0, MasteryLevel.LEARNING),
            (CardState.REVIEW, 21.0, MasteryLevel.LEARNING),
            (CardState.REVIEW, 21.5, MasteryLevel.MASTERED),
        ],
    )
    def test_default_threshold(self, state, stability, expected):
        assert classify_mastery(state, stability) == expected

    def test_custom_threshold(self):
        assert classify_mastery(CardState.REVIEW, 8.0, threshold_days=7.0) == MasteryLevel.MASTERED
