"""
Unit tests for the scheduling state machine.

Covers the short-term (minute steps) and long-term (day intervals) regimes,
counter bookkeeping, and contract violations.
"""

import random
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from vocab_srs.config.scheduler import LearningSteps, SchedulerParameters
from vocab_srs.enums.learning import CardState, Rating
from vocab_srs.exceptions import ContractViolationError
from vocab_srs.services.learning.card_state import create_initial_record
from vocab_srs.services.learning.fuzz import IntervalFuzzer
from vocab_srs.services.learning.transitions import (
    LEARNING_AGAIN_STABILITY_FACTOR,
    TransitionFunction,
    elapsed_whole_days,
)


@pytest.fixture
def transitions():
    return TransitionFunction(fuzzer=IntervalFuzzer(rng=random.Random(42)))


@pytest.fixture
def learning_record(new_record, now):
    """Item one Good step into learning."""
    return replace(
        new_record,
        state=CardState.LEARNING,
        difficulty=4.93,
        stability=2.4,
        learning_step=1,
        last_review_at=now - timedelta(minutes=10),
        due_at=now,
        reps=1,
        total_reviews=1,
        correct_reviews=1,
        version=1,
    )


@pytest.fixture
def review_record(new_record, now):
    """Graduated item last reviewed 10 days ago."""
    return replace(
        new_record,
        state=CardState.REVIEW,
        difficulty=5.0,
        stability=10.0,
        is_learning_phase=False,
        scheduled_days=10,
        last_review_at=now - timedelta(days=10),
        due_at=now,
        reps=4,
        total_reviews=4,
        correct_reviews=4,
        version=4,
    )


class TestNewItem:
    """First review of a never-seen item."""

    def test_good_enters_learning_step_one(self, transitions, new_record, now):
        result = transitions.apply(new_record, Rating.GOOD, now)

        assert result.state == CardState.LEARNING
        assert result.is_learning_phase is True
        assert result.learning_step == 1
        assert result.difficulty == pytest.approx(4.93)
        assert result.stability == pytest.approx(2.4)
        assert result.due_at == now + timedelta(minutes=10)
        assert result.scheduled_days == 0

    def test_again_restarts_steps_without_halving(self, transitions, new_record, now):
        result = transitions.apply(new_record, Rating.AGAIN, now)

        assert result.state == CardState.LEARNING
        assert result.learning_step == 0
        assert result.stability == pytest.approx(0.4)
        assert result.due_at == now + timedelta(minutes=1)

    def test_hard_stays_on_step_zero(self, transitions, new_record, now):
        result = transitions.apply(new_record, Rating.HARD, now)

        assert result.state == CardState.LEARNING
        assert result.learning_step == 0
        assert result.stability == pytest.approx(0.6)
        assert result.due_at == now + timedelta(minutes=5)

    def test_easy_graduates_immediately(self, transitions, new_record, now):
        result = transitions.apply(new_record, Rating.EASY, now)

        assert result.state == CardState.REVIEW
        assert result.is_learning_phase is False
        assert result.learning_step == 0
        assert result.stability == pytest.approx(5.8)
        assert result.difficulty == pytest.approx(3.99)
        # next_interval(5.8) == 6, fuzzed by ±1 day
        assert 5 <= result.scheduled_days <= 7
        assert result.due_at == now + timedelta(days=result.scheduled_days)

    def test_two_goods_graduate(self, transitions, new_record, now):
        first = transitions.apply(new_record, Rating.GOOD, now)
        second = transitions.apply(first, Rating.GOOD, first.due_at)

        assert second.state == CardState.REVIEW
        assert second.is_learning_phase is False
        # next_interval(2.4) == 2; intervals of 2 days are not fuzzed
        assert second.scheduled_days == 2
        assert second.due_at == first.due_at + timedelta(days=2)
        assert second.stability == pytest.approx(2.4)

    def test_hard_alone_never_graduates(self, transitions, new_record, now):
        record = new_record
        for minute in range(10):
            record = transitions.apply(record, Rating.HARD, now + timedelta(minutes=minute * 5))

        assert record.state == CardState.LEARNING
        assert record.learning_step == 0

    def test_graduation_threshold_is_configurable(self, new_record, now):
        transitions = TransitionFunction(
            SchedulerParameters(graduation_steps=3),
            fuzzer=IntervalFuzzer(rng=random.Random(0)),
        )

        record = new_record
        for _ in range(2):
            record = transitions.apply(record, Rating.GOOD, now)
        assert record.state == CardState.LEARNING
        assert record.learning_step == 2

        record = transitions.apply(record, Rating.GOOD, now)
        assert record.state == CardState.REVIEW


class TestLearningPhase:
    """Ratings during short-term steps."""

    def test_again_halves_stability(self, transitions, learning_record, now):
        result = transitions.apply(learning_record, Rating.AGAIN, now)

        assert result.state == CardState.LEARNING
        assert result.learning_step == 0
        assert result.stability == pytest.approx(2.4 * LEARNING_AGAIN_STABILITY_FACTOR)
        assert result.due_at == now + timedelta(minutes=1)

    def test_again_stability_floor(self, transitions, learning_record, now):
        record = replace(learning_record, stability=0.15)

        result = transitions.apply(record, Rating.AGAIN, now)

        assert result.stability == pytest.approx(0.1)

    def test_hard_keeps_step(self, transitions, learning_record, now):
        result = transitions.apply(learning_record, Rating.HARD, now)

        assert result.state == CardState.LEARNING
        assert result.learning_step == 1
        assert result.due_at == now + timedelta(minutes=5)
        assert result.stability == learning_record.stability

    def test_good_graduates_at_threshold(self, transitions, learning_record, now):
        result = transitions.apply(learning_record, Rating.GOOD, now)

        assert result.state == CardState.REVIEW
        assert result.stability == pytest.approx(2.4)
        assert result.scheduled_days == 2

    def test_easy_boosts_stability(self, transitions, learning_record, now):
        result = transitions.apply(learning_record, Rating.EASY, now)

        assert result.state == CardState.REVIEW
        assert result.stability == pytest.approx(3.6)
        assert result.difficulty < learning_record.difficulty
        assert 3 <= result.scheduled_days <= 5

    def test_easy_boost_floor_is_one_day(self, transitions, learning_record, now):
        record = replace(learning_record, stability=0.2)

        result = transitions.apply(record, Rating.EASY, now)

        assert result.stability == pytest.approx(1.0)

    def test_custom_step_table(self, new_record, now):
        transitions = TransitionFunction(
            SchedulerParameters(learning_step_minutes=LearningSteps(again=2, good=15)),
        )

        result = transitions.apply(new_record, Rating.GOOD, now)

        assert result.due_at == now + timedelta(minutes=15)


class TestReviewPhase:
    """Ratings of graduated items."""

    def test_again_lapses_into_relearning(self, transitions, new_record, now):
        """A stable item rated Again relearns from the first step."""
        record = replace(
            new_record,
            state=CardState.REVIEW,
            difficulty=5.0,
            stability=30.0,
            is_learning_phase=False,
            last_review_at=now - timedelta(days=30),
            due_at=now,
            version=6,
        )

        result = transitions.apply(record, Rating.AGAIN, now)

        assert result.state == CardState.RELEARNING
        assert result.is_learning_phase is True
        assert result.learning_step == 0
        assert now <= result.due_at <= now + timedelta(minutes=1)
        assert 0.1 <= result.stability < 30.0
        assert result.difficulty > record.difficulty
        assert result.lapses == record.lapses + 1

    def test_relearning_again_stays_relearning(self, transitions, review_record, now):
        lapsed = transitions.apply(review_record, Rating.AGAIN, now)

        result = transitions.apply(lapsed, Rating.AGAIN, now + timedelta(minutes=1))

        assert result.state == CardState.RELEARNING
        assert result.stability <= lapsed.stability

    def test_relearning_recovers_to_review(self, transitions, review_record, now):
        record = transitions.apply(review_record, Rating.AGAIN, now)
        record = transitions.apply(record, Rating.GOOD, now + timedelta(minutes=1))
        assert record.state == CardState.RELEARNING

        record = transitions.apply(record, Rating.GOOD, now + timedelta(minutes=11))
        assert record.state == CardState.REVIEW
        assert record.is_learning_phase is False

    def test_good_grows_interval(self, transitions, review_record, now):
        result = transitions.apply(review_record, Rating.GOOD, now)

        assert result.state == CardState.REVIEW
        assert result.stability > review_record.stability
        assert result.scheduled_days > review_record.scheduled_days
        assert result.due_at == now + timedelta(days=result.scheduled_days)
        assert result.elapsed_days == 10

    def test_easy_beats_good_beats_hard(self, review_record, now):
        stabilities = {}
        for rating in (Rating.HARD, Rating.GOOD, Rating.EASY):
            transitions = TransitionFunction(fuzzer=IntervalFuzzer(rng=random.Random(1)))
            stabilities[rating] = transitions.apply(review_record, rating, now).stability

        assert stabilities[Rating.HARD] < stabilities[Rating.GOOD] < stabilities[Rating.EASY]

    def test_interval_capped_at_maximum(self, review_record, now):
        transitions = TransitionFunction(
            SchedulerParameters(maximum_interval_days=20),
            fuzzer=IntervalFuzzer(rng=random.Random(0)),
        )
        record = replace(review_record, stability=18.0, last_review_at=now - timedelta(days=60))

        result = transitions.apply(record, Rating.EASY, now)

        assert result.scheduled_days <= 20
        assert result.stability <= 20


class TestBookkeeping:
    """Counters, versions and total replacement."""

    @pytest.mark.parametrize(
        "rating,reps,lapses,correct",
        [
            (Rating.AGAIN, 0, 1, 0),
            (Rating.HARD, 1, 0, 0),
            (Rating.GOOD, 1, 0, 1),
            (Rating.EASY, 1, 0, 1),
        ],
    )
    def test_counters(self, transitions, new_record, now, rating, reps, lapses, correct):
        result = transitions.apply(new_record, rating, now)

        assert result.reps == reps
        assert result.lapses == lapses
        assert result.correct_reviews == correct
        assert result.total_reviews == 1

    def test_version_and_review_time(self, transitions, review_record, now):
        result = transitions.apply(review_record, Rating.GOOD, now)

        assert result.version == review_record.version + 1
        assert result.last_review_at == now
        assert result.retrievability == 1.0

    def test_input_record_untouched(self, transitions, review_record, now):
        snapshot = replace(review_record)

        transitions.apply(review_record, Rating.AGAIN, now)

        assert review_record == snapshot

    def test_identity_carried_over(self, transitions, new_record, now):
        result = transitions.apply(new_record, Rating.GOOD, now)

        assert (result.user_id, result.item_id, result.collection_id) == (
            new_record.user_id,
            new_record.item_id,
            new_record.collection_id,
        )


class TestContractViolations:
    """Malformed input is rejected, never coerced."""

    @pytest.mark.parametrize("rating", [0, 5, -1, True, "3"])
    def test_invalid_rating(self, transitions, new_record, now, rating):
        with pytest.raises(ContractViolationError):
            transitions.apply(new_record, rating, now)

    def test_negative_stability(self, transitions, review_record, now):
        with pytest.raises(ContractViolationError):
            transitions.apply(replace(review_record, stability=-1.0), Rating.GOOD, now)

    def test_review_state_in_learning_phase(self, transitions, review_record, now):
        with pytest.raises(ContractViolationError):
            transitions.apply(replace(review_record, is_learning_phase=True), Rating.GOOD, now)

    def test_learning_state_outside_learning_phase(self, transitions, learning_record, now):
        with pytest.raises(ContractViolationError):
            transitions.apply(
                replace(learning_record, is_learning_phase=False), Rating.GOOD, now
            )

    def test_difficulty_out_of_range(self, transitions, review_record, now):
        with pytest.raises(ContractViolationError):
            transitions.apply(replace(review_record, difficulty=11.0), Rating.GOOD, now)

    def test_naive_review_time(self, transitions, new_record):
        with pytest.raises(ContractViolationError):
            transitions.apply(new_record, Rating.GOOD, datetime(2024, 1, 1))

    def test_integer_ratings_accepted(self, transitions, new_record, now):
        result = transitions.apply(new_record, 3, now)

        assert result.state == CardState.LEARNING


class TestElapsedDays:
    """Tests for elapsed_whole_days helper."""

    def test_never_reviewed(self, now):
        assert elapsed_whole_days(None, now) == 0

    def test_floors_partial_days(self, now):
        assert elapsed_whole_days(now - timedelta(days=2, hours=23), now) == 2

    def test_future_review_is_zero(self, now):
        assert elapsed_whole_days(now + timedelta(hours=5), now) == 0


class TestReachableRecordProperties:
    """Random walks through the state machine stay within bounds."""

    def test_random_walk(self):
        rng = random.Random(2024)
        transitions = TransitionFunction(fuzzer=IntervalFuzzer(rng=random.Random(7)))
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)

        for item in range(20):
            record = create_initial_record("u", f"w{item}", "b", start)
            now = start
            for _ in range(40):
                rating = Rating(rng.randint(1, 4))
                result = transitions.apply(record, rating, now)

                assert result.due_at >= now
                assert 1.0 <= result.difficulty <= 10.0
                assert result.stability >= 0.1
                assert result.is_learning_phase == (result.state != CardState.REVIEW)

                record = result
                now = max(now, result.due_at) + timedelta(minutes=rng.randint(0, 600))
