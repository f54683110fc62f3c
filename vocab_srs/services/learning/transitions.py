"""
Scheduling State Machine

Applies one rating to one record and returns the complete next record.

State Machine:
    NEW → LEARNING ⇄ RELEARNING
    LEARNING → REVIEW
    REVIEW → REVIEW | RELEARNING

Two regimes:
- Short-term (new, learning, relearning): minute-granularity steps from the
  step table. Good advances the step, Hard repeats it, Again resets it, Easy
  graduates immediately. Reaching ``graduation_steps`` graduates to REVIEW.
- Long-term (review): day-granularity intervals from the memory model,
  spread by the interval fuzzer. Again lapses the item into RELEARNING.

The learning-phase Again rule (halve stability) is a tuning constant, not a
product of the memory model's failure formula.
"""

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Optional

from vocab_srs.config.scheduler import SchedulerParameters
from vocab_srs.enums.learning import CardState, Rating
from vocab_srs.exceptions import ContractViolationError
from vocab_srs.services.learning.card_state import (
    STABILITY_MIN,
    SchedulingRecord,
    validate_rating,
    validate_record,
)
from vocab_srs.services.learning.fuzz import IntervalFuzzer
from vocab_srs.services.learning.memory_model import MemoryModel

logger = logging.getLogger(__name__)

# Stability multiplier for Again during short-term steps
LEARNING_AGAIN_STABILITY_FACTOR = 0.5

# Stability boost and floor for Easy during short-term steps
LEARNING_EASY_STABILITY_FACTOR = 1.5
LEARNING_EASY_STABILITY_FLOOR = 1.0

SECONDS_PER_DAY = 86400


def elapsed_whole_days(last_review_at: Optional[datetime], now: datetime) -> int:
    """Whole days since the last review (floor, never negative)."""
    if last_review_at is None:
        return 0
    seconds = (now - last_review_at).total_seconds()
    return max(0, math.floor(seconds / SECONDS_PER_DAY))


class TransitionFunction:
    """
    Pure next-record computation.

    The only side effect is drawing from the fuzzer's random source when
    an item is scheduled in days.
    """

    def __init__(
        self,
        parameters: Optional[SchedulerParameters] = None,
        model: Optional[MemoryModel] = None,
        fuzzer: Optional[IntervalFuzzer] = None,
    ):
        self.parameters = parameters or SchedulerParameters()
        self.model = model or MemoryModel(self.parameters)
        self.fuzzer = fuzzer or IntervalFuzzer(self.parameters.fuzz_fraction)

    def apply(
        self,
        record: SchedulingRecord,
        rating: Rating,
        now: datetime,
        fuzzer: Optional[IntervalFuzzer] = None,
    ) -> SchedulingRecord:
        """
        Compute the record that results from rating ``record`` at ``now``.

        Args:
            record: Current record (not modified)
            rating: Learner rating, 1-4
            now: Review time (timezone-aware)
            fuzzer: Fuzzer to draw from instead of the default one

        Returns:
            A complete new SchedulingRecord with version + 1

        Raises:
            ContractViolationError: For a rating outside 1-4 or a malformed record
        """
        rating = validate_rating(rating)
        validate_record(record)
        if now.tzinfo is None:
            raise ContractViolationError("Review time must be timezone-aware")

        fuzzer = fuzzer or self.fuzzer

        if record.is_learning_phase:
            scheduled = self._short_term(record, rating, now, fuzzer)
        else:
            scheduled = self._long_term(record, rating, now, fuzzer)

        next_record = replace(
            scheduled,
            elapsed_days=elapsed_whole_days(record.last_review_at, now),
            retrievability=1.0,
            last_review_at=now,
            reps=record.reps + (1 if rating >= Rating.HARD else 0),
            lapses=record.lapses + (1 if rating == Rating.AGAIN else 0),
            total_reviews=record.total_reviews + 1,
            correct_reviews=record.correct_reviews + (1 if rating >= Rating.GOOD else 0),
            version=record.version + 1,
        )

        logger.debug(
            f"Transition {record.item_id}: {record.state.value} -> {next_record.state.value} "
            f"(rating={rating.value}, D={next_record.difficulty:.2f}, "
            f"S={next_record.stability:.2f}, due={next_record.due_at.isoformat()})"
        )
        return next_record

    # ------------------------------------------------------------------
    # Short-term regime
    # ------------------------------------------------------------------

    def _short_term(
        self,
        record: SchedulingRecord,
        rating: Rating,
        now: datetime,
        fuzzer: IntervalFuzzer,
    ) -> SchedulingRecord:
        model = self.model

        if record.state == CardState.NEW:
            difficulty = model.init_difficulty(rating)
            stability = model.init_stability(rating)
            stay_state = CardState.LEARNING

            if rating == Rating.EASY:
                return self._graduate(record, difficulty, stability, now, fuzzer)
            if rating == Rating.GOOD:
                step = 1
            else:
                step = 0
        else:
            difficulty = record.difficulty
            stability = record.stability
            stay_state = record.state

            if rating == Rating.EASY:
                stability = min(
                    max(stability * LEARNING_EASY_STABILITY_FACTOR, LEARNING_EASY_STABILITY_FLOOR),
                    self.parameters.maximum_interval_days,
                )
                difficulty = model.next_difficulty(difficulty, rating)
                return self._graduate(record, difficulty, stability, now, fuzzer)
            if rating == Rating.AGAIN:
                stability = max(STABILITY_MIN, stability * LEARNING_AGAIN_STABILITY_FACTOR)
                step = 0
            elif rating == Rating.GOOD:
                step = record.learning_step + 1
            else:
                step = record.learning_step

        if step >= self.parameters.graduation_steps:
            difficulty = model.next_difficulty(difficulty, rating)
            return self._graduate(record, difficulty, stability, now, fuzzer)

        minutes = self.parameters.learning_step_minutes.for_rating(rating)
        return replace(
            record,
            state=stay_state,
            difficulty=difficulty,
            stability=stability,
            learning_step=step,
            is_learning_phase=True,
            scheduled_days=0,
            due_at=now + timedelta(minutes=minutes),
        )

    def _graduate(
        self,
        record: SchedulingRecord,
        difficulty: float,
        stability: float,
        now: datetime,
        fuzzer: IntervalFuzzer,
    ) -> SchedulingRecord:
        days = self._schedule_days(stability, fuzzer)
        return replace(
            record,
            state=CardState.REVIEW,
            difficulty=difficulty,
            stability=stability,
            learning_step=0,
            is_learning_phase=False,
            scheduled_days=days,
            due_at=now + timedelta(days=days),
        )

    # ------------------------------------------------------------------
    # Long-term regime
    # ------------------------------------------------------------------

    def _long_term(
        self,
        record: SchedulingRecord,
        rating: Rating,
        now: datetime,
        fuzzer: IntervalFuzzer,
    ) -> SchedulingRecord:
        model = self.model
        elapsed = elapsed_whole_days(record.last_review_at, now)
        retrievability = model.retrievability(elapsed, record.stability)
        difficulty = model.next_difficulty(record.difficulty, rating)

        if rating == Rating.AGAIN:
            stability = model.next_stability_on_failure(
                record.difficulty, record.stability, retrievability
            )
            minutes = self.parameters.learning_step_minutes.for_rating(Rating.AGAIN)
            return replace(
                record,
                state=CardState.RELEARNING,
                difficulty=difficulty,
                stability=stability,
                learning_step=0,
                is_learning_phase=True,
                scheduled_days=0,
                due_at=now + timedelta(minutes=minutes),
            )

        stability = model.next_stability_on_success(
            record.difficulty, record.stability, retrievability, rating
        )
        days = self._schedule_days(stability, fuzzer)
        return replace(
            record,
            state=CardState.REVIEW,
            difficulty=difficulty,
            stability=stability,
            learning_step=0,
            is_learning_phase=False,
            scheduled_days=days,
            due_at=now + timedelta(days=days),
        )

    def _schedule_days(self, stability: float, fuzzer: IntervalFuzzer) -> int:
        """Capped interval for ``stability``, fuzzed once, still capped."""
        maximum = self.parameters.maximum_interval_days
        interval = min(max(1, self.model.next_interval(stability)), maximum)
        return min(fuzzer.fuzz(interval), maximum)
