"""
FSRS (Free Spaced Repetition Scheduler) Scheduling Engine

This module is the entry point of the engine. It combines the memory model,
the state machine and the interval fuzzer behind one scheduler object.
The model is FSRS-4.5. It tracks how hard each item is and how stable its
memory is, and schedules each review just before recall is likely to fail.

Key Concepts:
- Stability (S): Days until recall probability decays to the target retention
- Difficulty (D): Inherent difficulty of the item (1-10)
- Retrievability (R): Current recall probability based on elapsed time

FSRS State Machine:
    NEW → LEARNING → REVIEW ↔ RELEARNING

Usage:
    from vocab_srs.services.learning.fsrs import create_scheduler

    scheduler = create_scheduler(retention=0.9, max_interval=365)

    # Review an item
    new_record, log = scheduler.review(record, Rating.GOOD)

    # Show the learner what each choice costs
    labels = scheduler.preview_all(record)  # {Rating.AGAIN: "1m", ...}
"""

import logging
import math
import random
from datetime import datetime, timedelta, timezone
from typing import Optional

from vocab_srs.config.scheduler import SchedulerParameters
from vocab_srs.enums.learning import Rating
from vocab_srs.services.learning.card_state import (
    ReviewLog,
    SchedulingRecord,
    validate_rating,
)
from vocab_srs.services.learning.fuzz import IntervalFuzzer
from vocab_srs.services.learning.memory_model import MemoryModel
from vocab_srs.services.learning.transitions import (
    TransitionFunction,
    elapsed_whole_days,
)

logger = logging.getLogger(__name__)


class FSRSScheduler:
    """
    FSRS scheduler.

    Provides a clean interface to the memory model and state machine for
    scheduling vocabulary reviews. Holds no per-item state; the only shared
    mutable state is the fuzzer's random source.

    Attributes:
        parameters: Engine configuration
        model: Memory model built from the parameters
        fuzzer: Interval fuzzer used by review()
    """

    def __init__(
        self,
        parameters: Optional[SchedulerParameters] = None,
        fuzzer: Optional[IntervalFuzzer] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            parameters: Engine configuration (default: SchedulerParameters())
            fuzzer: Interval fuzzer (default: entropy-seeded, using the
                configured fuzz fraction)
        """
        self.parameters = parameters or SchedulerParameters()
        self.model = MemoryModel(self.parameters)
        self.fuzzer = fuzzer or IntervalFuzzer(self.parameters.fuzz_fraction)
        self._transitions = TransitionFunction(
            parameters=self.parameters,
            model=self.model,
            fuzzer=self.fuzzer,
        )

    @property
    def desired_retention(self) -> float:
        return self.parameters.request_retention

    @property
    def maximum_interval(self) -> int:
        return self.parameters.maximum_interval_days

    def review(
        self,
        record: SchedulingRecord,
        rating: Rating,
        review_time: Optional[datetime] = None,
        review_time_ms: Optional[int] = None,
    ) -> tuple[SchedulingRecord, ReviewLog]:
        """
        Process a review and compute the next scheduling record.

        Dispatches to the short-term regime while the item is in its
        learning phase and to the long-term regime once it has graduated.

        State Transitions:
            - New → Learning: First review rated Again, Hard or Good
            - New → Review: First review rated Easy
            - Learning → Review: Graduation after enough Good steps, or Easy
            - Review → Review: Successful recall, interval grows
            - Review → Relearning: Lapse (Again rating)
            - Relearning → Review: Recovery after relearning steps

        Args:
            record: Current scheduling record of the item. Not modified.
            rating: Learner's self-assessment:
                - Rating.AGAIN (1): Forgotten, back to the first step
                - Rating.HARD (2): Recalled with significant difficulty
                - Rating.GOOD (3): Recalled with moderate effort
                - Rating.EASY (4): Recalled effortlessly
            review_time: Timestamp of the review. Defaults to current UTC time.
                Pass explicit time for batch processing or testing.
            review_time_ms: Time the learner spent answering, for the log

        Returns:
            Tuple containing:
                - SchedulingRecord: Complete next record
                - ReviewLog: Before/after snapshot of the review

        Raises:
            ContractViolationError: For a rating outside 1-4 or a malformed record

        Example:
            >>> scheduler = FSRSScheduler()
            >>> record = create_initial_record("u1", "w1", "b1")
            >>> new_record, log = scheduler.review(record, Rating.GOOD)
            >>> new_record.state
            <CardState.LEARNING: 'learning'>
        """
        review_time = review_time or datetime.now(timezone.utc)
        rating = validate_rating(rating)

        new_record = self._transitions.apply(record, rating, review_time)

        log = ReviewLog(
            user_id=record.user_id,
            item_id=record.item_id,
            collection_id=record.collection_id,
            rating=rating,
            state_before=record.state,
            state_after=new_record.state,
            difficulty_before=record.difficulty,
            difficulty_after=new_record.difficulty,
            stability_before=record.stability,
            stability_after=new_record.stability,
            scheduled_days=new_record.scheduled_days,
            elapsed_days=new_record.elapsed_days,
            reviewed_at=review_time,
            review_time_ms=review_time_ms,
        )

        return new_record, log

    def preview_outcomes(
        self,
        record: SchedulingRecord,
        now: Optional[datetime] = None,
    ) -> dict[Rating, SchedulingRecord]:
        """
        Compute the next record for every rating without committing.

        Each rating is applied with a fork of the fuzzer, so the shared
        random source is not advanced and a following review() with the
        same record, rating and time produces the same record.
        """
        now = now or datetime.now(timezone.utc)
        return {
            rating: self._transitions.apply(record, rating, now, fuzzer=self.fuzzer.fork())
            for rating in Rating
        }

    def preview_all(
        self,
        record: SchedulingRecord,
        now: Optional[datetime] = None,
    ) -> dict[Rating, str]:
        """
        Human-readable delay for each rating.

        Outcomes still in the learning phase are labelled in minutes or
        hours ("10m", "1h"); graduated outcomes in days, weeks, months or
        years ("3d", "2w", "4mo", "1y").

        Returns:
            Dict mapping each Rating to its label
        """
        now = now or datetime.now(timezone.utc)
        return {
            rating: format_interval_label(outcome, now)
            for rating, outcome in self.preview_outcomes(record, now).items()
        }

    def get_retrievability(
        self,
        record: SchedulingRecord,
        now: Optional[datetime] = None,
    ) -> float:
        """
        Get current recall probability for an item.

        Args:
            record: Current record with stability and last_review_at
            now: Reference time (default: current UTC time)

        Returns:
            Probability of recall (0.0 to 1.0). New items return 1.0.
        """
        if record.is_new() or record.last_review_at is None:
            return 1.0

        now = now or datetime.now(timezone.utc)
        elapsed = elapsed_whole_days(record.last_review_at, now)
        return self.model.retrievability(elapsed, record.stability)


def format_interval_label(outcome: SchedulingRecord, now: datetime) -> str:
    """Label the delay between ``now`` and the outcome's due time."""
    if outcome.is_learning_phase:
        minutes = max(0, round((outcome.due_at - now).total_seconds() / 60))
        if minutes < 60:
            return f"{minutes}m"
        return f"{round(minutes / 60)}h"

    days = outcome.scheduled_days
    if days < 7:
        return f"{days}d"
    if days < 30:
        return f"{round(days / 7)}w"
    if days < 365:
        return f"{round(days / 30)}mo"
    return f"{round(days / 365)}y"


def create_scheduler(
    retention: Optional[float] = None,
    max_interval: Optional[int] = None,
    rng: Optional[random.Random] = None,
    parameters: Optional[SchedulerParameters] = None,
) -> FSRSScheduler:
    """
    Create a configured FSRS scheduler.

    Args:
        retention: Target retention probability (overrides ``parameters``)
        max_interval: Maximum interval in days (overrides ``parameters``)
        rng: Random source for interval fuzzing; pass a seeded
            ``random.Random`` for reproducible schedules
        parameters: Base configuration (default: SchedulerParameters())

    Returns:
        Configured FSRSScheduler instance
    """
    parameters = parameters or SchedulerParameters()
    overrides = {}
    if retention is not None:
        overrides["request_retention"] = retention
    if max_interval is not None:
        overrides["maximum_interval_days"] = max_interval
    if overrides:
        parameters = SchedulerParameters(**{**parameters.model_dump(), **overrides})

    fuzzer = IntervalFuzzer(fuzz_fraction=parameters.fuzz_fraction, rng=rng)
    logger.debug(
        f"Created scheduler: retention={parameters.request_retention}, "
        f"max_interval={parameters.maximum_interval_days}"
    )
    return FSRSScheduler(parameters=parameters, fuzzer=fuzzer)


def get_review_forecast(
    records: list[SchedulingRecord],
    as_of: Optional[datetime] = None,
) -> dict[str, int]:
    """
    Get forecast of upcoming reviews.

    Args:
        records: List of scheduling records
        as_of: Reference time (default: now)

    Returns:
        Dict with counts: overdue, today, tomorrow, this_week, later
    """
    as_of = as_of or datetime.now(timezone.utc)
    today_start = as_of.replace(hour=0, minute=0, second=0, microsecond=0)
    tomorrow_start = today_start + timedelta(days=1)
    week_end = today_start + timedelta(days=7)

    forecast = {
        "overdue": 0,
        "today": 0,
        "tomorrow": 0,
        "this_week": 0,
        "later": 0,
    }

    for record in records:
        if record.is_new():
            continue

        if record.due_at < today_start:
            forecast["overdue"] += 1
        elif record.due_at < tomorrow_start:
            forecast["today"] += 1
        elif record.due_at < tomorrow_start + timedelta(days=1):
            forecast["tomorrow"] += 1
        elif record.due_at < week_end:
            forecast["this_week"] += 1
        else:
            forecast["later"] += 1

    return forecast


def format_next_review(
    due_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> str:
    """
    Describe when an item is next due, relative to ``now``.

    Returns:
        "Not scheduled", "Now", "5m", "3h", "Tomorrow", "4 days",
        "2 weeks", "3 months" or "2 years"
    """
    if due_at is None:
        return "Not scheduled"

    now = now or datetime.now(timezone.utc)
    diff_minutes = (due_at - now).total_seconds() / 60
    if diff_minutes <= 0:
        return "Now"
    if diff_minutes < 60:
        return f"{math.ceil(diff_minutes)}m"

    diff_hours = diff_minutes / 60
    if diff_hours < 24:
        return f"{math.floor(diff_hours)}h"

    diff_days = math.floor(diff_hours / 24)
    if diff_days == 1:
        return "Tomorrow"
    if diff_days < 7:
        return f"{diff_days} days"
    if diff_days < 30:
        return f"{math.floor(diff_days / 7)} weeks"
    if diff_days < 365:
        return f"{math.floor(diff_days / 30)} months"
    return f"{math.floor(diff_days / 365)} years"
