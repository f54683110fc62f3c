"""
Book Progress Aggregation

Keeps a book's progress aggregate consistent with its scheduling records.

Two ways to the same counters:
- recompute(): from scratch over the whole record pool (idempotent)
- apply_transition(): incremental, from one record's before/after snapshots

For any sequence of reviews, applying every transition incrementally gives
the same mastered/learning/new counts and review totals as recomputing from
the final pool. Both paths classify items with classify_mastery.

Streak and daily counters are not derivable from the pool; record_review()
maintains them from the review timestamps.

Usage:
    from vocab_srs.services.learning.progress_aggregator import ProgressAggregator

    aggregator = ProgressAggregator()
    progress = aggregator.apply_transition(progress, before, after, total_items)
    progress = aggregator.record_review(progress, reviewed_at, is_new_word=True)
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Iterable, Optional

from vocab_srs.enums.learning import MasteryLevel
from vocab_srs.models.learning import BookProgress
from vocab_srs.services.learning.card_state import SchedulingRecord
from vocab_srs.services.learning.mastery import (
    DEFAULT_MASTERY_THRESHOLD_DAYS,
    classify_mastery,
)
from vocab_srs.services.learning.streak_tracking import (
    is_new_day,
    next_streak,
    review_date,
)

logger = logging.getLogger(__name__)


def accuracy_percent(correct_reviews: int, total_reviews: int) -> float:
    """Share of reviews rated Good or Easy, in percent with one decimal."""
    if total_reviews <= 0:
        return 0.0
    return round(100.0 * correct_reviews / total_reviews, 1)


class ProgressAggregator:
    """
    Derives book progress counters from scheduling records.

    Attributes:
        mastery_threshold_days: Stability a review item must exceed to count
            as mastered
    """

    def __init__(self, mastery_threshold_days: float = DEFAULT_MASTERY_THRESHOLD_DAYS):
        self.mastery_threshold_days = mastery_threshold_days

    def classify(self, record: Optional[SchedulingRecord]) -> MasteryLevel:
        """Mastery level of a record; a missing record counts as NEW."""
        if record is None:
            return MasteryLevel.NEW
        return classify_mastery(record.state, record.stability, self.mastery_threshold_days)

    def recompute(
        self,
        aggregate: BookProgress,
        records: Iterable[SchedulingRecord],
        total_items: int,
    ) -> BookProgress:
        """
        Rebuild the derived counters from the full record pool.

        Args:
            aggregate: Current aggregate; streak, daily counters and limits
                are carried over unchanged
            records: Every scheduling record of the user × collection
            total_items: Number of items in the collection

        Returns:
            New BookProgress with mastered/learning/new counts, review totals
            and accuracy derived from ``records``
        """
        levels: Counter = Counter()
        total_reviews = 0
        correct_reviews = 0
        for record in records:
            levels[self.classify(record)] += 1
            total_reviews += record.total_reviews
            correct_reviews += record.correct_reviews

        mastered = levels[MasteryLevel.MASTERED]
        learning = levels[MasteryLevel.LEARNING]

        return aggregate.model_copy(
            update={
                "mastered_count": mastered,
                "learning_count": learning,
                "new_count": max(0, total_items - mastered - learning),
                "total_reviews": total_reviews,
                "correct_reviews": correct_reviews,
                "accuracy_percent": accuracy_percent(correct_reviews, total_reviews),
            }
        )

    def apply_transition(
        self,
        aggregate: BookProgress,
        before: Optional[SchedulingRecord],
        after: SchedulingRecord,
        total_items: int,
    ) -> BookProgress:
        """
        Update the derived counters for one committed transition.

        Args:
            aggregate: Aggregate before the transition
            before: Record before the review (None if the item had none)
            after: Record after the review
            total_items: Number of items in the collection

        Returns:
            New BookProgress reflecting ``after`` in place of ``before``
        """
        level_before = self.classify(before)
        level_after = self.classify(after)

        mastered = aggregate.mastered_count
        learning = aggregate.learning_count
        if level_before == MasteryLevel.MASTERED:
            mastered -= 1
        elif level_before == MasteryLevel.LEARNING:
            learning -= 1
        if level_after == MasteryLevel.MASTERED:
            mastered += 1
        elif level_after == MasteryLevel.LEARNING:
            learning += 1

        reviews_before = before.total_reviews if before else 0
        correct_before = before.correct_reviews if before else 0
        total_reviews = aggregate.total_reviews + after.total_reviews - reviews_before
        correct_reviews = aggregate.correct_reviews + after.correct_reviews - correct_before

        if level_before != level_after:
            logger.debug(
                f"Item {after.item_id} moved {level_before.value} -> {level_after.value}"
            )

        return aggregate.model_copy(
            update={
                "mastered_count": max(0, mastered),
                "learning_count": max(0, learning),
                "new_count": max(0, total_items - mastered - learning),
                "total_reviews": total_reviews,
                "correct_reviews": correct_reviews,
                "accuracy_percent": accuracy_percent(correct_reviews, total_reviews),
            }
        )

    def record_review(
        self,
        aggregate: BookProgress,
        reviewed_at: datetime,
        is_new_word: bool,
    ) -> BookProgress:
        """
        Update streak and daily counters for a review at ``reviewed_at``.

        Args:
            aggregate: Aggregate before the review
            reviewed_at: Review time (timezone-aware)
            is_new_word: Whether this was the item's first review

        Returns:
            New BookProgress with streak, daily counters and last-study
            timestamps updated
        """
        today = review_date(reviewed_at)
        new_day = is_new_day(aggregate.last_review_date, today)

        if new_day:
            reviews_today = 1
            new_words_today = 1 if is_new_word else 0
        else:
            reviews_today = aggregate.reviews_today + 1
            new_words_today = aggregate.new_words_today + (1 if is_new_word else 0)

        return aggregate.model_copy(
            update={
                "streak_days": next_streak(
                    aggregate.streak_days, aggregate.last_review_date, today
                ),
                "reviews_today": reviews_today,
                "new_words_today": new_words_today,
                "last_review_date": today,
                "last_studied_at": reviewed_at,
            }
        )
