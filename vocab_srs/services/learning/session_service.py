"""
Study Session Service

Read-side orchestration over a SchedulingStore: today's study queue, book
statistics, and recent/difficult word lists.

Daily limits come from the book's progress aggregate. Reviews already done
today count against them, so rebuilding the session mid-day never hands out
more new items than the daily allowance.

Usage:
    from vocab_srs.services.learning.session_service import StudySessionService

    service = StudySessionService(store)
    session = await service.build_today_session(user_id, book_id)
    stats = await service.get_book_stats(user_id, book_id)
"""

import logging
import random
from datetime import date, datetime
from typing import Optional

from vocab_srs.config.settings import Settings, get_settings
from vocab_srs.enums.learning import StudyOrder
from vocab_srs.exceptions import ContractViolationError, NotFoundError
from vocab_srs.models.learning import (
    BookProgress,
    BookStats,
    ItemProgress,
    ReviewForecast,
    StudySession,
)
from vocab_srs.services.learning.card_state import SchedulingRecord, utc_now
from vocab_srs.services.learning.fsrs import format_next_review, get_review_forecast
from vocab_srs.services.learning.progress_aggregator import ProgressAggregator
from vocab_srs.services.learning.review_service import (
    commit_retrying,
    default_progress,
    next_version,
)
from vocab_srs.services.learning.session_composer import compose_session
from vocab_srs.services.learning.store import SchedulingStore
from vocab_srs.services.learning.streak_tracking import current_streak, review_date

logger = logging.getLogger(__name__)


def remaining_limits(progress: BookProgress, today: date) -> tuple[int, int]:
    """
    New and review allowance left for ``today``.

    Counters from an earlier day do not count; they are reset by the next
    review, not by a timer.

    Returns:
        Tuple of (remaining new items, remaining reviews)
    """
    if progress.last_review_date != today:
        return progress.daily_new_limit, progress.daily_review_limit

    reviews_of_seen_items = max(0, progress.reviews_today - progress.new_words_today)
    return (
        max(0, progress.daily_new_limit - progress.new_words_today),
        max(0, progress.daily_review_limit - reviews_of_seen_items),
    )


class StudySessionService:
    """
    Service for composing study sessions and reporting book progress.

    Read-only: nothing here writes records, logs or aggregates except
    update_book_settings.
    """

    def __init__(
        self,
        store: SchedulingStore,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        aggregator: Optional[ProgressAggregator] = None,
    ):
        """
        Initialize the session service.

        Args:
            store: Persistence backend
            settings: Application settings (default: cached settings)
            rng: Random source for due-time jitter and random study order
            aggregator: Progress aggregator (default: built from settings)
        """
        self.store = store
        self.settings = settings or get_settings()
        self.rng = rng or random.Random()
        self.aggregator = aggregator or ProgressAggregator(
            self.settings.MASTERY_STABILITY_THRESHOLD_DAYS
        )

    async def _load_progress(self, user_id: str, collection_id: str) -> BookProgress:
        progress = await self.store.load_aggregate(user_id, collection_id)
        return progress or default_progress(user_id, collection_id, self.settings)

    async def _load_unseen(
        self, collection_id: str, pool: list[SchedulingRecord]
    ) -> list[str]:
        seen = {record.item_id for record in pool if not record.is_new()}
        return await self.store.load_unseen_item_ids(collection_id, seen)

    async def build_today_session(
        self,
        user_id: str,
        collection_id: str,
        now: Optional[datetime] = None,
    ) -> StudySession:
        """
        Compose today's queue of due and new items.

        Args:
            user_id: Learner identifier
            collection_id: Book to study
            now: Reference time (default: current UTC time)

        Returns:
            StudySession capped by today's remaining limits
        """
        now = now or utc_now()
        progress = await self._load_progress(user_id, collection_id)
        pool = await self.store.load_pool(user_id, collection_id)
        unseen = await self._load_unseen(collection_id, pool)

        new_limit, review_limit = remaining_limits(progress, review_date(now))

        session = compose_session(
            pool,
            unseen,
            now,
            daily_new_limit=new_limit,
            daily_review_limit=review_limit,
            rng=self.rng,
            study_order=progress.study_order,
            jitter_minutes=self.settings.SESSION_JITTER_MINUTES,
            minutes_per_item=self.settings.SESSION_MINUTES_PER_ITEM,
        )

        logger.info(
            f"Session for {user_id}/{collection_id}: {len(session.review_items)} due, "
            f"{len(session.new_items)} new, ~{session.estimated_minutes}min"
        )
        return session

    async def get_book_stats(
        self,
        user_id: str,
        collection_id: str,
        now: Optional[datetime] = None,
    ) -> BookStats:
        """
        Summary statistics for one book.

        Mastery counts and accuracy are recomputed from the record pool with
        the same projection the aggregate uses. The streak comes from the
        aggregate; a streak whose last review is older than yesterday reads
        as 0.
        """
        now = now or utc_now()
        progress = await self._load_progress(user_id, collection_id)
        pool = await self.store.load_pool(user_id, collection_id)
        total_items = await self.store.count_items(collection_id)
        counts = self.aggregator.recompute(progress, pool, total_items)

        session = await self.build_today_session(user_id, collection_id, now)

        reviewed = [record for record in pool if not record.is_new()]
        average_stability = (
            sum(record.stability for record in reviewed) / len(reviewed) if reviewed else 0.0
        )

        return BookStats(
            total_items=total_items,
            mastered=counts.mastered_count,
            learning=counts.learning_count,
            new_items=counts.new_count,
            today_review=len(session.review_items),
            today_new=len(session.new_items),
            estimated_minutes=session.estimated_minutes,
            streak_days=current_streak(
                progress.streak_days, progress.last_review_date, review_date(now)
            ),
            accuracy_percent=counts.accuracy_percent,
            average_stability=round(average_stability, 2),
            forecast=ReviewForecast(**get_review_forecast(pool, now)),
        )

    def _to_item_progress(self, record: SchedulingRecord, now: datetime) -> ItemProgress:
        return ItemProgress(
            item_id=record.item_id,
            state=record.state,
            mastery=self.aggregator.classify(record),
            stability=record.stability,
            difficulty=record.difficulty,
            lapses=record.lapses,
            total_reviews=record.total_reviews,
            correct_reviews=record.correct_reviews,
            last_review_at=record.last_review_at,
            due_at=record.due_at,
            next_review=format_next_review(record.due_at, now),
        )

    async def get_recent_items(
        self,
        user_id: str,
        collection_id: str,
        limit: int = 5,
        now: Optional[datetime] = None,
    ) -> list[ItemProgress]:
        """Most recently reviewed items, newest first."""
        now = now or utc_now()
        pool = await self.store.load_pool(user_id, collection_id)
        reviewed = [record for record in pool if record.last_review_at is not None]
        reviewed.sort(key=lambda record: record.last_review_at, reverse=True)
        return [self._to_item_progress(record, now) for record in reviewed[:limit]]

    async def get_difficult_items(
        self,
        user_id: str,
        collection_id: str,
        limit: int = 5,
        now: Optional[datetime] = None,
    ) -> list[ItemProgress]:
        """Items with lapses, most lapses first, then least stable first."""
        now = now or utc_now()
        pool = await self.store.load_pool(user_id, collection_id)
        lapsed = [record for record in pool if record.lapses > 0]
        lapsed.sort(key=lambda record: (-record.lapses, record.stability))
        return [self._to_item_progress(record, now) for record in lapsed[:limit]]

    async def update_book_settings(
        self,
        user_id: str,
        collection_id: str,
        daily_new_limit: Optional[int] = None,
        daily_review_limit: Optional[int] = None,
        study_order: Optional[StudyOrder] = None,
    ) -> BookProgress:
        """
        Change a book's daily limits or study order.

        Raises:
            ContractViolationError: Negative limit
            NotFoundError: The user never started the book
        """
        update = {}
        for name, value in (
            ("daily_new_limit", daily_new_limit),
            ("daily_review_limit", daily_review_limit),
        ):
            if value is None:
                continue
            if value < 0:
                raise ContractViolationError(
                    f"{name} must be non-negative", details={name: value}
                )
            update[name] = value
        if study_order is not None:
            update["study_order"] = StudyOrder(study_order)

        async for attempt in commit_retrying(self.settings):
            with attempt:
                progress = await self.store.load_aggregate(user_id, collection_id)
                if progress is None:
                    raise NotFoundError(
                        f"No progress for collection {collection_id}",
                        details={"user_id": user_id, "collection_id": collection_id},
                    )
                progress = next_version(progress.model_copy(update=update))
                await self.store.save_aggregate(progress)

        logger.info(f"Updated settings for {user_id}/{collection_id}: {update}")
        return progress
