"""
Review Orchestration Service

Runs one committed review end to end against a SchedulingStore:

    load aggregate → load record (create initial if absent) → transition
    → recompute book progress from the updated pool → commit record, review
    log and aggregate together

The engine is pure and never retries. Optimistic-lock conflicts on either
the record or the aggregate surface from the store as ConcurrentUpdateError;
this service retries the whole cycle from freshly loaded state with
tenacity, up to REVIEW_MAX_ATTEMPTS.

Every aggregate write bumps its version, and the aggregate is loaded before
the pool. A write computed from a pool that another review has since
changed therefore always conflicts instead of overwriting its counters.

Usage:
    from vocab_srs.services.learning.review_service import ReviewService

    service = ReviewService(store)
    await service.start_learning(user_id, book_id)
    outcome = await service.review_item(user_id, word_id, book_id, Rating.GOOD)
"""

import logging
from datetime import datetime
from typing import Optional, Sequence

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from vocab_srs.config.settings import Settings, get_settings
from vocab_srs.enums.learning import GRADE_TO_RATING, Rating
from vocab_srs.exceptions import ConcurrentUpdateError, ContractViolationError, NotFoundError
from vocab_srs.models.learning import BookProgress, ReviewOutcome
from vocab_srs.services.learning.card_state import (
    SchedulingRecord,
    create_initial_record,
    utc_now,
    validate_rating,
)
from vocab_srs.services.learning.fsrs import FSRSScheduler, create_scheduler
from vocab_srs.services.learning.progress_aggregator import ProgressAggregator
from vocab_srs.services.learning.store import SchedulingStore

logger = logging.getLogger(__name__)


def default_progress(user_id: str, collection_id: str, settings: Settings) -> BookProgress:
    """Fresh aggregate for a book the user has not started yet."""
    return BookProgress(
        user_id=user_id,
        collection_id=collection_id,
        daily_new_limit=settings.DAILY_NEW_LIMIT,
        daily_review_limit=settings.DAILY_REVIEW_LIMIT,
    )


def next_version(aggregate: BookProgress) -> BookProgress:
    """Copy of ``aggregate`` ready to replace the stored version."""
    return aggregate.model_copy(update={"version": aggregate.version + 1})


def commit_retrying(settings: Settings) -> AsyncRetrying:
    """Retry policy for writes that lose an optimistic-lock race."""
    return AsyncRetrying(
        retry=retry_if_exception_type(ConcurrentUpdateError),
        stop=stop_after_attempt(settings.REVIEW_MAX_ATTEMPTS),
        wait=wait_exponential(
            multiplier=settings.REVIEW_RETRY_WAIT_SECONDS,
            max=1,
        ),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class ReviewService:
    """
    Service for committing reviews and maintaining book progress.

    Handles:
    - Lazy creation of scheduling records on first review
    - Optimistic-lock retries around the load-transition-commit cycle
    - Review log entries and aggregate bookkeeping
    - Eager record creation when a learner starts a book
    """

    def __init__(
        self,
        store: SchedulingStore,
        scheduler: Optional[FSRSScheduler] = None,
        aggregator: Optional[ProgressAggregator] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize the review service.

        Args:
            store: Persistence backend
            scheduler: FSRS scheduler (default: built from settings)
            aggregator: Progress aggregator (default: built from settings)
            settings: Application settings (default: cached settings)
        """
        self.store = store
        self.settings = settings or get_settings()
        parameters = self.settings.scheduler_parameters()
        self.scheduler = scheduler or create_scheduler(parameters=parameters)
        self.aggregator = aggregator or ProgressAggregator(
            parameters.mastery_stability_threshold_days
        )

    async def review_item(
        self,
        user_id: str,
        item_id: str,
        collection_id: str,
        rating: Rating,
        now: Optional[datetime] = None,
        review_time_ms: Optional[int] = None,
    ) -> ReviewOutcome:
        """
        Commit a review of one item.

        A missing record is created in state NEW first. If another writer
        commits the same item in between, the transition is re-applied to
        the fresh record.

        Args:
            user_id: Learner identifier
            item_id: Reviewed item
            collection_id: Book the item belongs to
            rating: Learner rating, 1-4
            now: Review time (default: current UTC time)
            review_time_ms: Time spent answering, stored in the review log

        Returns:
            ReviewOutcome with the committed scheduling state

        Raises:
            ContractViolationError: Invalid rating or record
            ConcurrentUpdateError: Still conflicting after the last attempt
        """
        rating = validate_rating(rating)
        now = now or utc_now()

        async for attempt in commit_retrying(self.settings):
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                before, after, is_new_word = await self._commit_review(
                    user_id, item_id, collection_id, rating, now, review_time_ms
                )

        logger.info(
            f"Reviewed {item_id} for user {user_id}: rating={rating.value}, "
            f"{before.state.value} -> {after.state.value}, "
            f"due {after.due_at.isoformat()}"
        )

        return ReviewOutcome(
            item_id=item_id,
            rating=rating,
            previous_state=before.state,
            new_state=after.state,
            new_stability=after.stability,
            new_difficulty=after.difficulty,
            next_due_date=after.due_at,
            scheduled_days=after.scheduled_days,
            was_correct=rating >= Rating.GOOD,
            is_new_word=is_new_word,
            mastery=self.aggregator.classify(after),
            attempts=attempt_number,
        )

    async def review_grade(
        self,
        user_id: str,
        item_id: str,
        collection_id: str,
        grade: str,
        now: Optional[datetime] = None,
        review_time_ms: Optional[int] = None,
    ) -> ReviewOutcome:
        """
        Commit a review given a UI grade (forgot, hard, good, easy).

        Raises:
            ContractViolationError: Unknown grade
        """
        rating = GRADE_TO_RATING.get(grade.strip().lower())
        if rating is None:
            raise ContractViolationError(
                f"Unknown grade: {grade}",
                details={"grade": grade, "allowed": sorted(GRADE_TO_RATING)},
            )
        return await self.review_item(
            user_id, item_id, collection_id, rating, now=now, review_time_ms=review_time_ms
        )

    async def _commit_review(
        self,
        user_id: str,
        item_id: str,
        collection_id: str,
        rating: Rating,
        now: datetime,
        review_time_ms: Optional[int],
    ) -> tuple[SchedulingRecord, SchedulingRecord, bool]:
        """One load-transition-commit cycle. Raises ConcurrentUpdateError on conflict."""
        aggregate = await self.store.load_aggregate(user_id, collection_id)
        if aggregate is None:
            aggregate = default_progress(user_id, collection_id, self.settings)

        record = await self.store.load_record(user_id, item_id)
        if record is None:
            logger.debug(f"No record for {item_id}, creating initial record")
            record = create_initial_record(user_id, item_id, collection_id, now)
        elif record.collection_id != collection_id:
            raise ContractViolationError(
                f"Item {item_id} belongs to a different collection",
                details={
                    "item_id": item_id,
                    "collection_id": collection_id,
                    "record_collection_id": record.collection_id,
                },
            )

        is_new_word = record.is_new()
        next_record, log = self.scheduler.review(
            record, rating, now, review_time_ms=review_time_ms
        )

        aggregate = await self._progress_after(aggregate, next_record, now, is_new_word)
        await self.store.commit_review(next_record, log, aggregate)

        return record, next_record, is_new_word

    async def _progress_after(
        self,
        aggregate: BookProgress,
        after: SchedulingRecord,
        now: datetime,
        is_new_word: bool,
    ) -> BookProgress:
        """Aggregate recomputed from the pool with ``after`` in place."""
        pool = await self.store.load_pool(after.user_id, after.collection_id)
        pool = [record for record in pool if record.item_id != after.item_id]
        pool.append(after)
        total_items = await self.store.count_items(after.collection_id)

        aggregate = self.aggregator.recompute(aggregate, pool, total_items)
        aggregate = self.aggregator.record_review(aggregate, now, is_new_word)
        return next_version(aggregate)

    async def start_learning(
        self,
        user_id: str,
        collection_id: str,
        item_ids: Optional[Sequence[str]] = None,
        now: Optional[datetime] = None,
    ) -> BookProgress:
        """
        Start a book: create NEW records for its items and the aggregate.

        Items that already have a record are left untouched, so calling this
        again is harmless. A conflicting writer restarts the whole step.

        Args:
            user_id: Learner identifier
            collection_id: Book to start
            item_ids: Items to create records for (default: whole collection)
            now: Creation time; new records are due immediately

        Returns:
            The initialised BookProgress
        """
        now = now or utc_now()
        created: list[SchedulingRecord] = []

        async for attempt in commit_retrying(self.settings):
            with attempt:
                aggregate, total_items = await self._start_learning(
                    user_id, collection_id, item_ids, now, created
                )

        logger.info(
            f"User {user_id} started collection {collection_id}: "
            f"{len(created)} records created, {total_items} items"
        )
        return aggregate

    async def _start_learning(
        self,
        user_id: str,
        collection_id: str,
        item_ids: Optional[Sequence[str]],
        now: datetime,
        created: list[SchedulingRecord],
    ) -> tuple[BookProgress, int]:
        aggregate = await self.store.load_aggregate(user_id, collection_id)
        if aggregate is None:
            aggregate = default_progress(user_id, collection_id, self.settings)

        pool = await self.store.load_pool(user_id, collection_id)
        existing = {record.item_id for record in pool}

        wanted = item_ids
        if wanted is None:
            wanted = await self.store.load_unseen_item_ids(collection_id, existing)

        for item_id in wanted:
            if item_id in existing:
                continue
            record = create_initial_record(user_id, item_id, collection_id, now)
            await self.store.save_record(record)
            existing.add(item_id)
            pool.append(record)
            created.append(record)

        total_items = await self.store.count_items(collection_id)
        aggregate = next_version(self.aggregator.recompute(aggregate, pool, total_items))
        await self.store.save_aggregate(aggregate)
        return aggregate, total_items

    async def preview(
        self,
        user_id: str,
        item_id: str,
        collection_id: str,
        now: Optional[datetime] = None,
    ) -> dict[Rating, str]:
        """
        Interval labels per rating for a stored item, without committing.

        An item without a record is previewed as a new item.
        """
        now = now or utc_now()
        record = await self.store.load_record(user_id, item_id)
        if record is None:
            record = create_initial_record(user_id, item_id, collection_id, now)
        return self.scheduler.preview_all(record, now)

    async def rebuild_progress(self, user_id: str, collection_id: str) -> BookProgress:
        """
        Recompute a book's derived counters from its full record pool.

        Raises:
            NotFoundError: If the user never started the book
        """
        async for attempt in commit_retrying(self.settings):
            with attempt:
                aggregate = await self.store.load_aggregate(user_id, collection_id)
                if aggregate is None:
                    raise NotFoundError(
                        f"No progress for collection {collection_id}",
                        details={"user_id": user_id, "collection_id": collection_id},
                    )

                pool = await self.store.load_pool(user_id, collection_id)
                total_items = await self.store.count_items(collection_id)
                aggregate = next_version(
                    self.aggregator.recompute(aggregate, pool, total_items)
                )
                await self.store.save_aggregate(aggregate)

        logger.info(
            f"Rebuilt progress for {collection_id}: mastered={aggregate.mastered_count}, "
            f"learning={aggregate.learning_count}, new={aggregate.new_count}"
        )
        return aggregate
