"""
SQLAlchemy Scheduling Store

Async SQLAlchemy implementation of the SchedulingStore contract.

Optimistic locking:
    Records and aggregates are written with ``UPDATE ... WHERE version =
    :expected`` where expected = new version - 1. If no row matches and a row
    exists, another writer got there first and ConcurrentUpdateError is
    raised. If no row exists the row is inserted; a racing insert trips the
    unique constraint and is reported the same way.

    commit_review() runs the record write, the log insert and the aggregate
    write inside one transaction, so a conflict on the aggregate also rolls
    back the record. The record UPDATE is issued first so SQLite takes its
    write lock before any read in the transaction.

Datetimes are stored in UTC. Backends that drop the offset (SQLite) hand
back naive values, which are read as UTC.

Usage:
    from vocab_srs.db.base import async_session_maker, init_db
    from vocab_srs.db.repository import SqlAlchemySchedulingStore

    await init_db()
    store = SqlAlchemySchedulingStore(async_session_maker)
    service = ReviewService(store)
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from vocab_srs.db.models_learning import (
    BookProgressRow,
    CollectionItem,
    ReviewLogEntry,
    WordProgress,
)
from vocab_srs.enums.learning import CardState, StudyOrder
from vocab_srs.exceptions import ConcurrentUpdateError
from vocab_srs.models.learning import BookProgress
from vocab_srs.services.learning.card_state import ReviewLog, SchedulingRecord

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise a datetime to timezone-aware UTC; naive values are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _record_values(record: SchedulingRecord) -> dict:
    return {
        "user_id": record.user_id,
        "item_id": record.item_id,
        "collection_id": record.collection_id,
        "state": record.state.value,
        "difficulty": record.difficulty,
        "stability": record.stability,
        "retrievability": record.retrievability,
        "elapsed_days": record.elapsed_days,
        "scheduled_days": record.scheduled_days,
        "reps": record.reps,
        "lapses": record.lapses,
        "learning_step": record.learning_step,
        "is_learning_phase": record.is_learning_phase,
        "last_review_at": _as_utc(record.last_review_at),
        "due_at": _as_utc(record.due_at),
        "total_reviews": record.total_reviews,
        "correct_reviews": record.correct_reviews,
        "version": record.version,
    }


def _to_record(row: WordProgress) -> SchedulingRecord:
    return SchedulingRecord(
        user_id=row.user_id,
        item_id=row.item_id,
        collection_id=row.collection_id,
        state=CardState(row.state),
        difficulty=row.difficulty,
        stability=row.stability,
        retrievability=row.retrievability,
        elapsed_days=row.elapsed_days,
        scheduled_days=row.scheduled_days,
        reps=row.reps,
        lapses=row.lapses,
        learning_step=row.learning_step,
        is_learning_phase=row.is_learning_phase,
        last_review_at=_as_utc(row.last_review_at),
        due_at=_as_utc(row.due_at),
        total_reviews=row.total_reviews,
        correct_reviews=row.correct_reviews,
        version=row.version,
    )


def _progress_values(aggregate: BookProgress) -> dict:
    values = aggregate.model_dump()
    values["study_order"] = aggregate.study_order.value
    values["last_studied_at"] = _as_utc(aggregate.last_studied_at)
    return values


def _to_progress(row: BookProgressRow) -> BookProgress:
    return BookProgress(
        user_id=row.user_id,
        collection_id=row.collection_id,
        mastered_count=row.mastered_count,
        learning_count=row.learning_count,
        new_count=row.new_count,
        streak_days=row.streak_days,
        accuracy_percent=row.accuracy_percent,
        total_reviews=row.total_reviews,
        correct_reviews=row.correct_reviews,
        reviews_today=row.reviews_today,
        new_words_today=row.new_words_today,
        last_review_date=row.last_review_date,
        last_studied_at=_as_utc(row.last_studied_at),
        daily_new_limit=row.daily_new_limit,
        daily_review_limit=row.daily_review_limit,
        study_order=StudyOrder(row.study_order),
        version=row.version,
    )


def _log_row(entry: ReviewLog) -> ReviewLogEntry:
    return ReviewLogEntry(
        user_id=entry.user_id,
        item_id=entry.item_id,
        collection_id=entry.collection_id,
        rating=int(entry.rating),
        state_before=entry.state_before.value,
        state_after=entry.state_after.value,
        difficulty_before=entry.difficulty_before,
        difficulty_after=entry.difficulty_after,
        stability_before=entry.stability_before,
        stability_after=entry.stability_after,
        scheduled_days=entry.scheduled_days,
        elapsed_days=entry.elapsed_days,
        review_time_ms=entry.review_time_ms,
        reviewed_at=_as_utc(entry.reviewed_at),
    )


async def _write_record(session: AsyncSession, record: SchedulingRecord) -> None:
    """Versioned UPDATE, falling back to INSERT when no row exists."""
    values = _record_values(record)
    result = await session.execute(
        update(WordProgress)
        .where(
            WordProgress.user_id == record.user_id,
            WordProgress.item_id == record.item_id,
            WordProgress.version == record.version - 1,
        )
        .values(**values)
    )
    if result.rowcount == 1:
        return

    stored_version = await session.scalar(
        select(WordProgress.version).where(
            WordProgress.user_id == record.user_id,
            WordProgress.item_id == record.item_id,
        )
    )
    if stored_version is not None:
        raise ConcurrentUpdateError(
            f"Stale write for item {record.item_id}",
            details={
                "item_id": record.item_id,
                "stored_version": stored_version,
                "attempted_version": record.version,
            },
        )
    session.add(WordProgress(**values))


async def _write_aggregate(session: AsyncSession, aggregate: BookProgress) -> None:
    """Versioned UPDATE of book_progress, falling back to INSERT."""
    values = _progress_values(aggregate)
    result = await session.execute(
        update(BookProgressRow)
        .where(
            BookProgressRow.user_id == aggregate.user_id,
            BookProgressRow.collection_id == aggregate.collection_id,
            BookProgressRow.version == aggregate.version - 1,
        )
        .values(**values)
    )
    if result.rowcount == 1:
        return

    stored_version = await session.scalar(
        select(BookProgressRow.version).where(
            BookProgressRow.user_id == aggregate.user_id,
            BookProgressRow.collection_id == aggregate.collection_id,
        )
    )
    if stored_version is not None:
        raise ConcurrentUpdateError(
            f"Stale progress write for collection {aggregate.collection_id}",
            details={
                "collection_id": aggregate.collection_id,
                "stored_version": stored_version,
                "attempted_version": aggregate.version,
            },
        )
    session.add(BookProgressRow(**values))


class SqlAlchemySchedulingStore:
    """
    SchedulingStore backed by async SQLAlchemy.

    Each call runs in its own session and transaction.
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        """
        Initialize the store.

        Args:
            session_maker: Async session factory (e.g. db.base.async_session_maker)
        """
        self.session_maker = session_maker

    # Collection content (managed outside the engine)

    async def add_collection_items(self, collection_id: str, item_ids: Sequence[str]) -> None:
        """Append items to a collection, keeping the given order."""
        async with self.session_maker() as session:
            async with session.begin():
                start = await session.scalar(
                    select(func.count(CollectionItem.id)).where(
                        CollectionItem.collection_id == collection_id
                    )
                )
                session.add_all(
                    CollectionItem(
                        collection_id=collection_id,
                        item_id=item_id,
                        position=(start or 0) + offset,
                    )
                    for offset, item_id in enumerate(item_ids)
                )

    # Scheduling records

    async def load_record(self, user_id: str, item_id: str) -> Optional[SchedulingRecord]:
        async with self.session_maker() as session:
            row = await session.scalar(
                select(WordProgress).where(
                    WordProgress.user_id == user_id,
                    WordProgress.item_id == item_id,
                )
            )
            return _to_record(row) if row is not None else None

    async def save_record(self, record: SchedulingRecord) -> None:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    await _write_record(session, record)
        except IntegrityError as e:
            logger.warning(f"Concurrent insert for item {record.item_id}: {e}")
            raise ConcurrentUpdateError(
                f"Concurrent insert for item {record.item_id}",
                details={"item_id": record.item_id, "attempted_version": record.version},
            ) from e

    async def append_review_log(self, entry: ReviewLog) -> None:
        async with self.session_maker() as session:
            async with session.begin():
                session.add(_log_row(entry))

    async def commit_review(
        self, record: SchedulingRecord, entry: ReviewLog, aggregate: BookProgress
    ) -> None:
        """Write record, log entry and aggregate in a single transaction."""
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    await _write_record(session, record)
                    session.add(_log_row(entry))
                    await _write_aggregate(session, aggregate)
        except IntegrityError as e:
            logger.warning(f"Concurrent insert while committing {record.item_id}: {e}")
            raise ConcurrentUpdateError(
                f"Concurrent insert while committing {record.item_id}",
                details={
                    "item_id": record.item_id,
                    "collection_id": aggregate.collection_id,
                    "attempted_version": record.version,
                },
            ) from e

    async def count_review_logs(self, user_id: str, collection_id: str) -> int:
        """Number of logged reviews for a user × collection."""
        async with self.session_maker() as session:
            count = await session.scalar(
                select(func.count(ReviewLogEntry.id)).where(
                    ReviewLogEntry.user_id == user_id,
                    ReviewLogEntry.collection_id == collection_id,
                )
            )
            return count or 0

    async def load_pool(self, user_id: str, collection_id: str) -> list[SchedulingRecord]:
        async with self.session_maker() as session:
            rows = await session.scalars(
                select(WordProgress)
                .where(
                    WordProgress.user_id == user_id,
                    WordProgress.collection_id == collection_id,
                )
                .order_by(WordProgress.id)
            )
            return [_to_record(row) for row in rows]

    async def load_unseen_item_ids(
        self, collection_id: str, excluding: set[str]
    ) -> list[str]:
        query = select(CollectionItem.item_id).where(
            CollectionItem.collection_id == collection_id
        )
        if excluding:
            query = query.where(CollectionItem.item_id.notin_(excluding))
        query = query.order_by(CollectionItem.position, CollectionItem.id)

        async with self.session_maker() as session:
            return list(await session.scalars(query))

    async def count_items(self, collection_id: str) -> int:
        async with self.session_maker() as session:
            count = await session.scalar(
                select(func.count(CollectionItem.id)).where(
                    CollectionItem.collection_id == collection_id
                )
            )
            return count or 0

    # Progress aggregates

    async def load_aggregate(self, user_id: str, collection_id: str) -> Optional[BookProgress]:
        async with self.session_maker() as session:
            row = await session.scalar(
                select(BookProgressRow).where(
                    BookProgressRow.user_id == user_id,
                    BookProgressRow.collection_id == collection_id,
                )
            )
            return _to_progress(row) if row is not None else None

    async def save_aggregate(self, aggregate: BookProgress) -> None:
        try:
            async with self.session_maker() as session:
                async with session.begin():
                    await _write_aggregate(session, aggregate)
        except IntegrityError as e:
            logger.warning(f"Concurrent insert for collection {aggregate.collection_id}: {e}")
            raise ConcurrentUpdateError(
                f"Concurrent insert for collection {aggregate.collection_id}",
                details={
                    "collection_id": aggregate.collection_id,
                    "attempted_version": aggregate.version,
                },
            ) from e
