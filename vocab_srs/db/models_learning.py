"""
SQLAlchemy Database Models for the Scheduling Engine

Tables:
- collection_items: Items of each collection, in collection order
- word_progress: One FSRS scheduling record per user × item
- review_logs: Append-only log of committed reviews
- book_progress: Progress aggregate per user × collection

ARCHITECTURE NOTE:
    This file contains SQLALCHEMY models for database persistence.
    The engine works on the frozen dataclasses in
    vocab_srs/services/learning/card_state.py and the Pydantic aggregate in
    vocab_srs/models/learning.py; vocab_srs/db/repository.py converts
    between them.

    Data flows: Service Layer → Store → SQLAlchemy → Database
"""

from datetime import date, datetime, timezone
from typing import Optional


def _utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


from sqlalchemy import (  # noqa: E402
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column  # noqa: E402

from vocab_srs.db.base import Base  # noqa: E402


# ===========================================
# Collection Content
# ===========================================


class CollectionItem(Base):
    """
    Membership and ordering of items in a collection.

    Collection content is managed outside the engine; the store only reads
    it to find never-seen items and to count the collection.

    Attributes:
        collection_id: Owning collection (book)
        item_id: Vocabulary item identifier
        position: Order of the item within the collection
    """

    __tablename__ = "collection_items"
    __table_args__ = (
        UniqueConstraint("collection_id", "item_id", name="uq_collection_item"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    collection_id: Mapped[str] = mapped_column(String(64), index=True)
    item_id: Mapped[str] = mapped_column(String(64))
    position: Mapped[int] = mapped_column(Integer, default=0)


# ===========================================
# Scheduling Records
# ===========================================


class WordProgress(Base):
    """
    FSRS scheduling record for one user × item.

    Attributes:
        FSRS State:
        state: new, learning, review or relearning
        difficulty: 1-10 once reviewed (0 while new)
        stability: Days, >= 0.1 once reviewed (0 while new)
        retrievability: Recall probability at the last review

        Scheduling:
        learning_step: Position in the short-term step table
        is_learning_phase: True while in minute-granularity steps
        due_at: When the item is next due
        last_review_at: Timestamp of the most recent review

        Stats:
        reps, lapses, total_reviews, correct_reviews

        Concurrency:
        version: Optimistic-lock version; each committed review bumps it by 1
    """

    __tablename__ = "word_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name="uq_word_progress_user_item"),
        Index("ix_word_progress_user_collection_due", "user_id", "collection_id", "due_at"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64))
    item_id: Mapped[str] = mapped_column(String(64))
    collection_id: Mapped[str] = mapped_column(String(64))

    # FSRS state
    state: Mapped[str] = mapped_column(String(20), default="new")
    difficulty: Mapped[float] = mapped_column(Float, default=0.0)
    stability: Mapped[float] = mapped_column(Float, default=0.0)
    retrievability: Mapped[float] = mapped_column(Float, default=1.0)
    elapsed_days: Mapped[int] = mapped_column(Integer, default=0)
    scheduled_days: Mapped[int] = mapped_column(Integer, default=0)
    reps: Mapped[int] = mapped_column(Integer, default=0)
    lapses: Mapped[int] = mapped_column(Integer, default=0)

    # Scheduling
    learning_step: Mapped[int] = mapped_column(Integer, default=0)
    is_learning_phase: Mapped[bool] = mapped_column(Boolean, default=True)
    last_review_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    due_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    # Stats
    total_reviews: Mapped[int] = mapped_column(Integer, default=0)
    correct_reviews: Mapped[int] = mapped_column(Integer, default=0)

    version: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )


class ReviewLogEntry(Base):
    """
    One committed review. Written once, never updated.

    Attributes:
        rating: 1 (Again) to 4 (Easy)
        state_before/state_after: FSRS states around the review
        difficulty_*/stability_*: Memory model values around the review
        scheduled_days: Days until the next review (0 for short-term steps)
        elapsed_days: Whole days since the previous review
        review_time_ms: Time the learner spent answering
    """

    __tablename__ = "review_logs"
    __table_args__ = (
        Index("ix_review_logs_user_collection", "user_id", "collection_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64))
    item_id: Mapped[str] = mapped_column(String(64), index=True)
    collection_id: Mapped[str] = mapped_column(String(64))

    rating: Mapped[int] = mapped_column(Integer)
    state_before: Mapped[str] = mapped_column(String(20))
    state_after: Mapped[str] = mapped_column(String(20))
    difficulty_before: Mapped[float] = mapped_column(Float)
    difficulty_after: Mapped[float] = mapped_column(Float)
    stability_before: Mapped[float] = mapped_column(Float)
    stability_after: Mapped[float] = mapped_column(Float)
    scheduled_days: Mapped[int] = mapped_column(Integer)
    elapsed_days: Mapped[int] = mapped_column(Integer)

    review_time_ms: Mapped[Optional[int]] = mapped_column(Integer)
    reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)


# ===========================================
# Book Progress
# ===========================================


class BookProgressRow(Base):
    """
    Progress aggregate per user × collection.

    Mastery counters are derivable from word_progress; streak and daily
    counters are maintained by the review service.
    """

    __tablename__ = "book_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "collection_id", name="uq_book_progress_user_collection"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64))
    collection_id: Mapped[str] = mapped_column(String(64))

    mastered_count: Mapped[int] = mapped_column(Integer, default=0)
    learning_count: Mapped[int] = mapped_column(Integer, default=0)
    new_count: Mapped[int] = mapped_column(Integer, default=0)

    streak_days: Mapped[int] = mapped_column(Integer, default=0)
    accuracy_percent: Mapped[float] = mapped_column(Float, default=0.0)
    total_reviews: Mapped[int] = mapped_column(Integer, default=0)
    correct_reviews: Mapped[int] = mapped_column(Integer, default=0)
    reviews_today: Mapped[int] = mapped_column(Integer, default=0)
    new_words_today: Mapped[int] = mapped_column(Integer, default=0)
    last_review_date: Mapped[Optional[date]] = mapped_column(Date)
    last_studied_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    daily_new_limit: Mapped[int] = mapped_column(Integer, default=20)
    daily_review_limit: Mapped[int] = mapped_column(Integer, default=100)
    study_order: Mapped[str] = mapped_column(String(20), default="sequential")
    version: Mapped[int] = mapped_column(Integer, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utc_now, onupdate=_utc_now
    )
