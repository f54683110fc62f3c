"""
Scheduling Records

The unit the engine reads and writes: one SchedulingRecord per
user × vocabulary item, plus one immutable ReviewLog per committed review.

Records are frozen dataclasses. Every transition returns a complete new
record (total replacement); nothing in the engine patches a record in place.

All datetimes are timezone-aware UTC.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from vocab_srs.enums.learning import CardState, Rating
from vocab_srs.exceptions import ContractViolationError

DIFFICULTY_MIN = 1.0
DIFFICULTY_MAX = 10.0
STABILITY_MIN = 0.1


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SchedulingRecord:
    """
    FSRS scheduling state for one user × item.

    Maps to the columns of the word_progress table.

    Note: a record in state NEW has never been reviewed; its difficulty and
    stability are 0 until the first rating initialises them.
    """

    user_id: str
    item_id: str
    collection_id: str

    state: CardState = CardState.NEW
    difficulty: float = 0.0  # D: [1, 10] once reviewed
    stability: float = 0.0  # S: days, >= 0.1 once reviewed
    retrievability: float = 1.0  # R at the last review

    elapsed_days: int = 0  # Days between the last two reviews
    scheduled_days: int = 0  # Days until next review (0 while in short-term steps)
    reps: int = 0  # Ratings >= Hard
    lapses: int = 0  # Again ratings

    learning_step: int = 0
    is_learning_phase: bool = True

    last_review_at: Optional[datetime] = None
    due_at: datetime = field(default_factory=utc_now)

    total_reviews: int = 0
    correct_reviews: int = 0  # Ratings >= Good

    version: int = 0  # Optimistic-lock version, bumped by each transition

    def is_new(self) -> bool:
        """Check if this item has never been reviewed."""
        return self.state == CardState.NEW

    def is_due(self, now: datetime) -> bool:
        """Check if the item is due at ``now``."""
        return self.due_at <= now


@dataclass(frozen=True)
class ReviewLog:
    """Immutable log entry for a single review."""

    user_id: str
    item_id: str
    collection_id: str
    rating: Rating
    state_before: CardState
    state_after: CardState
    difficulty_before: float
    difficulty_after: float
    stability_before: float
    stability_after: float
    scheduled_days: int
    elapsed_days: int
    reviewed_at: datetime
    review_time_ms: Optional[int] = None


def create_initial_record(
    user_id: str,
    item_id: str,
    collection_id: str,
    now: Optional[datetime] = None,
) -> SchedulingRecord:
    """
    Create the record of a never-reviewed item, due immediately.

    Args:
        user_id: Learner identifier
        item_id: Vocabulary item identifier
        collection_id: Book the item belongs to
        now: Creation time (default: current UTC time)

    Returns:
        SchedulingRecord in state NEW with zeroed numerics
    """
    now = now or utc_now()
    return SchedulingRecord(
        user_id=user_id,
        item_id=item_id,
        collection_id=collection_id,
        state=CardState.NEW,
        due_at=now,
    )


def validate_rating(rating) -> Rating:
    """
    Coerce a rating to Rating, rejecting anything outside 1-4.

    Raises:
        ContractViolationError: If the rating is not one of 1, 2, 3, 4
    """
    if isinstance(rating, bool):
        raise ContractViolationError(
            "Rating must be an integer between 1 and 4", details={"rating": rating}
        )
    try:
        return Rating(rating)
    except ValueError:
        raise ContractViolationError(
            "Rating must be an integer between 1 and 4", details={"rating": rating}
        ) from None


def validate_record(record: SchedulingRecord) -> None:
    """
    Check that a record is well-formed before scheduling it.

    Raises:
        ContractViolationError: On any malformed field
    """
    details = {"item_id": record.item_id, "state": getattr(record.state, "value", record.state)}

    if not isinstance(record.state, CardState):
        raise ContractViolationError("Unknown card state", details=details)

    numbers = {
        "difficulty": record.difficulty,
        "stability": record.stability,
        "retrievability": record.retrievability,
    }
    for name, value in numbers.items():
        if not math.isfinite(value) or value < 0:
            raise ContractViolationError(
                f"{name} must be a non-negative finite number",
                details={**details, name: value},
            )

    counters = {
        "elapsed_days": record.elapsed_days,
        "scheduled_days": record.scheduled_days,
        "reps": record.reps,
        "lapses": record.lapses,
        "learning_step": record.learning_step,
        "total_reviews": record.total_reviews,
        "correct_reviews": record.correct_reviews,
    }
    for name, value in counters.items():
        if value < 0:
            raise ContractViolationError(
                f"{name} must be non-negative", details={**details, name: value}
            )

    if record.state == CardState.REVIEW and record.is_learning_phase:
        raise ContractViolationError(
            "Review-state records cannot be in the learning phase", details=details
        )
    if record.state.is_short_term and not record.is_learning_phase:
        raise ContractViolationError(
            "New, learning and relearning records must be in the learning phase",
            details=details,
        )

    if record.state != CardState.NEW:
        if record.stability < STABILITY_MIN:
            raise ContractViolationError(
                f"Reviewed records need stability >= {STABILITY_MIN}",
                details={**details, "stability": record.stability},
            )
        if not DIFFICULTY_MIN <= record.difficulty <= DIFFICULTY_MAX:
            raise ContractViolationError(
                f"Reviewed records need difficulty in [{DIFFICULTY_MIN}, {DIFFICULTY_MAX}]",
                details={**details, "difficulty": record.difficulty},
            )

    for name in ("due_at", "last_review_at"):
        value = getattr(record, name)
        if value is not None and value.tzinfo is None:
            raise ContractViolationError(
                f"{name} must be timezone-aware", details=details
            )
