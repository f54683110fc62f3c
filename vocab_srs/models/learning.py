"""
Learning Models (Pydantic)

Aggregates and report schemas produced by the scheduling services:
- Book progress aggregate (persisted per user × collection)
- Study sessions composed for a day
- Review outcomes and book statistics

ARCHITECTURE NOTE:
    Scheduling records and review logs are frozen dataclasses in
    vocab_srs/services/learning/card_state.py because the engine replaces
    them wholesale on every transition. The models here sit at the service
    boundary. There is a corresponding SQLAlchemy file:
    vocab_srs/db/models_learning.py

    Data flows: Store → Engine (dataclasses) → Services → Pydantic → Caller
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional, TYPE_CHECKING

from pydantic import Field

from vocab_srs.enums.learning import CardState, MasteryLevel, Rating, StudyOrder
from vocab_srs.models.base import ReportModel, StrictModel

if TYPE_CHECKING:
    from vocab_srs.services.learning.card_state import SchedulingRecord


# ===========================================
# Book Progress Aggregate
# ===========================================


class BookProgress(StrictModel):
    """
    Per user × collection progress aggregate.

    Counters are derived from the collection's scheduling records and can be
    recomputed from scratch at any time. Streak and daily counters are
    maintained on each review; daily counters reset when the UTC date
    changes, not on a timer.
    """

    user_id: str
    collection_id: str

    mastered_count: int = Field(0, ge=0, description="Review items above the mastery threshold")
    learning_count: int = Field(0, ge=0, description="Short-term items plus unmastered review items")
    new_count: int = Field(0, ge=0, description="Collection items without review history")

    streak_days: int = Field(0, ge=0, description="Consecutive study days")
    accuracy_percent: float = Field(0.0, ge=0.0, le=100.0)
    total_reviews: int = Field(0, ge=0)
    correct_reviews: int = Field(0, ge=0, description="Reviews rated Good or Easy")
    reviews_today: int = Field(0, ge=0)
    new_words_today: int = Field(0, ge=0)
    last_review_date: Optional[date] = None
    last_studied_at: Optional[datetime] = None

    daily_new_limit: int = Field(20, ge=0, description="Max never-seen items per day")
    daily_review_limit: int = Field(100, ge=0, description="Max due items per day")
    study_order: StudyOrder = StudyOrder.SEQUENTIAL

    version: int = Field(0, ge=0, description="Optimistic-lock counter, bumped on every write")


# ===========================================
# Study Session Models
# ===========================================


class SessionItem(ReportModel):
    """
    Single item in a study session.

    New items have no scheduling record yet, so their state is NEW and
    they carry no due time.
    """

    item_id: str
    is_new: bool = False
    state: CardState = CardState.NEW
    is_learning_phase: bool = True
    due_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record: SchedulingRecord) -> SessionItem:
        """Create a SessionItem for a due scheduling record."""
        return cls(
            item_id=record.item_id,
            is_new=False,
            state=record.state,
            is_learning_phase=record.is_learning_phase,
            due_at=record.due_at,
        )

    @classmethod
    def unseen(cls, item_id: str) -> SessionItem:
        """Create a SessionItem for a never-seen item."""
        return cls(item_id=item_id, is_new=True)


class StudySession(ReportModel):
    """
    A day's study queue: due items first, then new items.

    The queue is advisory. Another session may review an item before this
    one reaches it; reviewing it again just re-applies the transition.
    """

    review_items: list[SessionItem] = Field(default_factory=list)
    new_items: list[SessionItem] = Field(default_factory=list)
    total_count: int = 0
    estimated_minutes: int = Field(0, description="~30 seconds per item, rounded up")

    @property
    def items(self) -> list[SessionItem]:
        """Review items followed by new items."""
        return [*self.review_items, *self.new_items]


# ===========================================
# Review and Statistics Models
# ===========================================


class ReviewOutcome(ReportModel):
    """
    Result of a committed review.

    Contains the new scheduling state. scheduled_days is 0 while the item is
    in short-term steps; next_due_date is then minutes away.
    """

    item_id: str
    rating: Rating
    previous_state: CardState
    new_state: CardState
    new_stability: float
    new_difficulty: float
    next_due_date: datetime
    scheduled_days: int = Field(description="Days until next review")
    was_correct: bool = Field(description="Whether rating indicates success")
    is_new_word: bool = Field(description="Whether this was the item's first review")
    mastery: MasteryLevel
    attempts: int = Field(1, description="Load-transition-save cycles needed to commit")


class ReviewForecast(ReportModel):
    """Counts of upcoming reviews by horizon."""

    overdue: int = 0
    today: int = 0
    tomorrow: int = 0
    this_week: int = 0
    later: int = 0


class BookStats(ReportModel):
    """
    Summary statistics for one user × collection.

    today_review and today_new are the sizes of the due and new sets of
    the session that would be composed right now.
    """

    total_items: int = 0
    mastered: int = 0
    learning: int = 0
    new_items: int = 0
    today_review: int = 0
    today_new: int = 0
    estimated_minutes: int = 0
    streak_days: int = 0
    accuracy_percent: float = 0.0
    average_stability: float = Field(0.0, description="Mean stability of reviewed items (days)")
    forecast: ReviewForecast = Field(default_factory=ReviewForecast)


class ItemProgress(ReportModel):
    """Progress view of one reviewed item, for recent/difficult word lists."""

    item_id: str
    state: CardState
    mastery: MasteryLevel
    stability: float
    difficulty: float
    lapses: int
    total_reviews: int
    correct_reviews: int
    last_review_at: Optional[datetime] = None
    due_at: datetime
    next_review: str = Field(description="Human-readable time until due")
