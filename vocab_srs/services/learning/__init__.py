"""
Learning Services

The FSRS scheduling engine and the services that run it against storage.

Modules:
- card_state: Scheduling records and review logs
- memory_model: FSRS-4.5 difficulty/stability/retrievability formulas
- fuzz: Interval fuzzing with an injectable random source
- transitions: The new/learning/review/relearning state machine
- fsrs: Scheduler façade (review, preview) and display helpers
- mastery: Single mastery projection used for labels and counters
- streak_tracking: Study streak and daily counter rules
- progress_aggregator: Book progress counters, incremental and from scratch
- session_composer: Daily study queue composition
- store: Storage contract and in-memory store
- review_service: Review commit orchestration with optimistic-lock retries
- session_service: Study sessions and book statistics

Usage:
    from vocab_srs.services.learning import (
        FSRSScheduler,
        ReviewService,
        StudySessionService,
        InMemorySchedulingStore,
    )
"""

from vocab_srs.services.learning.card_state import (
    ReviewLog,
    SchedulingRecord,
    create_initial_record,
)
from vocab_srs.services.learning.fsrs import (
    FSRSScheduler,
    create_scheduler,
    format_next_review,
    get_review_forecast,
)
from vocab_srs.services.learning.fuzz import IntervalFuzzer
from vocab_srs.services.learning.mastery import classify_mastery
from vocab_srs.services.learning.memory_model import MemoryModel
from vocab_srs.services.learning.progress_aggregator import ProgressAggregator
from vocab_srs.services.learning.review_service import ReviewService
from vocab_srs.services.learning.session_composer import compose_session
from vocab_srs.services.learning.session_service import StudySessionService
from vocab_srs.services.learning.store import InMemorySchedulingStore, SchedulingStore
from vocab_srs.services.learning.transitions import TransitionFunction

__all__ = [
    # Records
    "ReviewLog",
    "SchedulingRecord",
    "create_initial_record",
    # Engine
    "FSRSScheduler",
    "IntervalFuzzer",
    "MemoryModel",
    "TransitionFunction",
    "classify_mastery",
    "compose_session",
    "create_scheduler",
    "format_next_review",
    "get_review_forecast",
    "ProgressAggregator",
    # Storage
    "InMemorySchedulingStore",
    "SchedulingStore",
    # Orchestration
    "ReviewService",
    "StudySessionService",
]
