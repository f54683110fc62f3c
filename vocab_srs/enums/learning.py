"""
Learning System Enums

Defines enums for the FSRS spaced repetition engine, study ordering,
and mastery display.
"""

from enum import Enum


class CardState(str, Enum):
    """
    FSRS card states in the learning state machine.

    State transitions:
    - NEW → LEARNING (first review) or REVIEW (first review rated Easy)
    - LEARNING → REVIEW (graduated) or LEARNING (still learning)
    - REVIEW → REVIEW (success) or RELEARNING (lapse)
    - RELEARNING → REVIEW (recovered) or RELEARNING (still struggling)
    """

    NEW = "new"  # Never reviewed, initial state
    LEARNING = "learning"  # Being learned, minute-based steps
    REVIEW = "review"  # Graduated, day-based intervals
    RELEARNING = "relearning"  # Lapsed and being relearned

    @property
    def is_short_term(self) -> bool:
        """Whether the state is governed by minute-granularity steps."""
        return self is not CardState.REVIEW


class Rating(int, Enum):
    """
    FSRS review ratings.

    Learner self-assessment after seeing a vocabulary item.
    """

    AGAIN = 1  # Forgotten, restart short-term steps
    HARD = 2  # Recalled with significant difficulty
    GOOD = 3  # Recalled with reasonable effort
    EASY = 4  # Recalled effortlessly


class MasteryLevel(str, Enum):
    """
    Display projection of an item's scheduling state.

    Derived purely from (state, stability) by
    ``vocab_srs.services.learning.mastery.classify_mastery``.
    """

    NEW = "new"
    LEARNING = "learning"
    MASTERED = "mastered"


class StudyOrder(str, Enum):
    """
    Order in which never-seen items are introduced into a session.
    """

    SEQUENTIAL = "sequential"  # Collection order
    RANDOM = "random"  # Shuffled with the session's random source


# UI grade labels mapped to FSRS ratings
GRADE_TO_RATING: dict[str, Rating] = {
    "forgot": Rating.AGAIN,
    "hard": Rating.HARD,
    "good": Rating.GOOD,
    "easy": Rating.EASY,
}
