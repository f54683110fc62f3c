"""Enum definitions for the scheduling engine."""

from vocab_srs.enums.learning import (
    GRADE_TO_RATING,
    CardState,
    MasteryLevel,
    Rating,
    StudyOrder,
)

__all__ = [
    "CardState",
    "GRADE_TO_RATING",
    "MasteryLevel",
    "Rating",
    "StudyOrder",
]
