"""Pydantic models for aggregates and reports."""

from vocab_srs.models.learning import (
    BookProgress,
    BookStats,
    ItemProgress,
    ReviewForecast,
    ReviewOutcome,
    SessionItem,
    StudySession,
)

__all__ = [
    "BookProgress",
    "BookStats",
    "ItemProgress",
    "ReviewForecast",
    "ReviewOutcome",
    "SessionItem",
    "StudySession",
]
