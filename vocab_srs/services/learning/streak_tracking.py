"""
Streak and Daily Counter Tracking

Pure bookkeeping for a book's study streak and its per-day counters.

Rules:
- Same-day reviews leave the streak unchanged.
- The first review on a new day extends the streak by one if the previous
  review was yesterday, otherwise resets it to 1.
- Daily counters (reviews_today, new_words_today) reset on the first review
  of a new day. There is no timer; a day with no reviews never touches them.

Dates are UTC calendar dates.

Usage:
    from vocab_srs.services.learning.streak_tracking import next_streak

    streak = next_streak(progress.streak_days, progress.last_review_date, today)
"""

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def review_date(reviewed_at: datetime) -> date:
    """UTC calendar date of a review timestamp."""
    return reviewed_at.astimezone(timezone.utc).date()


def is_consecutive_day(previous: Optional[date], today: date) -> bool:
    """Whether ``previous`` is the day before ``today``."""
    if previous is None:
        return False
    return previous == today - timedelta(days=1)


def is_new_day(last_review_date: Optional[date], today: date) -> bool:
    """Whether a review on ``today`` is the first one since the last review date."""
    return last_review_date != today


def next_streak(
    streak_days: int,
    last_review_date: Optional[date],
    today: date,
) -> int:
    """
    Streak length after a review on ``today``.

    Args:
        streak_days: Current streak
        last_review_date: Date of the previous review, None if never reviewed
        today: Date of this review

    Returns:
        Updated streak in days
    """
    if not is_new_day(last_review_date, today):
        return streak_days
    if is_consecutive_day(last_review_date, today):
        return streak_days + 1
    return 1


def current_streak(
    streak_days: int,
    last_review_date: Optional[date],
    today: date,
) -> int:
    """
    Streak as it stands on ``today`` without a new review.

    A streak stays alive through today if the last review was today or
    yesterday; after a gap it reads as 0.
    """
    if last_review_date is None:
        return 0
    if last_review_date == today or is_consecutive_day(last_review_date, today):
        return streak_days
    return 0
