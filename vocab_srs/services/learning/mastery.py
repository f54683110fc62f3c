"""
Mastery Projection

The single mapping from scheduling state to the display level shown to
learners (new / learning / mastered). The progress aggregator counts with
this same function, so the per-item label and the per-book counters always
agree.
"""

from vocab_srs.enums.learning import CardState, MasteryLevel

DEFAULT_MASTERY_THRESHOLD_DAYS = 21.0


def classify_mastery(
    state: CardState,
    stability: float,
    threshold_days: float = DEFAULT_MASTERY_THRESHOLD_DAYS,
) -> MasteryLevel:
    """
    Project (state, stability) onto a mastery level.

    Args:
        state: Scheduling state of the item
        stability: Current stability in days
        threshold_days: Stability an item in review must exceed to count
            as mastered

    Returns:
        MASTERED for review items with stability above the threshold,
        NEW for never-reviewed items, LEARNING otherwise
    """
    if state == CardState.NEW:
        return MasteryLevel.NEW
    if state == CardState.REVIEW and stability > threshold_days:
        return MasteryLevel.MASTERED
    return MasteryLevel.LEARNING
