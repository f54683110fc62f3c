"""
Scheduler Parameters

The complete configuration surface of the scheduling engine. A
SchedulerParameters value is passed explicitly into the scheduler, session
composer and progress aggregator; nothing in the engine reads ambient
configuration.

Unknown fields are rejected (extra="forbid") so that a typo in an override
fails loudly instead of being ignored.

Usage:
    from vocab_srs.config.scheduler import SchedulerParameters

    params = SchedulerParameters(request_retention=0.85, maximum_interval_days=180)
    scheduler = FSRSScheduler(parameters=params)
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from vocab_srs.enums.learning import Rating

# FSRS-4.5 default weights
DEFAULT_WEIGHTS: tuple[float, ...] = (
    0.4, 0.6, 2.4, 5.8,  # w0-w3: initial stability per rating
    4.93, 0.94,  # w4-w5: initial difficulty
    0.86, 0.01,  # w6-w7: difficulty update / mean reversion
    1.49, 0.14, 0.94,  # w8-w10: stability on success
    2.18, 0.05, 0.34, 1.26,  # w11-w14: stability on failure
    0.29, 2.61,  # w15-w16: hard penalty, easy bonus
)

WEIGHT_COUNT = 17


class LearningSteps(BaseModel):
    """Short-term step delays in minutes, one per rating."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    again: int = Field(1, ge=0, description="Delay after Again (minutes)")
    hard: int = Field(5, ge=0, description="Delay after Hard (minutes)")
    good: int = Field(10, ge=0, description="Delay after Good (minutes)")
    easy: int = Field(60, ge=0, description="Delay after Easy (minutes)")

    def for_rating(self, rating: Rating) -> int:
        """Return the step delay in minutes for a rating."""
        return {
            Rating.AGAIN: self.again,
            Rating.HARD: self.hard,
            Rating.GOOD: self.good,
            Rating.EASY: self.easy,
        }[Rating(rating)]


class SchedulerParameters(BaseModel):
    """
    Scheduling engine configuration.

    Attributes:
        weights: FSRS weight vector w[0..16]
        request_retention: Target recall probability, strictly between 0 and 1
        maximum_interval_days: Upper bound on stability and review intervals
        learning_step_minutes: Short-term step table
        graduation_steps: Consecutive non-Again steps needed to graduate
        daily_new_limit: Default cap on never-seen items per day
        daily_review_limit: Default cap on due items per day
        fuzz_fraction: Relative width of the interval fuzz window
        mastery_stability_threshold_days: Stability above which a review
            item counts as mastered
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    weights: tuple[float, ...] = Field(default=DEFAULT_WEIGHTS)
    request_retention: float = Field(0.9, gt=0.0, lt=1.0)
    maximum_interval_days: int = Field(365, ge=1)
    learning_step_minutes: LearningSteps = Field(default_factory=LearningSteps)
    graduation_steps: int = Field(2, ge=1)
    daily_new_limit: int = Field(20, ge=0)
    daily_review_limit: int = Field(100, ge=0)
    fuzz_fraction: float = Field(0.05, ge=0.0, lt=1.0)
    mastery_stability_threshold_days: float = Field(21.0, gt=0.0)

    @field_validator("weights")
    @classmethod
    def _check_weight_count(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if len(value) != WEIGHT_COUNT:
            raise ValueError(
                f"weights must contain exactly {WEIGHT_COUNT} values, got {len(value)}"
            )
        return value
