"""
FSRS-4.5 Memory Model

Closed-form functions for difficulty, stability and retrievability. The
model is pure: no storage, no clock, no randomness. The transition function
composes these into record updates.

Key Concepts:
- Difficulty (D): How hard the item is to retain, in [1, 10]
- Stability (S): Days until recall probability decays to the target retention
- Retrievability (R): Recall probability after t days, (1 + t/(9S))^-1

Weights follow the FSRS-4.5 layout:
    w0-w3   initial stability per rating
    w4-w5   initial difficulty
    w6-w7   difficulty update and mean reversion
    w8-w10  stability after a successful recall
    w11-w14 stability after a lapse
    w15     hard penalty
    w16     easy bonus

Usage:
    from vocab_srs.services.learning.memory_model import MemoryModel

    model = MemoryModel()
    d = model.init_difficulty(Rating.GOOD)
    s = model.init_stability(Rating.GOOD)
    interval = model.next_interval(s)
"""

import math
from typing import Optional

from vocab_srs.config.scheduler import SchedulerParameters
from vocab_srs.enums.learning import Rating
from vocab_srs.services.learning.card_state import (
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    STABILITY_MIN,
)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


class MemoryModel:
    """
    Numeric FSRS-4.5 memory model.

    Attributes:
        weights: The 17-element weight vector
        request_retention: Target recall probability used for intervals
        maximum_interval: Upper bound for stability growth (days)
    """

    def __init__(self, parameters: Optional[SchedulerParameters] = None):
        parameters = parameters or SchedulerParameters()
        self.weights = parameters.weights
        self.request_retention = parameters.request_retention
        self.maximum_interval = parameters.maximum_interval_days

    def init_difficulty(self, rating: Rating) -> float:
        """Initial difficulty after the first rating: w4 - (g - 3) * w5."""
        w = self.weights
        return _clamp(w[4] - (int(rating) - 3) * w[5], DIFFICULTY_MIN, DIFFICULTY_MAX)

    def init_stability(self, rating: Rating) -> float:
        """Initial stability after the first rating: w[g - 1]."""
        return max(STABILITY_MIN, self.weights[int(rating) - 1])

    def next_difficulty(self, difficulty: float, rating: Rating) -> float:
        """
        Update difficulty after a review.

        Blends the current difficulty with the initial difficulty of the
        rating (weight w7), then pulls the blend back towards that initial
        value by the same weight. Result is clamped to [1, 10].
        """
        w7 = self.weights[7]
        target = self.init_difficulty(rating)
        blended = w7 * target + (1 - w7) * difficulty
        reverted = blended + w7 * (target - blended)
        return _clamp(reverted, DIFFICULTY_MIN, DIFFICULTY_MAX)

    def retrievability(self, elapsed_days: float, stability: float) -> float:
        """Recall probability after ``elapsed_days``; 0 for non-positive stability."""
        if stability <= 0:
            return 0.0
        return 1.0 / (1.0 + elapsed_days / (9.0 * stability))

    def next_interval(
        self, stability: float, retention: Optional[float] = None
    ) -> int:
        """
        Days until retrievability drops to ``retention``.

        Args:
            stability: Current stability in days
            retention: Target retention (default: the model's request_retention)

        Returns:
            Interval in whole days, at least 1. Invalid retention or
            non-positive stability yields 1.
        """
        retention = self.request_retention if retention is None else retention
        if retention <= 0 or retention >= 1 or stability <= 0:
            return 1
        interval = round(9.0 * stability * (1.0 / retention - 1.0))
        return max(1, int(interval))

    def next_stability_on_success(
        self,
        difficulty: float,
        stability: float,
        retrievability: float,
        rating: Rating,
    ) -> float:
        """
        Stability after a successful recall (Hard, Good or Easy).

        S' = S * (e^w8 * (11 - D) * S^-w9 * (e^(w10 * (1 - R)) - 1) * hard * easy + 1)

        where ``hard`` is w15 for Hard ratings and ``easy`` is w16 for Easy
        ratings (1 otherwise). Clamped to [0.1, maximum_interval].
        """
        w = self.weights
        if stability <= 0:
            return STABILITY_MIN
        hard_penalty = w[15] if rating == Rating.HARD else 1.0
        easy_bonus = w[16] if rating == Rating.EASY else 1.0
        growth = (
            math.exp(w[8])
            * (11 - difficulty)
            * math.pow(stability, -w[9])
            * (math.exp(w[10] * (1 - retrievability)) - 1)
            * hard_penalty
            * easy_bonus
        )
        return _clamp(stability * (growth + 1), STABILITY_MIN, self.maximum_interval)

    def next_stability_on_failure(
        self,
        difficulty: float,
        stability: float,
        retrievability: float,
    ) -> float:
        """
        Stability after a lapse.

        S' = w11 * D^-w12 * ((S + 1)^w13 - 1) * e^(w14 * (1 - R))

        Clamped to [0.1, S] so a lapse never increases stability.
        """
        w = self.weights
        if difficulty <= 0:
            difficulty = DIFFICULTY_MIN
        value = (
            w[11]
            * math.pow(difficulty, -w[12])
            * (math.pow(stability + 1, w[13]) - 1)
            * math.exp(w[14] * (1 - retrievability))
        )
        return _clamp(value, STABILITY_MIN, max(STABILITY_MIN, stability))
