"""
Interval Fuzzing

Spreads review intervals by a small random amount so that items learned
together do not all come due on the same day.

The random source is injected: production code gets an entropy-seeded
``random.Random``; tests pass ``random.Random(seed)`` and can assert exact
outputs.
"""

import copy
import random
from typing import Optional


class IntervalFuzzer:
    """
    Bounded uniform perturbation of day intervals.

    Intervals of 2 days or fewer are returned unchanged. Longer intervals
    move by a whole number of days within ±fuzz_fraction of the interval
    (at least ±1 day), never below 1 day.
    """

    def __init__(
        self,
        fuzz_fraction: float = 0.05,
        rng: Optional[random.Random] = None,
    ):
        self.fuzz_fraction = fuzz_fraction
        self.rng = rng if rng is not None else random.Random()

    def fuzz(self, interval_days: int) -> int:
        if interval_days <= 2:
            return interval_days
        spread = max(1, round(interval_days * self.fuzz_fraction))
        offset = self.rng.randint(-spread, spread)
        return max(1, interval_days + offset)

    def fork(self) -> "IntervalFuzzer":
        """
        Return an independent fuzzer starting from this one's random state.

        Drawing from the fork does not advance this fuzzer, and the fork's
        first draw equals the draw this fuzzer would make next.
        """
        return IntervalFuzzer(
            fuzz_fraction=self.fuzz_fraction,
            rng=copy.deepcopy(self.rng),
        )
