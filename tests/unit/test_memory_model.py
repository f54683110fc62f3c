"""
Unit tests for the FSRS-4.5 memory model.

Tests the closed-form difficulty, stability, retrievability and interval
functions against hand-computed values for the default weights.
"""

import pytest

from vocab_srs.config.scheduler import SchedulerParameters
from vocab_srs.enums.learning import Rating
from vocab_srs.services.learning.memory_model import MemoryModel


@pytest.fixture
def model():
    return MemoryModel()


class TestInitialValues:
    """Tests for first-review difficulty and stability."""

    @pytest.mark.parametrize(
        "rating,expected",
        [
            (Rating.AGAIN, 6.81),
            (Rating.HARD, 5.87),
            (Rating.GOOD, 4.93),
            (Rating.EASY, 3.99),
        ],
    )
    def test_init_difficulty(self, model, rating, expected):
        assert model.init_difficulty(rating) == pytest.approx(expected)

    @pytest.mark.parametrize(
        "rating,expected",
        [
            (Rating.AGAIN, 0.4),
            (Rating.HARD, 0.6),
            (Rating.GOOD, 2.4),
            (Rating.EASY, 5.8),
        ],
    )
    def test_init_stability(self, model, rating, expected):
        assert model.init_stability(rating) == pytest.approx(expected)

    def test_init_difficulty_is_clamped(self):
        """Extreme weights cannot push difficulty outside [1, 10]."""
        weights = list(SchedulerParameters().weights)
        weights[4] = 20.0
        model = MemoryModel(SchedulerParameters(weights=tuple(weights)))

        assert model.init_difficulty(Rating.AGAIN) == 10.0

    def test_init_stability_has_floor(self):
        weights = list(SchedulerParameters().weights)
        weights[0] = 0.01
        model = MemoryModel(SchedulerParameters(weights=tuple(weights)))

        assert model.init_stability(Rating.AGAIN) == 0.1


class TestNextDifficulty:
    """Tests for difficulty updates."""

    def test_blends_towards_rating_target(self, model):
        # w7 = 0.01: blend 0.01 * 4.93 + 0.99 * 5, then revert by 1% of the gap
        blended = 0.01 * 4.93 + 0.99 * 5.0
        expected = blended + 0.01 * (4.93 - blended)

        assert model.next_difficulty(5.0, Rating.GOOD) == pytest.approx(expected)

    def test_again_makes_harder_easy_makes_easier(self, model):
        assert model.next_difficulty(5.0, Rating.AGAIN) > 5.0
        assert model.next_difficulty(5.0, Rating.EASY) < 5.0

    @pytest.mark.parametrize("difficulty", [1.0, 10.0])
    @pytest.mark.parametrize("rating", list(Rating))
    def test_stays_in_bounds(self, model, difficulty, rating):
        assert 1.0 <= model.next_difficulty(difficulty, rating) <= 10.0


class TestRetrievability:
    """Tests for the forgetting curve."""

    def test_no_elapsed_time_is_certain_recall(self, model):
        assert model.retrievability(0, 5.0) == 1.0

    def test_nine_stabilities_halve_recall(self, model):
        assert model.retrievability(9, 1.0) == pytest.approx(0.5)

    def test_decays_over_time(self, model):
        assert model.retrievability(30, 10.0) < model.retrievability(10, 10.0)

    @pytest.mark.parametrize("stability", [0.0, -1.0])
    def test_non_positive_stability_is_zero(self, model, stability):
        assert model.retrievability(5, stability) == 0.0


class TestNextInterval:
    """Tests for interval calculation."""

    def test_interval_equals_stability_at_90_percent(self, model):
        # 9 * S * (1/0.9 - 1) == S
        assert model.next_interval(10.0) == 10
        assert model.next_interval(2.4) == 2

    def test_lower_retention_gives_longer_interval(self, model):
        assert model.next_interval(10.0, retention=0.8) > model.next_interval(10.0)

    def test_interval_floor_is_one_day(self, model):
        assert model.next_interval(0.1) == 1

    @pytest.mark.parametrize("retention", [0.0, 1.0, -0.5, 1.5])
    def test_invalid_retention_gives_one_day(self, model, retention):
        assert model.next_interval(10.0, retention=retention) == 1

    def test_non_positive_stability_gives_one_day(self, model):
        assert model.next_interval(0.0) == 1


class TestStabilityOnSuccess:
    """Tests for stability growth after successful recall."""

    def test_grows_when_recall_was_uncertain(self, model):
        assert model.next_stability_on_success(5.0, 10.0, 0.9, Rating.GOOD) > 10.0

    def test_no_growth_at_certain_recall(self, model):
        # e^(w10 * 0) - 1 == 0
        assert model.next_stability_on_success(5.0, 10.0, 1.0, Rating.GOOD) == pytest.approx(10.0)

    def test_hard_penalty_and_easy_bonus(self, model):
        hard = model.next_stability_on_success(5.0, 10.0, 0.8, Rating.HARD)
        good = model.next_stability_on_success(5.0, 10.0, 0.8, Rating.GOOD)
        easy = model.next_stability_on_success(5.0, 10.0, 0.8, Rating.EASY)

        assert hard < good < easy

    def test_capped_at_maximum_interval(self, model):
        assert model.next_stability_on_success(1.0, 300.0, 0.1, Rating.EASY) <= 365

    def test_cap_follows_parameters(self):
        model = MemoryModel(SchedulerParameters(maximum_interval_days=30))

        assert model.next_stability_on_success(1.0, 25.0, 0.1, Rating.EASY) == 30


class TestStabilityOnFailure:
    """Tests for stability after a lapse."""

    def test_never_exceeds_previous_stability(self, model):
        for stability in (0.5, 2.0, 30.0, 200.0):
            result = model.next_stability_on_failure(5.0, stability, 0.9)
            assert 0.1 <= result <= stability

    def test_drops_well_below_long_stability(self, model):
        assert model.next_stability_on_failure(5.0, 30.0, 0.9) < 10.0

    def test_floor(self, model):
        assert model.next_stability_on_failure(10.0, 0.1, 1.0) == pytest.approx(0.1)
