"""
Unit Tests for Configuration Management

Tests the Settings class and the scheduler parameter model.
These tests verify:
- Environment variable loading
- Default value handling
- Conversion of settings into explicit engine parameters
- Rejection of malformed engine parameters
"""

import json
import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from vocab_srs.config import (
    DEFAULT_WEIGHTS,
    LearningSteps,
    SchedulerParameters,
    Settings,
    get_settings,
    settings,
)
from vocab_srs.enums.learning import Rating


class TestSettings:
    """Test suite for the Settings Pydantic model."""

    def test_default_values(self) -> None:
        """Settings should have sensible defaults when env vars are not set."""
        with patch.dict(os.environ, {}, clear=True):
            test_settings = Settings(_env_file=None)

            assert test_settings.APP_NAME == "Vocabulary SRS"
            assert test_settings.DEBUG is False
            assert test_settings.DATABASE_URL.startswith("sqlite+aiosqlite://")
            assert test_settings.FSRS_REQUEST_RETENTION == 0.9
            assert test_settings.FSRS_MAXIMUM_INTERVAL_DAYS == 365
            assert test_settings.DAILY_NEW_LIMIT == 20
            assert test_settings.DAILY_REVIEW_LIMIT == 100
            assert test_settings.REVIEW_MAX_ATTEMPTS == 3

    def test_env_variable_override(self) -> None:
        """Environment variables should override default values."""
        env_overrides = {
            "DEBUG": "true",
            "DATABASE_URL": "postgresql+asyncpg://u:p@db:5432/vocab",
            "FSRS_REQUEST_RETENTION": "0.85",
            "FSRS_LEARNING_STEP_MINUTES": json.dumps(
                {"again": 2, "hard": 6, "good": 15, "easy": 120}
            ),
            "DAILY_NEW_LIMIT": "7",
        }

        with patch.dict(os.environ, env_overrides, clear=True):
            test_settings = Settings(_env_file=None)

            assert test_settings.DEBUG is True
            assert test_settings.DATABASE_URL == "postgresql+asyncpg://u:p@db:5432/vocab"
            assert test_settings.FSRS_REQUEST_RETENTION == 0.85
            assert test_settings.FSRS_LEARNING_STEP_MINUTES["good"] == 15
            assert test_settings.DAILY_NEW_LIMIT == 7

    def test_get_settings_is_cached(self) -> None:
        assert get_settings() is get_settings()

    def test_module_level_settings_instance(self) -> None:
        assert isinstance(settings, Settings)


class TestSchedulerParametersFromSettings:
    """Tests for Settings.scheduler_parameters()."""

    def test_defaults_match_engine_defaults(self) -> None:
        params = Settings(_env_file=None).scheduler_parameters()

        assert params == SchedulerParameters()

    def test_overrides_flow_through(self) -> None:
        test_settings = Settings(
            _env_file=None,
            FSRS_REQUEST_RETENTION=0.8,
            FSRS_MAXIMUM_INTERVAL_DAYS=90,
            FSRS_GRADUATION_STEPS=3,
            FSRS_LEARNING_STEP_MINUTES={"again": 1, "hard": 3, "good": 20, "easy": 30},
            MASTERY_STABILITY_THRESHOLD_DAYS=14.0,
        )

        params = test_settings.scheduler_parameters()

        assert params.request_retention == 0.8
        assert params.maximum_interval_days == 90
        assert params.graduation_steps == 3
        assert params.learning_step_minutes.for_rating(Rating.GOOD) == 20
        assert params.mastery_stability_threshold_days == 14.0

    def test_invalid_retention_rejected(self) -> None:
        test_settings = Settings(_env_file=None, FSRS_REQUEST_RETENTION=1.2)

        with pytest.raises(ValidationError):
            test_settings.scheduler_parameters()


class TestSchedulerParameters:
    """Tests for the engine parameter model."""

    def test_defaults(self) -> None:
        params = SchedulerParameters()

        assert params.weights == DEFAULT_WEIGHTS
        assert params.graduation_steps == 2
        assert params.fuzz_fraction == 0.05
        assert params.learning_step_minutes == LearningSteps(again=1, hard=5, good=10, easy=60)

    def test_wrong_weight_count(self) -> None:
        with pytest.raises(ValidationError, match="exactly 17"):
            SchedulerParameters(weights=(0.4, 0.6))

    def test_unknown_field_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SchedulerParameters(request_retension=0.9)

    def test_frozen(self) -> None:
        params = SchedulerParameters()

        with pytest.raises(ValidationError):
            params.request_retention = 0.5

    @pytest.mark.parametrize(
        "field,value",
        [
            ("request_retention", 0.0),
            ("request_retention", 1.0),
            ("maximum_interval_days", 0),
            ("graduation_steps", 0),
            ("daily_new_limit", -1),
            ("fuzz_fraction", -0.1),
        ],
    )
    def test_out_of_range(self, field, value) -> None:
        with pytest.raises(ValidationError):
            SchedulerParameters(**{field: value})

    def test_learning_steps_lookup(self) -> None:
        steps = LearningSteps()

        assert [steps.for_rating(rating) for rating in Rating] == [1, 5, 10, 60]
