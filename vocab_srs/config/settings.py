"""
Application Configuration

This module provides type-safe configuration loading using Pydantic settings.
Environment variables are loaded from .env file and validated.

The engine itself never reads these settings; the orchestration services
(review_service, session_service) and the SQLAlchemy adapter do, and hand
explicit SchedulerParameters to the engine.

Usage:
    from vocab_srs.config import settings

    # Access settings
    db_url = settings.DATABASE_URL
    params = settings.scheduler_parameters()
"""

from functools import lru_cache

from pydantic_settings import BaseSettings

from vocab_srs.config.scheduler import DEFAULT_WEIGHTS, LearningSteps, SchedulerParameters


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Vocabulary SRS"
    DEBUG: bool = False

    # Database (SQLAlchemy async URL)
    DATABASE_URL: str = "sqlite+aiosqlite:///./vocab_srs.db"
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30

    # FSRS memory model
    FSRS_WEIGHTS: list[float] = list(DEFAULT_WEIGHTS)
    FSRS_REQUEST_RETENTION: float = 0.9
    FSRS_MAXIMUM_INTERVAL_DAYS: int = 365
    FSRS_FUZZ_FRACTION: float = 0.05

    # Short-term learning steps (minutes per rating)
    FSRS_LEARNING_STEP_MINUTES: dict[str, int] = {
        "again": 1,
        "hard": 5,
        "good": 10,
        "easy": 60,
    }
    FSRS_GRADUATION_STEPS: int = 2

    # Mastery projection
    MASTERY_STABILITY_THRESHOLD_DAYS: float = 21.0

    # Daily session limits (defaults for new book progress rows)
    DAILY_NEW_LIMIT: int = 20
    DAILY_REVIEW_LIMIT: int = 100

    # Session composition
    SESSION_MINUTES_PER_ITEM: float = 0.5  # ~30 seconds per word
    SESSION_JITTER_MINUTES: float = 5.0  # Max per-item due-time jitter

    # Optimistic-lock retries for review commits
    REVIEW_MAX_ATTEMPTS: int = 3
    REVIEW_RETRY_WAIT_SECONDS: float = 0.05

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    def scheduler_parameters(self) -> SchedulerParameters:
        """Build the explicit engine configuration from these settings."""
        return SchedulerParameters(
            weights=tuple(self.FSRS_WEIGHTS),
            request_retention=self.FSRS_REQUEST_RETENTION,
            maximum_interval_days=self.FSRS_MAXIMUM_INTERVAL_DAYS,
            learning_step_minutes=LearningSteps(**self.FSRS_LEARNING_STEP_MINUTES),
            graduation_steps=self.FSRS_GRADUATION_STEPS,
            daily_new_limit=self.DAILY_NEW_LIMIT,
            daily_review_limit=self.DAILY_REVIEW_LIMIT,
            fuzz_fraction=self.FSRS_FUZZ_FRACTION,
            mastery_stability_threshold_days=self.MASTERY_STABILITY_THRESHOLD_DAYS,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
