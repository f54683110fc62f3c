"""Configuration package."""

from vocab_srs.config.scheduler import (
    DEFAULT_WEIGHTS,
    LearningSteps,
    SchedulerParameters,
)
from vocab_srs.config.settings import Settings, get_settings, settings

__all__ = [
    # Engine parameters
    "DEFAULT_WEIGHTS",
    "LearningSteps",
    "SchedulerParameters",
    # Application settings
    "Settings",
    "get_settings",
    "settings",
]
