"""
Shared Test Fixtures and Configuration

This module provides pytest fixtures used across unit and integration tests.
"""

import os
import random
from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import pytest
from dotenv import load_dotenv

# Load .env file from project root BEFORE any fixtures run
_env_file = Path(__file__).parent.parent / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

from vocab_srs.config.scheduler import SchedulerParameters  # noqa: E402
from vocab_srs.config.settings import Settings  # noqa: E402
from vocab_srs.services.learning.card_state import (  # noqa: E402
    SchedulingRecord,
    create_initial_record,
)
from vocab_srs.services.learning.fsrs import FSRSScheduler, create_scheduler  # noqa: E402
from vocab_srs.services.learning.store import InMemorySchedulingStore  # noqa: E402

USER_ID = "user-1"
BOOK_ID = "book-1"


# ============================================================================
# Environment Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment() -> Generator[None, None, None]:
    """
    Set up test environment variables before any tests run.

    Keeps tests off any real database configured in a developer's .env.
    """
    original_env = os.environ.copy()

    os.environ.update(
        {
            "DATABASE_URL": "sqlite+aiosqlite:///:memory:",
            "DEBUG": "false",
        }
    )

    yield

    os.environ.clear()
    os.environ.update(original_env)


# ============================================================================
# Engine Fixtures
# ============================================================================


@pytest.fixture
def now() -> datetime:
    """Fixed reference time for deterministic scheduling."""
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def rng() -> random.Random:
    """Seeded random source."""
    return random.Random(42)


@pytest.fixture
def parameters() -> SchedulerParameters:
    """Default engine parameters."""
    return SchedulerParameters()


@pytest.fixture
def scheduler(rng) -> FSRSScheduler:
    """Scheduler with a seeded fuzzer."""
    return create_scheduler(rng=rng)


@pytest.fixture
def new_record(now) -> SchedulingRecord:
    """Never-reviewed record, due immediately."""
    return create_initial_record(USER_ID, "word-1", BOOK_ID, now)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with explicit values, independent of the environment."""
    return Settings(
        DATABASE_URL="sqlite+aiosqlite:///:memory:",
        REVIEW_MAX_ATTEMPTS=3,
        REVIEW_RETRY_WAIT_SECONDS=0.0,
        DAILY_NEW_LIMIT=20,
        DAILY_REVIEW_LIMIT=100,
    )


@pytest.fixture
def contended_settings(test_settings: Settings) -> Settings:
    """Enough attempts for every writer in a burst of concurrent reviews to land."""
    return test_settings.model_copy(update={"REVIEW_MAX_ATTEMPTS": 10})


# ============================================================================
# Storage Fixtures
# ============================================================================


@pytest.fixture
def store() -> InMemorySchedulingStore:
    """In-memory store with one 10-item collection."""
    store = InMemorySchedulingStore()
    store.add_collection(BOOK_ID, [f"word-{i}" for i in range(1, 11)])
    return store
