"""
Database Base Configuration

Sets up the async SQLAlchemy engine and session management for the
SQL-backed scheduling store. Any async SQLAlchemy URL works; the default is
a local SQLite file via aiosqlite.

Usage:
    from vocab_srs.db.base import async_session_maker, Base

    async with async_session_maker() as session:
        result = await session.execute(...)
"""

from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from vocab_srs.config import settings


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for ``url``.

    Pool sizing applies to server databases only; SQLite manages its own
    connections.
    """
    options: dict[str, Any] = {"echo": echo}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
        )
    return create_async_engine(url, **options)


def build_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# Create async engine
engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

# Create async session factory
async_session_maker = build_session_maker(engine)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


# Import models AFTER Base is defined to avoid circular imports.
# This ensures all models are registered with Base.metadata.
from vocab_srs.db import models_learning  # noqa: F401, E402


async def init_db(target: AsyncEngine = engine) -> None:
    """
    Create tables that don't exist.

    For production, use migrations instead.
    """
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
