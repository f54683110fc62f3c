"""Database package."""

from vocab_srs.db.base import Base, async_session_maker, engine, init_db
from vocab_srs.db.repository import SqlAlchemySchedulingStore

__all__ = ["Base", "async_session_maker", "engine", "init_db", "SqlAlchemySchedulingStore"]
