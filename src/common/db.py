"""
SQLAlchemy engine construction for the trips database.
Engines are built on demand so tests can point the loader at SQLite without touching `DATABASE_URL`.
"""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from src.common.settings import get_settings


def create_db_engine(database_url: str) -> Engine:
    """Create an engine with the pool settings used by every pipeline."""

    return create_engine(database_url, pool_pre_ping=True, future=True)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Process-wide engine bound to ``DATABASE_URL``."""

    return create_db_engine(get_settings().DATABASE_URL)


def test_connection(engine: Engine | None = None) -> bool:
    """Return True if the database can be reached and queried."""

    try:
        with (engine or get_engine()).connect() as connection:
            connection.execute(text("SELECT 1"))
        return True
    except Exception:
        return False
