"""SQLAlchemy engine construction.

PostgreSQL is the production store. SQLite is supported for local runs and
tests; both understand the ``ON CONFLICT`` upserts the repositories rely on.
"""

from __future__ import annotations

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from sender_patterns.config import Settings


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``."""

    connect_args: dict[str, object] = {}
    if database_url.startswith("sqlite"):
        # Background tasks may run on a different thread than the one that opened the pool.
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args)


def engine_from_settings(settings: Settings) -> Engine:
    return create_db_engine(settings.database_url)


def check_connection(engine: Engine) -> None:
    """Verify the database is reachable."""

    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
