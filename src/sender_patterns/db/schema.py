"""Idempotent schema bootstrap.

Every statement is safe to run on each startup. The DDL sticks to types and
constraints that PostgreSQL and SQLite both accept, so tests can run against a
throwaway SQLite file.

Uniqueness constraints here are what make concurrent analysis runs safe:
- sender_check(email_account_id, email): one ledger row per sender
- rule_group(rule_id): at most one grouping container per rule
- group_item(group_id, type, value): one criterion per value
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger()


_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS email_account (
        id TEXT PRIMARY KEY,
        email TEXT NOT NULL UNIQUE,
        about TEXT,
        ai_model TEXT,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS account_credential (
        email_account_id TEXT PRIMARY KEY REFERENCES email_account(id) ON DELETE CASCADE,
        access_token TEXT,
        refresh_token TEXT,
        expires_at TIMESTAMP,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rule (
        id TEXT PRIMARY KEY,
        email_account_id TEXT NOT NULL REFERENCES email_account(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        instructions TEXT,
        enabled BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMP NOT NULL,
        UNIQUE (email_account_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS rule_group (
        id TEXT PRIMARY KEY,
        email_account_id TEXT NOT NULL REFERENCES email_account(id) ON DELETE CASCADE,
        name TEXT NOT NULL,
        rule_id TEXT UNIQUE REFERENCES rule(id) ON DELETE SET NULL,
        created_at TIMESTAMP NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS group_item (
        id TEXT PRIMARY KEY,
        group_id TEXT NOT NULL REFERENCES rule_group(id) ON DELETE CASCADE,
        type TEXT NOT NULL CHECK (type IN ('FROM', 'SUBJECT', 'BODY')),
        value TEXT NOT NULL,
        exclude BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL,
        UNIQUE (group_id, type, value)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS sender_check (
        id TEXT PRIMARY KEY,
        email_account_id TEXT NOT NULL REFERENCES email_account(id) ON DELETE CASCADE,
        email TEXT NOT NULL,
        pattern_analyzed BOOLEAN NOT NULL DEFAULT FALSE,
        last_analyzed_at TIMESTAMP,
        UNIQUE (email_account_id, email)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_rule_email_account
        ON rule(email_account_id)
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_group_item_group
        ON group_item(group_id)
    """,
)


def ensure_schema(engine) -> None:
    """Ensure required tables exist (idempotent).

    Args:
        engine: SQLAlchemy engine bound to the database.
    """

    from sqlalchemy import text

    # SQLite's driver only runs one statement per execute().
    with engine.begin() as conn:
        for statement in _STATEMENTS:
            conn.execute(text(statement))

    logger.info("schema_ensured", statements=len(_STATEMENTS))
