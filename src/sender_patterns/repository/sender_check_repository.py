"""Sender check ledger.

One row per (account, normalized sender). A row with ``pattern_analyzed`` set
means the sender has been through a complete analysis and must never be sent
to the LLM again. Rows are only ever upserted, never deleted.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import text

from sender_patterns.models import SenderCheck
from sender_patterns.utils import parse_db_datetime


def _now() -> datetime:
    return datetime.now(timezone.utc)


def get_sender_check(engine, *, email_account_id: str, email: str) -> SenderCheck | None:
    q = text(
        """
        SELECT email_account_id, email, pattern_analyzed, last_analyzed_at
        FROM sender_check
        WHERE email_account_id = :aid AND email = :email
        """
    )
    with engine.begin() as conn:
        row = conn.execute(q, {"aid": email_account_id, "email": email}).fetchone()

    if row is None:
        return None

    return SenderCheck(
        email_account_id=row[0],
        email=row[1],
        pattern_analyzed=bool(row[2]),
        last_analyzed_at=parse_db_datetime(row[3]),
    )


def is_sender_analyzed(engine, *, email_account_id: str, email: str) -> bool:
    check = get_sender_check(engine, email_account_id=email_account_id, email=email)
    return bool(check and check.pattern_analyzed)


def save_pattern_check(
    engine,
    *,
    email_account_id: str,
    email: str,
    analyzed_at: datetime | None = None,
) -> None:
    """Mark a sender as analysed.

    Concurrent writers for the same sender converge on a single row; the last
    writer's timestamp wins.
    """

    q = text(
        """
        INSERT INTO sender_check (id, email_account_id, email, pattern_analyzed, last_analyzed_at)
        VALUES (:id, :aid, :email, :analyzed, :analyzed_at)
        ON CONFLICT (email_account_id, email)
        DO UPDATE SET
            pattern_analyzed = EXCLUDED.pattern_analyzed,
            last_analyzed_at = EXCLUDED.last_analyzed_at
        """
    )
    with engine.begin() as conn:
        conn.execute(
            q,
            {
                "id": str(uuid.uuid4()),
                "aid": email_account_id,
                "email": email,
                "analyzed": True,
                "analyzed_at": analyzed_at or _now(),
            },
        )


def count_sender_checks(engine, email_account_id: str) -> int:
    q = text("SELECT COUNT(*) FROM sender_check WHERE email_account_id = :aid")
    with engine.begin() as conn:
        return int(conn.execute(q, {"aid": email_account_id}).scalar() or 0)
