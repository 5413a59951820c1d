"""Rule persistence.

Rule names are unique per account; that is the key the LLM answers with.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import text

from sender_patterns.exceptions import ValidationError
from sender_patterns.models import Rule


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _row_to_rule(row) -> Rule:
    return Rule(
        id=row[0],
        email_account_id=row[1],
        name=row[2],
        instructions=row[3],
        enabled=bool(row[4]),
    )


def create_rule(
    engine,
    *,
    email_account_id: str,
    name: str,
    instructions: str | None = None,
    enabled: bool = True,
) -> str:
    """Insert a rule and return its id.

    Raises:
        ValidationError: If ``name`` is blank.
    """

    name = (name or "").strip()
    if not name:
        raise ValidationError("Rule name must not be empty")

    rule_id = str(uuid.uuid4())
    q = text(
        """
        INSERT INTO rule (id, email_account_id, name, instructions, enabled, created_at)
        VALUES (:id, :aid, :name, :instructions, :enabled, :created_at)
        """
    )
    with engine.begin() as conn:
        conn.execute(
            q,
            {
                "id": rule_id,
                "aid": email_account_id,
                "name": name,
                "instructions": instructions,
                "enabled": bool(enabled),
                "created_at": _now(),
            },
        )
    return rule_id


def get_rule_by_name(engine, *, email_account_id: str, name: str) -> Rule | None:
    q = text(
        """
        SELECT id, email_account_id, name, instructions, enabled
        FROM rule
        WHERE email_account_id = :aid AND name = :name
        """
    )
    with engine.begin() as conn:
        row = conn.execute(q, {"aid": email_account_id, "name": name}).fetchone()
    return None if row is None else _row_to_rule(row)


def list_rules(engine, email_account_id: str) -> list[Rule]:
    q = text(
        """
        SELECT id, email_account_id, name, instructions, enabled
        FROM rule
        WHERE email_account_id = :aid
        ORDER BY created_at ASC, name ASC
        """
    )
    with engine.begin() as conn:
        rows = conn.execute(q, {"aid": email_account_id}).fetchall()
    return [_row_to_rule(r) for r in rows]
