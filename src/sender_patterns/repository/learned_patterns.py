"""Learned pattern persistence (rule -> grouping container -> criteria).

A rule gets its grouping container lazily, the first time a pattern is learned
for it. Container creation and criterion inserts are upserts keyed by the
schema's unique constraints, so duplicate background runs (possibly on
different workers) cannot create duplicate rows.

Two write paths exist on purpose:
- ``save_learned_pattern`` (single sender) never touches an existing
  criterion, so a user-set exclude flag survives.
- ``save_learned_patterns`` (bulk) overwrites the exclude flag with the new
  assertion.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog
from sqlalchemy import text

from sender_patterns.models import GroupItem, GroupItemType, LearnedPattern, RuleGroup

logger = structlog.get_logger()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _find_rule_id(conn, *, email_account_id: str, rule_name: str) -> str | None:
    rid = conn.execute(
        text("SELECT id FROM rule WHERE email_account_id = :aid AND name = :name"),
        {"aid": email_account_id, "name": rule_name},
    ).scalar()
    return None if rid is None else str(rid)


def _ensure_rule_group(conn, *, email_account_id: str, rule_id: str, rule_name: str) -> str:
    """Return the rule's grouping container id, creating it if absent."""

    conn.execute(
        text(
            """
            INSERT INTO rule_group (id, email_account_id, name, rule_id, created_at)
            VALUES (:id, :aid, :name, :rid, :created_at)
            ON CONFLICT (rule_id) DO NOTHING
            """
        ),
        {
            "id": str(uuid.uuid4()),
            "aid": email_account_id,
            "name": rule_name,
            "rid": rule_id,
            "created_at": _now(),
        },
    )

    gid = conn.execute(
        text("SELECT id FROM rule_group WHERE rule_id = :rid"),
        {"rid": rule_id},
    ).scalar()
    return str(gid)


def save_learned_pattern(
    engine,
    *,
    email_account_id: str,
    rule_name: str,
    from_email: str,
) -> None:
    """Add a sender address to a rule's grouping container.

    Creates the container if the rule has none. Re-asserting an existing
    sender is a no-op. A missing rule is logged and ignored: it may have been
    deleted between the LLM's decision and this write.
    """

    now = _now()
    with engine.begin() as conn:
        rule_id = _find_rule_id(conn, email_account_id=email_account_id, rule_name=rule_name)
        if rule_id is None:
            logger.error("rule_not_found", email_account_id=email_account_id, rule_name=rule_name)
            return

        group_id = _ensure_rule_group(
            conn,
            email_account_id=email_account_id,
            rule_id=rule_id,
            rule_name=rule_name,
        )

        conn.execute(
            text(
                """
                INSERT INTO group_item (id, group_id, type, value, exclude, created_at, updated_at)
                VALUES (:id, :gid, :type, :value, :exclude, :now, :now)
                ON CONFLICT (group_id, type, value) DO NOTHING
                """
            ),
            {
                "id": str(uuid.uuid4()),
                "gid": group_id,
                "type": GroupItemType.FROM.value,
                "value": from_email,
                "exclude": False,
                "now": now,
            },
        )

    logger.info(
        "learned_pattern_saved",
        email_account_id=email_account_id,
        rule_name=rule_name,
        group_id=group_id,
        from_email=from_email,
    )


def save_learned_patterns(
    engine,
    *,
    email_account_id: str,
    rule_name: str,
    patterns: list[LearnedPattern],
) -> None:
    """Assert several criteria for a rule at once.

    Unlike ``save_learned_pattern``, an existing criterion has its exclude flag
    overwritten by the new assertion.
    """

    now = _now()
    with engine.begin() as conn:
        rule_id = _find_rule_id(conn, email_account_id=email_account_id, rule_name=rule_name)
        if rule_id is None:
            logger.error("rule_not_found", email_account_id=email_account_id, rule_name=rule_name)
            return

        group_id = _ensure_rule_group(
            conn,
            email_account_id=email_account_id,
            rule_id=rule_id,
            rule_name=rule_name,
        )

        q = text(
            """
            INSERT INTO group_item (id, group_id, type, value, exclude, created_at, updated_at)
            VALUES (:id, :gid, :type, :value, :exclude, :now, :now)
            ON CONFLICT (group_id, type, value)
            DO UPDATE SET exclude = EXCLUDED.exclude, updated_at = EXCLUDED.updated_at
            """
        )
        for pattern in patterns:
            conn.execute(
                q,
                {
                    "id": str(uuid.uuid4()),
                    "gid": group_id,
                    "type": GroupItemType(pattern.type).value,
                    "value": pattern.value,
                    "exclude": bool(pattern.exclude),
                    "now": now,
                },
            )

    logger.info(
        "learned_patterns_saved",
        email_account_id=email_account_id,
        rule_name=rule_name,
        group_id=group_id,
        pattern_count=len(patterns),
    )


def get_rule_group(engine, *, email_account_id: str, rule_name: str) -> RuleGroup | None:
    """Return the grouping container linked to a rule, if one exists."""

    q = text(
        """
        SELECT g.id, g.email_account_id, g.name, g.rule_id
        FROM rule_group g
        JOIN rule r ON r.id = g.rule_id
        WHERE r.email_account_id = :aid AND r.name = :name
        """
    )
    with engine.begin() as conn:
        row = conn.execute(q, {"aid": email_account_id, "name": rule_name}).fetchone()

    if row is None:
        return None
    return RuleGroup(id=row[0], email_account_id=row[1], name=row[2], rule_id=row[3])


def list_rule_groups(engine, email_account_id: str) -> list[RuleGroup]:
    q = text(
        """
        SELECT id, email_account_id, name, rule_id
        FROM rule_group
        WHERE email_account_id = :aid
        ORDER BY created_at ASC
        """
    )
    with engine.begin() as conn:
        rows = conn.execute(q, {"aid": email_account_id}).fetchall()
    return [RuleGroup(id=r[0], email_account_id=r[1], name=r[2], rule_id=r[3]) for r in rows]


def list_group_items(engine, group_id: str) -> list[GroupItem]:
    q = text(
        """
        SELECT id, group_id, type, value, exclude
        FROM group_item
        WHERE group_id = :gid
        ORDER BY created_at ASC, value ASC
        """
    )
    with engine.begin() as conn:
        rows = conn.execute(q, {"gid": group_id}).fetchall()

    return [
        GroupItem(
            id=r[0],
            group_id=r[1],
            type=GroupItemType(r[2]),
            value=r[3],
            exclude=bool(r[4]),
        )
        for r in rows
    ]
