"""Email account and credential persistence."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import text

from sender_patterns.models import AccountTokens, EmailAccountWithRules, RuleCandidate
from sender_patterns.utils import parse_db_datetime


def _now() -> datetime:
    return datetime.now(timezone.utc)


def create_email_account(
    engine,
    *,
    email: str,
    about: str | None = None,
    ai_model: str | None = None,
    account_id: str | None = None,
) -> str:
    """Insert an email account and return its id."""

    account_id = account_id or str(uuid.uuid4())
    q = text(
        """
        INSERT INTO email_account (id, email, about, ai_model, created_at)
        VALUES (:id, :email, :about, :ai_model, :created_at)
        """
    )
    with engine.begin() as conn:
        conn.execute(
            q,
            {
                "id": account_id,
                "email": email.strip().lower(),
                "about": about,
                "ai_model": ai_model,
                "created_at": _now(),
            },
        )
    return account_id


def save_account_tokens(
    engine,
    *,
    email_account_id: str,
    access_token: str | None,
    refresh_token: str | None,
    expires_at: datetime | None,
) -> None:
    """Store (or replace) an account's OAuth tokens.

    A ``None`` refresh token keeps the previously stored one, since Google only
    returns it on the first consent.
    """

    q = text(
        """
        INSERT INTO account_credential (email_account_id, access_token, refresh_token, expires_at, updated_at)
        VALUES (:aid, :access_token, :refresh_token, :expires_at, :updated_at)
        ON CONFLICT (email_account_id)
        DO UPDATE SET
            access_token = EXCLUDED.access_token,
            refresh_token = COALESCE(EXCLUDED.refresh_token, account_credential.refresh_token),
            expires_at = EXCLUDED.expires_at,
            updated_at = EXCLUDED.updated_at
        """
    )
    with engine.begin() as conn:
        conn.execute(
            q,
            {
                "aid": email_account_id,
                "access_token": access_token,
                "refresh_token": refresh_token,
                "expires_at": expires_at,
                "updated_at": _now(),
            },
        )


def get_email_account_with_rules(engine, email_account_id: str) -> EmailAccountWithRules | None:
    """Load an account, its stored tokens and the rules the LLM may choose from.

    Only enabled rules with non-empty instructions are returned as candidates.
    """

    account_q = text(
        """
        SELECT
            a.id,
            a.email,
            a.about,
            a.ai_model,
            c.access_token,
            c.refresh_token,
            c.expires_at
        FROM email_account a
        LEFT JOIN account_credential c ON c.email_account_id = a.id
        WHERE a.id = :aid
        """
    )
    rules_q = text(
        """
        SELECT name, instructions
        FROM rule
        WHERE email_account_id = :aid
          AND enabled = :enabled
          AND instructions IS NOT NULL
          AND TRIM(instructions) <> ''
        ORDER BY name ASC
        """
    )

    with engine.begin() as conn:
        row = conn.execute(account_q, {"aid": email_account_id}).fetchone()
        if row is None:
            return None
        rule_rows = conn.execute(rules_q, {"aid": email_account_id, "enabled": True}).fetchall()

    tokens = None
    if row[4] is not None or row[5] is not None:
        tokens = AccountTokens(
            access_token=row[4],
            refresh_token=row[5],
            expires_at=parse_db_datetime(row[6]),
        )

    return EmailAccountWithRules(
        id=row[0],
        email=row[1],
        about=row[2],
        ai_model=row[3],
        tokens=tokens,
        rules=[RuleCandidate(name=r[0], instructions=r[1]) for r in rule_rows],
    )
