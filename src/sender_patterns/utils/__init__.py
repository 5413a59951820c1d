"""Utility functions for Sender Pattern Learner."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from email.utils import parseaddr

import structlog

from sender_patterns.config import Settings


def extract_email_address(value: str | None) -> str:
    """Reduce a From-style header value to a bare, lower-cased address.

    Args:
        value: Raw value such as ``"Jane Doe <Jane@Example.com>"`` or ``"jane@example.com"``.

    Returns:
        The bare address (``"jane@example.com"``), or ``""`` when nothing usable is found.
    """

    if not value:
        return ""

    _, addr = parseaddr(value)
    addr = addr.strip().lower()
    if "@" not in addr:
        # parseaddr gives up on some display names with unbalanced quotes.
        start = value.rfind("<")
        end = value.rfind(">")
        if 0 <= start < end:
            addr = value[start + 1 : end].strip().lower()
    return addr if "@" in addr else ""


def parse_db_datetime(value: object) -> datetime | None:
    """Coerce a timestamp column value into a timezone-aware datetime.

    PostgreSQL drivers return ``datetime`` objects while SQLite returns ISO strings.
    """

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        raw = str(value)
        # ISO-8601 parsing: allow trailing Z.
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def configure_logging(settings: Settings) -> None:
    """Configure structlog to drop events below the configured level."""

    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
    )
