"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import base64
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from sender_patterns.models import PatternResult, SenderThread, ThreadMessage


class FakeGmail:
    """In-memory thread source that records every provider call."""

    def __init__(self, threads: list[SenderThread] | None = None, *, error: Exception | None = None) -> None:
        self.threads = list(threads or [])
        self.error = error
        self.search_calls: list[tuple[str, int]] = []
        self.thread_calls: list[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    @property
    def call_count(self) -> int:
        return len(self.search_calls) + len(self.thread_calls)

    async def search_threads(self, query, *, label_ids=None, max_results=10):
        self.search_calls.append((query, max_results))
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return [{"id": t.thread_id} for t in self.threads[:max_results]]

    async def get_thread_messages(self, thread_id):
        self.thread_calls.append(thread_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            for t in self.threads:
                if t.thread_id == thread_id:
                    return list(t.messages)
            return []
        finally:
            self.in_flight -= 1


class FakeOracle:
    """Oracle double returning a fixed verdict."""

    def __init__(self, matched_rule: str | None = None, *, error: Exception | None = None) -> None:
        self.matched_rule = matched_rule
        self.error = error
        self.calls: list[dict] = []

    async def detect(self, emails, account, rules):
        self.calls.append({"emails": emails, "account": account, "rules": rules})
        await asyncio.sleep(0)
        if self.error is not None:
            raise self.error
        return PatternResult(matched_rule=self.matched_rule)


def make_message(thread_id: str, index: int, sender: str, subject: str = "Weekly digest") -> ThreadMessage:
    return ThreadMessage(
        id=f"{thread_id}-m{index}",
        thread_id=thread_id,
        from_raw=sender,
        from_email=sender.split("<")[-1].rstrip(">").strip().lower(),
        subject=f"{subject} #{index}",
        body_text=f"Issue {index}: the latest news from us.",
    )


def make_one_way_threads(sender: str, count: int, messages_per_thread: int = 1) -> list[SenderThread]:
    return [
        SenderThread(
            thread_id=f"t{i}",
            messages=[make_message(f"t{i}", j, sender) for j in range(messages_per_thread)],
        )
        for i in range(count)
    ]


@pytest.fixture
def fakes() -> SimpleNamespace:
    """Expose the test doubles and thread builders to test modules."""
    return SimpleNamespace(
        FakeGmail=FakeGmail,
        FakeOracle=FakeOracle,
        make_message=make_message,
        make_one_way_threads=make_one_way_threads,
    )


@pytest.fixture
def mock_settings(tmp_path):
    """Provide mock settings for testing."""
    from sender_patterns.config import Settings

    return Settings(
        database_url=f"sqlite:///{tmp_path / 'test.sqlite3'}",
        internal_api_key="test-internal-key",
        ollama_host="http://test:11434",
        ollama_model="test-model",
        gmail_client_id="client-id",
        gmail_client_secret="client-secret",
        analysis_timeout_seconds=5,
        log_level="DEBUG",
        debug=True,
    )


@pytest.fixture
def engine(mock_settings):
    """Fresh SQLite database with the schema applied."""
    from sender_patterns.db.engine import create_db_engine
    from sender_patterns.db.schema import ensure_schema

    eng = create_db_engine(mock_settings.database_url)
    ensure_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def account_id(engine) -> str:
    """An account with valid tokens and a mix of rules."""
    from sender_patterns.repository import create_email_account, create_rule, save_account_tokens

    aid = create_email_account(engine, email="me@example.com", about="I run a small bakery.")
    save_account_tokens(
        engine,
        email_account_id=aid,
        access_token="access-token",
        refresh_token="refresh-token",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    create_rule(engine, email_account_id=aid, name="Newsletters", instructions="Newsletters and digests")
    create_rule(engine, email_account_id=aid, name="Receipts", instructions="Order confirmations and receipts")
    create_rule(engine, email_account_id=aid, name="Archived", instructions="Old stuff", enabled=False)
    create_rule(engine, email_account_id=aid, name="Manual", instructions=None)
    return aid


@pytest.fixture
def fake_gmail_factory():
    """Build a gmail_factory returning the given FakeGmail."""

    def _factory(gmail: FakeGmail):
        async def _build(account):
            return gmail

        return _build

    return _factory


def _b64(text: str) -> str:
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


@pytest.fixture
def sample_thread_data() -> dict:
    """Provide a Gmail threads.get(format=full) payload."""
    return {
        "id": "thread789",
        "messages": [
            {
                "id": "msg123456",
                "threadId": "thread789",
                "labelIds": ["INBOX", "UNREAD"],
                "snippet": "Weekly Newsletter - Python Tips",
                "payload": {
                    "mimeType": "multipart/alternative",
                    "headers": [
                        {"name": "Subject", "value": "Weekly Newsletter - Python Tips"},
                        {"name": "From", "value": "Python Weekly <Newsletter@Python.org>"},
                        {"name": "To", "value": "user@example.com"},
                        {"name": "Date", "value": "Mon, 1 Jan 2024 12:00:00 +0000"},
                    ],
                    "parts": [
                        {"mimeType": "text/plain", "body": {"data": _b64("Welcome to this week's Python tips!")}},
                        {
                            "mimeType": "text/html",
                            "body": {"data": _b64("<p>Welcome to this week's <b>Python</b> tips!</p>")},
                        },
                    ],
                },
            },
            {
                "id": "msg123457",
                "threadId": "thread789",
                "labelIds": ["INBOX"],
                "snippet": "Second issue",
                "payload": {
                    "mimeType": "text/html",
                    "headers": [
                        {"name": "Subject", "value": "Weekly Newsletter - More Tips"},
                        {"name": "From", "value": "newsletter@python.org"},
                    ],
                    "body": {"data": _b64("<html><style>p{}</style><body><p>Hello</p><p>World</p></body></html>")},
                },
            },
        ],
    }
