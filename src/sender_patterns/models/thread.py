"""Thread and message models built from Gmail API payloads.

These are read-only views of the provider's data. Nothing in this package
writes them back to the mailbox.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ThreadMessage(BaseModel):
    """A single message inside a Gmail thread."""

    id: str = Field(description="Gmail message ID")
    thread_id: str = Field(description="Gmail thread ID")

    # Keep both raw and parsed forms. Raw is useful for display (includes name).
    from_raw: str = Field(default="", description="Raw From header")
    from_email: str = Field(default="", description="Normalized sender email address")

    subject: str = Field(default="", description="Subject header")
    snippet: str = Field(default="", description="Gmail snippet")
    body_text: str = Field(default="", description="Decoded text/plain body")
    body_html: str = Field(default="", description="Decoded text/html body")

    date: datetime | None = Field(default=None, description="Parsed Date header")
    label_ids: list[str] = Field(default_factory=list, description="Gmail label IDs")


class SenderThread(BaseModel):
    """A thread returned for a sender together with all of its messages."""

    thread_id: str = Field(description="Gmail thread ID")
    messages: list[ThreadMessage] = Field(default_factory=list)


class EmailForLLM(BaseModel):
    """The reduced form of a message that is shown to the language model."""

    id: str
    from_email: str
    subject: str = ""
    content: str = ""
    date: datetime | None = None
