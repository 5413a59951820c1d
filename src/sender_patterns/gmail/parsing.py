"""Helpers for parsing Gmail thread payloads into internal models."""

from __future__ import annotations

import base64
import re
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any

from bs4 import BeautifulSoup

from sender_patterns.models import EmailForLLM, ThreadMessage
from sender_patterns.utils import extract_email_address

_WHITESPACE_RE = re.compile(r"[ \t\r\f\v]+")
_BLANK_LINES_RE = re.compile(r"\n{3,}")


def _header_map(message: dict[str, Any]) -> dict[str, str]:
    payload = message.get("payload") or {}
    headers = payload.get("headers") or []
    result: dict[str, str] = {}
    for h in headers:
        name = h.get("name")
        value = h.get("value")
        if isinstance(name, str) and isinstance(value, str):
            # Gmail can include duplicates; keep the first for now.
            result.setdefault(name.lower(), value)
    return result


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return parsedate_to_datetime(value)
    except (TypeError, ValueError, OverflowError):
        return None


def _decode_b64(data: str) -> str:
    # Gmail strips base64 padding from body data.
    padded = data + "=" * (-len(data) % 4)
    raw = base64.urlsafe_b64decode(padded.encode("utf-8"))
    return raw.decode("utf-8", errors="replace")


def _collect_bodies(part: dict[str, Any], texts: list[str], htmls: list[str]) -> None:
    mime = (part.get("mimeType") or "").lower()
    body = part.get("body") or {}
    data = body.get("data")
    if data:
        if mime.startswith("text/plain"):
            texts.append(_decode_b64(data))
        elif mime.startswith("text/html"):
            htmls.append(_decode_b64(data))

    for child in part.get("parts") or []:
        _collect_bodies(child, texts, htmls)


def message_to_thread_message(message: dict[str, Any]) -> ThreadMessage:
    """Convert a Gmail API message (format=full) to ThreadMessage.

    Args:
        message: Gmail API message dict, as found in ``threads.get(...)["messages"]``.

    Returns:
        ThreadMessage: Parsed message with decoded bodies.
    """

    hm = _header_map(message)

    texts: list[str] = []
    htmls: list[str] = []
    _collect_bodies(message.get("payload") or {}, texts, htmls)

    label_ids = message.get("labelIds") or []
    if not isinstance(label_ids, list):
        label_ids = []

    from_raw = hm.get("from") or ""

    return ThreadMessage(
        id=str(message.get("id") or ""),
        thread_id=str(message.get("threadId") or ""),
        from_raw=from_raw,
        from_email=extract_email_address(from_raw),
        subject=hm.get("subject") or "",
        snippet=message.get("snippet") or "",
        body_text="\n\n".join(t.strip() for t in texts if t.strip()),
        body_html="\n".join(htmls),
        date=_parse_date(hm.get("date")),
        label_ids=[str(x) for x in label_ids if isinstance(x, str)],
    )


def html_to_text(html: str) -> str:
    """Best-effort plain-text rendering of an HTML body."""

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "head"]):
        tag.decompose()
    text = soup.get_text("\n")
    lines = [_WHITESPACE_RE.sub(" ", line).strip() for line in text.splitlines()]
    return _BLANK_LINES_RE.sub("\n\n", "\n".join(lines)).strip()


def message_to_email_for_llm(message: ThreadMessage, *, max_chars: int = 2000) -> EmailForLLM:
    """Reduce a message to sender, subject and a truncated plain-text body."""

    content = message.body_text.strip()
    if not content and message.body_html:
        content = html_to_text(message.body_html)
    if not content:
        # Fallback: Gmail's snippet is short but better than nothing.
        content = message.snippet.strip()

    if len(content) > max_chars:
        content = content[:max_chars].rstrip() + "..."

    return EmailForLLM(
        id=message.id,
        from_email=message.from_email,
        subject=message.subject,
        content=content,
        date=message.date,
    )
