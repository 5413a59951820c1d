"""Fetch a sender's threads and keep them only if the sender never converses.

A thread counts as a conversation as soon as any message in it comes from an
address other than the sender under analysis. That catches the user's own
replies as well as third parties joining in.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from sender_patterns.models import SenderThread, ThreadMessage
from sender_patterns.utils import extract_email_address

logger = structlog.get_logger()

EXCLUDED_LABELS: tuple[str, ...] = ("sent", "draft")


class ThreadSource(Protocol):
    async def search_threads(
        self,
        query: str,
        *,
        label_ids: list[str] | None = None,
        max_results: int = 10,
    ) -> list[dict]: ...

    async def get_thread_messages(self, thread_id: str) -> list[ThreadMessage]: ...


def sender_thread_query(sender: str) -> str:
    """Gmail query for threads from ``sender`` outside Sent and Drafts."""

    exclusions = " ".join(f"-label:{label}" for label in EXCLUDED_LABELS)
    return f"from:{extract_email_address(sender)} {exclusions}"


async def fetch_sender_threads(
    gmail: ThreadSource,
    sender: str,
    max_results: int,
    *,
    concurrency: int = 3,
) -> list[SenderThread]:
    """Return up to ``max_results`` threads from ``sender`` with all their messages.

    Returns an empty list when nothing matches. Provider failures propagate.
    """

    from_email = extract_email_address(sender)
    handles = await gmail.search_threads(sender_thread_query(from_email), max_results=max_results)
    thread_ids = [str(h["id"]) for h in handles if h.get("id")]

    if not thread_ids:
        return []

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _load(thread_id: str) -> SenderThread:
        async with semaphore:
            messages = await gmail.get_thread_messages(thread_id)
        return SenderThread(thread_id=thread_id, messages=messages)

    # gather keeps the provider's ordering.
    threads = await asyncio.gather(*(_load(tid) for tid in thread_ids))

    logger.info(
        "sender_threads_fetched",
        sender=from_email,
        thread_count=len(threads),
        message_count=sum(len(t.messages) for t in threads),
    )
    return list(threads)


def is_conversation_thread(sender: str, thread: SenderThread) -> bool:
    from_email = extract_email_address(sender)
    return any(extract_email_address(m.from_raw or m.from_email) != from_email for m in thread.messages)


def filter_one_way_threads(sender: str, threads: list[SenderThread]) -> list[SenderThread]:
    """Return the threads if the sender never converses, else an empty list.

    The first conversation thread disqualifies the sender entirely; one-way
    threads collected before it are discarded too.
    """

    one_way: list[SenderThread] = []
    for thread in threads:
        if is_conversation_thread(sender, thread):
            logger.info(
                "conversation_detected",
                sender=extract_email_address(sender),
                thread_id=thread.thread_id,
            )
            return []
        one_way.append(thread)
    return one_way
