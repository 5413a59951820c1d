"""Sender pattern agent implementation.

This module provides the agent that runs one sender analysis end to end:

1. Skip senders that were already analysed for the account
2. Fetch the sender's threads (excluding Sent and Drafts)
3. Give up if the sender has ever been part of a conversation
4. Ask the LLM which rule the sender's mail belongs to
5. Record the sender under that rule and mark the sender as analysed

Only step 5 writes the sender check, so every early exit leaves the sender
eligible for another attempt on the next trigger.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable

import structlog
from sqlalchemy.engine import Engine

from sender_patterns.config import Settings
from sender_patterns.exceptions import AuthenticationError
from sender_patterns.gmail.credentials import get_gmail_client_with_refresh
from sender_patterns.gmail.parsing import message_to_email_for_llm
from sender_patterns.models import AnalysisOutcome, EmailAccountWithRules
from sender_patterns.ollama.client import OllamaClient
from sender_patterns.pattern.oracle import PatternOracle
from sender_patterns.pattern.threads import ThreadSource, fetch_sender_threads, filter_one_way_threads
from sender_patterns.repository.account_repository import get_email_account_with_rules
from sender_patterns.repository.learned_patterns import save_learned_pattern
from sender_patterns.repository.sender_check_repository import is_sender_analyzed, save_pattern_check
from sender_patterns.utils import extract_email_address

logger = structlog.get_logger()

GmailFactory = Callable[[EmailAccountWithRules], Awaitable[ThreadSource]]


class SenderPatternAgent:
    """Learns which rule a one-way sender belongs to.

    The agent keeps no state between runs; everything it knows about a sender
    is read from and written to the database, so any number of workers can
    run it side by side. Repository calls are synchronous and run in worker
    threads via ``asyncio.to_thread``.
    """

    def __init__(
        self,
        engine: Engine,
        settings: Settings | None = None,
        *,
        oracle: PatternOracle | None = None,
        gmail_factory: GmailFactory | None = None,
    ) -> None:
        """Initialize the sender pattern agent.

        Args:
            engine: SQLAlchemy engine for rules, groups and sender checks.
            settings: Application settings. If None, uses default settings.
            oracle: Rule matcher. If None, uses one backed by Ollama.
            gmail_factory: Builds a thread source for an account. If None,
                uses the stored Gmail tokens (refreshing them when expired).
        """
        from sender_patterns.config import get_settings

        self.settings = settings or get_settings()
        self.engine = engine
        self.oracle = oracle or PatternOracle(OllamaClient(self.settings))
        self._gmail_factory = gmail_factory or self._gmail_client_for_account
        logger.info("sender_pattern_agent_initialized")

    async def analyze_sender_pattern(self, email_account_id: str, sender: str) -> AnalysisOutcome:
        """Analyse one sender for one account.

        Never raises: failures are logged and reported as ``AnalysisOutcome.FAILED``.

        Args:
            email_account_id: Account that received the mail.
            sender: Sender address, with or without a display name.

        Returns:
            How the run ended. Callers triggering in the background may ignore it.
        """

        from_email = extract_email_address(sender)
        log = logger.bind(email_account_id=email_account_id, sender=from_email)

        if not from_email:
            log.warning("invalid_sender_address", raw_sender=sender)
            return AnalysisOutcome.INVALID_SENDER

        log.debug("sender_pattern_analysis_started")

        try:
            return await asyncio.wait_for(
                self._process(email_account_id, from_email),
                timeout=self.settings.analysis_timeout_seconds,
            )
        except asyncio.TimeoutError:
            log.error(
                "sender_pattern_analysis_timed_out",
                timeout_seconds=self.settings.analysis_timeout_seconds,
            )
            return AnalysisOutcome.FAILED
        except Exception as exc:  # noqa: BLE001
            log.exception("sender_pattern_analysis_failed", error=str(exc))
            return AnalysisOutcome.FAILED

    async def _process(self, email_account_id: str, from_email: str) -> AnalysisOutcome:
        log = logger.bind(email_account_id=email_account_id, sender=from_email)

        account = await asyncio.to_thread(get_email_account_with_rules, self.engine, email_account_id)
        if account is None:
            log.error("email_account_not_found")
            return AnalysisOutcome.ACCOUNT_NOT_FOUND

        if await asyncio.to_thread(is_sender_analyzed, self.engine, email_account_id=account.id, email=from_email):
            log.info("sender_already_analyzed")
            return AnalysisOutcome.ALREADY_ANALYZED

        try:
            gmail = await self._gmail_factory(account)
        except AuthenticationError as exc:
            log.error("gmail_credentials_unavailable", error=str(exc))
            return AnalysisOutcome.NO_CREDENTIALS

        threads = await fetch_sender_threads(
            gmail,
            from_email,
            self.settings.max_results,
            concurrency=self.settings.fetch_concurrency,
        )
        if not threads:
            # No check recorded: more mail may arrive later.
            log.info("no_threads_found")
            return AnalysisOutcome.NO_THREADS

        one_way = filter_one_way_threads(from_email, threads)
        if not one_way:
            log.info("sender_pattern_skipped_conversation", thread_count=len(threads))
            return AnalysisOutcome.CONVERSATION_DETECTED

        messages = [m for t in one_way for m in t.messages]
        if len(messages) < self.settings.threshold_emails:
            log.info(
                "not_enough_emails",
                count=len(messages),
                threshold=self.settings.threshold_emails,
            )
            return AnalysisOutcome.INSUFFICIENT_EMAILS

        emails = [message_to_email_for_llm(m, max_chars=self.settings.llm_max_body_chars) for m in messages]
        result = await self.oracle.detect(emails, account, account.rules)

        if result.matched_rule:
            await asyncio.to_thread(
                save_learned_pattern,
                self.engine,
                email_account_id=account.id,
                rule_name=result.matched_rule,
                from_email=from_email,
            )

        await asyncio.to_thread(save_pattern_check, self.engine, email_account_id=account.id, email=from_email)

        log.info(
            "sender_pattern_analysis_completed",
            matched_rule=result.matched_rule,
            message_count=len(messages),
        )
        return AnalysisOutcome.MATCHED if result.matched_rule else AnalysisOutcome.NO_MATCH

    async def _gmail_client_for_account(self, account: EmailAccountWithRules) -> ThreadSource:
        return await get_gmail_client_with_refresh(self.engine, account, self.settings)
