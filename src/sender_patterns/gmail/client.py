"""Gmail API client implementation.

This module provides a client for reading a sender's threads from Gmail.

Notes:
    The Google API client is synchronous. This project wraps those calls using
    `asyncio.to_thread` so the rest of the codebase can remain async-friendly.
"""

from __future__ import annotations

import asyncio
from typing import Any

import structlog

from sender_patterns.config import Settings
from sender_patterns.exceptions import AuthenticationError, GmailAPIError
from sender_patterns.gmail.parsing import message_to_thread_message
from sender_patterns.models import ThreadMessage

logger = structlog.get_logger()


class GmailClient:
    """Gmail API client for one mailbox.

    The client is built from already-valid OAuth credentials; obtaining and
    refreshing them is the job of ``sender_patterns.gmail.credentials``.
    """

    def __init__(
        self,
        credentials: Any | None = None,
        settings: Settings | None = None,
        *,
        service: Any | None = None,
        user_id: str = "me",
    ) -> None:
        """Initialize Gmail client.

        Args:
            credentials: google-auth credentials for the mailbox.
            settings: Application settings. If None, uses default settings.
            service: Prebuilt Gmail API resource; skips building one from credentials.
            user_id: Gmail user id, ``"me"`` for the credential owner.
        """
        from sender_patterns.config import get_settings

        self.settings = settings or get_settings()
        self._credentials = credentials
        self._service: Any | None = service
        self._user_id = user_id
        logger.info("gmail_client_initialized")

    async def authenticate(self) -> None:
        """Build the Gmail API resource from the client's credentials.

        Raises:
            AuthenticationError: If no credentials were supplied or the build fails.
        """

        if self._service is not None:
            return

        if self._credentials is None:
            raise AuthenticationError("Gmail client has no credentials to authenticate with.")

        try:
            self._service = await asyncio.to_thread(self._build_service, self._credentials)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_authentication_failed", error=str(exc))
            raise AuthenticationError(str(exc)) from exc

        logger.info("gmail_authentication_completed")

    async def search_threads(
        self,
        query: str,
        *,
        label_ids: list[str] | None = None,
        max_results: int = 10,
    ) -> list[dict[str, Any]]:
        """Search threads.

        Args:
            query: Gmail search query string.
            label_ids: Only return threads carrying all of these labels.
            max_results: Maximum number of threads to return.

        Returns:
            List of thread handles (``{"id": ..., "snippet": ...}``).

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.info("searching_threads", query=query, max_results=max_results)

        try:
            return await asyncio.to_thread(self._search_threads_sync, query, label_ids, max_results)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_search_threads_failed", query=query, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def get_thread(self, thread_id: str, *, format: str = "full") -> dict[str, Any]:
        """Get a specific thread by ID.

        Raises:
            GmailAPIError: If the API request fails.
        """

        await self._ensure_authenticated()

        logger.debug("getting_thread", thread_id=thread_id, format=format)

        try:
            return await asyncio.to_thread(self._get_thread_sync, thread_id, format)
        except Exception as exc:  # noqa: BLE001
            logger.exception("gmail_get_thread_failed", thread_id=thread_id, error=str(exc))
            raise GmailAPIError(str(exc)) from exc

    async def get_thread_messages(self, thread_id: str) -> list[ThreadMessage]:
        """Get every message of a thread in provider order."""

        thread = await self.get_thread(thread_id)
        return [message_to_thread_message(m) for m in thread.get("messages") or []]

    async def _ensure_authenticated(self) -> None:
        if self._service is None:
            raise AuthenticationError(
                "Gmail client is not authenticated. Call await GmailClient.authenticate() first."
            )

    def _build_service(self, credentials: Any) -> Any:
        # Imported lazily to keep import-time cost low and tests fast.
        from googleapiclient.discovery import build

        # cache_discovery=False prevents writing discovery docs to disk.
        return build("gmail", "v1", credentials=credentials, cache_discovery=False)

    def _search_threads_sync(
        self,
        query: str,
        label_ids: list[str] | None,
        max_results: int,
    ) -> list[dict[str, Any]]:
        assert self._service is not None
        threads: list[dict[str, Any]] = []

        page_token: str | None = None
        while len(threads) < max_results:
            per_page = min(500, max_results - len(threads))
            request = (
                self._service.users()
                .threads()
                .list(
                    userId=self._user_id,
                    q=query,
                    labelIds=label_ids or None,
                    maxResults=per_page,
                    pageToken=page_token,
                )
            )
            response = request.execute()
            threads.extend(response.get("threads", []) or [])
            page_token = response.get("nextPageToken")
            if page_token is None:
                break

        return threads[:max_results]

    def _get_thread_sync(self, thread_id: str, format: str) -> dict[str, Any]:
        assert self._service is not None
        request = self._service.users().threads().get(userId=self._user_id, id=thread_id, format=format)
        return request.execute()
