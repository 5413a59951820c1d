"""Client side of the analysis trigger.

Mail processing calls this after handling an inbound message. It never
waits for the analysis itself and never fails the caller.
"""

from __future__ import annotations

from typing import Optional

import httpx
import structlog

from sender_patterns.api.sender_pattern import API_KEY_NAME
from sender_patterns.config import Settings
from sender_patterns.utils import extract_email_address

logger = structlog.get_logger()

ANALYZE_SENDER_PATTERN_PATH = "/api/ai/analyze-sender-pattern"


async def trigger_sender_pattern_analysis(
    email_account_id: str,
    sender: str,
    settings: Optional[Settings] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bool:
    """Ask the analysis service to look at ``sender`` for ``email_account_id``.

    Returns:
        True if the service accepted the request, False otherwise.
    """
    from sender_patterns.config import get_settings

    settings = settings or get_settings()
    payload = {"emailAccountId": email_account_id, "from": extract_email_address(sender) or sender}
    headers = {API_KEY_NAME: settings.internal_api_key or ""}

    try:
        async with httpx.AsyncClient(
            base_url=settings.internal_api_url.rstrip("/"),
            timeout=10.0,
            transport=transport,
        ) as client:
            response = await client.post(ANALYZE_SENDER_PATTERN_PATH, json=payload, headers=headers)
            response.raise_for_status()
            data = response.json()
    except (httpx.HTTPError, ValueError) as exc:
        # ValueError: a 2xx reply whose body is not JSON
        logger.warning(
            "sender_pattern_trigger_failed",
            email_account_id=email_account_id,
            sender=payload["from"],
            error=str(exc),
        )
        return False

    return isinstance(data, dict) and bool(data.get("processing"))
