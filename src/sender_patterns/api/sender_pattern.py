"""Sender pattern analysis trigger API.

The endpoint only accepts work: the analysis runs as a background task after
the response has been sent, and its outcome is never reported back to the
caller.
"""

from __future__ import annotations

import secrets

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Security, status
from fastapi.security import APIKeyHeader

from sender_patterns.models import AnalyzeSenderPatternBody
from sender_patterns.utils import extract_email_address

logger = structlog.get_logger()

API_KEY_NAME = "x-api-key"

api_key_header = APIKeyHeader(name=API_KEY_NAME, auto_error=False)

router = APIRouter(prefix="/api/ai", tags=["sender-patterns"])


def verify_internal_api_key(
    request: Request,
    api_key: str | None = Security(api_key_header),
) -> None:
    """Reject callers that don't present the internal shared secret."""

    expected = request.app.state.settings.internal_api_key
    if not expected:
        logger.error("internal_api_key_not_configured")
    if not expected or not api_key or not secrets.compare_digest(api_key.encode("utf-8"), expected.encode("utf-8")):
        logger.error("invalid_api_key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


@router.post("/analyze-sender-pattern", dependencies=[Depends(verify_internal_api_key)])
async def api_analyze_sender_pattern(
    body: AnalyzeSenderPatternBody,
    request: Request,
    background_tasks: BackgroundTasks,
) -> dict[str, bool]:
    agent = request.app.state.agent
    from_email = extract_email_address(body.sender)

    logger.info(
        "sender_pattern_analysis_accepted",
        email_account_id=body.email_account_id,
        sender=from_email,
    )

    # Return immediately and process in the background.
    background_tasks.add_task(agent.analyze_sender_pattern, body.email_account_id, from_email)
    return {"processing": True}
