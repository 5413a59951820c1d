"""Per-account Gmail credentials.

Tokens live in the ``account_credential`` table. A client is only handed out
once the access token is valid; expired tokens are refreshed and the new
values written back so the next run doesn't refresh again.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any

import structlog

from sender_patterns.config import Settings
from sender_patterns.exceptions import AuthenticationError, ConfigurationError
from sender_patterns.gmail.client import GmailClient
from sender_patterns.models import AccountTokens, EmailAccountWithRules
from sender_patterns.repository.account_repository import save_account_tokens

logger = structlog.get_logger()


def _to_google_expiry(value: datetime | None) -> datetime | None:
    # google-auth compares expiry against a naive UTC "now".
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def build_credentials(tokens: AccountTokens | None, settings: Settings) -> Any:
    """Build google-auth credentials from stored tokens.

    Raises:
        AuthenticationError: If the account has no access or refresh token.
    """

    from google.oauth2.credentials import Credentials

    if tokens is None or not tokens.access_token or not tokens.refresh_token:
        raise AuthenticationError("Account has no stored Gmail tokens")

    return Credentials(
        token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        token_uri=settings.gmail_token_uri,
        client_id=settings.gmail_client_id,
        client_secret=settings.gmail_client_secret,
        scopes=[settings.gmail_scope],
        expiry=_to_google_expiry(tokens.expires_at),
    )


async def get_gmail_client_with_refresh(
    engine,
    account: EmailAccountWithRules,
    settings: Settings,
) -> GmailClient:
    """Return an authenticated Gmail client for ``account``.

    Raises:
        AuthenticationError: Missing tokens, or the refresh token was revoked.
        ConfigurationError: A refresh is needed but no OAuth client is configured.
    """

    from google.auth.exceptions import RefreshError
    from google.auth.transport.requests import Request

    creds = build_credentials(account.tokens, settings)

    if not creds.valid:
        if not settings.gmail_client_id or not settings.gmail_client_secret:
            raise ConfigurationError(
                "Gmail token expired and SENDER_PATTERNS_GMAIL_CLIENT_ID/SECRET are not set."
            )

        logger.info("gmail_token_refresh_started", email_account_id=account.id)
        try:
            await asyncio.to_thread(creds.refresh, Request())
        except RefreshError as exc:
            logger.warning("gmail_token_refresh_failed", email_account_id=account.id, error=str(exc))
            raise AuthenticationError(f"Gmail token refresh failed: {exc}") from exc

        expires_at = creds.expiry.replace(tzinfo=timezone.utc) if creds.expiry else None
        await asyncio.to_thread(
            save_account_tokens,
            engine,
            email_account_id=account.id,
            access_token=creds.token,
            refresh_token=creds.refresh_token,
            expires_at=expires_at,
        )
        logger.info("gmail_token_refreshed", email_account_id=account.id)

    client = GmailClient(creds, settings)
    await client.authenticate()
    return client


def run_local_oauth_flow(settings: Settings) -> AccountTokens:
    """Run the interactive OAuth consent flow and return the resulting tokens.

    Used by ``sender-patterns accounts link`` to seed an account's credentials.

    Raises:
        ConfigurationError: If the client secrets file is missing.
    """

    from google_auth_oauthlib.flow import InstalledAppFlow

    credentials_path = settings.gmail_credentials_path
    if not credentials_path.exists():
        raise ConfigurationError(f"Gmail credentials file not found: {credentials_path}.")

    flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes=[settings.gmail_scope])
    creds = flow.run_local_server(port=0)

    return AccountTokens(
        access_token=creds.token,
        refresh_token=creds.refresh_token,
        expires_at=creds.expiry.replace(tzinfo=timezone.utc) if creds.expiry else None,
    )
