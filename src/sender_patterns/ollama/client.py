"""Ollama client implementation.

This module provides an async client for the Ollama REST API.
"""

import json
from typing import Any, Optional, TypeVar

import httpx
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from sender_patterns.config import Settings
from sender_patterns.exceptions import OllamaConnectionError, OllamaInferenceError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


class OllamaClient:
    """Ollama LLM client for AI inference.

    Connection-level failures (host down, connection refused) raise
    ``OllamaConnectionError``. Everything that happens once the server has
    been reached (HTTP errors, read timeouts, unparsable output) raises
    ``OllamaInferenceError``.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize Ollama client.

        Args:
            settings: Application settings. If None, uses default settings.
            transport: Optional httpx transport (used by tests to stub the server).
        """
        from sender_patterns.config import get_settings

        self.settings = settings or get_settings()
        self._transport = transport
        logger.info(
            "ollama_client_initialized",
            host=self.settings.ollama_host,
            model=self.settings.ollama_model,
        )

    async def chat(
        self,
        messages: list[dict[str, str]],
        model: Optional[str] = None,
        *,
        format: Optional[dict[str, Any] | str] = None,
        temperature: Optional[float] = None,
    ) -> dict[str, Any]:
        """Have a chat conversation with Ollama.

        Args:
            messages: List of message dictionaries with 'role' and 'content'.
            model: Model name to use. If None, uses default from settings.
            format: ``"json"`` or a JSON schema constraining the reply.
            temperature: Optional sampling temperature.

        Returns:
            Response dictionary containing chat response and metadata.

        Raises:
            OllamaConnectionError: If unable to connect to Ollama.
            OllamaInferenceError: If inference fails.
        """
        model = model or self.settings.ollama_model
        logger.info("chat_started", model=model, message_count=len(messages))

        payload: dict[str, Any] = {"model": model, "messages": messages, "stream": False}
        if format is not None:
            payload["format"] = format
        if temperature is not None:
            payload["options"] = {"temperature": temperature}
        return await self._post("/api/chat", payload)

    async def generate_json(
        self,
        *,
        system: str,
        prompt: str,
        schema_class: type[T],
        model: Optional[str] = None,
        temperature: float = 0.0,
    ) -> T:
        """Chat with the reply constrained to ``schema_class``'s JSON schema.

        Raises:
            OllamaConnectionError: If unable to connect to Ollama.
            OllamaInferenceError: If inference fails or the reply doesn't match the schema.
        """
        data = await self.chat(
            [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            model=model,
            format=schema_class.model_json_schema(),
            temperature=temperature,
        )

        content = (data.get("message") or {}).get("content") or ""
        try:
            return schema_class.model_validate(json.loads(content))
        except (json.JSONDecodeError, PydanticValidationError) as exc:
            logger.warning("ollama_unparsable_reply", content_length=len(content), error=str(exc))
            raise OllamaInferenceError(f"Unparsable model reply: {exc}") from exc

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(
                base_url=self.settings.ollama_host.rstrip("/"),
                timeout=float(self.settings.ollama_timeout),
                transport=self._transport,
            ) as client:
                response = await client.post(path, json=payload)
                response.raise_for_status()
                return response.json()
        except (httpx.ConnectError, httpx.ConnectTimeout) as exc:
            logger.exception("ollama_connection_failed", host=self.settings.ollama_host, error=str(exc))
            raise OllamaConnectionError(str(exc)) from exc
        except httpx.TimeoutException as exc:
            logger.warning("ollama_request_timed_out", path=path, error=str(exc))
            raise OllamaInferenceError(f"Ollama request timed out: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            logger.warning("ollama_http_error", path=path, status_code=exc.response.status_code)
            raise OllamaInferenceError(str(exc)) from exc
        except httpx.TransportError as exc:
            logger.exception("ollama_transport_failed", path=path, error=str(exc))
            raise OllamaConnectionError(str(exc)) from exc
        except ValueError as exc:
            # response.json() on a non-JSON body
            raise OllamaInferenceError(f"Ollama returned a non-JSON body: {exc}") from exc
