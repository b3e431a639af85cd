"""Streaming client for the Ollama ``/api/chat`` endpoint."""
from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from portal.core.settings import Settings

logger = logging.getLogger(__name__)


class LLMError(RuntimeError):
    """Raised when the model server answers with a non-success status."""


@dataclass(slots=True)
class ChatOptions:
    temperature: float | None = None
    max_tokens: int | None = None
    cancel: asyncio.Event | None = None


class ChatModelClient(Protocol):
    """Contract for streaming chat models.

    Implementations yield raw chunk dictionaries: partial text under
    ``message.content`` and a final ``{"done": true, ...}`` carrying usage.
    """

    def chat_stream(
        self,
        messages: list[dict[str, str]],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[dict[str, Any]]: ...


class OllamaChatClient:
    def __init__(
        self,
        settings: Settings,
        *,
        timeout: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._url = f"{settings.ollama_host.rstrip('/')}/api/chat"
        # Streams stay open for as long as the model keeps generating.
        self._client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, connect=10.0))
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _build_payload(self, messages: list[dict[str, str]], options: ChatOptions) -> dict[str, Any]:
        settings = self._settings
        model_options: dict[str, Any] = {
            "temperature": settings.temperature,
            "top_k": settings.top_k,
            "top_p": settings.top_p,
            "repeat_penalty": settings.repeat_penalty,
            "repeat_last_n": settings.repeat_last_n,
            "num_ctx": settings.context_tokens,
            "num_predict": settings.max_tokens,
            "stop": list(settings.stop),
        }
        if options.temperature is not None:
            model_options["temperature"] = options.temperature
        if options.max_tokens is not None:
            model_options["num_predict"] = options.max_tokens
        return {
            "model": settings.ollama_model,
            "stream": True,
            "messages": messages,
            "options": model_options,
        }

    @staticmethod
    def _parse_line(line: str) -> dict[str, Any] | None:
        line = line.strip()
        if not line:
            return None
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            logger.debug("Skipping partial model line: %r", line[:80])
            return None
        return data if isinstance(data, dict) else None

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    async def chat_stream(
        self,
        messages: list[dict[str, str]],
        options: ChatOptions | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        options = options or ChatOptions()
        payload = self._build_payload(messages, options)
        logger.info("Streaming chat from %s (model=%s)", self._url, self._settings.ollama_model)

        async with self._client.stream("POST", self._url, json=payload) as response:
            if response.status_code >= 400:
                body = (await response.aread()).decode("utf-8", errors="replace")
                raise LLMError(f"Ollama error {response.status_code}: {body}")
            async for line in response.aiter_lines():
                if options.cancel is not None and options.cancel.is_set():
                    logger.info("Model stream cancelled by caller")
                    return
                chunk = self._parse_line(line)
                if chunk is not None:
                    yield chunk

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["ChatModelClient", "ChatOptions", "LLMError", "OllamaChatClient"]
