"""Streaming chat-completion provider client."""

from __future__ import annotations

import json
from collections.abc import Callable, Sequence
from typing import Any, ClassVar, Protocol

import httpx
from loguru import logger

from zaycode.core.types import ModelResponse
from zaycode.errors import ApiKeyNotConfiguredError, TransportError, provider_error
from zaycode.provider.stream import StreamDecoder

DeltaCallback = Callable[[str], None]
MAX_ERROR_BODY_CHARS = 500


class ChatProvider(Protocol):
    """Anything that can stream one completion."""

    async def stream(
        self,
        *,
        model: str,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
        on_delta: DeltaCallback | None = None,
    ) -> ModelResponse: ...


class ProviderClient:
    """OpenAI-compatible streaming client over ``httpx``."""

    DEFAULT_HEADERS: ClassVar[dict[str, str]] = {"HTTP-Referer": "https://zaycode.dev", "X-Title": "zaycode"}

    def __init__(
        self,
        *,
        api_key: str | None,
        api_base: str,
        timeout_seconds: float = 120.0,
        max_tokens: int = 4096,
        temperature: float = 0.2,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._url = api_base.rstrip("/") + "/chat/completions"
        self._timeout = httpx.Timeout(timeout_seconds)
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._client = client

    def build_payload(
        self,
        model: str,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model,
            "messages": list(messages),
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
            "stream": True,
        }
        if tools:
            payload["tools"] = list(tools)
            payload["tool_choice"] = "auto"
        return payload

    async def stream(
        self,
        *,
        model: str,
        messages: Sequence[dict[str, Any]],
        tools: Sequence[dict[str, Any]] | None = None,
        on_delta: DeltaCallback | None = None,
    ) -> ModelResponse:
        if not self._api_key:
            raise ApiKeyNotConfiguredError("API key not set. Export ZAYCODE_API_KEY or OPENROUTER_API_KEY.")

        payload = self.build_payload(model, messages, tools)
        headers = {"Authorization": f"Bearer {self._api_key}", **self.DEFAULT_HEADERS}
        logger.info("provider.stream.start model={} messages={} tools={}", model, len(messages), len(tools or ()))

        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            return await self._stream(client, payload, headers, on_delta)
        except httpx.TimeoutException as exc:
            raise TransportError(f"Request timed out after {self._timeout.read}s") from exc
        except httpx.TransportError as exc:
            raise TransportError(f"Network error: {exc!s}") from exc
        finally:
            if self._client is None:
                await client.aclose()

    async def _stream(
        self,
        client: httpx.AsyncClient,
        payload: dict[str, Any],
        headers: dict[str, str],
        on_delta: DeltaCallback | None,
    ) -> ModelResponse:
        decoder = StreamDecoder(on_delta=on_delta)
        async with client.stream("POST", self._url, json=payload, headers=headers, timeout=self._timeout) as response:
            if response.status_code != 200:
                body = (await response.aread()).decode("utf-8", errors="replace")
                message = _error_message(body)
                logger.warning("provider.stream.error status={} message={}", response.status_code, message)
                raise provider_error(response.status_code, message)

            async for chunk in response.aiter_text():
                if decoder.feed(chunk):
                    break

        result = decoder.finish()
        logger.info(
            "provider.stream.end chars={} tool_calls={} completed={}",
            len(result.text),
            len(result.tool_calls),
            result.completed,
        )
        return result


def _error_message(body: str) -> str:
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body[:MAX_ERROR_BODY_CHARS]
    if isinstance(parsed, dict):
        error = parsed.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return body[:MAX_ERROR_BODY_CHARS]
