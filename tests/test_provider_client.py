from __future__ import annotations

import json

import httpx
import pytest

from zaycode.errors import ApiKeyNotConfiguredError, CapacityError, ProviderError, TransportError
from zaycode.provider.client import ProviderClient

API_BASE = "https://llm.example.test/api/v1"
SSE_BODY = (
    'data: {"choices": [{"delta": {"content": "Hi "}}]}\n\n'
    'data: {"choices": [{"delta": {"content": "there"}}]}\n\n'
    "data: [DONE]\n\n"
)


def _client(handler, *, api_key: str | None = "sk-test") -> ProviderClient:
    transport = httpx.MockTransport(handler)
    return ProviderClient(api_key=api_key, api_base=API_BASE, client=httpx.AsyncClient(transport=transport))


@pytest.mark.asyncio
async def test_stream_posts_payload_and_decodes_response() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, text=SSE_BODY, headers={"content-type": "text/event-stream"})

    deltas: list[str] = []
    result = await _client(handler).stream(
        model="qwen/qwen3-coder",
        messages=[{"role": "user", "content": "hello"}],
        on_delta=deltas.append,
    )

    assert result.text == "Hi there"
    assert result.completed is True
    assert deltas == ["Hi ", "there"]

    request = requests[0]
    assert str(request.url) == f"{API_BASE}/chat/completions"
    assert request.headers["Authorization"] == "Bearer sk-test"
    body = json.loads(request.content)
    assert body["model"] == "qwen/qwen3-coder"
    assert body["stream"] is True
    assert "tools" not in body


def test_build_payload_includes_tools_only_when_present() -> None:
    client = ProviderClient(api_key="k", api_base=API_BASE)
    tools = [{"type": "function", "function": {"name": "read_file", "parameters": {}}}]

    with_tools = client.build_payload("m", [], tools)
    without_tools = client.build_payload("m", [], [])

    assert with_tools["tools"] == tools
    assert with_tools["tool_choice"] == "auto"
    assert "tools" not in without_tools
    assert "tool_choice" not in without_tools


@pytest.mark.asyncio
async def test_rate_limit_status_raises_capacity_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, json={"error": {"message": "Rate limit exceeded"}})

    with pytest.raises(CapacityError) as exc_info:
        await _client(handler).stream(model="m", messages=[])

    assert exc_info.value.status_code == 429
    assert exc_info.value.message == "Rate limit exceeded"


@pytest.mark.asyncio
async def test_insufficient_credits_message_is_capacity_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": {"message": "Insufficient credits for this model"}})

    with pytest.raises(CapacityError):
        await _client(handler).stream(model="m", messages=[])


@pytest.mark.asyncio
async def test_server_error_raises_provider_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="upstream exploded")

    with pytest.raises(ProviderError) as exc_info:
        await _client(handler).stream(model="m", messages=[])

    assert not isinstance(exc_info.value, CapacityError)
    assert exc_info.value.status_code == 500
    assert str(exc_info.value) == "API error (500): upstream exploded"


@pytest.mark.asyncio
async def test_network_failure_raises_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransportError, match="connection refused"):
        await _client(handler).stream(model="m", messages=[])


@pytest.mark.asyncio
async def test_missing_api_key_fails_before_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("request should not be sent")

    with pytest.raises(ApiKeyNotConfiguredError):
        await _client(handler, api_key=None).stream(model="m", messages=[])
