from __future__ import annotations

import json
from typing import Any

import httpx
import pytest
from pydantic import AnyHttpUrl, SecretStr

from playground.chat.types import StreamDelta
from playground.clients.openai_compat import OpenAICompatClient, parse_chunk
from playground.clients.sse import iter_json_chunks, parse_event
from playground.config import Settings
from playground.errors import TransportError
from playground.schemas.chat import ChatCompletionRequest, ChatMessage


def _sse(*payloads: Any) -> bytes:
    frames = []
    for payload in payloads:
        data = payload if isinstance(payload, str) else json.dumps(payload)
        frames.append(f"data: {data}\n\n")
    return "".join(frames).encode("utf-8")


def make_client(handler: Any) -> OpenAICompatClient:
    settings = Settings(
        _env_file=None,
        openai_api_key=SecretStr("test"),
        openai_base_url=AnyHttpUrl("https://example.com/api/v1"),
    )
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return OpenAICompatClient(settings, http_client=http_client)


def _request() -> ChatCompletionRequest:
    return ChatCompletionRequest(
        model="gpt-4o-mini",
        messages=[ChatMessage(role="user", content="hi")],
        temperature=0.5,
    )


def test_parse_event_supports_multiple_data_lines() -> None:
    event = parse_event(
        [
            "event: completion",
            "id: test-id",
            "data: part one",
            "data: part two",
        ]
    )

    assert event.event == "completion"
    assert event.event_id == "test-id"
    assert event.data == "part one\npart two"


def test_parse_chunk_reads_content_and_reasoning_fields() -> None:
    chunk = {
        "choices": [
            {"delta": {"content": "Hello", "reasoning_content": "because"}},
        ]
    }

    assert parse_chunk(chunk) == StreamDelta(content="Hello", reasoning="because")
    assert parse_chunk({"choices": [{"delta": {"reasoning": [{"text": "r"}]}}]}) == (
        StreamDelta(reasoning="r")
    )
    assert not parse_chunk({"choices": [{"delta": {"role": "assistant"}}]})


def test_parse_chunk_skips_null_reasoning_field() -> None:
    chunk = {
        "choices": [
            {"delta": {"reasoning_content": None, "reasoning": "thinking"}},
        ]
    }

    assert parse_chunk(chunk) == StreamDelta(reasoning="thinking")


@pytest.mark.asyncio
async def test_iter_json_chunks_skips_noise_and_stops_at_sentinel() -> None:
    body = (
        b": keep-alive\n\n"
        b"data: not json\n\n"
        b"data: [1, 2]\n\n"
        + _sse({"n": 1}, "[DONE]", {"n": 2})
    )
    response = httpx.Response(200, content=body)

    chunks = [
        chunk
        async for chunk in iter_json_chunks(response, done_sentinel="[DONE]")
    ]

    assert chunks == [{"n": 1}]


@pytest.mark.asyncio
async def test_iter_json_chunks_raises_on_error_frame() -> None:
    response = httpx.Response(
        200, content=_sse({"n": 1}, {"error": {"message": "overloaded"}})
    )
    seen: list[dict[str, Any]] = []

    with pytest.raises(TransportError) as excinfo:
        async for chunk in iter_json_chunks(response):
            seen.append(chunk)

    assert seen == [{"n": 1}]
    assert excinfo.value.status_code == httpx.codes.BAD_GATEWAY


@pytest.mark.asyncio
async def test_stream_chat_posts_payload_and_yields_deltas() -> None:
    captured: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers.get("Authorization")
        captured["body"] = json.loads(request.content)
        body = _sse(
            {"choices": [{"delta": {"role": "assistant"}}]},
            {"choices": [{"delta": {"content": "<think>hm"}}]},
            {"choices": [{"delta": {"content": "</think>Hi"}}]},
            "[DONE]",
            {"choices": [{"delta": {"content": "ignored"}}]},
        )
        return httpx.Response(
            200, content=body, headers={"content-type": "text/event-stream"}
        )

    client = make_client(handler)
    deltas = [delta async for delta in client.stream_chat(_request())]

    assert [d.content for d in deltas] == ["<think>hm", "</think>Hi"]
    assert captured["url"] == "https://example.com/api/v1/chat/completions"
    assert captured["auth"] == "Bearer test"
    assert captured["body"]["stream"] is True
    assert captured["body"]["temperature"] == 0.5
    assert "max_tokens" not in captured["body"]
    assert captured["body"]["messages"] == [{"role": "user", "content": "hi"}]


@pytest.mark.asyncio
async def test_stream_chat_raises_on_http_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            401, json={"error": {"message": "invalid api key", "code": 401}}
        )

    client = make_client(handler)

    with pytest.raises(TransportError) as exc_info:
        async for _ in client.stream_chat(_request()):
            pass

    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "invalid api key"


@pytest.mark.asyncio
async def test_stream_chat_raises_on_error_frame() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        body = _sse(
            {"choices": [{"delta": {"content": "par"}}]},
            {"error": {"message": "overloaded"}},
        )
        return httpx.Response(200, content=body)

    client = make_client(handler)
    received: list[str] = []

    with pytest.raises(TransportError) as exc_info:
        async for delta in client.stream_chat(_request()):
            received.append(delta.content)

    assert received == ["par"]
    assert exc_info.value.message == "overloaded"


@pytest.mark.asyncio
async def test_network_failure_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = make_client(handler)

    with pytest.raises(TransportError) as exc_info:
        async for _ in client.stream_chat(_request()):
            pass

    assert exc_info.value.status_code == httpx.codes.BAD_GATEWAY


@pytest.mark.asyncio
async def test_list_models_returns_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/models"
        return httpx.Response(200, json={"data": [{"id": "gpt-4o"}]})

    client = make_client(handler)

    assert await client.list_models() == {"data": [{"id": "gpt-4o"}]}
