"""Streaming client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

from typing import Any, AsyncGenerator, Mapping, Optional

import httpx

from ..chat.reasoning import extract_reasoning_text
from ..chat.types import StreamDelta
from ..config import Settings
from ..errors import TransportError
from ..schemas.chat import ChatCompletionRequest
from .base import PooledHttpClient
from .sse import iter_json_chunks

_REASONING_KEYS = ("reasoning_content", "reasoning")


class OpenAICompatClient(PooledHttpClient):
    """Client for the ``openai`` dialect: SSE chat completions and ``/models``."""

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            str(settings.openai_base_url),
            settings.request_timeout,
            http_client=http_client,
        )
        self._settings = settings

    @property
    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        api_key = self._settings.openai_api_key
        if api_key is not None:
            headers["Authorization"] = f"Bearer {api_key.get_secret_value()}"
        return headers

    async def stream_chat(
        self, request: ChatCompletionRequest
    ) -> AsyncGenerator[StreamDelta, None]:
        """Stream deltas for a chat completion request."""

        payload = request.to_openai_payload()
        async for chunk in self.stream_chat_raw(payload):
            delta = parse_chunk(chunk)
            if delta:
                yield delta

    async def stream_chat_raw(
        self, payload: dict[str, Any]
    ) -> AsyncGenerator[dict[str, Any], None]:
        """Yield decoded JSON chunks until the ``[DONE]`` sentinel."""

        url = f"{self._base_url}/chat/completions"
        client = await self._get_http_client()
        try:
            async with client.stream(
                "POST",
                url,
                headers=self._headers,
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    detail = self._extract_error_detail(body)
                    raise TransportError(response.status_code, detail)

                async for chunk in iter_json_chunks(
                    response, done_sentinel="[DONE]"
                ):
                    yield chunk
        except httpx.HTTPError as exc:
            raise TransportError(httpx.codes.BAD_GATEWAY, str(exc)) from exc

    async def list_models(self) -> dict[str, Any]:
        """Return the raw payload from the ``/models`` endpoint."""

        headers = dict(self._headers)
        headers["Accept"] = "application/json"
        return await self._get_json(f"{self._base_url}/models", headers)


def parse_chunk(chunk: Mapping[str, Any]) -> StreamDelta:
    """Extract answer and reasoning text from one completion chunk."""

    content_parts: list[str] = []
    reasoning_parts: list[str] = []

    for choice in chunk.get("choices") or []:
        if not isinstance(choice, Mapping):
            continue
        delta = choice.get("delta") or {}
        if not isinstance(delta, Mapping):
            continue

        delta_content = delta.get("content")
        if isinstance(delta_content, str):
            content_parts.append(delta_content)
        elif isinstance(delta_content, list):
            for fragment in delta_content:
                if isinstance(fragment, Mapping) and fragment.get("type") == "text":
                    text = fragment.get("text")
                    if isinstance(text, str):
                        content_parts.append(text)

        for key in _REASONING_KEYS:
            value = delta.get(key)
            if value is not None:
                reasoning_parts.append(extract_reasoning_text(value))
                break

    return StreamDelta(content="".join(content_parts), reasoning="".join(reasoning_parts))


__all__ = ["OpenAICompatClient", "parse_chunk"]
