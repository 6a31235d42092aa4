"""Client for the native Gemini ``generateContent`` API."""

from __future__ import annotations

import base64
import binascii
from typing import Any, AsyncGenerator, Dict, Iterable, List, Mapping, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError as PydanticValidationError

from ..chat.types import StreamDelta
from ..config import Settings
from ..errors import ResponseShapeError, TransportError
from ..schemas.chat import ChatCompletionRequest, ChatMessage
from ..schemas.image import GenerateContentResponse, ImageGenerationRequest
from .base import PooledHttpClient
from .sse import iter_json_chunks


class GeminiClient(PooledHttpClient):
    """Client for the ``gemini`` dialect: streamed chat and one-shot images."""

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        super().__init__(
            str(settings.gemini_base_url),
            settings.request_timeout,
            http_client=http_client,
        )
        self._settings = settings

    @property
    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        api_key = self._settings.gemini_api_key
        if api_key is not None:
            headers["x-goog-api-key"] = api_key.get_secret_value()
        return headers

    def _model_url(self, model: str, method: str) -> str:
        name = model if model.startswith("models/") else f"models/{model}"
        return f"{self._base_url}/{quote(name, safe='/')}:{method}"

    async def stream_chat(
        self, request: ChatCompletionRequest
    ) -> AsyncGenerator[StreamDelta, None]:
        """Stream a chat turn; thought parts are reported as reasoning."""

        url = self._model_url(request.model, "streamGenerateContent")
        payload = build_chat_payload(request)
        headers = dict(self._headers)
        headers["Accept"] = "text/event-stream"

        client = await self._get_http_client()
        try:
            async with client.stream(
                "POST",
                url,
                params={"alt": "sse"},
                headers=headers,
                json=payload,
            ) as response:
                if response.status_code >= 400:
                    body = await response.aread()
                    raise TransportError(
                        response.status_code, self._extract_error_detail(body)
                    )

                async for chunk in iter_json_chunks(response):
                    delta = parse_stream_chunk(chunk)
                    if delta:
                        yield delta
        except httpx.HTTPError as exc:
            raise TransportError(httpx.codes.BAD_GATEWAY, str(exc)) from exc

    async def generate_image(
        self, request: ImageGenerationRequest
    ) -> GenerateContentResponse:
        """Run a one-shot ``generateContent`` call with image output enabled."""

        url = self._model_url(request.model, "generateContent")
        body = await self._post_json(url, self._headers, request.to_gemini_payload())
        try:
            return GenerateContentResponse.model_validate(body)
        except PydanticValidationError as exc:
            raise ResponseShapeError(f"Unexpected image response: {exc}") from exc

    async def list_models(self) -> dict[str, Any]:
        """Return the raw payload from the ``/models`` endpoint."""

        return await self._get_json(
            f"{self._base_url}/models", self._headers, params={"pageSize": 1000}
        )


def data_url_to_inline_data(url: str) -> Optional[Dict[str, str]]:
    """Convert a ``data:`` URI into an ``inlineData`` payload."""

    if not url.startswith("data:"):
        return None
    try:
        header, b64data = url.split(",", 1)
        mime_part = header.removeprefix("data:").removesuffix(";base64")
        decoded = base64.b64decode(b64data, validate=False)
    except (ValueError, binascii.Error):
        return None

    mime_type = mime_part or "application/octet-stream"
    return {"mimeType": mime_type, "data": base64.b64encode(decoded).decode("ascii")}


def _content_to_parts(content: Any) -> List[Dict[str, Any]]:
    if isinstance(content, str):
        return [{"text": content}] if content else []

    parts: List[Dict[str, Any]] = []
    for item in content or []:
        if not isinstance(item, Mapping):
            continue
        item_type = item.get("type")
        if item_type == "text" and isinstance(item.get("text"), str):
            if not item["text"]:
                continue
            parts.append({"text": item["text"]})
        elif item_type == "image_url":
            image_val = item.get("image_url")
            url = image_val.get("url") if isinstance(image_val, Mapping) else image_val
            if not isinstance(url, str) or not url:
                continue
            inline = data_url_to_inline_data(url)
            if inline is not None:
                parts.append({"inlineData": inline})
            else:
                parts.append({"fileData": {"fileUri": url}})
        elif item_type == "file":
            file_val = item.get("file")
            if not isinstance(file_val, Mapping):
                continue
            url = file_val.get("file_data")
            if isinstance(url, str) and url:
                inline = data_url_to_inline_data(url)
                if inline is not None:
                    parts.append({"inlineData": inline})
                else:
                    parts.append({"fileData": {"fileUri": url}})
    return parts


def messages_to_contents(messages: Iterable[ChatMessage]) -> tuple[
    List[Dict[str, Any]], Optional[Dict[str, Any]]
]:
    """Convert transcript entries into Gemini ``contents`` and system instruction."""

    contents: List[Dict[str, Any]] = []
    system_texts: List[str] = []
    for message in messages:
        if message.role == "system":
            if isinstance(message.content, str) and message.content:
                system_texts.append(message.content)
            continue
        parts = _content_to_parts(message.content)
        if not parts:
            # Gemini rejects empty text parts and entries without parts
            continue
        role = "model" if message.role == "assistant" else "user"
        contents.append({"role": role, "parts": parts})

    system_instruction = None
    if system_texts:
        system_instruction = {"parts": [{"text": "\n\n".join(system_texts)}]}
    return contents, system_instruction


def build_chat_payload(request: ChatCompletionRequest) -> Dict[str, Any]:
    contents, system_instruction = messages_to_contents(request.messages)

    generation_config: Dict[str, Any] = {
        "thinkingConfig": {"includeThoughts": True},
    }
    for source, target in (
        ("temperature", "temperature"),
        ("max_tokens", "maxOutputTokens"),
        ("top_p", "topP"),
        ("frequency_penalty", "frequencyPenalty"),
        ("presence_penalty", "presencePenalty"),
    ):
        value = getattr(request, source)
        if value is not None:
            generation_config[target] = value

    payload: Dict[str, Any] = {
        "contents": contents,
        "generationConfig": generation_config,
    }
    if system_instruction is not None:
        payload["systemInstruction"] = system_instruction
    return payload


def parse_stream_chunk(chunk: Mapping[str, Any]) -> StreamDelta:
    """Split a streamed response chunk into answer and thought text."""

    response = GenerateContentResponse.model_validate(chunk)
    content_parts: list[str] = []
    reasoning_parts: list[str] = []
    for part in response.iter_parts():
        if not part.text:
            continue
        if part.thought:
            reasoning_parts.append(part.text)
        else:
            content_parts.append(part.text)
    return StreamDelta(content="".join(content_parts), reasoning="".join(reasoning_parts))


__all__ = [
    "GeminiClient",
    "build_chat_payload",
    "data_url_to_inline_data",
    "messages_to_contents",
    "parse_stream_chunk",
]
