"""Type definitions for the conversation engine collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, AsyncIterator, Literal, Protocol

from ..schemas.chat import ChatCompletionRequest
from ..schemas.image import GenerateContentResponse, ImageGenerationRequest

NoticeLevel = Literal["info", "success", "warning", "error"]


@dataclass(frozen=True)
class StreamDelta:
    """One transport chunk: zero or more answer and reasoning characters."""

    content: str = ""
    reasoning: str = ""

    def __bool__(self) -> bool:
        return bool(self.content or self.reasoning)


class ChatTransport(Protocol):
    def stream_chat(
        self, request: ChatCompletionRequest
    ) -> AsyncIterator[StreamDelta]:
        """Yield deltas in arrival order; raise ``TransportError`` on failure."""
        ...


class ImageTransport(Protocol):
    async def generate_image(
        self, request: ImageGenerationRequest
    ) -> GenerateContentResponse:
        ...


class ModelLister(Protocol):
    async def list_models(self) -> dict[str, Any]:
        ...


class Notifier(Protocol):
    def notify(self, level: NoticeLevel, message: str) -> None:
        ...


__all__ = [
    "ChatTransport",
    "ImageTransport",
    "ModelLister",
    "NoticeLevel",
    "Notifier",
    "StreamDelta",
]
