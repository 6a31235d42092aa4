"""Drive a single outbound request and ingest its results into the store."""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional, Sequence

from ..errors import PlaygroundError, ResponseShapeError, TransportError
from ..schemas.chat import ChatCompletionRequest
from ..schemas.image import ImageGenerationRequest
from .notifications import LoggingNotifier
from .reasoning import DEFAULT_CLOSE_TAG, DEFAULT_OPEN_TAG, split_reasoning
from .store import Attachment, ConversationStore, GeneratedImage, Message, WriteLease
from .types import ChatTransport, ImageTransport, Notifier

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_FAILURE_MESSAGE = "Image generation failed: {detail}"


class SessionStatus(str, Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    STREAMING = "streaming"
    READY = "ready"
    ERROR = "error"


class StreamSession:
    """Own the write lease for one request from start to terminal status."""

    def __init__(
        self,
        store: ConversationStore,
        set_status: Callable[[SessionStatus], None],
        *,
        notifier: Notifier | None = None,
        open_tag: str = DEFAULT_OPEN_TAG,
        close_tag: str = DEFAULT_CLOSE_TAG,
        image_failure_message: str = DEFAULT_IMAGE_FAILURE_MESSAGE,
    ) -> None:
        self._store = store
        self._set_status = set_status
        self._notifier = notifier or LoggingNotifier()
        self._open_tag = open_tag
        self._close_tag = close_tag
        self._image_failure_message = image_failure_message
        self._lease: Optional[WriteLease] = None
        self._assistant: Optional[Message] = None

    @property
    def lease(self) -> Optional[WriteLease]:
        return self._lease

    def begin(self, text: str, attachments: Sequence[Attachment] = ()) -> Message:
        """Append the user turn and the assistant placeholder, then take the lease."""

        if self._lease is not None:
            raise PlaygroundError("StreamSession.begin() called twice")
        self._store.append_user(text, attachments)
        assistant = self._store.append_assistant()
        placeholder = assistant.versions[0]
        self._lease = self._store.acquire_lease(assistant.key, placeholder.id)
        self._assistant = assistant
        return assistant

    def _require_lease(self) -> WriteLease:
        if self._lease is None:
            raise PlaygroundError("StreamSession.begin() must be called first")
        return self._lease

    def decode(
        self,
        content_buffer: str,
        channel_reasoning: str,
        *,
        inline_reasoning: bool,
        final: bool = True,
    ) -> tuple[str, str]:
        """Return ``(answer, reasoning)`` for the accumulated buffers.

        While ``final`` is false a trailing partial tag is held back.
        """

        if not inline_reasoning:
            return content_buffer, channel_reasoning

        split = split_reasoning(
            content_buffer,
            self._open_tag,
            self._close_tag,
            hold_partial=not final,
        )
        reasoning_parts = [part for part in (channel_reasoning, split.reasoning) if part]
        return split.answer, "\n\n".join(reasoning_parts)

    async def run_chat(
        self,
        transport: ChatTransport,
        request: ChatCompletionRequest,
        *,
        inline_reasoning: bool = True,
    ) -> SessionStatus:
        """Stream a chat completion into the leased version."""

        lease = self._require_lease()
        outcome = SessionStatus.ERROR
        content_buffer = ""
        channel_reasoning = ""
        chunk_count = 0

        try:
            self._set_status(SessionStatus.STREAMING)
            async for delta in transport.stream_chat(request):
                if not delta:
                    continue
                chunk_count += 1
                content_buffer += delta.content
                channel_reasoning += delta.reasoning
                answer, reasoning = self.decode(
                    content_buffer,
                    channel_reasoning,
                    inline_reasoning=inline_reasoning,
                    final=False,
                )
                self._store.write_stream(lease, answer, reasoning)
            if chunk_count:
                self._flush(lease, content_buffer, channel_reasoning, inline_reasoning)
            outcome = SessionStatus.READY
            logger.debug(
                "Stream for %s completed after %d chunk(s)", request.model, chunk_count
            )
        except asyncio.CancelledError:
            self._notifier.notify("warning", "Request cancelled")
            raise
        except TransportError as exc:
            logger.warning(
                "Chat stream for %s failed after %d chunk(s): %s",
                request.model,
                chunk_count,
                exc.message,
            )
            if chunk_count:
                self._flush(lease, content_buffer, channel_reasoning, inline_reasoning)
            self._notifier.notify("error", f"Send failed: {exc.message}")
        except PlaygroundError as exc:
            logger.warning("Chat stream for %s rejected: %s", request.model, exc)
            self._notifier.notify("error", f"Send failed: {exc}")
        except Exception as exc:
            logger.exception("Unexpected failure while streaming %s", request.model)
            self._notifier.notify("error", f"Send failed: {exc}")
        finally:
            self._finish(lease, outcome)
        return outcome

    def _flush(
        self,
        lease: WriteLease,
        content_buffer: str,
        channel_reasoning: str,
        inline_reasoning: bool,
    ) -> None:
        answer, reasoning = self.decode(
            content_buffer, channel_reasoning, inline_reasoning=inline_reasoning
        )
        self._store.write_stream(lease, answer, reasoning)

    async def run_image(
        self,
        transport: ImageTransport,
        request: ImageGenerationRequest,
    ) -> SessionStatus:
        """Await a one-shot image generation and store its result."""

        lease = self._require_lease()
        outcome = SessionStatus.ERROR
        try:
            response = await transport.generate_image(request)
            inline = response.first_inline_image()
            if inline is None:
                raise ResponseShapeError("no image data")
            self._store.write_image(
                lease,
                GeneratedImage(data=inline.data, mime_type=inline.mime_type),
                response.joined_text(),
            )
            outcome = SessionStatus.READY
            logger.debug(
                "Image generated by %s (%s, %d base64 chars)",
                request.model,
                inline.mime_type,
                len(inline.data),
            )
        except asyncio.CancelledError:
            self._notifier.notify("warning", "Request cancelled")
            raise
        except TransportError as exc:
            self._fail_image(lease, request, exc.message)
        except PlaygroundError as exc:
            self._fail_image(lease, request, str(exc))
        except Exception as exc:
            logger.exception("Unexpected failure while generating image with %s", request.model)
            self._fail_image(lease, request, str(exc))
        finally:
            self._finish(lease, outcome)
        return outcome

    def _fail_image(
        self, lease: WriteLease, request: ImageGenerationRequest, detail: str
    ) -> None:
        logger.warning("Image generation with %s failed: %s", request.model, detail)
        message = self._image_failure_message.replace("{detail}", detail)
        self._store.write_failure(lease, message)
        self._notifier.notify("error", message)

    def _finish(self, lease: WriteLease, outcome: SessionStatus) -> None:
        try:
            self._store.release_lease(lease)
        finally:
            self._lease = None
            self._set_status(outcome)


__all__ = ["DEFAULT_IMAGE_FAILURE_MESSAGE", "SessionStatus", "StreamSession"]
