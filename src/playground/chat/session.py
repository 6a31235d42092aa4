"""The playground session: model selection, admission control and send."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from ..config import Settings, get_settings
from ..errors import InvariantViolation, PlaygroundError, ValidationError
from ..schemas.chat import ChatCompletionRequest, SamplingConfig
from ..schemas.image import ImageConfig, ImageGenerationRequest
from .content import build_transcript, build_user_content
from .notifications import LoggingNotifier
from .routing import ApiDialect, BackendKind, BackendRouter, Mode, Route
from .store import Attachment, ConversationStore, Message, Version
from .stream_session import SessionStatus, StreamSession
from .types import Notifier

logger = logging.getLogger(__name__)

SessionListener = Callable[["ChatSession"], None]

_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.IDLE: frozenset({SessionStatus.SUBMITTED}),
    SessionStatus.READY: frozenset({SessionStatus.SUBMITTED, SessionStatus.IDLE}),
    SessionStatus.ERROR: frozenset({SessionStatus.SUBMITTED, SessionStatus.IDLE}),
    SessionStatus.SUBMITTED: frozenset(
        {SessionStatus.STREAMING, SessionStatus.READY, SessionStatus.ERROR}
    ),
    SessionStatus.STREAMING: frozenset({SessionStatus.READY, SessionStatus.ERROR}),
}

_BUSY_STATUSES = frozenset({SessionStatus.SUBMITTED, SessionStatus.STREAMING})


class ChatSession:
    """Ephemeral conversation state for one playground view.

    Nothing here is persisted: ``reset()`` (or dropping the object) discards
    the whole conversation. Only one request may be in flight at a time.
    """

    def __init__(
        self,
        transports: Mapping[ApiDialect, Any],
        *,
        settings: Settings | None = None,
        router: BackendRouter | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._transports = dict(transports)
        self._router = router or BackendRouter()
        self._notifier: Notifier = notifier or LoggingNotifier()
        self._listeners: list[SessionListener] = []

        self.store = ConversationStore(on_change=self._emit)
        self._status = SessionStatus.IDLE
        self._active_model: Optional[str] = None
        self._mode = Mode.CHAT
        self._route: Optional[Route] = None
        self._sampling = SamplingConfig(
            temperature=self._settings.default_temperature,
            max_tokens=self._settings.default_max_tokens,
            top_p=self._settings.default_top_p,
        )
        self._image_config = self._build_image_config(
            aspect_ratio=self._settings.default_aspect_ratio
        )

    # ------------------------------------------------------------------
    # Observed state
    # ------------------------------------------------------------------
    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def busy(self) -> bool:
        return self._status in _BUSY_STATUSES

    @property
    def active_model(self) -> Optional[str]:
        return self._active_model

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def route(self) -> Optional[Route]:
        return self._route

    @property
    def sampling(self) -> SamplingConfig:
        return self._sampling

    @property
    def image_config(self) -> ImageConfig:
        return self._image_config

    @property
    def messages(self) -> tuple[Message, ...]:
        return self.store.messages

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener called after every state change."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                # Listener errors are logged and never reach the request path
                logger.exception("Session listener %r failed", listener)

    def _set_status(self, status: SessionStatus) -> None:
        if status is self._status:
            return
        if status not in _TRANSITIONS[self._status]:
            raise InvariantViolation(
                f"Illegal status transition {self._status.value} -> {status.value}"
            )
        logger.debug("Session status %s -> %s", self._status.value, status.value)
        self._status = status
        self._emit()

    def _reject(self, exc: PlaygroundError) -> PlaygroundError:
        self._notifier.notify("error", str(exc))
        return exc

    def _ensure_idle(self) -> None:
        if self.busy:
            raise self._reject(InvariantViolation("A request is already in progress"))

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    def select_model(self, model_id: str) -> Route:
        """Activate a model, clearing history when its dialect or mode differs."""

        self._ensure_idle()
        model_id = model_id.strip()
        if not model_id:
            raise self._reject(ValidationError("Model id cannot be empty"))

        new_route = self._router.route(model_id, self._mode)
        if model_id == self._active_model and self._route is not None:
            return self._route

        if self._router.requires_reset(self._route, new_route) and len(self.store):
            logger.info(
                "Clearing %d message(s): switching %s/%s -> %s/%s",
                len(self.store),
                self._route.dialect.value if self._route else None,
                self._route.mode.value if self._route else None,
                new_route.dialect.value,
                new_route.mode.value,
            )
            self.store.clear()

        self._active_model = model_id
        self._mode = new_route.mode
        self._route = new_route
        self._emit()
        return new_route

    def set_mode(self, mode: Mode | str) -> Mode:
        """Switch between chat and image generation; always clears history."""

        self._ensure_idle()
        try:
            requested = Mode(mode)
        except ValueError as exc:
            raise self._reject(ValidationError(f"Unknown mode: {mode}")) from exc

        if requested is Mode.IMAGE_GENERATION and (
            self._active_model is None
            or not self._router.is_image_capable(self._active_model)
        ):
            raise self._reject(
                InvariantViolation("The selected model cannot generate images")
            )

        if requested is self._mode:
            return self._mode

        self.store.clear()
        self._mode = requested
        if self._active_model is not None:
            self._route = self._router.route(self._active_model, requested)
        self._emit()
        return self._mode

    def update_sampling(self, **changes: Any) -> SamplingConfig:
        try:
            self._sampling = SamplingConfig.model_validate(
                {**self._sampling.model_dump(), **changes}
            )
        except PydanticValidationError as exc:
            raise self._reject(ValidationError(_first_error(exc))) from exc
        self._emit()
        return self._sampling

    def update_image_config(self, **changes: Any) -> ImageConfig:
        self._image_config = self._build_image_config(
            **{**self._image_config.model_dump(), **changes}
        )
        self._emit()
        return self._image_config

    def _build_image_config(self, **values: Any) -> ImageConfig:
        try:
            return ImageConfig.model_validate(values)
        except PydanticValidationError as exc:
            raise self._reject(ValidationError(_first_error(exc))) from exc

    def reset(self) -> None:
        """Discard the conversation and return to idle."""

        self._ensure_idle()
        self.store.clear()
        self._set_status(SessionStatus.IDLE)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------
    async def send(
        self, text: str, attachments: Iterable[Attachment] = ()
    ) -> Message:
        """Submit a user turn and drive the response to a terminal status.

        Transport failures do not raise: they end in ``SessionStatus.ERROR``
        with partial content kept. Returns the assistant message.
        """

        self._ensure_idle()
        if self._active_model is None or self._route is None:
            raise self._reject(InvariantViolation("Select a model first"))

        attachments = tuple(attachments)
        if not text.strip() and not attachments:
            raise self._reject(ValidationError("Message cannot be empty"))

        route = self._route
        transport = self._transports.get(route.dialect)
        if transport is None:
            raise self._reject(
                InvariantViolation(
                    f"No backend configured for the {route.dialect.value} dialect"
                )
            )

        stream = StreamSession(
            self.store,
            self._set_status,
            notifier=self._notifier,
            open_tag=self._settings.reasoning_open_tag,
            close_tag=self._settings.reasoning_close_tag,
            image_failure_message=self._settings.image_failure_message,
        )

        if route.backend_kind is BackendKind.IMAGE_ONE_SHOT:
            if not text.strip():
                raise self._reject(ValidationError("Image prompt cannot be empty"))
            image_request = ImageGenerationRequest(
                model=self._active_model,
                prompt=text,
                image_config=self._image_config.model_copy(),
                include_resolution=route.capability.configurable_resolution,
            )
            self._set_status(SessionStatus.SUBMITTED)
            assistant = stream.begin(text, attachments)
            await stream.run_image(transport, image_request)
            return assistant

        content = build_user_content(
            text,
            attachments,
            drop_non_image=self._settings.drop_non_image_attachments,
        )
        transcript = build_transcript(self.store.messages, content)
        chat_request = ChatCompletionRequest.from_sampling(
            self._active_model, transcript, self._sampling
        )
        self._set_status(SessionStatus.SUBMITTED)
        assistant = stream.begin(text, attachments)
        await stream.run_chat(
            transport,
            chat_request,
            inline_reasoning=route.uses_inline_reasoning,
        )
        return assistant

    # ------------------------------------------------------------------
    # Editing and deletion
    # ------------------------------------------------------------------
    def start_edit(
        self,
        message_key: str,
        version_id: str,
        current_content: Optional[str] = None,
    ) -> Version:
        try:
            return self.store.start_edit(message_key, version_id, current_content)
        except PlaygroundError as exc:
            raise self._reject(exc) from exc

    def update_edit(self, version_id: str, text: str) -> None:
        try:
            self.store.update_edit(version_id, text)
        except PlaygroundError as exc:
            raise self._reject(exc) from exc

    def cancel_edit(self, message_key: str, version_id: str) -> Version:
        return self.store.cancel_edit(message_key, version_id)

    def save_edit(
        self,
        message_key: str,
        version_id: str,
        content: Optional[str] = None,
    ) -> Version:
        try:
            version = self.store.save_edit(message_key, version_id, content)
        except PlaygroundError as exc:
            raise self._reject(exc) from exc
        self._notifier.notify("success", "Message updated")
        return version

    def delete_message(self, message_key: str) -> Message:
        try:
            message = self.store.delete_message(message_key)
        except PlaygroundError as exc:
            raise self._reject(exc) from exc
        self._notifier.notify("success", "Message deleted")
        return message


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", "invalid value")
    return f"{location}: {message}" if location else message


__all__ = ["ChatSession", "SessionListener", "SessionStatus"]
