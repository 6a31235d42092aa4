"""Tests for the one-shot image generation path."""

from __future__ import annotations

from typing import Any

import pytest

from conftest import FakeChatTransport, FakeImageTransport
from playground.chat.notifications import LoggingNotifier
from playground.chat.routing import ApiDialect, Mode
from playground.chat.session import ChatSession
from playground.chat.store import GeneratedImage
from playground.chat.stream_session import SessionStatus
from playground.config import Settings
from playground.errors import TransportError, ValidationError

IMAGE_BODY = {
    "candidates": [
        {
            "content": {
                "parts": [{"inlineData": {"mimeType": "image/png", "data": "AAAA"}}]
            }
        }
    ]
}


def _image_session(
    settings: Settings, notifier: LoggingNotifier, transport: Any, model: str
) -> ChatSession:
    session = ChatSession(
        {ApiDialect.GEMINI: transport}, settings=settings, notifier=notifier
    )
    session.select_model(model)
    session.set_mode(Mode.IMAGE_GENERATION)
    return session


@pytest.mark.asyncio
async def test_image_result_is_stored_without_streaming(
    settings: Settings, notifier: LoggingNotifier
) -> None:
    transport = FakeImageTransport(IMAGE_BODY)
    session = _image_session(settings, notifier, transport, "gemini-2.5-flash-image")
    statuses: list[SessionStatus] = []
    session.subscribe(lambda s: statuses.append(s.status))

    assistant = await session.send("a red fox")

    version = assistant.active_version
    assert version.generated_image == GeneratedImage(data="AAAA", mime_type="image/png")
    assert version.content == ""
    assert version.reasoning_content is None
    assert session.status is SessionStatus.READY
    assert SessionStatus.STREAMING not in statuses
    assert session.store.active_lease is None


@pytest.mark.asyncio
async def test_failing_listener_keeps_generated_image(
    settings: Settings, notifier: LoggingNotifier
) -> None:
    transport = FakeImageTransport(IMAGE_BODY)
    session = _image_session(settings, notifier, transport, "gemini-2.5-flash-image")

    def _broken(current: ChatSession) -> None:
        messages = current.messages
        if messages and messages[-1].active_version.is_image:
            raise ValueError("Incorrect padding")

    session.subscribe(_broken)

    assistant = await session.send("a red fox")

    version = assistant.active_version
    assert version.generated_image == GeneratedImage(data="AAAA", mime_type="image/png")
    assert version.content == ""
    assert session.status is SessionStatus.READY
    assert session.store.active_lease is None
    assert not session.busy


@pytest.mark.asyncio
async def test_flattened_inline_image_parts_are_accepted(
    settings: Settings, notifier: LoggingNotifier
) -> None:
    body = {
        "candidates": [
            {
                "parts": [
                    {"text": "Here you go"},
                    {"inlineImage": {"mimeType": "image/webp", "data": "BBBB"}},
                ]
            }
        ]
    }
    session = _image_session(
        settings, notifier, FakeImageTransport(body), "gemini-2.5-flash-image"
    )

    assistant = await session.send("a blue bird")

    version = assistant.active_version
    assert version.generated_image == GeneratedImage(data="BBBB", mime_type="image/webp")
    assert version.content == "Here you go"


@pytest.mark.asyncio
async def test_response_without_image_is_an_error(
    settings: Settings, notifier: LoggingNotifier
) -> None:
    body = {"candidates": [{"content": {"parts": [{"text": "I can't draw that"}]}}]}
    session = _image_session(
        settings, notifier, FakeImageTransport(body), "gemini-2.5-flash-image"
    )

    assistant = await session.send("something")

    version = assistant.active_version
    assert session.status is SessionStatus.ERROR
    assert version.generated_image is None
    assert version.content == "Image generation failed: no image data"
    assert notifier.last is not None
    assert notifier.last.message == "Image generation failed: no image data"


@pytest.mark.asyncio
async def test_transport_error_uses_failure_template(
    notifier: LoggingNotifier,
) -> None:
    settings = Settings(
        _env_file=None,
        default_model=None,
        image_failure_message="Could not draw ({detail})",
    )
    transport = FakeImageTransport(error=TransportError(429, {"message": "quota"}))
    session = _image_session(settings, notifier, transport, "gemini-2.5-flash-image")

    assistant = await session.send("a cat")

    assert session.status is SessionStatus.ERROR
    assert assistant.active_version.content == "Could not draw (quota)"


@pytest.mark.asyncio
async def test_only_the_prompt_is_sent(
    settings: Settings, notifier: LoggingNotifier
) -> None:
    transport = FakeImageTransport(IMAGE_BODY)
    session = _image_session(settings, notifier, transport, "gemini-2.5-flash-image")

    await session.send("first prompt")
    await session.send("second prompt")

    request = transport.requests[-1]
    assert request.prompt == "second prompt"
    payload = request.to_gemini_payload()
    assert payload["contents"] == [
        {"role": "user", "parts": [{"text": "second prompt"}]}
    ]
    assert payload["generationConfig"]["responseModalities"] == ["TEXT", "IMAGE"]
    assert len(session.messages) == 4


@pytest.mark.asyncio
async def test_resolution_only_sent_for_configurable_models(
    settings: Settings, notifier: LoggingNotifier
) -> None:
    transport = FakeImageTransport(IMAGE_BODY)
    session = _image_session(settings, notifier, transport, "gemini-2.5-flash-image")
    session.update_image_config(aspect_ratio="16:9", resolution="2K")
    await session.send("wide")

    image_config = transport.requests[-1].to_gemini_payload()["generationConfig"][
        "imageConfig"
    ]
    assert image_config == {"aspectRatio": "16:9"}

    session.select_model("gemini-3-pro-image-preview")
    session.set_mode(Mode.IMAGE_GENERATION)
    await session.send("wide again")

    image_config = transport.requests[-1].to_gemini_payload()["generationConfig"][
        "imageConfig"
    ]
    assert image_config == {"aspectRatio": "16:9", "imageSize": "2K"}


@pytest.mark.asyncio
async def test_empty_image_prompt_is_rejected(
    settings: Settings, notifier: LoggingNotifier
) -> None:
    transport = FakeImageTransport(IMAGE_BODY)
    session = _image_session(settings, notifier, transport, "gemini-2.5-flash-image")

    with pytest.raises(ValidationError):
        await session.send("  ")
    assert transport.requests == []


def test_invalid_aspect_ratio_is_rejected(
    settings: Settings, notifier: LoggingNotifier
) -> None:
    session = ChatSession(
        {ApiDialect.OPENAI: FakeChatTransport()}, settings=settings, notifier=notifier
    )

    with pytest.raises(ValidationError):
        session.update_image_config(aspect_ratio="7:3")
    assert session.image_config.aspect_ratio == "1:1"


def test_switching_mode_clears_history(
    settings: Settings, notifier: LoggingNotifier
) -> None:
    session = ChatSession(
        {ApiDialect.GEMINI: FakeImageTransport()}, settings=settings, notifier=notifier
    )
    session.select_model("gemini-2.5-flash-image")
    session.store.append_user("hello")

    session.set_mode(Mode.IMAGE_GENERATION)

    assert session.messages == ()
    assert session.route is not None
    assert session.route.mode is Mode.IMAGE_GENERATION
