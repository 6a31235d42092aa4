"""Outbound content and transcript assembly."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence, Union

from ..schemas.chat import ChatMessage
from .store import Attachment, Message

logger = logging.getLogger(__name__)

RequestContent = Union[str, list[dict[str, Any]]]


def build_user_content(
    text: str,
    attachments: Sequence[Attachment] = (),
    *,
    drop_non_image: bool = True,
) -> RequestContent:
    """Build the content for the current user turn.

    Without attachments the content is the plain text. With attachments it is
    a list of parts: a text part first (when there is text), then one
    ``image_url`` part per image attachment. Non-image attachments are left
    out unless ``drop_non_image`` is disabled, in which case they travel as
    ``file`` parts.
    """

    if not attachments:
        return text

    parts: list[dict[str, Any]] = []
    if text:
        parts.append({"type": "text", "text": text})

    for attachment in attachments:
        if attachment.is_image:
            parts.append({"type": "image_url", "image_url": {"url": attachment.url}})
        elif drop_non_image:
            logger.debug(
                "Dropping non-image attachment %s (%s) from request payload",
                attachment.filename,
                attachment.media_type,
            )
        else:
            parts.append(
                {
                    "type": "file",
                    "file": {
                        "filename": attachment.filename,
                        "file_data": attachment.url,
                    },
                }
            )

    return parts


def flatten_history(messages: Iterable[Message]) -> list[ChatMessage]:
    """Flatten every version of every message into role-tagged entries."""

    history: list[ChatMessage] = []
    for message in messages:
        for version in message.versions:
            history.append(ChatMessage(role=message.role, content=version.content))
    return history


def build_transcript(
    messages: Iterable[Message], current_content: RequestContent
) -> list[ChatMessage]:
    """Return the full history followed by the current user turn."""

    transcript = flatten_history(messages)
    transcript.append(ChatMessage(role="user", content=current_content))
    return transcript


__all__ = [
    "RequestContent",
    "build_transcript",
    "build_user_content",
    "flatten_history",
]
