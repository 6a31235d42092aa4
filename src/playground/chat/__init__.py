"""Conversation engine package."""

from .routing import ApiDialect, BackendKind, BackendRouter, Mode, Route
from .session import ChatSession
from .store import Attachment, ConversationStore, GeneratedImage, Message, Version
from .stream_session import SessionStatus, StreamSession
from .types import StreamDelta

__all__ = [
    "ApiDialect",
    "Attachment",
    "BackendKind",
    "BackendRouter",
    "ChatSession",
    "ConversationStore",
    "GeneratedImage",
    "Message",
    "Mode",
    "Route",
    "SessionStatus",
    "StreamDelta",
    "StreamSession",
    "Version",
]
