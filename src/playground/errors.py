"""Error taxonomy shared by the conversation engine and its transports."""

from __future__ import annotations

from typing import Any

import httpx


class PlaygroundError(Exception):
    """Base error for every recoverable engine failure."""


class ValidationError(PlaygroundError):
    """Raised when user input is rejected before any state changes."""


class InvariantViolation(PlaygroundError):
    """Raised when an operation is not allowed in the current session state."""


class TransportError(PlaygroundError):
    """Wrap transport or API failures when talking to a model backend."""

    def __init__(self, status_code: int, detail: Any):
        super().__init__(str(detail))
        self.status_code = status_code
        self.detail = detail

    @property
    def message(self) -> str:
        if isinstance(self.detail, dict):
            message = self.detail.get("message")
            if isinstance(message, str) and message:
                return message
        return str(self.detail)


class ResponseShapeError(TransportError):
    """Raised when a structurally valid response lacks the expected data."""

    def __init__(self, detail: Any):
        super().__init__(httpx.codes.BAD_GATEWAY, detail)


__all__ = [
    "InvariantViolation",
    "PlaygroundError",
    "ResponseShapeError",
    "TransportError",
    "ValidationError",
]
