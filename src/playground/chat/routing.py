"""Backend selection for a model identifier and UI mode."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Pattern, Sequence


class BackendKind(str, Enum):
    CHAT_STREAM = "chat_stream"
    IMAGE_ONE_SHOT = "image_one_shot"


class ApiDialect(str, Enum):
    OPENAI = "openai"
    GEMINI = "gemini"


class Mode(str, Enum):
    CHAT = "chat"
    IMAGE_GENERATION = "image_generation"


@dataclass(frozen=True)
class ModelCapability:
    """One row of the static capability table."""

    pattern: Pattern[str]
    dialect: ApiDialect
    image_generation: bool = False
    configurable_resolution: bool = False

    def matches(self, model_id: str) -> bool:
        return bool(self.pattern.search(model_id))


@dataclass(frozen=True)
class Route:
    backend_kind: BackendKind
    dialect: ApiDialect
    mode: Mode
    capability: ModelCapability

    @property
    def uses_inline_reasoning(self) -> bool:
        """Whether reasoning arrives inline in the content stream."""

        return self.dialect is ApiDialect.OPENAI


def _rule(
    pattern: str,
    dialect: ApiDialect,
    *,
    image_generation: bool = False,
    configurable_resolution: bool = False,
) -> ModelCapability:
    return ModelCapability(
        pattern=re.compile(pattern, re.IGNORECASE),
        dialect=dialect,
        image_generation=image_generation,
        configurable_resolution=configurable_resolution,
    )


# First match wins; the final catch-all routes to the OpenAI-compatible dialect.
CAPABILITY_TABLE: tuple[ModelCapability, ...] = (
    _rule(
        r"^(models/)?gemini-3(\.\d+)?-pro-image",
        ApiDialect.GEMINI,
        image_generation=True,
        configurable_resolution=True,
    ),
    _rule(r"^(models/)?gemini-[\w.-]*image", ApiDialect.GEMINI, image_generation=True),
    _rule(r"^(models/)?gemini-", ApiDialect.GEMINI),
    _rule(r".*", ApiDialect.OPENAI),
)


class BackendRouter:
    """Resolve which backend family and dialect handles a request."""

    def __init__(self, table: Sequence[ModelCapability] = CAPABILITY_TABLE) -> None:
        self._table = tuple(table)

    def capability(self, model_id: str) -> ModelCapability:
        for entry in self._table:
            if entry.matches(model_id):
                return entry
        return ModelCapability(pattern=re.compile(".*"), dialect=ApiDialect.OPENAI)

    def is_image_capable(self, model_id: str) -> bool:
        return self.capability(model_id).image_generation

    def route(self, model_id: str, mode: Mode = Mode.CHAT) -> Route:
        capability = self.capability(model_id)
        effective_mode = Mode(mode)
        if not capability.image_generation:
            effective_mode = Mode.CHAT
        backend_kind = (
            BackendKind.IMAGE_ONE_SHOT
            if effective_mode is Mode.IMAGE_GENERATION
            else BackendKind.CHAT_STREAM
        )
        return Route(
            backend_kind=backend_kind,
            dialect=capability.dialect,
            mode=effective_mode,
            capability=capability,
        )

    @staticmethod
    def requires_reset(previous: Optional[Route], new: Route) -> bool:
        """History is cleared whenever the dialect or the mode changes."""

        if previous is None:
            return False
        return previous.dialect is not new.dialect or previous.mode is not new.mode


__all__ = [
    "ApiDialect",
    "BackendKind",
    "BackendRouter",
    "CAPABILITY_TABLE",
    "Mode",
    "ModelCapability",
    "Route",
]
