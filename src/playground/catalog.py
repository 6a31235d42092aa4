"""Model catalog used to populate the model selector."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Mapping

from .chat.routing import ApiDialect, BackendRouter
from .chat.types import ModelLister
from .errors import PlaygroundError

logger = logging.getLogger(__name__)

_VENDOR_PREFIX = re.compile(r"^(models/|openai/|anthropic/|google/|meta/)")
_VERSION_DASH = re.compile(r"(\d+)-(\d+)")

# Gemini models that cannot produce text or images through generateContent
_NON_GENERATIVE_GEMINI = re.compile(r"(embedding|aqa|imagen|veo)", re.IGNORECASE)


@dataclass(frozen=True)
class ModelEntry:
    id: str
    display_name: str
    provider_family: str
    dialect: ApiDialect
    image_generation: bool = False
    configurable_resolution: bool = False


def provider_family(model_id: str) -> str:
    """Guess the model vendor from its identifier."""

    lowered = model_id.lower()
    if "gpt" in lowered or "openai" in lowered:
        return "openai"
    if "claude" in lowered or "anthropic" in lowered:
        return "anthropic"
    if "gemini" in lowered or "google" in lowered:
        return "google"
    if "llama" in lowered or "meta" in lowered:
        return "meta"
    return "unknown"


def format_model_name(model_id: str) -> str:
    """Turn ``openai/gpt-4-1-mini`` into ``Gpt 4.1 Mini``."""

    name = _VENDOR_PREFIX.sub("", model_id)
    name = _VERSION_DASH.sub(r"\1.\2", name)
    words = [part for part in re.split(r"[-_]", name) if part]
    return " ".join(word[:1].upper() + word[1:] for word in words)


def _openai_model_ids(payload: Mapping[str, Any]) -> list[str]:
    ids: list[str] = []
    for entry in payload.get("data") or []:
        if isinstance(entry, Mapping) and isinstance(entry.get("id"), str):
            ids.append(entry["id"])
    return ids


def _gemini_model_ids(payload: Mapping[str, Any]) -> list[str]:
    ids: list[str] = []
    for entry in payload.get("models") or []:
        if not isinstance(entry, Mapping):
            continue
        name = entry.get("name")
        if not isinstance(name, str):
            continue
        methods = entry.get("supportedGenerationMethods")
        if isinstance(methods, list) and "generateContent" not in methods:
            continue
        model_id = name.removeprefix("models/")
        if _NON_GENERATIVE_GEMINI.search(model_id):
            continue
        ids.append(model_id)
    return ids


class ModelCatalog:
    """Merge the model lists of every configured dialect."""

    def __init__(
        self,
        listers: Mapping[ApiDialect, ModelLister],
        *,
        router: BackendRouter | None = None,
    ) -> None:
        self._listers = dict(listers)
        self._router = router or BackendRouter()

    async def list_available_models(self) -> list[ModelEntry]:
        """Return the catalog; a failing backend contributes nothing."""

        entries: list[ModelEntry] = []
        seen: set[str] = set()
        for dialect, lister in self._listers.items():
            try:
                payload = await lister.list_models()
            except PlaygroundError as exc:
                logger.warning("Failed to load %s models: %s", dialect.value, exc)
                continue

            if dialect is ApiDialect.GEMINI:
                model_ids = _gemini_model_ids(payload)
            else:
                model_ids = _openai_model_ids(payload)

            for model_id in model_ids:
                entry = self._make_entry(model_id)
                # Models are keyed by id; skip ids routed to another dialect
                if entry.id in seen or entry.dialect is not dialect:
                    continue
                seen.add(entry.id)
                entries.append(entry)
        return entries

    def _make_entry(self, model_id: str) -> ModelEntry:
        capability = self._router.capability(model_id)
        return ModelEntry(
            id=model_id,
            display_name=format_model_name(model_id),
            provider_family=provider_family(model_id),
            dialect=capability.dialect,
            image_generation=capability.image_generation,
            configurable_resolution=capability.configurable_resolution,
        )


__all__ = [
    "ModelCatalog",
    "ModelEntry",
    "format_model_name",
    "provider_family",
]
