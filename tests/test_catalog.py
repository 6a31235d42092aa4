from __future__ import annotations

from typing import Any

import pytest

from playground.catalog import ModelCatalog, format_model_name, provider_family
from playground.chat.routing import ApiDialect
from playground.errors import TransportError


class StaticLister:
    def __init__(self, payload: dict[str, Any]) -> None:
        self.payload = payload

    async def list_models(self) -> dict[str, Any]:
        return self.payload


class FailingLister:
    async def list_models(self) -> dict[str, Any]:
        raise TransportError(500, "boom")


def test_format_model_name() -> None:
    assert format_model_name("openai/gpt-4-1-mini") == "Gpt 4.1 Mini"
    assert format_model_name("models/gemini-2.5-flash") == "Gemini 2.5 Flash"


def test_provider_family() -> None:
    assert provider_family("gpt-4o") == "openai"
    assert provider_family("anthropic/claude-3-haiku") == "anthropic"
    assert provider_family("gemini-2.5-pro") == "google"
    assert provider_family("mistral-large") == "unknown"


@pytest.mark.asyncio
async def test_catalog_merges_dialects() -> None:
    catalog = ModelCatalog(
        {
            ApiDialect.OPENAI: StaticLister(
                {"data": [{"id": "gpt-4o"}, {"id": "gemini-2.5-flash"}, {"id": "gpt-4o"}]}
            ),
            ApiDialect.GEMINI: StaticLister(
                {
                    "models": [
                        {
                            "name": "models/gemini-2.5-flash-image",
                            "supportedGenerationMethods": ["generateContent"],
                        },
                        {
                            "name": "models/text-embedding-004",
                            "supportedGenerationMethods": ["embedContent"],
                        },
                        {
                            "name": "models/gemini-embedding-001",
                            "supportedGenerationMethods": ["generateContent"],
                        },
                    ]
                }
            ),
        }
    )

    entries = await catalog.list_available_models()

    assert [entry.id for entry in entries] == ["gpt-4o", "gemini-2.5-flash-image"]
    image_entry = entries[1]
    assert image_entry.dialect is ApiDialect.GEMINI
    assert image_entry.image_generation
    assert not image_entry.configurable_resolution
    assert image_entry.provider_family == "google"


@pytest.mark.asyncio
async def test_failing_backend_yields_empty_catalog() -> None:
    catalog = ModelCatalog({ApiDialect.OPENAI: FailingLister()})

    assert await catalog.list_available_models() == []
