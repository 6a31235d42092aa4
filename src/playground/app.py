"""Factories wiring settings, transports and the playground session together."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .catalog import ModelCatalog
from .chat.routing import ApiDialect, BackendRouter
from .chat.session import ChatSession
from .chat.types import Notifier
from .clients import GeminiClient, OpenAICompatClient
from .config import Settings, get_settings
from .errors import PlaygroundError

logger = logging.getLogger(__name__)


def create_transports(settings: Settings) -> dict[ApiDialect, Any]:
    """Instantiate one client per API dialect."""

    return {
        ApiDialect.OPENAI: OpenAICompatClient(settings),
        ApiDialect.GEMINI: GeminiClient(settings),
    }


def create_session(
    settings: Optional[Settings] = None,
    *,
    notifier: Optional[Notifier] = None,
    transports: Optional[dict[ApiDialect, Any]] = None,
) -> ChatSession:
    """Build a ready-to-use session, selecting the configured default model."""

    settings = settings or get_settings()
    router = BackendRouter()
    session = ChatSession(
        transports if transports is not None else create_transports(settings),
        settings=settings,
        router=router,
        notifier=notifier,
    )

    if settings.default_model:
        try:
            session.select_model(settings.default_model)
        except PlaygroundError as exc:
            logger.warning(
                "Ignoring default model %s: %s", settings.default_model, exc
            )
    return session


def create_catalog(
    settings: Optional[Settings] = None,
    *,
    transports: Optional[dict[ApiDialect, Any]] = None,
) -> ModelCatalog:
    settings = settings or get_settings()
    listers = transports if transports is not None else create_transports(settings)
    return ModelCatalog(listers, router=BackendRouter())


__all__ = ["create_catalog", "create_session", "create_transports"]
