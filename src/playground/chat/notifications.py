"""User-visible notices raised by the engine."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque

from .types import NoticeLevel

logger = logging.getLogger(__name__)

_LOG_LEVELS: dict[str, int] = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


class LoggingNotifier:
    """Default notifier: log every notice and keep the most recent ones."""

    def __init__(self, history_size: int = 50) -> None:
        self._history: Deque[Notice] = deque(maxlen=history_size)

    def notify(self, level: NoticeLevel, message: str) -> None:
        self._history.append(Notice(level=level, message=message))
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "%s", message)

    @property
    def history(self) -> tuple[Notice, ...]:
        return tuple(self._history)

    @property
    def last(self) -> Notice | None:
        return self._history[-1] if self._history else None


__all__ = ["LoggingNotifier", "Notice"]
