"""Logging setup for the playground terminal client."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(default_level: str = "WARNING") -> int:
    """Configure logging based on LOG_LEVEL and LOG_FILE environment variables.

    Returns the resolved numeric level so callers can tune their own output.
    """
    # Load .env first so LOG_LEVEL/LOG_FILE defined there are honoured
    load_dotenv()

    log_level_str = os.getenv("LOG_LEVEL", default_level).upper()
    log_level = getattr(logging, log_level_str, logging.INFO)
    if not isinstance(log_level, int):
        log_level = logging.INFO

    formatter = logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = []

    log_file = os.getenv("LOG_FILE")
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers.append(console_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    logging.getLogger("playground").setLevel(log_level)

    # httpx logs every request at INFO; keep it for DEBUG sessions only
    if log_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)
    else:
        logging.getLogger("httpx").setLevel(log_level)
        logging.getLogger("httpcore").setLevel(log_level)

    return log_level


__all__ = ["configure_logging"]
