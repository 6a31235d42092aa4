"""Server-Sent Event parsing shared by the streaming clients."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Iterable, Optional

import httpx

from ..errors import TransportError

logger = logging.getLogger(__name__)


@dataclass
class ServerSentEvent:
    """Represents a parsed Server-Sent Event."""

    data: str
    event: str = "message"
    event_id: Optional[str] = None


def parse_event(lines: Iterable[str]) -> ServerSentEvent:
    event_name: Optional[str] = None
    event_id: Optional[str] = None
    data_lines: list[str] = []

    for line in lines:
        field, _, value = line.partition(":")
        value = value.lstrip(" ")
        if field == "event":
            event_name = value or None
        elif field == "data":
            data_lines.append(value)
        elif field == "id":
            event_id = value or None

    data = "\n".join(data_lines)
    return ServerSentEvent(data=data, event=event_name or "message", event_id=event_id)


async def iter_events(
    response: httpx.Response,
) -> AsyncGenerator[ServerSentEvent, None]:
    """Group response lines into events separated by blank lines."""

    buffer: list[str] = []
    async for line in response.aiter_lines():
        if not line:
            if buffer:
                yield parse_event(buffer)
                buffer.clear()
            continue
        if line.startswith(":"):
            continue
        buffer.append(line)
    if buffer:
        yield parse_event(buffer)


async def iter_json_chunks(
    response: httpx.Response,
    *,
    done_sentinel: Optional[str] = None,
) -> AsyncGenerator[dict[str, Any], None]:
    """Yield the JSON object carried by each event.

    Empty and non-object payloads are skipped. An ``error`` frame raises
    :class:`TransportError`; ``done_sentinel`` ends the stream when given.
    """

    async for event in iter_events(response):
        data = event.data
        if not data:
            continue
        if done_sentinel is not None and data == done_sentinel:
            return
        try:
            chunk = json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping non-JSON SSE payload: %s", data)
            continue
        if not isinstance(chunk, dict):
            continue
        error = chunk.get("error")
        if error:
            # Mid-stream failures arrive as an error frame
            raise TransportError(httpx.codes.BAD_GATEWAY, error)
        yield chunk


__all__ = ["ServerSentEvent", "iter_events", "iter_json_chunks", "parse_event"]
