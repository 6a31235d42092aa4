"""Utilities for separating reasoning traces from visible answer text."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

DEFAULT_OPEN_TAG = "<think>"
DEFAULT_CLOSE_TAG = "</think>"


@dataclass(frozen=True)
class ReasoningSplit:
    reasoning: str
    answer: str


def split_reasoning(
    buffer: str,
    open_tag: str = DEFAULT_OPEN_TAG,
    close_tag: str = DEFAULT_CLOSE_TAG,
    *,
    hold_partial: bool = False,
) -> ReasoningSplit:
    """Split a full accumulated buffer into reasoning and answer text.

    The function works on the whole buffer snapshot rather than on the newest
    chunk, so a delimiter may straddle chunk boundaries freely. Only the first
    delimited span is extracted; later markers stay in the answer verbatim.
    An opening tag without its closing tag means the reasoning is still
    arriving, so everything after the tag is reported as reasoning.

    With ``hold_partial`` a trailing fragment that could still grow into the
    next expected tag is left out of the result until more text arrives.
    """

    start = buffer.find(open_tag)
    if start < 0:
        answer = _drop_tag_prefix(buffer, open_tag) if hold_partial else buffer
        return ReasoningSplit(reasoning="", answer=answer)

    body_start = start + len(open_tag)
    end = buffer.find(close_tag, body_start)
    if end < 0:
        reasoning = buffer[body_start:]
        if hold_partial:
            reasoning = _drop_tag_prefix(reasoning, close_tag)
        return ReasoningSplit(
            reasoning=reasoning,
            answer=buffer[:start].strip(),
        )

    answer = buffer[:start] + buffer[end + len(close_tag):]
    return ReasoningSplit(reasoning=buffer[body_start:end], answer=answer.strip())


def _drop_tag_prefix(text: str, tag: str) -> str:
    """Remove the longest proper prefix of ``tag`` that ends ``text``."""

    for size in range(min(len(tag) - 1, len(text)), 0, -1):
        if text.endswith(tag[:size]):
            return text[:-size]
    return text


def extract_reasoning_text(payload: Any) -> str:
    """Flatten varied reasoning channel payloads into plain text.

    Gateways deliver reasoning deltas as bare strings, lists of segments, or
    nested objects. String leaves are concatenated as-is so whitespace inside
    streamed fragments is preserved.
    """

    fragments: list[str] = []

    def _walk(node: Any) -> None:
        if node is None or isinstance(node, bool):
            return

        if isinstance(node, str):
            fragments.append(node)
            return

        if isinstance(node, (int, float)):
            fragments.append(str(node))
            return

        if isinstance(node, list):
            for item in node:
                _walk(item)
            return

        if isinstance(node, dict):
            extracted = False
            for key in ("text", "content", "reasoning", "summary", "details"):
                if key not in node:
                    continue
                _walk(node[key])
                extracted = True

            if not extracted:
                remaining = {
                    key: value
                    for key, value in node.items()
                    if key not in {"type", "id", "index", "format", "signature"}
                }
                if remaining:
                    try:
                        fragments.append(json.dumps(remaining, ensure_ascii=False))
                    except TypeError:
                        fragments.append(str(remaining))
            return

        fragments.append(str(node))

    _walk(payload)
    return "".join(fragments)


__all__ = [
    "DEFAULT_CLOSE_TAG",
    "DEFAULT_OPEN_TAG",
    "ReasoningSplit",
    "extract_reasoning_text",
    "split_reasoning",
]
