"""Split streamed HTTP bodies into decoded JSON events.

Two framings cover every streaming backend: Server-Sent Events
(``data: {...}`` blocks separated by blank lines, optionally terminated by
``data: [DONE]``) and newline-delimited JSON.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from collections.abc import AsyncIterable, AsyncIterator

logger = logging.getLogger(__name__)

Framing = Literal["sse", "ndjson"]

_DONE = "[DONE]"


def _decode(payload: str) -> Any | None:
    try:
        return json.loads(payload)
    except (ValueError, RecursionError):
        logger.warning("Skipping undecodable stream frame: %.80r", payload)
        return None


async def iter_sse(lines: AsyncIterable[str]) -> AsyncIterator[Any]:
    """Yield the JSON payload of each SSE event.

    Comment lines and non-data fields are ignored; multi-line data is joined
    with newlines. ``[DONE]`` ends the stream.
    """
    data: list[str] = []
    async for raw in lines:
        line = raw.rstrip("\r")
        if line:
            if line.startswith(":"):
                continue
            field, _, value = line.partition(":")
            if field == "data":
                data.append(value[1:] if value.startswith(" ") else value)
            continue
        if not data:
            continue
        payload = "\n".join(data)
        data.clear()
        if payload == _DONE:
            return
        event = _decode(payload)
        if event is not None:
            yield event

    if data:
        payload = "\n".join(data)
        if payload != _DONE:
            event = _decode(payload)
            if event is not None:
                yield event


async def iter_ndjson(lines: AsyncIterable[str]) -> AsyncIterator[Any]:
    """Yield one decoded object per non-blank line."""
    async for raw in lines:
        line = raw.strip()
        if not line:
            continue
        event = _decode(line)
        if event is not None:
            yield event


def iter_events(framing: Framing, lines: AsyncIterable[str]) -> AsyncIterator[Any]:
    """Dispatch on *framing*."""
    if framing == "sse":
        return iter_sse(lines)
    if framing == "ndjson":
        return iter_ndjson(lines)
    raise ValueError(f"Unknown stream framing: {framing!r}")
