"""Line-oriented Server-Sent-Events decoding for Responses event streams.

Each ``data:`` line carries one JSON event. Blank lines, ``:`` comments and
the other SSE fields are skipped; a ``[DONE]`` payload ends the stream. A line
that fails to parse is logged and skipped so one bad payload never aborts the
stream.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterable, AsyncIterator, Iterable, Iterator
from typing import Any

from loguru import logger

DONE = object()

_DONE_PAYLOAD = "[DONE]"
_IGNORED_FIELDS = ("event:", "id:", "retry:")


def parse_sse_line(line: str) -> dict[str, Any] | object | None:
    """Decode one line. Returns an event dict, ``DONE``, or ``None`` when there is nothing to ingest."""
    stripped = line.strip()
    if not stripped or stripped.startswith(":"):
        return None
    if stripped.startswith(_IGNORED_FIELDS):
        return None

    data = stripped
    if data.startswith("data:"):
        data = data[len("data:"):].strip()
    if not data:
        return None
    if data == _DONE_PAYLOAD:
        return DONE

    try:
        parsed = json.loads(data)
    except json.JSONDecodeError as ex:
        logger.warning(f"Failed to parse stream event: {ex} (data={data[:200]!r})")
        return None
    if not isinstance(parsed, dict):
        logger.warning(f"Skipping non-object stream payload: {data[:200]!r}")
        return None
    return parsed


def decode_sse_lines(lines: Iterable[str]) -> Iterator[dict[str, Any]]:
    for line in lines:
        parsed = parse_sse_line(line)
        if parsed is DONE:
            return
        if parsed is not None:
            yield parsed  # type: ignore[misc]


async def aiter_sse_events(lines: AsyncIterable[str]) -> AsyncIterator[dict[str, Any]]:
    async for line in lines:
        parsed = parse_sse_line(line)
        if parsed is DONE:
            return
        if parsed is not None:
            yield parsed  # type: ignore[misc]
