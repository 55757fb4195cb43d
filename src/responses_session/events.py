"""Event type names of the Responses streaming protocol, grouped by how the session treats them."""

from __future__ import annotations

from typing import Any

RESPONSE_QUEUED = "response.queued"
RESPONSE_CREATED = "response.created"
RESPONSE_IN_PROGRESS = "response.in_progress"
RESPONSE_COMPLETED = "response.completed"
RESPONSE_FAILED = "response.failed"
RESPONSE_INCOMPLETE = "response.incomplete"
ERROR = "error"

OUTPUT_ITEM_ADDED = "response.output_item.added"
OUTPUT_ITEM_DONE = "response.output_item.done"

AUDIO_DELTA = "response.audio.delta"
AUDIO_DONE = "response.audio.done"
AUDIO_TRANSCRIPT_DELTA = "response.audio.transcript.delta"
AUDIO_TRANSCRIPT_DONE = "response.audio.transcript.done"

LIFECYCLE_EVENTS: frozenset[str] = frozenset({
    RESPONSE_CREATED,
    RESPONSE_IN_PROGRESS,
    RESPONSE_COMPLETED,
    RESPONSE_FAILED,
    RESPONSE_INCOMPLETE,
})

TERMINAL_LIFECYCLE_EVENTS: frozenset[str] = frozenset({
    RESPONSE_COMPLETED,
    RESPONSE_FAILED,
    RESPONSE_INCOMPLETE,
})

# Status adopted when a lifecycle event carries a response without one.
LIFECYCLE_DEFAULT_STATUS: dict[str, str] = {
    RESPONSE_CREATED: "in_progress",
    RESPONSE_IN_PROGRESS: "in_progress",
    RESPONSE_COMPLETED: "completed",
    RESPONSE_FAILED: "failed",
    RESPONSE_INCOMPLETE: "incomplete",
}

STRUCTURAL_EVENTS: frozenset[str] = frozenset({OUTPUT_ITEM_ADDED, OUTPUT_ITEM_DONE})

# Known events that do not touch any output item.
SESSION_ONLY_EVENTS: frozenset[str] = frozenset({
    AUDIO_DONE,
    AUDIO_TRANSCRIPT_DONE,
    RESPONSE_QUEUED,
    ERROR,
})


def event_type(event: dict[str, Any]) -> str:
    value = event.get("type")
    return value if isinstance(value, str) else ""


def output_index_of(event: dict[str, Any]) -> int | None:
    value = event.get("output_index")
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def item_id_of(event: dict[str, Any]) -> str | None:
    value = event.get("item_id")
    if isinstance(value, str) and value:
        return value
    return None
