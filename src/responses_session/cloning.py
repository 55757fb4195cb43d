"""Structural copies of event and item payloads.

Events and items are JSON-shaped, so the common case is a walk over dicts,
lists and scalars. Anything outside that closed set (SDK models, bytes,
datetimes) falls back to ``copy.deepcopy`` instead of being stringified.
"""

from __future__ import annotations

import copy
from typing import Any, TypeVar

T = TypeVar("T")

_SCALARS = (str, int, float, bool, type(None))


def clone(value: T) -> T:
    if isinstance(value, _SCALARS):
        return value
    if isinstance(value, dict):
        return {key: clone(item) for key, item in value.items()}  # type: ignore[return-value]
    if isinstance(value, list):
        return [clone(item) for item in value]  # type: ignore[return-value]
    if isinstance(value, tuple):
        return tuple(clone(item) for item in value)  # type: ignore[return-value]
    return copy.deepcopy(value)


def as_event_dict(event: Any) -> dict[str, Any]:
    """Normalise an incoming event (mapping or pydantic model) to a private dict copy."""
    if hasattr(event, "model_dump") and not isinstance(event, dict):
        return event.model_dump(mode="json")
    if not isinstance(event, dict):
        raise TypeError(f"Stream events must be mappings, got {type(event).__name__}")
    return clone(event)
