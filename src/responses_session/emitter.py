from __future__ import annotations

from collections.abc import Callable
from typing import Any

CHANGE = "change"
EVENT = "event"
STATUS = "status"
ERROR = "error"
END = "end"

CHANNELS: frozenset[str] = frozenset({CHANGE, EVENT, STATUS, ERROR, END})

Listener = Callable[[Any], None]


class SessionEmitter:
    """Synchronous, in-process observer registry keyed by channel name."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, channel: str, listener: Listener) -> Callable[[], None]:
        self._check_channel(channel)
        bucket = self._listeners.setdefault(channel, [])
        if listener not in bucket:
            bucket.append(listener)
        return lambda: self.off(channel, listener)

    def off(self, channel: str, listener: Listener) -> None:
        bucket = self._listeners.get(channel)
        if not bucket:
            return
        if listener in bucket:
            bucket.remove(listener)
        if not bucket:
            del self._listeners[channel]

    def emit(self, channel: str, payload: Any) -> None:
        self._check_channel(channel)
        for listener in list(self._listeners.get(channel, ())):
            listener(payload)

    def listener_count(self, channel: str) -> int:
        return len(self._listeners.get(channel, ()))

    @staticmethod
    def _check_channel(channel: str) -> None:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel: {channel!r}. Supported: {', '.join(sorted(CHANNELS))}")
