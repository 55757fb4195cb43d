from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Literal

SessionStatus = Literal["idle", "queued", "in_progress", "completed", "failed", "incomplete"]

TERMINAL_STATUSES: frozenset[str] = frozenset({"completed", "failed", "incomplete"})


@dataclass
class InputMessage:
    item: dict[str, Any]

    kind: ClassVar[str] = "input"


@dataclass
class OutputAugmentations:
    partial_images: list[dict] | None = None
    custom_tool_input: str | None = None
    reasoning_text: list[dict] | None = None
    reasoning_summary_text: list[dict] | None = None


@dataclass
class OutputMessage:
    item: dict[str, Any]
    output_index: int
    events: list[dict] = field(default_factory=list)
    augmentations: OutputAugmentations | None = None
    epoch: int = 0

    kind: ClassVar[str] = "output"

    def ensure_augmentations(self) -> OutputAugmentations:
        if self.augmentations is None:
            self.augmentations = OutputAugmentations()
        return self.augmentations


SessionMessage = InputMessage | OutputMessage


@dataclass
class AudioAugmentation:
    chunks: list[dict] = field(default_factory=list)
    transcript: list[dict] = field(default_factory=list)


@dataclass
class SessionAugmentations:
    audio: AudioAugmentation | None = None

    def ensure_audio(self) -> AudioAugmentation:
        if self.audio is None:
            self.audio = AudioAugmentation()
        return self.audio


@dataclass(frozen=True)
class SessionSnapshot:
    messages: tuple[SessionMessage, ...]
    status: str
    response: dict | None
    error: dict | None
    session_augmentations: SessionAugmentations | None
