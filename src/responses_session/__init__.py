from responses_session.emitter import SessionEmitter
from responses_session.models import (
    InputMessage,
    OutputAugmentations,
    OutputMessage,
    SessionAugmentations,
    SessionSnapshot,
)
from responses_session.session import ResponseSession

__all__ = [
    "InputMessage",
    "OutputAugmentations",
    "OutputMessage",
    "ResponseSession",
    "SessionAugmentations",
    "SessionEmitter",
    "SessionSnapshot",
]
