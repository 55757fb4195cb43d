from __future__ import annotations

from typing import Any

from loguru import logger
from tenacity import retry_if_exception_type, stop_after_attempt, wait_exponential

STREAM_ERROR_CODE = "stream_error"


def _on_retry(retry_state) -> None:
    attempt = retry_state.attempt_number
    wait = retry_state.next_action.sleep if retry_state.next_action else 0
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    reason = type(exc).__name__ if exc else "Unknown"
    logger.warning(f"{reason}. Retrying in {wait:.0f}s (attempt {attempt})...")


def default_retry_kwargs(
    exception_types: tuple[type[Exception], ...],
    *,
    attempts: int = 5,
    multiplier: float = 10,
    min_wait: float = 10,
    max_wait: float = 320,
) -> dict:
    return {
        "retry": retry_if_exception_type(exception_types),
        "wait": wait_exponential(multiplier=multiplier, min=min_wait, max=max_wait),
        "stop": stop_after_attempt(max(1, attempts)),
        "before_sleep": _on_retry,
        "reraise": True,
    }


def stream_error_event(message: str, *, param: str | None = None) -> dict[str, Any]:
    """Terminal ``error`` event standing in for a transport failure."""
    return {
        "type": "error",
        "message": message,
        "code": STREAM_ERROR_CODE,
        "param": param,
        "sequence_number": 0,
    }
