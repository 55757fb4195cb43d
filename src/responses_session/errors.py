from __future__ import annotations


class ResponsesSessionError(Exception):
    """Base class for errors raised outside the session's event handling."""


class StreamRequestError(ResponsesSessionError):
    def __init__(self, status_code: int, reason: str = ""):
        self.status_code = status_code
        self.reason = reason
        super().__init__(f"Streaming request failed: {status_code} {reason}".rstrip())


class RetryableStreamError(StreamRequestError):
    """Raised for transient HTTP answers (rate limits, gateway errors) while opening a stream."""
