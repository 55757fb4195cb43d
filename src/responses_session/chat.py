from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from responses_session.session import ResponseSession
from responses_session.source import EventSource
from responses_session.sources.common import stream_error_event
from responses_session.transcript import build_request_inputs, pending_approval_request_ids


def user_message(text: str) -> dict[str, Any]:
    return {"type": "message", "role": "user", "content": text}


class ResponsesChat:
    """Drives one conversation: appends inputs, streams each reply into the session.

    Only one stream is active at a time; starting a new message cancels the
    stream in flight. A cancelled stream leaves the session as it was after
    the last event it delivered.
    """

    def __init__(self, session: ResponseSession, source: EventSource):
        self._session = session
        self._source = source
        self._task: asyncio.Task | None = None

    @property
    def session(self) -> ResponseSession:
        return self._session

    @property
    def is_streaming(self) -> bool:
        return self._task is not None and not self._task.done()

    def cancel(self) -> None:
        task = self._task
        if task is not None and not task.done():
            logger.debug("Cancelling active stream")
            task.cancel()
        self._task = None

    async def send_message(self, text: str, *, allow_empty: bool = False) -> dict[str, Any] | None:
        trimmed = text.strip()
        if not trimmed and not allow_empty:
            return None

        if self.is_streaming:
            self.cancel()

        if trimmed:
            self._session.add_input(user_message(trimmed))

        inputs = build_request_inputs(self._session.messages)
        task = asyncio.create_task(self._drain(inputs))
        self._task = task
        try:
            await asyncio.wait({task})
        except asyncio.CancelledError:
            task.cancel()
            raise
        finally:
            if self._task is task:
                self._task = None

        if task.cancelled():
            logger.debug("Stream aborted before completion")
            return None
        task.result()
        return self._session.response

    async def send_approval_response(self, approval_request_id: str, approve: bool) -> bool:
        """Record an approval decision; sends the follow-up request once nothing is pending.

        Returns True when a follow-up request was sent.
        """
        self._session.add_approval_response(approval_request_id, approve)

        if pending_approval_request_ids(self._session.messages) or self.is_streaming:
            return False
        await self.send_message("", allow_empty=True)
        return True

    async def _drain(self, inputs: list[dict[str, Any]]) -> None:
        # Listener errors raised by ingest are not stream errors.
        events = aiter(self._source.stream(inputs))
        try:
            while True:
                try:
                    event = await anext(events)
                except StopAsyncIteration:
                    return
                except Exception as ex:
                    logger.error(f"Streaming request failed: {ex}")
                    self._session.ingest(stream_error_event(str(ex) or "Streaming request failed"))
                    return
                self._session.ingest(event)
        finally:
            close = getattr(events, "aclose", None)
            if close is not None:
                await close()
