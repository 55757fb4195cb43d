from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import httpx
from loguru import logger
from tenacity import AsyncRetrying

from responses_session.errors import RetryableStreamError, StreamRequestError
from responses_session.sources.common import default_retry_kwargs
from responses_session.sse import aiter_sse_events

_DEFAULT_TIMEOUT_SECONDS = 60.0
_RETRYABLE_STATUS = frozenset({429, 502, 503, 504})

RETRYABLE_EXCEPTIONS: tuple[type[Exception], ...] = (
    httpx.ConnectError,
    httpx.ConnectTimeout,
    RetryableStreamError,
)

_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "text/event-stream",
}


class SseEndpointSource:
    """POSTs the conversation to an SSE endpoint and yields the events it streams back."""

    def __init__(
        self,
        endpoint: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        headers: dict[str, str] | None = None,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        max_attempts: int = 5,
        retry_kwargs: dict | None = None,
    ):
        self._endpoint = endpoint
        self._client = http_client
        self._headers = {**_HEADERS, **(headers or {})}
        self._timeout = timeout
        self._retry_kwargs = retry_kwargs or default_retry_kwargs(RETRYABLE_EXCEPTIONS, attempts=max_attempts)

    async def stream(self, inputs: list[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
        client = self._client or httpx.AsyncClient(timeout=self._timeout)
        try:
            response = await self._open(client, inputs)
            try:
                async for event in aiter_sse_events(response.aiter_lines()):
                    yield event
            finally:
                await response.aclose()
        finally:
            if self._client is None:
                await client.aclose()

    async def _open(self, client: httpx.AsyncClient, inputs: list[dict[str, Any]]) -> httpx.Response:
        logger.debug(f"Stream request: endpoint={self._endpoint}, inputs={len(inputs)}")
        async for attempt in AsyncRetrying(**self._retry_kwargs):
            with attempt:
                request = client.build_request(
                    "POST",
                    self._endpoint,
                    json={"messages": inputs},
                    headers=self._headers,
                )
                response = await client.send(request, stream=True)
                if response.is_success:
                    return response
                await response.aclose()
                error_type = RetryableStreamError if response.status_code in _RETRYABLE_STATUS else StreamRequestError
                raise error_type(response.status_code, response.reason_phrase)
        raise RuntimeError("Retry loop exited without a response")
