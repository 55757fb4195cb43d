from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any

import openai
from loguru import logger
from tenacity import retry

from responses_session.sources.common import STREAM_ERROR_CODE, default_retry_kwargs, stream_error_event


def _event_to_dict(event: Any) -> dict[str, Any]:
    if hasattr(event, "model_dump"):
        return event.model_dump(mode="json")
    return dict(event)


class OpenAIResponsesSource:
    """Streams a response straight from the Responses API with the openai SDK."""

    def __init__(
        self,
        api_key: str,
        *,
        model: str,
        base_url: str | None = None,
        default_headers: dict[str, str] | None = None,
        tools: list[dict] | None = None,
    ):
        self._client = openai.AsyncOpenAI(api_key=api_key, base_url=base_url, default_headers=default_headers)
        self._model = model
        self._tools = list(tools or [])

    @retry(**default_retry_kwargs((
        openai.RateLimitError,
        openai.APIConnectionError,
        openai.APITimeoutError,
    )))
    async def _create_stream(self, inputs: list[dict[str, Any]]):
        logger.debug(f"API request: model={self._model}, inputs={len(inputs)}, tools={len(self._tools)}")
        kwargs: dict = dict(model=self._model, input=inputs, stream=True)
        if self._tools:
            kwargs["tools"] = self._tools
        return await self._client.responses.create(**kwargs)

    async def stream(self, inputs: list[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
        stream = await self._create_stream(inputs)
        try:
            async for event in stream:
                yield _event_to_dict(event)
        except openai.APIError as ex:
            logger.error(f"Stream error: {ex}")
            yield stream_error_event("Stream error occurred", param=STREAM_ERROR_CODE)
