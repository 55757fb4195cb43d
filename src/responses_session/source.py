from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

from responses_session.app_config import AppConfig, RuntimeEnv, resolve_tools


@runtime_checkable
class EventSource(Protocol):
    def stream(self, inputs: list[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
        """Start one response for ``inputs`` and yield its stream events as dicts, in receipt order."""
        ...


def create_source(app: AppConfig, env: RuntimeEnv) -> EventSource:
    """Factory: create an EventSource for the configured transport."""
    name = app.transport.strip().lower()
    if name == "sse":
        from responses_session.sources.sse_endpoint import SseEndpointSource
        headers = {"Origin": env.client_origin} if env.client_origin else None
        return SseEndpointSource(
            app.endpoint,
            headers=headers,
            timeout=app.request_timeout_seconds,
            max_attempts=app.retry_attempts,
        )
    if name == "openai":
        from responses_session.sources.openai_source import OpenAIResponsesSource
        return OpenAIResponsesSource(
            env.api_key,
            model=app.model,
            base_url=env.base_url or app.base_url,
            default_headers={"Origin": env.client_origin} if env.client_origin else None,
            tools=resolve_tools(app, env),
        )
    raise ValueError(f"Unknown transport: {app.transport!r}. Supported: 'sse', 'openai'")
