import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from loguru import logger

from responses_session.app_config import (
    AppConfig,
    RuntimeEnv,
    load_json_config,
    parse_app_config,
    resolve_runtime_env,
    resolve_tools,
)
from responses_session.logging_config import setup_logging
from responses_session.source import create_source
from responses_session.sources.openai_source import OpenAIResponsesSource
from responses_session.sources.sse_endpoint import SseEndpointSource


def _env(**overrides) -> RuntimeEnv:
    values = {"api_key": "sk-test", "api_key_env_var": "GROQ_API_KEY", "base_url": None, "client_origin": None}
    values.update(overrides)
    return RuntimeEnv(**values)


class ParseAppConfigTests(unittest.TestCase):
    def test_defaults(self) -> None:
        app = parse_app_config({})

        self.assertEqual("openai", app.transport)
        self.assertEqual("http://localhost:3000/api/chat", app.endpoint)
        self.assertEqual("moonshotai/kimi-k2-instruct-0905", app.model)
        self.assertEqual("https://api.groq.com/openai/v1", app.base_url)
        self.assertEqual(60.0, app.request_timeout_seconds)
        self.assertEqual(5, app.retry_attempts)
        self.assertEqual("INFO", app.log_level)
        self.assertIsNone(app.log_consumers)
        self.assertEqual([], app.tools)

    def test_overrides(self) -> None:
        app = parse_app_config({
            "Transport": " SSE ",
            "Endpoint": "http://example.test/stream",
            "Model": "gpt-5",
            "BaseUrl": "http://proxy.test/v1",
            "RequestTimeoutSeconds": 5,
            "RetryAttempts": "2",
            "LogLevel": "DEBUG",
            "Tools": [{"type": "mcp", "server_label": "docs"}],
        })

        self.assertEqual("sse", app.transport)
        self.assertEqual("http://example.test/stream", app.endpoint)
        self.assertEqual("http://proxy.test/v1", app.base_url)
        self.assertEqual(5.0, app.request_timeout_seconds)
        self.assertEqual(2, app.retry_attempts)
        self.assertEqual("docs", app.tools[0]["server_label"])

    def test_tools_must_be_a_list(self) -> None:
        with self.assertRaises(ValueError):
            parse_app_config({"Tools": {"type": "mcp"}})

    def test_load_json_config(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.json"
            self.assertEqual({}, load_json_config(path))
            path.write_text('{"Model": "gpt-5"}', encoding="utf-8")
            self.assertEqual({"Model": "gpt-5"}, load_json_config(path))

    def test_blank_base_url_disables_default(self) -> None:
        self.assertIsNone(parse_app_config({"BaseUrl": "  "}).base_url)

    def test_resolve_runtime_env_prefers_groq(self) -> None:
        environ = {
            "GROQ_API_KEY": "gsk-env",
            "GROQ_BASE_URL": "http://groq.test/v1",
            "OPENAI_API_KEY": "sk-env",
            "CLIENT_ORIGIN": "http://ui",
            "STRIPE_SECRET_KEY": "sk_stripe",
        }
        with mock.patch.dict(os.environ, environ, clear=True):
            env = resolve_runtime_env()

        self.assertEqual("gsk-env", env.api_key)
        self.assertEqual("GROQ_API_KEY", env.api_key_env_var)
        self.assertEqual("http://groq.test/v1", env.base_url)
        self.assertEqual("http://ui", env.client_origin)
        self.assertEqual("sk_stripe", env.stripe_secret_key)

    def test_resolve_runtime_env_falls_back_to_openai(self) -> None:
        with mock.patch.dict(os.environ, {"OPENAI_API_KEY": "sk-env", "OPENAI_BASE_URL": "http://proxy.test"}, clear=True):
            env = resolve_runtime_env()

        self.assertEqual("sk-env", env.api_key)
        self.assertEqual("OPENAI_API_KEY", env.api_key_env_var)
        self.assertEqual("http://proxy.test", env.base_url)
        self.assertIsNone(env.stripe_secret_key)

    def test_missing_key_reports_groq_variable(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            env = resolve_runtime_env()

        self.assertEqual("", env.api_key)
        self.assertEqual("GROQ_API_KEY", env.api_key_env_var)
        self.assertIsNone(env.base_url)


class CreateSourceTests(unittest.TestCase):
    def test_sse_transport(self) -> None:
        app = parse_app_config({"Transport": "sse", "RetryAttempts": 2})

        source = create_source(app, _env(client_origin="http://ui"))

        self.assertIsInstance(source, SseEndpointSource)
        self.assertEqual("http://ui", source._headers["Origin"])

    def test_openai_transport(self) -> None:
        source = create_source(parse_app_config({"Model": "gpt-5"}), _env())

        self.assertIsInstance(source, OpenAIResponsesSource)
        self.assertEqual("gpt-5", source._model)

    def test_openai_transport_adds_stripe_tool(self) -> None:
        app = parse_app_config({"Tools": [{"type": "function", "name": "lookup"}]})

        source = create_source(app, _env(stripe_secret_key="sk_stripe"))

        self.assertEqual(
            [
                {"type": "function", "name": "lookup"},
                {
                    "type": "mcp",
                    "server_label": "stripe",
                    "server_url": "https://mcp.stripe.com",
                    "headers": {"Authorization": "Bearer sk_stripe"},
                    "require_approval": "never",
                },
            ],
            source._tools,
        )

    def test_configured_stripe_tool_is_not_duplicated(self) -> None:
        configured = {"type": "mcp", "server_label": "stripe", "server_url": "http://stripe.test"}
        app = parse_app_config({"Tools": [configured]})

        self.assertEqual([configured], resolve_tools(app, _env(stripe_secret_key="sk_stripe")))
        self.assertEqual([configured], resolve_tools(app, _env()))
        self.assertEqual([], resolve_tools(parse_app_config({}), _env()))

    def test_unknown_transport(self) -> None:
        app = AppConfig(
            transport="carrier-pigeon",
            endpoint="",
            model="m",
            base_url=None,
            request_timeout_seconds=1,
            retry_attempts=1,
            log_level="INFO",
            log_consumers=None,
        )
        with self.assertRaises(ValueError):
            create_source(app, _env())


class SetupLoggingTests(unittest.TestCase):
    def tearDown(self) -> None:
        logger.remove()

    def test_configured_sinks_are_described(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = str(Path(tmp) / "logs" / "session.log")
            descriptions = setup_logging(
                level="DEBUG",
                consumers=[
                    {"type": "console", "level": "ERROR"},
                    {"type": "file", "path": path, "serialize": True},
                    {"type": "carrier-pigeon"},
                ],
            )
            logger.remove()

        self.assertEqual(["console (stderr, ERROR)", f"json file ({path}, DEBUG)"], descriptions)
