from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_MODEL = "moonshotai/kimi-k2-instruct-0905"
DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
STRIPE_MCP_URL = "https://mcp.stripe.com"


@dataclass
class RuntimeEnv:
    api_key: str
    api_key_env_var: str
    base_url: str | None
    client_origin: str | None
    stripe_secret_key: str | None = None


@dataclass
class AppConfig:
    transport: str
    endpoint: str
    model: str
    base_url: str | None
    request_timeout_seconds: float
    retry_attempts: int
    log_level: str
    log_consumers: list | None
    tools: list[dict] = field(default_factory=list)


def load_json_config(path: Path | None = None) -> dict:
    config_path = path or Path.cwd() / "config.json"
    if config_path.exists():
        with open(config_path) as f:
            return json.load(f)
    return {}


def parse_app_config(config: dict) -> AppConfig:
    tools = config.get("Tools") or []
    if not isinstance(tools, list):
        raise ValueError(f"Tools must be a list of tool definitions, got {type(tools).__name__}")
    return AppConfig(
        transport=str(config.get("Transport", "openai")).strip().lower(),
        endpoint=str(config.get("Endpoint", "http://localhost:3000/api/chat")),
        model=config.get("Model", DEFAULT_MODEL),
        base_url=str(config.get("BaseUrl", DEFAULT_BASE_URL)).strip() or None,
        request_timeout_seconds=float(config.get("RequestTimeoutSeconds", 60.0)),
        retry_attempts=int(config.get("RetryAttempts", 5)),
        log_level=config.get("LogLevel", "INFO"),
        log_consumers=config.get("LogConsumers"),
        tools=tools,
    )


def resolve_runtime_env() -> RuntimeEnv:
    """Groq credentials take precedence; the OPENAI_* variables are the fallback."""
    if os.environ.get("GROQ_API_KEY") or not os.environ.get("OPENAI_API_KEY"):
        api_key_env_var = "GROQ_API_KEY"
    else:
        api_key_env_var = "OPENAI_API_KEY"
    return RuntimeEnv(
        api_key=os.environ.get(api_key_env_var, ""),
        api_key_env_var=api_key_env_var,
        base_url=os.environ.get("GROQ_BASE_URL") or os.environ.get("OPENAI_BASE_URL") or None,
        client_origin=os.environ.get("CLIENT_ORIGIN") or None,
        stripe_secret_key=os.environ.get("STRIPE_SECRET_KEY") or None,
    )


def stripe_mcp_tool(secret_key: str) -> dict:
    return {
        "type": "mcp",
        "server_label": "stripe",
        "server_url": STRIPE_MCP_URL,
        "headers": {"Authorization": f"Bearer {secret_key}"},
        "require_approval": "never",
    }


def resolve_tools(app: AppConfig, env: RuntimeEnv) -> list[dict]:
    """Configured tools plus the Stripe MCP server when a Stripe key is available."""
    tools = list(app.tools)
    if env.stripe_secret_key and not any(tool.get("server_label") == "stripe" for tool in tools):
        tools.append(stripe_mcp_tool(env.stripe_secret_key))
    return tools
