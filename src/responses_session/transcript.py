"""Helpers that turn a session transcript back into request inputs and display lines."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from responses_session.cloning import clone
from responses_session.models import InputMessage, OutputMessage, SessionMessage

_PREVIEW_CHARS = 200


def _part_text(part: Any) -> str:
    if not isinstance(part, dict):
        return ""
    for key in ("text", "refusal"):
        value = part.get(key)
        if isinstance(value, str):
            return value
    return ""


def to_input_item(message: SessionMessage) -> dict[str, Any] | None:
    """Convert a transcript message into an input item for the next request.

    Reasoning without any text is dropped; reasoning with text and assistant
    messages are flattened into plain assistant messages. Everything else is
    passed through unchanged.
    """
    item = message.item
    item_type = item.get("type")

    if item_type == "reasoning":
        texts = [_part_text(part) for part in item.get("content") or []]
        if not any(texts):
            return None
        return {
            "type": "message",
            "role": "assistant",
            "content": f"<reasoning>{' '.join(texts)}</reasoning>",
        }

    if item_type == "message" and item.get("role") == "assistant":
        content = item.get("content")
        if isinstance(content, list):
            content = " ".join(_part_text(part) for part in content)
        return {"type": "message", "role": "assistant", "content": content or ""}

    return clone(item)


def build_request_inputs(messages: Iterable[SessionMessage]) -> list[dict[str, Any]]:
    inputs: list[dict[str, Any]] = []
    for message in messages:
        converted = to_input_item(message)
        if converted is not None:
            inputs.append(converted)
    return inputs


def pending_approval_request_ids(messages: Iterable[SessionMessage]) -> list[str]:
    """Ids of MCP approval requests that have no approval response yet, in transcript order."""
    requested: list[str] = []
    answered: set[str] = set()
    for message in messages:
        item_type = message.item.get("type")
        if isinstance(message, OutputMessage) and item_type == "mcp_approval_request":
            request_id = message.item.get("id")
            if isinstance(request_id, str):
                requested.append(request_id)
        elif isinstance(message, InputMessage) and item_type == "mcp_approval_response":
            request_id = message.item.get("approval_request_id")
            if isinstance(request_id, str):
                answered.add(request_id)
    return [request_id for request_id in requested if request_id not in answered]


def _preview(text: str) -> str:
    text = " ".join(text.split())
    if len(text) <= _PREVIEW_CHARS:
        return text
    return text[: _PREVIEW_CHARS - 3] + "..."


def format_message_line(message: SessionMessage) -> str:
    item = message.item
    item_type = item.get("type", "unknown")

    if item_type == "message":
        content = item.get("content")
        if isinstance(content, list):
            content = " ".join(_part_text(part) for part in content)
        return f"{item.get('role', 'assistant')}> {_preview(str(content or ''))}"
    if item_type == "reasoning":
        summary = " ".join(_part_text(part) for part in item.get("summary") or [])
        return f"[reasoning] {_preview(summary)}".rstrip()
    if item_type in ("function_call", "mcp_call"):
        label = item.get("name") or "?"
        if item.get("server_label"):
            label = f"{item['server_label']}.{label}"
        return f"[{item_type}] {label}({_preview(str(item.get('arguments') or ''))})"
    if item_type == "custom_tool_call":
        return f"[custom_tool_call] {item.get('name') or '?'}: {_preview(str(item.get('input') or ''))}"
    if item_type == "code_interpreter_call":
        return f"[code_interpreter_call] ({item.get('status', '?')}) {_preview(str(item.get('code') or ''))}"
    if item_type == "mcp_list_tools":
        names = [tool.get("name", "?") for tool in item.get("tools") or [] if isinstance(tool, dict)]
        return f"[mcp_list_tools] {item.get('server_label') or '?'}: {', '.join(names)}".rstrip()
    if item_type == "mcp_approval_request":
        return (
            f"[mcp_approval_request] {item.get('server_label') or '?'}.{item.get('name') or '?'} "
            f"(id={item.get('id')})"
        )
    if item_type == "mcp_approval_response":
        decision = "approved" if item.get("approve") else "denied"
        return f"[mcp_approval_response] {item.get('approval_request_id')} {decision}"
    if item_type == "image_generation_call":
        return f"[image_generation_call] ({item.get('status', '?')})"
    return f"[{item_type}]"
