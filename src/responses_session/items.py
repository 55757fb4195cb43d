"""Per-kind builders for output items.

Every output item kind has a placeholder shell and a set of appliers keyed by
event type. Appliers mutate a plain item dict and are shared by both
projections (the response snapshot and the transcript); ``augment`` hooks only
ever see transcript entries.

Accumulation policy: ``*.delta`` events append to the kind's accumulating
field, ``*.done`` events replace it with the final value.
"""

from __future__ import annotations

import random
import string
import time
from collections.abc import Callable
from typing import Any, NamedTuple

from responses_session.cloning import clone
from responses_session.models import OutputMessage

MESSAGE = "message"
REASONING = "reasoning"
FUNCTION_CALL = "function_call"
CUSTOM_TOOL_CALL = "custom_tool_call"
MCP_CALL = "mcp_call"
MCP_LIST_TOOLS = "mcp_list_tools"
CODE_INTERPRETER_CALL = "code_interpreter_call"
IMAGE_GENERATION_CALL = "image_generation_call"

ITEM_KINDS: tuple[str, ...] = (
    MESSAGE,
    REASONING,
    FUNCTION_CALL,
    CUSTOM_TOOL_CALL,
    MCP_CALL,
    MCP_LIST_TOOLS,
    CODE_INTERPRETER_CALL,
    IMAGE_GENERATION_CALL,
)

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ID_ALPHABET[remainder])
    return "".join(reversed(digits))


def make_placeholder_id(kind: str) -> str:
    suffix = "".join(random.choices(_ID_ALPHABET, k=8))
    return f"{kind}-{_base36(int(time.time() * 1000))}-{suffix}"


def _message(item_id: str) -> dict[str, Any]:
    return {"id": item_id, "type": MESSAGE, "role": "assistant", "status": "in_progress", "content": []}


def _reasoning(item_id: str) -> dict[str, Any]:
    return {"id": item_id, "type": REASONING, "summary": [], "status": "in_progress"}


def _function_call(item_id: str) -> dict[str, Any]:
    return {
        "id": item_id,
        "type": FUNCTION_CALL,
        "call_id": item_id,
        "name": "",
        "arguments": "",
        "status": "in_progress",
    }


def _custom_tool_call(item_id: str) -> dict[str, Any]:
    return {"id": item_id, "type": CUSTOM_TOOL_CALL, "call_id": item_id, "name": "", "input": ""}


def _mcp_call(item_id: str) -> dict[str, Any]:
    return {"id": item_id, "type": MCP_CALL, "name": "", "server_label": "", "arguments": ""}


def _mcp_list_tools(item_id: str) -> dict[str, Any]:
    return {"id": item_id, "type": MCP_LIST_TOOLS, "server_label": "", "tools": []}


def _code_interpreter_call(item_id: str) -> dict[str, Any]:
    return {
        "id": item_id,
        "type": CODE_INTERPRETER_CALL,
        "code": "",
        "outputs": [],
        "container_id": "",
        "status": "in_progress",
    }


def _image_generation_call(item_id: str) -> dict[str, Any]:
    return {"id": item_id, "type": IMAGE_GENERATION_CALL, "status": "in_progress", "result": None}


_PLACEHOLDERS: dict[str, Callable[[str], dict[str, Any]]] = {
    MESSAGE: _message,
    REASONING: _reasoning,
    FUNCTION_CALL: _function_call,
    CUSTOM_TOOL_CALL: _custom_tool_call,
    MCP_CALL: _mcp_call,
    MCP_LIST_TOOLS: _mcp_list_tools,
    CODE_INTERPRETER_CALL: _code_interpreter_call,
    IMAGE_GENERATION_CALL: _image_generation_call,
}


def create_placeholder(kind: str, item_id: str | None = None) -> dict[str, Any]:
    """Build a minimal in-progress shell of ``kind``, using ``item_id`` when supplied."""
    factory = _PLACEHOLDERS.get(kind)
    if factory is None:
        raise ValueError(f"No placeholder for item kind: {kind!r}")
    return factory(item_id or make_placeholder_id(kind))


# -- slot helpers -------------------------------------------------------------


def set_at(items: list, index: int, value: Any, filler: Callable[[], Any] = lambda: None) -> None:
    while len(items) <= index:
        items.append(filler())
    items[index] = value


def _empty_output_text() -> dict[str, Any]:
    return {"type": "output_text", "text": "", "annotations": []}


def _empty_refusal() -> dict[str, Any]:
    return {"type": "refusal", "refusal": ""}


def _empty_summary_text() -> dict[str, Any]:
    return {"type": "summary_text", "text": ""}


def _empty_reasoning_text() -> dict[str, Any]:
    return {"type": "reasoning_text", "text": ""}


def _list_field(item: dict[str, Any], key: str) -> list:
    value = item.get(key)
    if not isinstance(value, list):
        value = []
        item[key] = value
    return value


def ensure_content_slot(message: dict[str, Any], index: int, part_type: str) -> dict[str, Any]:
    """Grow ``content`` up to ``index``; a part of another type at ``index`` is replaced, not merged."""
    content = _list_field(message, "content")
    while len(content) <= index:
        content.append(_empty_output_text())
    current = content[index]
    if not isinstance(current, dict) or current.get("type") != part_type:
        current = _empty_output_text() if part_type == "output_text" else _empty_refusal()
        content[index] = current
    return current


def ensure_output_text(message: dict[str, Any], index: int) -> dict[str, Any]:
    part = ensure_content_slot(message, index, "output_text")
    if not isinstance(part.get("annotations"), list):
        part["annotations"] = []
    if not isinstance(part.get("text"), str):
        part["text"] = ""
    return part


def ensure_refusal(message: dict[str, Any], index: int) -> dict[str, Any]:
    part = ensure_content_slot(message, index, "refusal")
    if not isinstance(part.get("refusal"), str):
        part["refusal"] = ""
    return part


def ensure_summary_part(reasoning: dict[str, Any], index: int) -> dict[str, Any]:
    summary = _list_field(reasoning, "summary")
    while len(summary) <= index:
        summary.append(_empty_summary_text())
    part = summary[index]
    if not isinstance(part, dict):
        part = _empty_summary_text()
        summary[index] = part
    if not isinstance(part.get("text"), str):
        part["text"] = ""
    return part


def ensure_reasoning_content(reasoning: dict[str, Any], index: int) -> dict[str, Any]:
    content = _list_field(reasoning, "content")
    while len(content) <= index:
        content.append(_empty_reasoning_text())
    part = content[index]
    if not isinstance(part, dict):
        part = _empty_reasoning_text()
        content[index] = part
    return part


def merge_added_item(existing: dict[str, Any], incoming: dict[str, Any]) -> dict[str, Any]:
    """Adopt an ``output_item.added`` shell without discarding data accumulated before it arrived."""
    merged = clone(incoming)
    for key, value in existing.items():
        if _is_empty(value):
            continue
        if key not in merged or _is_empty(merged[key]):
            merged[key] = clone(value)
    return merged


def _is_empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


# -- appliers -----------------------------------------------------------------


def _index(event: dict[str, Any], key: str) -> int:
    value = event.get(key)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return 0
    return value


def _text(event: dict[str, Any], key: str) -> str | None:
    value = event.get(key)
    return value if isinstance(value, str) else None


def _append(item: dict[str, Any], key: str, delta: str | None) -> None:
    current = item.get(key)
    item[key] = (current if isinstance(current, str) else "") + (delta or "")


def _replace(item: dict[str, Any], key: str, final: str | None) -> None:
    if final is not None:
        item[key] = final


def _apply_content_part(item: dict[str, Any], event: dict[str, Any]) -> None:
    part = event.get("part")
    if not isinstance(part, dict):
        return
    part_type = part.get("type")
    if part_type not in ("output_text", "refusal"):
        return
    index = _index(event, "content_index")
    ensure_content_slot(item, index, part_type)
    item["content"][index] = clone(part)
    if part_type == "output_text":
        ensure_output_text(item, index)


def _apply_text_delta(item: dict[str, Any], event: dict[str, Any]) -> None:
    _append(ensure_output_text(item, _index(event, "content_index")), "text", _text(event, "delta"))


def _apply_text_done(item: dict[str, Any], event: dict[str, Any]) -> None:
    _replace(ensure_output_text(item, _index(event, "content_index")), "text", _text(event, "text"))


def _apply_annotation(item: dict[str, Any], event: dict[str, Any]) -> None:
    part = ensure_output_text(item, _index(event, "content_index"))
    set_at(part["annotations"], _index(event, "annotation_index"), clone(event.get("annotation")))


def _apply_refusal_delta(item: dict[str, Any], event: dict[str, Any]) -> None:
    _append(ensure_refusal(item, _index(event, "content_index")), "refusal", _text(event, "delta"))


def _apply_refusal_done(item: dict[str, Any], event: dict[str, Any]) -> None:
    _replace(ensure_refusal(item, _index(event, "content_index")), "refusal", _text(event, "refusal"))


def _delta_into(key: str) -> Callable[[dict[str, Any], dict[str, Any]], None]:
    def apply(item: dict[str, Any], event: dict[str, Any]) -> None:
        _append(item, key, _text(event, "delta"))

    return apply


def _done_into(key: str, source: str | None = None) -> Callable[[dict[str, Any], dict[str, Any]], None]:
    def apply(item: dict[str, Any], event: dict[str, Any]) -> None:
        _replace(item, key, _text(event, source or key))

    return apply


def _set_status(status: str) -> Callable[[dict[str, Any], dict[str, Any]], None]:
    def apply(item: dict[str, Any], event: dict[str, Any]) -> None:
        item["status"] = status

    return apply


def _apply_summary_part(item: dict[str, Any], event: dict[str, Any]) -> None:
    part = event.get("part")
    if not isinstance(part, dict):
        return
    set_at(_list_field(item, "summary"), _index(event, "summary_index"), clone(part), _empty_summary_text)


def _apply_summary_delta(item: dict[str, Any], event: dict[str, Any]) -> None:
    _append(ensure_summary_part(item, _index(event, "summary_index")), "text", _text(event, "delta"))


def _apply_summary_done(item: dict[str, Any], event: dict[str, Any]) -> None:
    _replace(ensure_summary_part(item, _index(event, "summary_index")), "text", _text(event, "text"))


def _apply_reasoning_text_done(item: dict[str, Any], event: dict[str, Any]) -> None:
    part = ensure_reasoning_content(item, _index(event, "content_index"))
    part["type"] = "reasoning_text"
    _replace(part, "text", _text(event, "text"))


# -- transcript-only augmentations ---------------------------------------------


def _augment_custom_input_delta(entry: OutputMessage, event: dict[str, Any]) -> None:
    augmentations = entry.ensure_augmentations()
    augmentations.custom_tool_input = (augmentations.custom_tool_input or "") + (_text(event, "delta") or "")


def _augment_custom_input_done(entry: OutputMessage, event: dict[str, Any]) -> None:
    final = _text(event, "input")
    if final is not None:
        entry.ensure_augmentations().custom_tool_input = final


def _augment_partial_image(entry: OutputMessage, event: dict[str, Any]) -> None:
    augmentations = entry.ensure_augmentations()
    if augmentations.partial_images is None:
        augmentations.partial_images = []
    augmentations.partial_images.append(event)


def _augment_reasoning_text(entry: OutputMessage, event: dict[str, Any]) -> None:
    augmentations = entry.ensure_augmentations()
    if augmentations.reasoning_text is None:
        augmentations.reasoning_text = []
    augmentations.reasoning_text.append(event)


def _augment_reasoning_summary_text(entry: OutputMessage, event: dict[str, Any]) -> None:
    augmentations = entry.ensure_augmentations()
    if augmentations.reasoning_summary_text is None:
        augmentations.reasoning_summary_text = []
    augmentations.reasoning_summary_text.append(event)


Applier = Callable[[dict[str, Any], dict[str, Any]], None]
Augmenter = Callable[[OutputMessage, dict[str, Any]], None]


class ItemRule(NamedTuple):
    kind: str
    apply: Applier | None = None
    augment: Augmenter | None = None


ITEM_RULES: dict[str, ItemRule] = {
    "response.content_part.added": ItemRule(MESSAGE, _apply_content_part),
    "response.content_part.done": ItemRule(MESSAGE, _apply_content_part),
    "response.output_text.delta": ItemRule(MESSAGE, _apply_text_delta),
    "response.output_text.done": ItemRule(MESSAGE, _apply_text_done),
    "response.output_text.annotation.added": ItemRule(MESSAGE, _apply_annotation),
    "response.refusal.delta": ItemRule(MESSAGE, _apply_refusal_delta),
    "response.refusal.done": ItemRule(MESSAGE, _apply_refusal_done),
    "response.reasoning_summary_part.added": ItemRule(REASONING, _apply_summary_part),
    "response.reasoning_summary_part.done": ItemRule(REASONING, _apply_summary_part),
    "response.reasoning_summary_text.delta": ItemRule(
        REASONING, _apply_summary_delta, _augment_reasoning_summary_text
    ),
    "response.reasoning_summary_text.done": ItemRule(REASONING, _apply_summary_done),
    "response.reasoning_text.delta": ItemRule(REASONING, None, _augment_reasoning_text),
    "response.reasoning_text.done": ItemRule(REASONING, _apply_reasoning_text_done),
    "response.function_call_arguments.delta": ItemRule(FUNCTION_CALL, _delta_into("arguments")),
    "response.function_call_arguments.done": ItemRule(FUNCTION_CALL, _done_into("arguments")),
    "response.custom_tool_call_input.delta": ItemRule(
        CUSTOM_TOOL_CALL, _delta_into("input"), _augment_custom_input_delta
    ),
    "response.custom_tool_call_input.done": ItemRule(
        CUSTOM_TOOL_CALL, _done_into("input"), _augment_custom_input_done
    ),
    "response.mcp_call_arguments.delta": ItemRule(MCP_CALL, _delta_into("arguments")),
    "response.mcp_call_arguments.done": ItemRule(MCP_CALL, _done_into("arguments")),
    "response.mcp_call.in_progress": ItemRule(MCP_CALL),
    "response.mcp_call.completed": ItemRule(MCP_CALL),
    "response.mcp_call.failed": ItemRule(MCP_CALL),
    "response.mcp_list_tools.in_progress": ItemRule(MCP_LIST_TOOLS),
    "response.mcp_list_tools.completed": ItemRule(MCP_LIST_TOOLS),
    "response.mcp_list_tools.failed": ItemRule(MCP_LIST_TOOLS),
    "response.code_interpreter_call_code.delta": ItemRule(CODE_INTERPRETER_CALL, _delta_into("code")),
    "response.code_interpreter_call_code.done": ItemRule(CODE_INTERPRETER_CALL, _done_into("code")),
    "response.code_interpreter_call.in_progress": ItemRule(CODE_INTERPRETER_CALL, _set_status("in_progress")),
    "response.code_interpreter_call.interpreting": ItemRule(CODE_INTERPRETER_CALL, _set_status("interpreting")),
    "response.code_interpreter_call.completed": ItemRule(CODE_INTERPRETER_CALL, _set_status("completed")),
    "response.image_generation_call.in_progress": ItemRule(IMAGE_GENERATION_CALL, _set_status("in_progress")),
    "response.image_generation_call.generating": ItemRule(IMAGE_GENERATION_CALL, _set_status("generating")),
    "response.image_generation_call.completed": ItemRule(IMAGE_GENERATION_CALL, _set_status("completed")),
    "response.image_generation_call.partial_image": ItemRule(IMAGE_GENERATION_CALL, None, _augment_partial_image),
}
