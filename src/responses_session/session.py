"""Session state reconstructed from a Responses event stream.

A :class:`ResponseSession` keeps two projections of the same event stream:

* the *transcript*, an ordered list of input and output messages suitable for
  a chat UI (output entries carry the raw events that built them plus
  augmentations the canonical item shape has no room for);
* the *response snapshot*, the service's own response object with its
  ``output`` array addressed positionally by ``output_index``.

Events must be ingested one at a time, in receipt order, from a single
consumer. Every ingested payload is copied first, so callers may reuse or
mutate their event objects afterwards. Listeners and the read properties
get their own copies of events, errors and the response object.

Transcript lookups resolve an item id first and fall back to the output
index. Output indices are only unique within one response, so each response
id starts a new *epoch*: the index map is cleared and new outputs are placed
after everything already in the transcript.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Callable, Iterable
from typing import Any

from loguru import logger

from responses_session import emitter as channels
from responses_session import events as ev
from responses_session.cloning import as_event_dict, clone
from responses_session.emitter import SessionEmitter
from responses_session.items import ITEM_RULES, ItemRule, create_placeholder, merge_added_item
from responses_session.models import (
    TERMINAL_STATUSES,
    InputMessage,
    OutputMessage,
    SessionAugmentations,
    SessionMessage,
    SessionSnapshot,
)


class ResponseSession:
    def __init__(
        self,
        *,
        inputs: Iterable[dict[str, Any]] | None = None,
        response: dict[str, Any] | None = None,
    ):
        self._emitter = SessionEmitter()
        self._messages: list[SessionMessage] = []
        self._id_to_position: dict[str, int] = {}
        self._output_index_to_position: dict[int, int] = {}

        self._response: dict[str, Any] | None = None
        self._status: str = "idle"
        self._error: dict[str, Any] | None = None
        self._session_augmentations: SessionAugmentations | None = None
        self._ended = False
        self._end_emitted = False
        self._current_response_id: str | None = None
        self._epoch = 0

        for item in inputs or ():
            self._append_input(item)

        if response is not None:
            self._response = self._adopt_response(response)
            self._status = self._response.get("status") or "idle"
            self._current_response_id = self._response.get("id")
            # A finished snapshot has nothing left to announce.
            self._ended = self._end_emitted = self._status in TERMINAL_STATUSES
            self._sync_outputs_from_snapshot()

    # -- public read surface ---------------------------------------------------

    @property
    def messages(self) -> tuple[SessionMessage, ...]:
        return tuple(self._messages)

    @property
    def status(self) -> str:
        return self._status

    @property
    def response(self) -> dict[str, Any] | None:
        return clone(self._response)

    @property
    def error(self) -> dict[str, Any] | None:
        return clone(self._error)

    @property
    def session_augmentations(self) -> SessionAugmentations | None:
        return self._session_augmentations

    @property
    def is_ended(self) -> bool:
        return self._ended

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            messages=tuple(self._messages),
            status=self._status,
            response=clone(self._response),
            error=clone(self._error),
            session_augmentations=self._session_augmentations,
        )

    def find_output(self, *, item_id: str | None = None, output_index: int | None = None) -> OutputMessage | None:
        return self._resolve(item_id, output_index)

    def on(self, channel: str, listener: Callable[[Any], None]) -> Callable[[], None]:
        return self._emitter.on(channel, listener)

    def off(self, channel: str, listener: Callable[[Any], None]) -> None:
        self._emitter.off(channel, listener)

    # -- public write surface --------------------------------------------------

    def add_input(self, item: dict[str, Any]) -> InputMessage:
        entry = self._append_input(item)
        self._emit_change(previous_status=self._status)
        return entry

    def add_approval_response(self, approval_request_id: str, approve: bool) -> InputMessage:
        return self.add_input({
            "type": "mcp_approval_response",
            "approve": approve,
            "approval_request_id": approval_request_id,
        })

    def ingest(self, event: Any) -> None:
        """Apply one stream event to both projections, then notify subscribers."""
        payload = as_event_dict(event)
        kind = ev.event_type(payload)
        previous_status = self._status

        self._emitter.emit(channels.EVENT, clone(payload))

        if kind in ev.LIFECYCLE_EVENTS:
            self._apply_lifecycle(kind, payload)
        elif kind in ev.STRUCTURAL_EVENTS:
            self._apply_structural(kind, payload)
        elif kind in ITEM_RULES:
            self._apply_item_event(ITEM_RULES[kind], payload)
        elif kind == ev.AUDIO_DELTA:
            self._ensure_session_augmentations().ensure_audio().chunks.append(payload)
        elif kind == ev.AUDIO_TRANSCRIPT_DELTA:
            self._ensure_session_augmentations().ensure_audio().transcript.append(payload)
        elif kind == ev.RESPONSE_QUEUED:
            self._status = "queued"
        elif kind == ev.ERROR:
            self._error = payload
            self._ended = True
        elif kind not in ev.SESSION_ONLY_EVENTS:
            self._record_generic(payload)

        if kind == ev.ERROR:
            logger.debug(f"Protocol error event: code={payload.get('code')!r}, message={payload.get('message')!r}")
            self._emitter.emit(channels.ERROR, clone(payload))

        self._emit_change(previous_status=previous_status)

    async def consume(self, source: AsyncIterable[Any]) -> dict[str, Any] | None:
        """Drain ``source`` into the session and return the final response snapshot."""
        async for event in source:
            self.ingest(event)
        return clone(self._response)

    # -- notifications ---------------------------------------------------------

    def _emit_change(self, *, previous_status: str) -> None:
        self._emitter.emit(channels.CHANGE, self.snapshot())
        if self._status != previous_status:
            self._emitter.emit(channels.STATUS, self._status)
        if self._ended and not self._end_emitted:
            self._end_emitted = True
            self._emitter.emit(channels.END, clone(self._response))

    # -- lifecycle -------------------------------------------------------------

    def _apply_lifecycle(self, kind: str, event: dict[str, Any]) -> None:
        response = event.get("response")
        if not isinstance(response, dict):
            response = {}
        next_id = response.get("id") if isinstance(response.get("id"), str) else None

        if kind == ev.RESPONSE_CREATED or (next_id and next_id != self._current_response_id):
            self._begin_epoch(next_id)
        self._current_response_id = next_id or self._current_response_id

        self._response = self._adopt_response(response)
        self._status = self._response.get("status") or ev.LIFECYCLE_DEFAULT_STATUS[kind]
        self._ended = kind in ev.TERMINAL_LIFECYCLE_EVENTS
        self._sync_outputs_from_snapshot()

    def _begin_epoch(self, response_id: str | None) -> None:
        for position in self._output_index_to_position.values():
            entry = self._messages[position]
            item_id = entry.item.get("id")
            if isinstance(item_id, str) and self._id_to_position.get(item_id) == position:
                del self._id_to_position[item_id]
        self._output_index_to_position.clear()
        self._epoch += 1
        logger.debug(f"Response epoch {self._epoch} started (response_id={response_id!r})")

    @staticmethod
    def _adopt_response(response: dict[str, Any]) -> dict[str, Any]:
        adopted = clone(response)
        if not isinstance(adopted.get("output"), list):
            adopted["output"] = []
        return adopted

    def _sync_outputs_from_snapshot(self) -> None:
        if self._response is None:
            return
        for output_index, item in enumerate(self._response["output"]):
            if not isinstance(item, dict):
                continue
            entry = self._resolve(item.get("id"), output_index)
            if entry is None:
                self._insert_output(clone(item), output_index)
                continue
            if entry.output_index != output_index:
                self._move_output(entry, output_index)
            self._replace_item(entry, clone(item))

    # -- structural events -----------------------------------------------------

    def _apply_structural(self, kind: str, event: dict[str, Any]) -> None:
        output_index = ev.output_index_of(event)
        item = event.get("item")
        if output_index is None or not isinstance(item, dict):
            logger.debug(f"Ignoring {kind} without output_index/item")
            return

        current = self._snapshot_output(output_index)
        if kind == ev.OUTPUT_ITEM_ADDED and current is not None and current.get("type") == item.get("type"):
            self._set_snapshot_output(output_index, merge_added_item(current, item))
        else:
            self._set_snapshot_output(output_index, item)

        entry = self._resolve(item.get("id"), output_index)
        if entry is None:
            entry = self._insert_output(clone(item), output_index)
        else:
            if entry.output_index != output_index:
                self._move_output(entry, output_index)
            if kind == ev.OUTPUT_ITEM_ADDED and entry.item.get("type") == item.get("type"):
                self._replace_item(entry, merge_added_item(entry.item, item))
            else:
                self._replace_item(entry, clone(item))
        entry.events.append(event)

    # -- item-level events -----------------------------------------------------

    def _apply_item_event(self, rule: ItemRule, event: dict[str, Any]) -> None:
        output_index = ev.output_index_of(event)
        item_id = ev.item_id_of(event)

        entry = self._resolve(item_id, output_index)
        if entry is not None and entry.item.get("type") != rule.kind:
            logger.debug(
                f"Ignoring {event.get('type')} for output {entry.output_index}: "
                f"stored item is {entry.item.get('type')!r}, expected {rule.kind!r}"
            )
            return
        shell_id = item_id or (entry.item.get("id") if entry is not None else None)

        placeholder: dict[str, Any] | None = None
        if self._response is not None and output_index is not None:
            item = self._snapshot_output(output_index)
            if item is None:
                placeholder = create_placeholder(rule.kind, shell_id)
                item = self._set_snapshot_output(output_index, placeholder)
            if item.get("type") == rule.kind:
                if item_id and item.get("id") != item_id:
                    item["id"] = item_id
                if rule.apply is not None:
                    rule.apply(item, event)

        if entry is None:
            if output_index is None:
                logger.debug(f"Dropping {event.get('type')}: no output_index and unknown item_id {item_id!r}")
                return
            # The snapshot stored a copy of the placeholder, so this shell is still pristine.
            shell = placeholder if placeholder is not None else create_placeholder(rule.kind, item_id)
            entry = self._insert_output(shell, output_index)
        elif item_id and entry.item.get("id") != item_id:
            self._rename_item(entry, item_id)

        if rule.apply is not None:
            rule.apply(entry.item, event)
        if rule.augment is not None:
            rule.augment(entry, event)
        entry.events.append(event)

    def _record_generic(self, event: dict[str, Any]) -> None:
        """Attach an unrecognised ``{output_index, item_id?}`` event to its item without interpreting it."""
        output_index = ev.output_index_of(event)
        item_id = ev.item_id_of(event)
        entry = self._resolve(item_id, output_index)
        if entry is None and output_index is not None:
            item = self._snapshot_output(output_index)
            if item is not None:
                entry = self._insert_output(clone(item), output_index)
        if entry is None:
            logger.debug(f"Dropping unrecognised event {event.get('type')!r}: no matching output item")
            return
        entry.events.append(event)

    # -- response snapshot -----------------------------------------------------

    def _snapshot_output(self, output_index: int) -> dict[str, Any] | None:
        if self._response is None:
            return None
        output = self._response["output"]
        if output_index < len(output) and isinstance(output[output_index], dict):
            return output[output_index]
        return None

    def _set_snapshot_output(self, output_index: int, item: dict[str, Any]) -> dict[str, Any]:
        copy = clone(item)
        if self._response is not None:
            output = self._response["output"]
            while len(output) <= output_index:
                output.append(None)
            output[output_index] = copy
        return copy

    # -- identity resolver -----------------------------------------------------

    def _resolve(self, item_id: str | None, output_index: int | None) -> OutputMessage | None:
        if item_id:
            position = self._id_to_position.get(item_id)
            if position is not None:
                entry = self._messages[position]
                if isinstance(entry, OutputMessage):
                    return entry
        if output_index is not None:
            position = self._output_index_to_position.get(output_index)
            if position is not None:
                entry = self._messages[position]
                if isinstance(entry, OutputMessage):
                    return entry
        return None

    def _insertion_point(self, output_index: int) -> int:
        # Outputs of the current response stay sorted; inputs and earlier
        # responses are never overtaken.
        position = len(self._messages)
        while position > 0:
            previous = self._messages[position - 1]
            if (
                not isinstance(previous, OutputMessage)
                or previous.epoch != self._epoch
                or previous.output_index <= output_index
            ):
                break
            position -= 1
        return position

    def _insert_output(self, item: dict[str, Any], output_index: int) -> OutputMessage:
        entry = OutputMessage(item=item, output_index=output_index, epoch=self._epoch)
        position = self._insertion_point(output_index)
        self._messages.insert(position, entry)
        self._shift_positions(position)
        self._output_index_to_position[output_index] = position
        self._register_id(item, position)
        return entry

    def _shift_positions(self, inserted_at: int) -> None:
        for key, position in self._output_index_to_position.items():
            if position >= inserted_at:
                self._output_index_to_position[key] = position + 1
        for key, position in self._id_to_position.items():
            if position >= inserted_at:
                self._id_to_position[key] = position + 1

    def _move_output(self, entry: OutputMessage, output_index: int) -> None:
        logger.debug(f"Item {entry.item.get('id')!r} moved from output {entry.output_index} to {output_index}")
        del self._messages[self._position_of(entry)]
        entry.output_index = output_index
        entry.epoch = self._epoch
        self._messages.insert(self._insertion_point(output_index), entry)
        self._reindex()

    def _reindex(self) -> None:
        self._id_to_position.clear()
        self._output_index_to_position.clear()
        for position, message in enumerate(self._messages):
            if isinstance(message, OutputMessage):
                if message.epoch != self._epoch:
                    continue
                self._output_index_to_position[message.output_index] = position
            self._register_id(message.item, position)

    def _replace_item(self, entry: OutputMessage, item: dict[str, Any]) -> None:
        old_id = entry.item.get("id")
        entry.item = item
        new_id = item.get("id")
        if old_id != new_id:
            self._forget_id(old_id, entry)
        self._register_id(item, self._position_of(entry))

    def _rename_item(self, entry: OutputMessage, item_id: str) -> None:
        self._forget_id(entry.item.get("id"), entry)
        entry.item["id"] = item_id
        self._register_id(entry.item, self._position_of(entry))

    def _forget_id(self, item_id: Any, entry: OutputMessage) -> None:
        if isinstance(item_id, str) and item_id in self._id_to_position:
            if self._messages[self._id_to_position[item_id]] is entry:
                del self._id_to_position[item_id]

    def _position_of(self, entry: OutputMessage) -> int:
        position = self._output_index_to_position.get(entry.output_index)
        if position is not None and self._messages[position] is entry:
            return position
        for position, message in enumerate(self._messages):
            if message is entry:
                return position
        raise LookupError("Output message is not part of this transcript")

    def _register_id(self, item: Any, position: int) -> None:
        if not isinstance(item, dict):
            return
        item_id = item.get("id")
        if isinstance(item_id, str) and item_id:
            self._id_to_position[item_id] = position

    # -- inputs and session-level augmentations --------------------------------

    def _append_input(self, item: dict[str, Any]) -> InputMessage:
        entry = InputMessage(item=clone(item))
        self._messages.append(entry)
        self._register_id(entry.item, len(self._messages) - 1)
        return entry

    def _ensure_session_augmentations(self) -> SessionAugmentations:
        if self._session_augmentations is None:
            self._session_augmentations = SessionAugmentations()
        return self._session_augmentations
