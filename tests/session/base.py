import unittest

from responses_session import ResponseSession


def response_obj(response_id: str = "resp_1", status: str = "in_progress", output: list | None = None) -> dict:
    return {"id": response_id, "object": "response", "status": status, "output": list(output or [])}


def lifecycle(kind: str, response_id: str = "resp_1", status: str = "in_progress", output: list | None = None) -> dict:
    return {"type": f"response.{kind}", "response": response_obj(response_id, status, output)}


def created(response_id: str = "resp_1") -> dict:
    return lifecycle("created", response_id)


def completed(response_id: str = "resp_1", output: list | None = None) -> dict:
    return lifecycle("completed", response_id, "completed", output)


def message_item(item_id: str, text: str | None = None, status: str = "in_progress") -> dict:
    content = [] if text is None else [{"type": "output_text", "text": text, "annotations": []}]
    return {"id": item_id, "type": "message", "role": "assistant", "status": status, "content": content}


def function_item(item_id: str, name: str = "lookup", arguments: str = "") -> dict:
    return {
        "id": item_id,
        "type": "function_call",
        "call_id": f"call_{item_id}",
        "name": name,
        "arguments": arguments,
        "status": "in_progress",
    }


def item_added(output_index: int, item: dict) -> dict:
    return {"type": "response.output_item.added", "output_index": output_index, "item": item}


def item_done(output_index: int, item: dict) -> dict:
    return {"type": "response.output_item.done", "output_index": output_index, "item": item}


def text_delta(output_index: int, delta: str, item_id: str | None = None, content_index: int = 0) -> dict:
    event = {
        "type": "response.output_text.delta",
        "output_index": output_index,
        "content_index": content_index,
        "delta": delta,
    }
    if item_id is not None:
        event["item_id"] = item_id
    return event


def text_done(output_index: int, text: str, item_id: str | None = None, content_index: int = 0) -> dict:
    event = {
        "type": "response.output_text.done",
        "output_index": output_index,
        "content_index": content_index,
        "text": text,
    }
    if item_id is not None:
        event["item_id"] = item_id
    return event


def user_input(text: str) -> dict:
    return {"type": "message", "role": "user", "content": text}


class SessionTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session = ResponseSession()
        self.emitted: dict[str, list] = {"change": [], "event": [], "status": [], "error": [], "end": []}
        self._subscribe(self.session)

    def _subscribe(self, session: ResponseSession) -> None:
        for channel, bucket in self.emitted.items():
            session.on(channel, bucket.append)

    def ingest_all(self, *events: dict) -> None:
        for event in events:
            self.session.ingest(event)

    def outputs(self) -> list:
        return [m for m in self.session.messages if m.kind == "output"]

    def output_indices(self) -> list[int]:
        return [m.output_index for m in self.outputs()]
