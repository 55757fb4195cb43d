import asyncio
import unittest

from responses_session import ResponseSession
from responses_session.chat import ResponsesChat


def _reply(response_id: str, text: str) -> list[dict]:
    message = {
        "id": f"msg_{response_id}",
        "type": "message",
        "role": "assistant",
        "status": "completed",
        "content": [{"type": "output_text", "text": text, "annotations": []}],
    }
    return [
        {"type": "response.created", "response": {"id": response_id, "status": "in_progress", "output": []}},
        {"type": "response.output_text.delta", "output_index": 0, "content_index": 0, "delta": text},
        {"type": "response.completed", "response": {"id": response_id, "status": "completed", "output": [message]}},
    ]


class _ScriptedSource:
    def __init__(self, *replies: list[dict]):
        self._replies = list(replies)
        self.requests: list[list[dict]] = []

    async def stream(self, inputs):
        self.requests.append(inputs)
        for event in self._replies.pop(0):
            yield event


class _FailingSource:
    async def stream(self, inputs):
        yield {"type": "response.created", "response": {"id": "resp_1", "status": "in_progress", "output": []}}
        raise ConnectionError("connection reset")


class _HangingSource:
    def __init__(self):
        self.started = asyncio.Event()

    async def stream(self, inputs):
        yield {"type": "response.created", "response": {"id": "resp_1", "status": "in_progress", "output": []}}
        self.started.set()
        await asyncio.Event().wait()
        yield {"type": "response.completed", "response": {"id": "resp_1", "status": "completed", "output": []}}


class ResponsesChatTests(unittest.TestCase):
    def test_send_message_streams_reply(self) -> None:
        source = _ScriptedSource(_reply("resp_1", "Hello!"))
        chat = ResponsesChat(ResponseSession(), source)

        final = asyncio.run(chat.send_message("  hi  "))

        self.assertEqual("completed", final["status"])
        self.assertEqual([{"type": "message", "role": "user", "content": "hi"}], source.requests[0])
        messages = chat.session.messages
        self.assertEqual(["input", "output"], [m.kind for m in messages])
        self.assertFalse(chat.is_streaming)

    def test_follow_up_sends_flattened_history(self) -> None:
        source = _ScriptedSource(_reply("resp_1", "Hello!"), _reply("resp_2", "Again!"))
        chat = ResponsesChat(ResponseSession(), source)

        async def run() -> None:
            await chat.send_message("hi")
            await chat.send_message("more")

        asyncio.run(run())

        self.assertEqual(
            [
                {"type": "message", "role": "user", "content": "hi"},
                {"type": "message", "role": "assistant", "content": "Hello!"},
                {"type": "message", "role": "user", "content": "more"},
            ],
            source.requests[1],
        )
        self.assertEqual(["input", "output", "input", "output"], [m.kind for m in chat.session.messages])

    def test_blank_message_is_ignored(self) -> None:
        source = _ScriptedSource()
        chat = ResponsesChat(ResponseSession(), source)

        self.assertIsNone(asyncio.run(chat.send_message("   ")))
        self.assertEqual([], source.requests)
        self.assertEqual((), chat.session.messages)

    def test_transport_failure_becomes_error_event(self) -> None:
        session = ResponseSession()
        errors: list[dict] = []
        session.on("error", errors.append)
        chat = ResponsesChat(session, _FailingSource())

        asyncio.run(chat.send_message("hi"))

        self.assertEqual("stream_error", session.error["code"])
        self.assertEqual("connection reset", session.error["message"])
        self.assertTrue(session.is_ended)
        self.assertEqual(1, len(errors))

    def test_listener_errors_propagate_to_caller(self) -> None:
        session = ResponseSession()

        def broken(event: dict) -> None:
            if event["type"] == "response.output_text.delta":
                raise KeyError("listener bug")

        session.on("event", broken)
        chat = ResponsesChat(session, _ScriptedSource(_reply("resp_1", "Hello!")))

        with self.assertRaises(KeyError):
            asyncio.run(chat.send_message("hi"))

        self.assertIsNone(session.error)
        self.assertFalse(session.is_ended)
        self.assertFalse(chat.is_streaming)

    def test_cancel_keeps_last_state(self) -> None:
        source = _HangingSource()
        session = ResponseSession()
        chat = ResponsesChat(session, source)

        async def run():
            sending = asyncio.create_task(chat.send_message("hi"))
            await source.started.wait()
            self.assertTrue(chat.is_streaming)
            chat.cancel()
            return await sending

        result = asyncio.run(run())

        self.assertIsNone(result)
        self.assertEqual("in_progress", session.status)
        self.assertFalse(session.is_ended)
        self.assertIsNone(session.error)
        self.assertFalse(chat.is_streaming)


class ApprovalFlowTests(unittest.TestCase):
    def _session_with_requests(self, *request_ids: str) -> ResponseSession:
        output = [
            {"id": request_id, "type": "mcp_approval_request", "server_label": "docs", "name": "search", "arguments": "{}"}
            for request_id in request_ids
        ]
        return ResponseSession(response={"id": "resp_1", "status": "completed", "output": output})

    def test_follow_up_waits_for_every_decision(self) -> None:
        source = _ScriptedSource(_reply("resp_2", "Done."))
        chat = ResponsesChat(self._session_with_requests("mcpr_1", "mcpr_2"), source)

        async def run() -> tuple[bool, bool]:
            first = await chat.send_approval_response("mcpr_1", True)
            second = await chat.send_approval_response("mcpr_2", False)
            return first, second

        first, second = asyncio.run(run())

        self.assertFalse(first)
        self.assertTrue(second)
        self.assertEqual(1, len(source.requests))
        sent = source.requests[0]
        self.assertEqual(
            {"type": "mcp_approval_response", "approve": False, "approval_request_id": "mcpr_2"},
            sent[-1],
        )
        self.assertEqual("mcp_approval_request", sent[0]["type"])
        self.assertEqual("completed", chat.session.status)
