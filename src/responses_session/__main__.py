import argparse
import asyncio
import sys
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

from responses_session.app_config import AppConfig, RuntimeEnv, load_json_config, parse_app_config, resolve_runtime_env
from responses_session.chat import ResponsesChat
from responses_session.logging_config import setup_logging
from responses_session.session import ResponseSession
from responses_session.source import create_source
from responses_session.sse import decode_sse_lines
from responses_session.transcript import format_message_line, pending_approval_request_ids

_LINE_PREFIX = "assistant> "


def replay_capture(path: Path) -> ResponseSession:
    """Ingest a recorded SSE (or newline-delimited JSON) capture into a fresh session."""
    session = ResponseSession()
    with open(path, encoding="utf-8") as f:
        for event in decode_sse_lines(f):
            session.ingest(event)
    return session


def print_transcript(session: ResponseSession) -> None:
    for message in session.messages:
        print(format_message_line(message))
    print(f"status: {session.status}")
    if session.error:
        print(f"error: {session.error.get('code')}: {session.error.get('message')}")


def _print_text_delta(event: dict) -> None:
    if event.get("type") == "response.output_text.delta":
        print(event.get("delta", ""), end="", flush=True)


def _describe_approval(session: ResponseSession, request_id: str) -> str:
    entry = session.find_output(item_id=request_id)
    if entry is None:
        return request_id
    return f"{entry.item.get('server_label') or '?'}.{entry.item.get('name') or '?'} {entry.item.get('arguments') or ''}"


async def _resolve_approvals(chat: ResponsesChat) -> None:
    while True:
        pending = pending_approval_request_ids(chat.session.messages)
        if not pending:
            return
        request_id = pending[0]
        try:
            answer = input(f"approve {_describe_approval(chat.session, request_id)}? [y/N] ")
        except (EOFError, KeyboardInterrupt):
            answer = ""
        print()
        await chat.send_approval_response(request_id, answer.strip().lower() in ("y", "yes"))
        print()


async def chat_loop(app: AppConfig, env: RuntimeEnv) -> None:
    session = ResponseSession()
    chat = ResponsesChat(session, create_source(app, env))
    session.on("event", _print_text_delta)
    session.on("error", lambda error: print(f"\n{_LINE_PREFIX}[error: {error.get('message')}]"))

    print(f"responses-session ({app.transport}, model={app.model}; type 'exit' to quit)")
    print()

    while True:
        try:
            user_input = input("you> ")
        except (EOFError, KeyboardInterrupt):
            break

        trimmed = user_input.strip()
        if trimmed in ("exit", "quit"):
            break
        if not trimmed:
            continue

        try:
            print(_LINE_PREFIX, end="", flush=True)
            await chat.send_message(trimmed)
            print("\n")
            await _resolve_approvals(chat)
        except Exception as ex:
            logger.error(f"Unhandled error: {ex}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="responses_session")
    subcommands = parser.add_subparsers(dest="command")
    replay_parser = subcommands.add_parser("replay", help="Replay a recorded event stream and print the transcript")
    replay_parser.add_argument("capture", type=Path)
    args = parser.parse_args(argv)

    load_dotenv()
    app = parse_app_config(load_json_config())
    setup_logging(level=app.log_level, consumers=app.log_consumers)

    if args.command == "replay":
        if not args.capture.exists():
            logger.error(f"Capture not found: {args.capture}")
            return 1
        print_transcript(replay_capture(args.capture))
        return 0

    env = resolve_runtime_env()
    if app.transport == "openai" and not env.api_key:
        logger.error(f"{env.api_key_env_var} environment variable is required.")
        return 1

    asyncio.run(chat_loop(app, env))
    return 0


if __name__ == "__main__":
    sys.exit(main())
