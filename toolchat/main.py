"""
Command-line entry points: chat with the agent, or ask it the same question
on a fixed timer
"""

import argparse
import asyncio
import contextlib
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import litellm
from dotenv import load_dotenv
from lmnr import Laminar, LaminarLiteLLMCallback

from toolchat.config import Config, load_config
from toolchat.core.agent_loop import AgentSession
from toolchat.core.errors import ToolchatError
from toolchat.core.gateway import LiteLLMGateway
from toolchat.core.registry import ToolRegistry
from toolchat.core.session import Event
from toolchat.credentials import resolve_credentials

litellm.drop_params = True

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "config_example.json"
DEFAULT_REMINDER_QUESTION = "What is the current Bitcoin price in USD?"
DEFAULT_REMINDER_INTERVAL = 60.0
EXIT_COMMANDS = {"exit", "quit", "/quit", "/exit"}


def setup_logging(level: str = "WARNING") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Suppress noisy loggers
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)
    logging.getLogger("litellm").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def setup_tracing() -> None:
    lmnr_api_key = os.environ.get("LMNR_API_KEY")
    if not lmnr_api_key:
        return
    try:
        Laminar.initialize(project_api_key=lmnr_api_key)
        litellm.callbacks = [LaminarLiteLLMCallback()]
        logger.info("Laminar initialized")
    except Exception as e:
        logger.warning("Failed to initialize Laminar: %s", e)


def print_event(event: Event) -> None:
    if event.event_type == "tool_call":
        tool_name = event.data.get("tool", "") if event.data else ""
        arguments = event.data.get("arguments", {}) if event.data else {}
        print(f"🔧 Calling tool: {tool_name} with arguments: {json.dumps(arguments)[:100]}")
    elif event.event_type == "tool_output":
        output = event.data.get("output", "") if event.data else ""
        success = event.data.get("success", False) if event.data else False
        status = "✅" if success else "❌"
        print(f"{status} Tool output: {output}")


async def event_listener(event_queue: asyncio.Queue) -> None:
    """Background task printing tool activity as the agent works"""
    while True:
        event: Event = await event_queue.get()
        print_event(event)


async def stop_listener(listener_task: asyncio.Task, event_queue: asyncio.Queue) -> None:
    """Stop the listener, then print whatever events it had not reached yet"""
    listener_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await listener_task

    while not event_queue.empty():
        print_event(event_queue.get_nowait())


async def open_agent(
    config: Config, event_queue: asyncio.Queue
) -> tuple[ToolRegistry, AgentSession]:
    credentials = resolve_credentials(config)
    logger.info("Using credentials from %s", credentials.source)
    gateway = LiteLLMGateway(credentials, timeout=config.completion_timeout)

    registry = await ToolRegistry(config.mcpServers).open()
    try:
        session = AgentSession.from_config(config, gateway, registry, event_queue)
    except BaseException:
        await registry.aclose()
        raise
    return registry, session


async def get_user_input() -> str:
    """Get user input asynchronously"""
    loop = asyncio.get_event_loop()
    return await loop.run_in_executor(None, input, "You: ")


async def run_chat(config: Config, messages: list[str]) -> int:
    """Send scripted messages in order, or chat interactively when none are given"""
    event_queue: asyncio.Queue = asyncio.Queue()
    try:
        registry, session = await open_agent(config, event_queue)
    except Exception as e:
        print(f"❌ Setup failed: {e}")
        return 1

    listener_task = asyncio.create_task(event_listener(event_queue))
    try:
        for message in messages:
            print(f"User Message:\n> {message}\n")
            try:
                answer = await session.send_message(message)
            except ToolchatError as e:
                print(f"❌ Error getting answer: {e}")
                return 1
            print(f"Agent Answer:\n> {answer}\n")

        if messages:
            return 0

        while True:
            try:
                user_input = await get_user_input()
            except EOFError:
                break

            if user_input.strip().lower() in EXIT_COMMANDS:
                break
            if not user_input.strip():
                continue

            try:
                answer = await session.send_message(user_input)
            except ToolchatError as e:
                print(f"❌ Error: {e}")
                continue
            print(f"\n🤖 Assistant: {answer}\n")
        return 0
    finally:
        await stop_listener(listener_task, event_queue)
        await registry.aclose()


async def run_reminder(
    config: Config,
    interval: float = DEFAULT_REMINDER_INTERVAL,
    question: str = DEFAULT_REMINDER_QUESTION,
    max_checks: Optional[int] = None,
) -> int:
    """Ask the same question every ``interval`` seconds until interrupted"""
    event_queue: asyncio.Queue = asyncio.Queue()
    try:
        registry, session = await open_agent(config, event_queue)
    except Exception as e:
        print(f"❌ Setup failed: {e}")
        return 1

    print("=== Price Reminder Service ===")
    print(f"Asking every {interval:g} seconds: {question}")
    print("Press Ctrl+C to stop\n")

    listener_task = asyncio.create_task(event_listener(event_queue))
    checks = 0
    try:
        while max_checks is None or checks < max_checks:
            timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
            print(f"[{timestamp}] Checking...")
            try:
                answer = await session.send_message(question)
            except ToolchatError as e:
                print(f"[ERROR] Failed to get an answer: {e}\n")
            else:
                print(f"\n💰 Update:\n{answer}")
                print("─" * 41 + "\n")

            checks += 1
            if max_checks is None or checks < max_checks:
                await asyncio.sleep(interval)
        return 0
    finally:
        await stop_listener(listener_task, event_queue)
        await registry.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolchat", description="Chat model agent with MCP tools"
    )
    parser.add_argument(
        "--config",
        default=str(DEFAULT_CONFIG_PATH),
        help="Path to the JSON config file",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Send messages to the agent")
    chat.add_argument(
        "messages", nargs="*", help="Messages to send in order (interactive if empty)"
    )

    remind = subparsers.add_parser("remind", help="Ask a question on a fixed timer")
    remind.add_argument(
        "--interval", type=float, default=DEFAULT_REMINDER_INTERVAL, help="Seconds between checks"
    )
    remind.add_argument("--question", default=DEFAULT_REMINDER_QUESTION)
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    load_dotenv()
    setup_logging(args.log_level)
    setup_tracing()

    try:
        config = load_config(args.config)
    except ToolchatError as e:
        print(f"❌ {e}")
        return 1

    try:
        if args.command == "chat":
            return asyncio.run(run_chat(config, args.messages))
        return asyncio.run(run_reminder(config, args.interval, args.question))
    except KeyboardInterrupt:
        print("\n\nShutting down...")
        return 0


if __name__ == "__main__":
    sys.exit(main())
