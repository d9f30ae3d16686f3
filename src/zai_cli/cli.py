"""Interactive command-line entry point.

Usage:
    zai-cli                          # chat in a new thread
    zai-cli -a                       # ask mode (single questions, no thread)
    zai-cli -m "Hello, how are you?" # start with a predefined message
    zai-cli --trace                  # print OpenTelemetry spans to stderr
"""

import argparse
import asyncio
import getpass
import logging
import signal
import sys
import uuid

from rich.console import Console
from rich.markup import escape

from zai_cli import __version__
from zai_cli.api_client import APIClient
from zai_cli.commands import handle_chat_command, startup_message
from zai_cli.config import ConfigError, Settings, load_settings
from zai_cli.conversation import Conversation
from zai_cli.history import load_history, save_to_history

try:
    import readline
except ImportError:  # pragma: no cover
    readline = None

logger = logging.getLogger(__name__)

COMMANDS_HELP = """
Commands during chat:
  exit     - Exit the cli
  /save    - Save chat history to timestamped log file
  /reset   - Clear chat history and cli screen
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zai-cli",
        description="Interactive command-line interface for AI agents",
        epilog=COMMANDS_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-m", "--message", default=None,
        help="Pre-defined message to send without prompting",
    )
    parser.add_argument(
        "-a", "--ask-mode", action="store_true",
        help="Ask mode - single question without conversation history",
    )
    parser.add_argument("--trace", action="store_true", help="Print tracing spans to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format='%(asctime)s:%(name)s:%(levelname)s:%(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
        handlers=[logging.FileHandler(settings.log_file)],
    )


def setup_tracing(service_name: str):
    from opentelemetry.sdk.resources import SERVICE_NAME, Resource
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import (
        SimpleSpanProcessor, ConsoleSpanExporter,
    )
    from zai_cli.instrumentation import instrument

    provider = TracerProvider(
        resource=Resource({SERVICE_NAME: service_name})
    )
    provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter(out=sys.stderr)))
    instrument(tracer_provider=provider)


def get_user_name() -> str:
    try:
        return getpass.getuser() or "You"
    except (KeyError, OSError):
        return "You"


def _prime_readline(history: list[str]) -> None:
    if readline is None:
        return
    readline.clear_history()
    for item in history:
        readline.add_history(item)


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt


async def chat_loop(
    settings: Settings, console: Console, ask_mode: bool, initial_message: str | None,
) -> None:
    thread_id = None if ask_mode else str(uuid.uuid4())
    if thread_id:
        console.print(f"\n[bold red]🧵 Thread ID: {thread_id}[/bold red]")
    startup_message(console)

    history = load_history(settings.history_file)
    user_name = get_user_name()
    prompt_prefix = f"[bold magenta]{escape(user_name)}: [/bold magenta]"

    async with APIClient(settings.api_base_url, settings.zai_api_key) as client:
        conversation = Conversation(
            client=client, console=console, user_name=user_name, thread_id=thread_id,
        )
        pending = initial_message
        while True:
            if pending is not None:
                prompt, pending = pending, None
                console.print(prompt_prefix + f"[bright_white]{escape(prompt)}[/bright_white]")
            else:
                _prime_readline(history)
                prompt = console.input(prompt_prefix)

            if not prompt.strip():
                console.print("[bright_yellow]Please enter a prompt.[/bright_yellow]")
                continue

            result = handle_chat_command(prompt, conversation, console, settings.log_dir)
            if result.should_exit:
                break
            if result.should_continue:
                continue

            history = save_to_history(prompt, history, settings.history_file)
            try:
                await conversation.send(prompt)
            except Exception as e:
                logger.exception(f"Turn failed: {e}")
                console.print("[bright_red]\nAn error occurred:[/bright_red]", escape(str(e)))


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    console = Console()

    try:
        settings = load_settings()
    except ConfigError as e:
        console.print("[red]❌ Environment validation failed:[/red]")
        for problem in e.problems:
            console.print(f"  {escape(problem)}")
        return 1

    setup_logging(settings)
    if args.trace:
        setup_tracing("zai-cli")
    signal.signal(signal.SIGTERM, _raise_interrupt)

    console.clear()
    try:
        asyncio.run(chat_loop(settings, console, args.ask_mode, args.message))
    except (KeyboardInterrupt, EOFError):
        console.print("\n[bold cyan]👋 Goodbye![/bold cyan]")
        return 0
    console.print("[bold cyan]👋 Goodbye![/bold cyan]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
