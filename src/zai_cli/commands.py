"""Slash commands understood by the prompt loop."""

from dataclasses import dataclass

from rich.console import Console
from rich.markup import escape

from zai_cli.conversation import Conversation

EXIT_COMMANDS = {"exit", "/exit"}
SAVE_COMMANDS = {"save", "/save"}
RESET_COMMANDS = {"reset", "/reset", "clear", "/clear"}


@dataclass
class CommandResult:
    """What the prompt loop should do after a command.

    ``should_continue`` means the prompt was a command and has been
    handled; ``should_exit`` ends the session.
    """

    should_continue: bool
    should_exit: bool


NOT_A_COMMAND = CommandResult(should_continue=False, should_exit=False)
HANDLED = CommandResult(should_continue=True, should_exit=False)


def startup_message(console: Console) -> None:
    console.print("[bold cyan]🤖 AI Chat CLI[/bold cyan]")
    console.print("[bright_white]Use ↑/↓ arrow keys to navigate history.[/bright_white]")
    console.print("[bright_white]Type '/exit' or press Ctrl+C to quit.[/bright_white]")
    console.print("[bright_white]Type '/save' to save chat history to log file.[/bright_white]")
    console.print("[bright_white]Type '/reset' to clear chat history and cli.[/bright_white]")


def handle_chat_command(
    prompt: str, conversation: Conversation, console: Console, log_dir: str,
) -> CommandResult:
    command = prompt.strip().lower()

    if command in EXIT_COMMANDS:
        return CommandResult(should_continue=False, should_exit=True)

    if command in SAVE_COMMANDS:
        entries = conversation.transcript.entries()
        if not entries:
            console.print(
                "[bright_yellow]⚠️  No chat history to save yet. Start chatting first![/bright_yellow]"
            )
            return HANDLED
        try:
            saved_path = conversation.transcript.save(log_dir)
        except OSError as e:
            console.print(f"[bright_red]❌ Error saving chat history:[/bright_red] {escape(str(e))}")
            return HANDLED
        console.print(f"[bright_green]✅ Chat history saved to: {escape(str(saved_path))}[/bright_green]")
        console.print(f"[bright_blue]📝 Total entries saved: {len(entries)}[/bright_blue]")
        return HANDLED

    if command in RESET_COMMANDS:
        entry_count = len(conversation.transcript.entries())
        conversation.transcript.clear()
        console.clear()
        startup_message(console)
        if entry_count:
            console.print(
                f"[bright_green]✅ Chat session reset! Cleared {entry_count} previous entries.[/bright_green]"
            )
        else:
            console.print("[bright_green]✅ Chat session reset![/bright_green]")
        console.print("[bright_blue]🆕 Starting fresh chat session...[/bright_blue]\n")
        return HANDLED

    return NOT_A_COMMAND
