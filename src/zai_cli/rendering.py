"""Terminal rendering of flushed stream content.

The interpreter never writes to the terminal itself.  It hands
:class:`Block` and :class:`Notice` objects to a render callback;
:class:`ConsoleRenderer` is the callback used by the CLI.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Callable, Literal

from rich.console import Console
from rich.style import Style
from rich.text import Text

EMPTY_BODY = "No message provided"
HEADER_RULE = " ━━━━━━━━━━ "
FOOTER_WIDTH = 30

AGENT_PALETTE = [
    "bright_cyan",
    "bright_yellow",
    "bright_red",
    "rgb(255,165,0)",
    "bright_green",
    "bright_magenta",
    "rgb(0,255,255)",
    "rgb(255,105,180)",
    "rgb(0,255,128)",
    "rgb(255,215,0)",
]

# Checked in order; the first substring found in the agent name wins.
AGENT_OVERRIDES = [
    ("planner", "bright_magenta"),
    ("summarizer", "bright_green"),
    ("tool_call", "bright_blue"),
    ("tool_end", "bright_yellow"),
]

NOTICE_STYLES = {
    "info": Style(dim=True),
    "warning": Style(color="yellow"),
    "error": Style(color="red"),
}


@dataclass
class Block:
    """One flushed unit of output.

    Args:
        agent_name: Label shown in the header.
        body: Raw body text, formatted with :func:`format_body` on render.
        index: Sequence index of the conversation turn, if any.
        event: Annotation such as ``"reasoning"`` or ``"tool-call: search"``.
        duration_ms: Elapsed time shown after the annotation.
        muted: Render the body with a secondary treatment.
    """

    agent_name: str
    body: str
    index: int | None = None
    event: str | None = None
    duration_ms: int | None = None
    muted: bool = False


@dataclass
class Notice:
    """A single status line (session marker, upstream error, abort)."""

    level: Literal["info", "warning", "error"]
    text: str


Renderable = Block | Notice
RenderCallback = Callable[[Renderable], None]


def format_body(message: str | None) -> str:
    """Pretty-print *message* when it is JSON, otherwise return it as is.

    A JSON string is decoded a second time so doubly-encoded payloads
    come out as structured JSON.
    """
    text = (message or "").strip() or EMPTY_BODY
    try:
        parsed = json.loads(text)
    except (ValueError, RecursionError):
        return text

    if isinstance(parsed, str):
        try:
            parsed = json.loads(parsed)
        except (ValueError, RecursionError):
            pass
    try:
        return json.dumps(parsed, indent=2, ensure_ascii=False)
    except (ValueError, RecursionError):
        return text


def agent_color(agent_name: str) -> str:
    """Return the color used for *agent_name*.

    Well-known roles get fixed colors; every other name is hashed onto
    :data:`AGENT_PALETTE`, so a name always maps to the same color.
    """
    for fragment, color in AGENT_OVERRIDES:
        if fragment in agent_name:
            return color
    return AGENT_PALETTE[sum(ord(c) for c in agent_name) % len(AGENT_PALETTE)]


def format_duration(duration_ms: int) -> str:
    """Human-readable elapsed time: ``850ms``, ``1.5s``, ``2 minutes 5 seconds``."""
    if duration_ms < 1000:
        return f"{duration_ms}ms"
    seconds = duration_ms / 1000
    if seconds < 60:
        return re.sub(r"\.?0+$", "", f"{seconds:.4f}") + "s"

    whole_seconds = int(seconds)
    parts = []
    hours, remainder = divmod(whole_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    for value, unit in ((hours, "hour"), (minutes, "minute"), (secs, "second")):
        if value:
            parts.append(f"{value} {unit}" if value == 1 else f"{value} {unit}s")
    return " ".join(parts)


class ConsoleRenderer:
    """Writes blocks and notices to a :class:`rich.console.Console`."""

    def __init__(self, console: Console):
        self.console = console

    def __call__(self, item: Renderable) -> None:
        self.render(item)

    def render(self, item: Renderable) -> None:
        if isinstance(item, Notice):
            self.console.print(
                Text(item.text, style=NOTICE_STYLES[item.level]), highlight=False,
            )
            return
        self.console.print(self.build_block(item), highlight=False)

    def build_block(self, block: Block) -> Text:
        color = agent_color(block.agent_name)
        accent = Style(color=color)
        gray = Style(color="grey50")

        text = Text("\n")
        text.append(f" {block.agent_name} ", style=Style(color="white", bgcolor=color))
        if block.index:
            text.append(f" [{block.index}]", style=gray)
        if block.event:
            text.append(f" {block.event}", style=gray)
        if block.duration_ms is not None:
            text.append(f" ({format_duration(block.duration_ms)})", style=gray)
        text.append(HEADER_RULE, style=accent)
        text.append("\n")
        body_style = accent + Style(dim=True) if block.muted else accent
        text.append(format_body(block.body), style=body_style)
        text.append("\n" + "━" * FOOTER_WIDTH, style=accent)
        return text
