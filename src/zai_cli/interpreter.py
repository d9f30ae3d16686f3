"""State machine that turns stream events into rendered output.

A :class:`ChunkInterpreter` is created for one conversation turn.  It keeps
one accumulation entry per open text or reasoning sequence and one record
per running tool call, and renders each when it closes.  It also tracks the
answer text and the agent that produced it for the caller to read once the
stream ends.
"""

from __future__ import annotations

import json
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass

from zai_cli.events import (
    Abort,
    Error,
    Event,
    EventKind,
    ReasoningDelta,
    ReasoningEnd,
    ReasoningStart,
    SessionStart,
    StructuredData,
    TextDelta,
    TextEnd,
    TextStart,
    ToolEnd,
    ToolStart,
)
from zai_cli.progress import ProgressIndicator
from zai_cli.rendering import Block, Notice, RenderCallback

logger = logging.getLogger(__name__)

UNKNOWN_AGENT = "unknown"


@dataclass
class SequencePart:
    """Content accumulated for one open text or reasoning sequence."""

    agent_name: str
    content: str = ""


@dataclass
class ToolCallRecord:
    """A tool call that has started and not yet reported its output."""

    tool_name: str
    started_at: float


def _to_json(value) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


class ChunkInterpreter:
    """Consumes events one at a time and renders completed sequences.

    Args:
        render: Callback receiving every :class:`Block` and :class:`Notice`.
        indicator: Live progress indicator updated as sequences open.
        sequence_index: Turn number shown in block headers.
        max_open_sequences: Upper bound on open entries per map; the
            oldest entry is evicted when a new one would exceed it.
    """

    def __init__(
        self,
        render: RenderCallback,
        indicator: ProgressIndicator,
        sequence_index: int | None = None,
        max_open_sequences: int = 64,
    ):
        self.render = render
        self.indicator = indicator
        self.sequence_index = sequence_index
        self.max_open_sequences = max_open_sequences
        self._handlers = {
            EventKind.SESSION_START: self._on_session_start,
            EventKind.TEXT_START: self._on_text_start,
            EventKind.TEXT_DELTA: self._on_text_delta,
            EventKind.TEXT_END: self._on_text_end,
            EventKind.REASONING_START: self._on_reasoning_start,
            EventKind.REASONING_DELTA: self._on_reasoning_delta,
            EventKind.REASONING_END: self._on_reasoning_end,
            EventKind.TOOL_START: self._on_tool_start,
            EventKind.TOOL_END: self._on_tool_end,
            EventKind.STRUCTURED_DATA: self._on_structured_data,
            EventKind.ERROR: self._on_error,
            EventKind.ABORT: self._on_abort,
        }
        self.reset()

    def reset(self) -> None:
        """Drop all open sequences, tool calls and accumulated content."""
        self._current_agent_name = ""
        self._current_content = ""
        self._text_parts: OrderedDict[str, SequencePart] = OrderedDict()
        self._reasoning_parts: OrderedDict[str, SequencePart] = OrderedDict()
        self._active_tools: dict[str, ToolCallRecord] = {}

    @property
    def current_content(self) -> str:
        return self._current_content

    @property
    def current_agent_name(self) -> str:
        return self._current_agent_name

    def accept(self, event: Event) -> None:
        handler = self._handlers.get(event.kind)
        if handler is None:
            logger.debug(f"Ignoring unhandled event: {event}")
            return
        handler(event)

    # ------------------------------------------------------------------
    # Sequence bookkeeping
    # ------------------------------------------------------------------

    def _open(self, parts: OrderedDict[str, SequencePart], seq_id: str, agent_name: str) -> None:
        parts.pop(seq_id, None)
        while len(parts) >= self.max_open_sequences:
            evicted_id, _ = parts.popitem(last=False)
            logger.warning(f"Too many open sequences, dropping '{evicted_id}'")
        parts[seq_id] = SequencePart(agent_name=agent_name)

    def _append(self, parts: OrderedDict[str, SequencePart], seq_id: str, delta: str) -> None:
        part = parts.get(seq_id)
        if part is None:
            logger.debug(f"Delta for unknown sequence '{seq_id}'")
            return
        part.content += delta

    def _flush(
        self,
        parts: OrderedDict[str, SequencePart],
        seq_id: str,
        agent_name: str | None,
        event: str | None = None,
        muted: bool = False,
    ) -> None:
        part = parts.get(seq_id)
        if part is None:
            logger.debug(f"End for unknown sequence '{seq_id}'")
            return
        if not part.content:
            return

        self.indicator.text = ""
        self.render(Block(
            agent_name=agent_name or part.agent_name,
            body=part.content,
            index=self.sequence_index,
            event=event,
            muted=muted,
        ))
        del parts[seq_id]

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_session_start(self, event: SessionStart) -> None:
        if event.message_id:
            self.render(Notice("info", f"Message ID: {event.message_id}"))

    def _on_text_start(self, event: TextStart) -> None:
        if event.agent_name:
            self._current_agent_name = event.agent_name
            self.indicator.text = f"{event.agent_name} is responding...\n"
        self._open(self._text_parts, event.id, event.agent_name or UNKNOWN_AGENT)

    def _on_text_delta(self, event: TextDelta) -> None:
        if not event.delta:
            return
        self._append(self._text_parts, event.id, event.delta)
        self.indicator.text += event.delta
        self._current_content += event.delta

    def _on_text_end(self, event: TextEnd) -> None:
        self._flush(self._text_parts, event.id, event.agent_name)

    def _on_reasoning_start(self, event: ReasoningStart) -> None:
        if event.agent_name:
            text = f"{event.agent_name} is reasoning...\n"
            if event.hint:
                text += f"💭 {event.hint}\n"
            self.indicator.text = text
        self._open(self._reasoning_parts, event.id, event.agent_name or UNKNOWN_AGENT)

    def _on_reasoning_delta(self, event: ReasoningDelta) -> None:
        if not event.delta:
            return
        self._append(self._reasoning_parts, event.id, event.delta)
        self.indicator.text += event.delta

    def _on_reasoning_end(self, event: ReasoningEnd) -> None:
        self._flush(
            self._reasoning_parts, event.id, event.agent_name,
            event="reasoning", muted=True,
        )

    def _on_tool_start(self, event: ToolStart) -> None:
        self._active_tools[event.tool_call_id] = ToolCallRecord(
            tool_name=event.tool_name, started_at=time.monotonic(),
        )
        self.render(Block(
            agent_name=event.agent_name or self._current_agent_name or UNKNOWN_AGENT,
            body=_to_json(event.input),
            index=self.sequence_index,
            event=f"tool-call: {event.tool_name}",
        ))

    def _on_tool_end(self, event: ToolEnd) -> None:
        record = self._active_tools.pop(event.tool_call_id, None)
        agent_name = self._current_agent_name or UNKNOWN_AGENT
        if record is None:
            logger.info(f"Tool output without a matching call: '{event.tool_call_id}'")
            self.render(Block(
                agent_name=agent_name,
                body=_to_json(event.output),
                index=self.sequence_index,
                event="tool-end: unknown",
            ))
            return

        duration_ms = max(0, int((time.monotonic() - record.started_at) * 1000))
        self.render(Block(
            agent_name=agent_name,
            body=_to_json(event.output),
            index=self.sequence_index,
            event=f"tool-end: {record.tool_name}",
            duration_ms=duration_ms,
        ))

    def _on_structured_data(self, event: StructuredData) -> None:
        self.render(Block(
            agent_name=event.namespace or UNKNOWN_AGENT,
            body=_to_json(event.payload),
            index=self.sequence_index,
            event="structured-output",
        ))

    def _on_error(self, event: Error) -> None:
        self.render(Notice("error", f"❌ Error: {event.message}"))

    def _on_abort(self, event: Abort) -> None:
        self.indicator.stop()
        self.render(Notice("warning", "⚠️  Stream aborted"))
