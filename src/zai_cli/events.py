"""Typed events carried by the chat stream.

Every frame on the wire is a JSON object with a ``type`` tag.
:func:`parse_event` turns one decoded frame into one of the records below;
each record exposes its tag as ``kind``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

DATA_PREFIX = "data-"


class EventKind(Enum):
    SESSION_START = "start"
    TEXT_START = "text-start"
    TEXT_DELTA = "text-delta"
    TEXT_END = "text-end"
    REASONING_START = "reasoning-start"
    REASONING_DELTA = "reasoning-delta"
    REASONING_END = "reasoning-end"
    TOOL_START = "tool-input-available"
    TOOL_END = "tool-output-available"
    STRUCTURED_DATA = "data"
    ERROR = "error"
    ABORT = "abort"
    UNKNOWN = "unknown"


class EventParseError(ValueError):
    """A frame has a known ``type`` but is missing or mistypes a field."""


@dataclass
class Event:
    """Base for all stream events."""

    kind: ClassVar[EventKind] = EventKind.UNKNOWN


@dataclass
class SessionStart(Event):
    kind: ClassVar[EventKind] = EventKind.SESSION_START

    message_id: str | None = None


@dataclass
class TextStart(Event):
    kind: ClassVar[EventKind] = EventKind.TEXT_START

    id: str = ""
    agent_name: str | None = None


@dataclass
class TextDelta(Event):
    kind: ClassVar[EventKind] = EventKind.TEXT_DELTA

    id: str = ""
    delta: str = ""


@dataclass
class TextEnd(Event):
    kind: ClassVar[EventKind] = EventKind.TEXT_END

    id: str = ""
    agent_name: str | None = None


@dataclass
class ReasoningStart(Event):
    """Opens a reasoning sequence.

    ``hint`` is the short "thinking" line some agents attach to the start
    of their reasoning.
    """

    kind: ClassVar[EventKind] = EventKind.REASONING_START

    id: str = ""
    agent_name: str | None = None
    hint: str | None = None


@dataclass
class ReasoningDelta(Event):
    kind: ClassVar[EventKind] = EventKind.REASONING_DELTA

    id: str = ""
    delta: str = ""


@dataclass
class ReasoningEnd(Event):
    kind: ClassVar[EventKind] = EventKind.REASONING_END

    id: str = ""
    agent_name: str | None = None


@dataclass
class ToolStart(Event):
    kind: ClassVar[EventKind] = EventKind.TOOL_START

    tool_call_id: str = ""
    tool_name: str = ""
    input: Any = None
    agent_name: str | None = None


@dataclass
class ToolEnd(Event):
    kind: ClassVar[EventKind] = EventKind.TOOL_END

    tool_call_id: str = ""
    output: Any = None


@dataclass
class StructuredData(Event):
    """Payload of a ``data-<namespace>`` frame."""

    kind: ClassVar[EventKind] = EventKind.STRUCTURED_DATA

    namespace: str = ""
    payload: Any = None


@dataclass
class Error(Event):
    kind: ClassVar[EventKind] = EventKind.ERROR

    message: str = ""


@dataclass
class Abort(Event):
    kind: ClassVar[EventKind] = EventKind.ABORT


@dataclass
class Unknown(Event):
    """Any frame whose ``type`` is not recognised."""

    kind: ClassVar[EventKind] = EventKind.UNKNOWN

    raw: dict = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Wire parsing
# ---------------------------------------------------------------------------


def _agent_metadata(frame: dict) -> dict:
    metadata = frame.get("providerMetadata")
    if not isinstance(metadata, dict):
        return {}
    agent = metadata.get("agent")
    return agent if isinstance(agent, dict) else {}


def _agent_name(frame: dict) -> str | None:
    name = _agent_metadata(frame).get("name")
    return name if isinstance(name, str) and name else None


def _required_str(frame: dict, key: str, allow_empty: bool = False) -> str:
    value = frame.get(key)
    if not isinstance(value, str) or (not value and not allow_empty):
        raise EventParseError(
            f"'{frame.get('type')}' frame requires a string '{key}'"
        )
    return value


def _parse_session_start(frame: dict) -> Event:
    message_id = frame.get("messageId")
    return SessionStart(message_id=message_id if isinstance(message_id, str) else None)


def _parse_text_start(frame: dict) -> Event:
    return TextStart(id=_required_str(frame, "id"), agent_name=_agent_name(frame))


def _parse_text_delta(frame: dict) -> Event:
    return TextDelta(
        id=_required_str(frame, "id"),
        delta=_required_str(frame, "delta", allow_empty=True),
    )


def _parse_text_end(frame: dict) -> Event:
    return TextEnd(id=_required_str(frame, "id"), agent_name=_agent_name(frame))


def _parse_reasoning_start(frame: dict) -> Event:
    hint = _agent_metadata(frame).get("thinking")
    return ReasoningStart(
        id=_required_str(frame, "id"),
        agent_name=_agent_name(frame),
        hint=hint if isinstance(hint, str) and hint else None,
    )


def _parse_reasoning_delta(frame: dict) -> Event:
    return ReasoningDelta(
        id=_required_str(frame, "id"),
        delta=_required_str(frame, "delta", allow_empty=True),
    )


def _parse_reasoning_end(frame: dict) -> Event:
    return ReasoningEnd(id=_required_str(frame, "id"), agent_name=_agent_name(frame))


def _parse_tool_start(frame: dict) -> Event:
    return ToolStart(
        tool_call_id=_required_str(frame, "toolCallId"),
        tool_name=_required_str(frame, "toolName"),
        input=frame.get("input"),
        agent_name=_agent_name(frame),
    )


def _parse_tool_end(frame: dict) -> Event:
    return ToolEnd(
        tool_call_id=_required_str(frame, "toolCallId"),
        output=frame.get("output"),
    )


def _parse_error(frame: dict) -> Event:
    text = frame.get("errorText")
    return Error(message=str(text) if text is not None else "Unknown error")


_PARSERS = {
    EventKind.SESSION_START.value: _parse_session_start,
    EventKind.TEXT_START.value: _parse_text_start,
    EventKind.TEXT_DELTA.value: _parse_text_delta,
    EventKind.TEXT_END.value: _parse_text_end,
    EventKind.REASONING_START.value: _parse_reasoning_start,
    EventKind.REASONING_DELTA.value: _parse_reasoning_delta,
    EventKind.REASONING_END.value: _parse_reasoning_end,
    EventKind.TOOL_START.value: _parse_tool_start,
    EventKind.TOOL_END.value: _parse_tool_end,
    EventKind.ERROR.value: _parse_error,
    EventKind.ABORT.value: lambda frame: Abort(),
}


def parse_event(frame: dict) -> Event:
    """Convert one decoded JSON frame into a typed :class:`Event`.

    Frames without a string ``type``, or with a type this client does not
    know, become :class:`Unknown` so the caller can keep going.

    Raises:
        EventParseError: If a recognised frame lacks a required field.
    """
    tag = frame.get("type")
    if not isinstance(tag, str):
        return Unknown(raw=frame)

    parser = _PARSERS.get(tag)
    if parser is not None:
        return parser(frame)

    if tag.startswith(DATA_PREFIX):
        return StructuredData(
            namespace=tag[len(DATA_PREFIX):], payload=frame.get("data"),
        )
    return Unknown(raw=frame)
