"""Unit tests for wire-frame parsing."""

import pytest

from zai_cli.events import (
    Abort,
    Error,
    EventKind,
    EventParseError,
    ReasoningStart,
    SessionStart,
    StructuredData,
    TextDelta,
    TextStart,
    ToolEnd,
    ToolStart,
    Unknown,
    parse_event,
)


class TestParseEvent:
    def test_session_start_with_message_id(self):
        event = parse_event({"type": "start", "messageId": "m1"})
        assert event == SessionStart(message_id="m1")
        assert event.kind is EventKind.SESSION_START

    def test_session_start_without_message_id(self):
        assert parse_event({"type": "start"}) == SessionStart(message_id=None)

    def test_text_start_reads_agent_from_provider_metadata(self):
        event = parse_event({
            "type": "text-start",
            "id": "t1",
            "providerMetadata": {"agent": {"name": "planner"}},
        })
        assert event == TextStart(id="t1", agent_name="planner")

    def test_non_string_agent_name_is_ignored(self):
        event = parse_event({
            "type": "text-start",
            "id": "t1",
            "providerMetadata": {"agent": {"name": 42}},
        })
        assert event.agent_name is None

    def test_reasoning_start_hint(self):
        event = parse_event({
            "type": "reasoning-start",
            "id": "r1",
            "providerMetadata": {"agent": {"name": "a", "thinking": "weighing options"}},
        })
        assert event == ReasoningStart(id="r1", agent_name="a", hint="weighing options")

    def test_empty_delta_is_allowed(self):
        assert parse_event({"type": "text-delta", "id": "t1", "delta": ""}) == TextDelta(id="t1", delta="")

    def test_tool_events(self):
        start = parse_event({
            "type": "tool-input-available",
            "toolCallId": "c1",
            "toolName": "search",
            "input": {"q": "weather"},
        })
        end = parse_event({
            "type": "tool-output-available",
            "toolCallId": "c1",
            "output": {"n": 1},
        })
        assert start == ToolStart(tool_call_id="c1", tool_name="search", input={"q": "weather"})
        assert end == ToolEnd(tool_call_id="c1", output={"n": 1})

    def test_data_frame_namespace_from_tag_suffix(self):
        event = parse_event({"type": "data-summary", "data": {"ok": True}})
        assert event == StructuredData(namespace="summary", payload={"ok": True})
        assert event.kind is EventKind.STRUCTURED_DATA

    def test_error_and_abort(self):
        assert parse_event({"type": "error", "errorText": "boom"}) == Error(message="boom")
        assert parse_event({"type": "abort"}) == Abort()

    def test_unrecognised_type_becomes_unknown(self):
        raw = {"type": "finish-step"}
        event = parse_event(raw)
        assert isinstance(event, Unknown)
        assert event.raw == raw

    def test_missing_type_becomes_unknown(self):
        assert isinstance(parse_event({"id": "x"}), Unknown)

    @pytest.mark.parametrize(
        "frame",
        [
            {"type": "text-start"},
            {"type": "text-delta", "id": "t1"},
            {"type": "reasoning-end", "id": 7},
            {"type": "tool-input-available", "toolCallId": "c1"},
            {"type": "tool-output-available"},
        ],
        ids=["no-id", "no-delta", "int-id", "no-tool-name", "no-call-id"],
    )
    def test_missing_required_field_raises(self, frame):
        with pytest.raises(EventParseError):
            parse_event(frame)
