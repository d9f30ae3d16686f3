"""Tests for pumping byte streams through the decoder and interpreter."""

import asyncio
import io

import pytest
from rich.console import Console

from zai_cli.events import TextDelta, TextStart
from zai_cli.rendering import ConsoleRenderer
from zai_cli.runner import StreamCancelledError, StreamResult, StreamRunner, run_stream


def conversation_frames(frames):
    f, agent = frames.frame, frames.agent
    return [
        f("start", messageId="m1"),
        f("text-start", id="A", **agent("writer")),
        f("text-delta", id="A", delta="Hel"),
        f("text-delta", id="A", delta="lo"),
        f("text-end", id="A"),
    ]


class TestRunStream:
    @pytest.mark.asyncio
    async def test_complete_turn(self, frames, make_stream, renderer, indicator):
        stream = make_stream([frames.sse(*conversation_frames(frames))])
        completed = []

        result = await run_stream(
            stream,
            render=renderer,
            indicator=indicator,
            sequence_index=1,
            on_complete=lambda content, agent: completed.append((content, agent)),
        )

        assert result == StreamResult(content="Hello", agent_name="writer")
        assert completed == [("Hello", "writer")]
        assert [b.body for b in renderer.blocks] == ["Hello"]
        assert renderer.blocks[0].index == 1
        assert stream.close_count == 1

    @pytest.mark.asyncio
    async def test_frame_split_across_reads(self, frames, make_stream, renderer, indicator):
        payload = frames.ndjson(*conversation_frames(frames))
        cut = payload.index(b'"delta": "lo"') + 4
        stream = make_stream([payload[:cut], payload[cut:]])

        result = await run_stream(stream, render=renderer, indicator=indicator)

        assert result.content == "Hello"
        assert [b.body for b in renderer.blocks] == ["Hello"]

    @pytest.mark.asyncio
    async def test_trailing_frame_without_newline(self, frames, make_stream, renderer, indicator):
        payload = frames.ndjson(*conversation_frames(frames)[:-1])
        payload += b'{"type": "text-end", "id": "A"}'

        result = await run_stream(make_stream([payload]), render=renderer, indicator=indicator)

        assert result.content == "Hello"
        assert len(renderer.blocks) == 1

    @pytest.mark.asyncio
    async def test_garbage_lines_do_not_stop_processing(self, frames, make_stream, renderer, indicator):
        f = frames.frame
        chunks = [
            frames.ndjson(f("text-start", id="A")),
            b"{not json}\n",
            frames.ndjson(f("mystery-event", foo=1)),
            b"data: {\"type\": \"text-delta\"}\n",
            frames.ndjson(f("text-delta", id="A", delta="ok"), f("text-end", id="A")),
        ]

        result = await run_stream(make_stream(chunks), render=renderer, indicator=indicator)

        assert result.content == "ok"
        assert [b.body for b in renderer.blocks] == ["ok"]

    @pytest.mark.asyncio
    async def test_upstream_error_event_does_not_end_stream(self, frames, make_stream, renderer, indicator):
        f = frames.frame
        stream = make_stream([frames.ndjson(
            f("text-start", id="A"),
            f("error", errorText="tool crashed"),
            f("text-delta", id="A", delta="still here"),
            f("text-end", id="A"),
        )])
        errors = []

        result = await run_stream(
            stream, render=renderer, indicator=indicator, on_error=errors.append,
        )

        assert result.content == "still here"
        assert errors == []
        assert renderer.notices[0].level == "error"

    @pytest.mark.asyncio
    async def test_read_failure_is_propagated(self, frames, make_stream, renderer, indicator):
        stream = make_stream(
            [frames.ndjson(frames.frame("text-start", id="A"))],
            fail_with=ConnectionResetError("peer went away"),
        )
        errors, completed = [], []

        with pytest.raises(ConnectionResetError):
            await run_stream(
                stream,
                render=renderer,
                indicator=indicator,
                on_complete=lambda *a: completed.append(a),
                on_error=errors.append,
            )

        assert len(errors) == 1
        assert isinstance(errors[0], ConnectionResetError)
        assert completed == []
        assert stream.close_count == 1


class TestCancellation:
    @pytest.mark.asyncio
    async def test_task_cancellation_releases_reader_once(self, frames, make_stream, renderer, indicator):
        stream = make_stream(
            [frames.ndjson(frames.frame("text-start", id="A"))], hang=True,
        )
        errors = []
        task = asyncio.create_task(run_stream(
            stream, render=renderer, indicator=indicator, on_error=errors.append,
        ))
        await stream.exhausted_queue.wait()

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert stream.close_count == 1
        assert len(errors) == 1
        assert isinstance(errors[0], asyncio.CancelledError)

    @pytest.mark.asyncio
    async def test_abort_signal_stops_reading(self, frames, make_stream, make_interpreter):
        cancel = asyncio.Event()
        f = frames.frame
        stream = make_stream([
            frames.ndjson(f("text-start", id="A"), f("text-delta", id="A", delta="a")),
            frames.ndjson(f("text-delta", id="A", delta="b")),
            frames.ndjson(f("text-end", id="A")),
        ])
        runner = StreamRunner(make_interpreter(), cancel_event=cancel)
        seen = []

        with pytest.raises(StreamCancelledError):
            async for event in runner.iter(stream):
                seen.append(event)
                cancel.set()

        assert seen == [TextStart(id="A"), TextDelta(id="A", delta="a")]
        assert stream.reads == 1
        assert stream.close_count == 1

    @pytest.mark.asyncio
    async def test_abort_signal_through_run_stream(self, frames, make_stream, renderer, indicator):
        cancel = asyncio.Event()
        cancel.set()
        stream = make_stream([frames.ndjson(frames.frame("text-start", id="A"))])
        errors = []

        with pytest.raises(StreamCancelledError):
            await run_stream(
                stream,
                render=renderer,
                indicator=indicator,
                cancel_event=cancel,
                on_error=errors.append,
            )

        assert len(errors) == 1
        assert renderer.items == []
        assert stream.close_count == 1


class TestStreamRunnerIter:
    @pytest.mark.asyncio
    async def test_iter_yields_events_in_order(self, frames, make_stream, make_interpreter):
        f = frames.frame
        stream = make_stream([frames.ndjson(f("text-start", id="A"), f("text-delta", id="A", delta="x"))])

        events = [e async for e in StreamRunner(make_interpreter()).iter(stream)]

        assert events == [TextStart(id="A"), TextDelta(id="A", delta="x")]
        assert stream.close_count == 1

    @pytest.mark.asyncio
    async def test_async_generator_source(self, frames, make_interpreter):
        async def source():
            yield frames.ndjson(frames.frame("text-start", id="A"))

        events = [e async for e in StreamRunner(make_interpreter()).iter(source())]

        assert events == [TextStart(id="A")]


class TestConsoleRendering:
    @pytest.mark.asyncio
    async def test_numeric_answer_renders_verbatim(self, frames, make_stream, indicator):
        f = frames.frame
        digits = "7" * 5000
        stream = make_stream([frames.ndjson(
            f("text-start", id="A", **frames.agent("calculator")),
            f("text-delta", id="A", delta=digits),
            f("text-end", id="A"),
        )])
        console = Console(file=io.StringIO(), width=120, color_system=None)

        result = await run_stream(stream, render=ConsoleRenderer(console), indicator=indicator)

        assert result == StreamResult(content=digits, agent_name="calculator")
        assert digits[:100] in console.file.getvalue()
