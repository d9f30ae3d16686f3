"""Pumps a response body through the decoder and the interpreter."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import Callable

from zai_cli.events import Event
from zai_cli.interpreter import ChunkInterpreter
from zai_cli.progress import ProgressIndicator
from zai_cli.rendering import RenderCallback
from zai_cli.streaming import FrameDecoder

logger = logging.getLogger(__name__)


class StreamCancelledError(Exception):
    """The caller's abort signal was set while the stream was being read."""


@dataclass
class StreamResult:
    """Final answer of one streamed turn."""

    content: str
    agent_name: str


class StreamRunner:
    """Reads a byte stream to completion, feeding every event to an interpreter.

    ``run()`` drains ``iter()``.  ``iter()`` yields decoded events and
    releases the stream when it finishes, fails or is cancelled.

    Args:
        interpreter: The interpreter for this turn.
        cancel_event: Optional abort signal checked after every read.
    """

    def __init__(
        self,
        interpreter: ChunkInterpreter,
        cancel_event: asyncio.Event | None = None,
    ):
        self.interpreter = interpreter
        self.cancel_event = cancel_event

    async def iter(self, stream: AsyncIterable[bytes]) -> AsyncIterator[Event]:
        """Decode *stream* into events, releasing it on every exit path."""
        decoder = FrameDecoder()
        try:
            async for chunk in stream:
                if self.cancel_event is not None and self.cancel_event.is_set():
                    raise StreamCancelledError("Stream cancelled by caller")
                for event in decoder.decode(chunk):
                    yield event
            trailing = decoder.flush()
            if trailing is not None:
                yield trailing
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

    async def run(
        self,
        stream: AsyncIterable[bytes],
        on_complete: Callable[[str, str], None] | None = None,
        on_error: Callable[[BaseException], None] | None = None,
    ) -> StreamResult:
        """Interpret *stream* until it ends and return the final answer.

        ``on_complete`` is called once on a graceful end.  A read failure or
        cancellation calls ``on_error`` and is re-raised; malformed frames
        never reach this level.
        """
        try:
            async with aclosing(self.iter(stream)) as events:
                async for event in events:
                    self.interpreter.accept(event)
        except (Exception, asyncio.CancelledError) as e:
            logger.info(f"Stream ended with {type(e).__name__}: {e}")
            if on_error is not None:
                on_error(e)
            raise

        result = StreamResult(
            content=self.interpreter.current_content,
            agent_name=self.interpreter.current_agent_name,
        )
        if on_complete is not None:
            on_complete(result.content, result.agent_name)
        return result


async def run_stream(
    stream: AsyncIterable[bytes],
    *,
    render: RenderCallback,
    indicator: ProgressIndicator,
    sequence_index: int | None = None,
    on_complete: Callable[[str, str], None] | None = None,
    on_error: Callable[[BaseException], None] | None = None,
    cancel_event: asyncio.Event | None = None,
) -> StreamResult:
    """Render one streamed turn with a fresh interpreter."""
    interpreter = ChunkInterpreter(
        render=render, indicator=indicator, sequence_index=sequence_index,
    )
    runner = StreamRunner(interpreter, cancel_event=cancel_event)
    return await runner.run(stream, on_complete=on_complete, on_error=on_error)
