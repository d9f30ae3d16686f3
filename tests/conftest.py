import asyncio
import json
from types import SimpleNamespace

import pytest

from zai_cli.interpreter import ChunkInterpreter
from zai_cli.rendering import Block, Notice


# ---------------------------------------------------------------------------
# Render and progress doubles
# ---------------------------------------------------------------------------

class RecordingRenderer:
    """Render callback that keeps everything it is given."""

    def __init__(self):
        self.items: list = []

    def __call__(self, item) -> None:
        self.items.append(item)

    @property
    def blocks(self) -> list[Block]:
        return [i for i in self.items if isinstance(i, Block)]

    @property
    def notices(self) -> list[Notice]:
        return [i for i in self.items if isinstance(i, Notice)]


class FakeIndicator:
    """Progress indicator that records its lifecycle calls."""

    def __init__(self, text: str = ""):
        self.text = text
        self.stopped = 0
        self.successes: list[str] = []
        self.errors: list[str] = []

    def start(self):
        return self

    def stop(self) -> None:
        self.stopped += 1

    def success(self, text: str) -> None:
        self.successes.append(text)
        self.stop()

    def error(self, text: str) -> None:
        self.errors.append(text)
        self.stop()


# ---------------------------------------------------------------------------
# Byte stream doubles
# ---------------------------------------------------------------------------

class FakeByteStream:
    """Async byte source that yields queued chunks and counts ``aclose`` calls.

    When ``hang`` is set the stream blocks forever after the queued chunks,
    like a server that stops sending without closing the connection.
    ``fail_with`` raises after the queued chunks instead.
    """

    def __init__(self, chunks, hang: bool = False, fail_with: BaseException | None = None):
        self._chunks = list(chunks)
        self._hang = hang
        self._fail_with = fail_with
        self.close_count = 0
        self.reads = 0
        self.exhausted_queue = asyncio.Event()

    def __aiter__(self):
        return self

    async def __anext__(self) -> bytes:
        if self._chunks:
            self.reads += 1
            return self._chunks.pop(0)
        self.exhausted_queue.set()
        if self._fail_with is not None:
            raise self._fail_with
        if self._hang:
            await asyncio.Event().wait()
        raise StopAsyncIteration

    async def aclose(self) -> None:
        self.close_count += 1


def frame(type_: str, **fields) -> dict:
    return {"type": type_, **fields}


def agent_meta(name: str, thinking: str | None = None) -> dict:
    agent = {"name": name}
    if thinking is not None:
        agent["thinking"] = thinking
    return {"providerMetadata": {"agent": agent}}


def ndjson(*frames: dict) -> bytes:
    return "".join(json.dumps(f) + "\n" for f in frames).encode("utf-8")


def sse(*frames: dict) -> bytes:
    return "".join(f"data: {json.dumps(f)}\n\n" for f in frames).encode("utf-8")


@pytest.fixture
def renderer():
    return RecordingRenderer()


@pytest.fixture
def indicator():
    return FakeIndicator()


@pytest.fixture
def make_interpreter(renderer, indicator):
    """Factory fixture for interpreters wired to the recording doubles."""
    def _make(sequence_index=None, max_open_sequences=64):
        return ChunkInterpreter(
            render=renderer,
            indicator=indicator,
            sequence_index=sequence_index,
            max_open_sequences=max_open_sequences,
        )
    return _make


@pytest.fixture
def make_stream():
    return FakeByteStream


@pytest.fixture
def make_indicator():
    return FakeIndicator


@pytest.fixture
def frames():
    """Wire-format builders: ``frames.frame``, ``frames.agent``, ``frames.ndjson``, ``frames.sse``."""
    return SimpleNamespace(frame=frame, agent=agent_meta, ndjson=ndjson, sse=sse)
