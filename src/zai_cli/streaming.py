"""Frame decoding for the chat stream.

The server answers with newline-delimited frames.  A frame is either a
bare JSON object or an SSE ``data: `` line carrying one; ``data: [DONE]``
marks the end of content.  :class:`FrameDecoder` reassembles frames that
arrive split across reads and turns each into an :class:`Event`.
"""

from __future__ import annotations

import codecs
import json
import logging

from zai_cli.events import Event, parse_event

logger = logging.getLogger(__name__)

SSE_DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


class _Done(Exception):
    """Raised internally when the termination sentinel is seen."""


class FrameDecoder:
    """Turns raw byte chunks into events.

    Malformed frames are logged and dropped; ``decode`` and ``flush`` never
    raise because of bad input.
    """

    def __init__(self) -> None:
        self._utf8 = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""

    def decode(self, chunk: bytes) -> list[Event]:
        """Feed one chunk and return every event it completes."""
        self._buffer += self._utf8.decode(chunk)
        *lines, self._buffer = self._buffer.split("\n")

        events: list[Event] = []
        for line in lines:
            try:
                event = self._parse_line(line)
            except _Done:
                break
            if event is not None:
                events.append(event)
        return events

    def flush(self) -> Event | None:
        """Parse whatever is left once the source stream has ended."""
        remainder = self._buffer + self._utf8.decode(b"", final=True)
        self._buffer = ""
        try:
            return self._parse_line(remainder)
        except _Done:
            return None

    def _parse_line(self, line: str) -> Event | None:
        line = line.strip()
        if not line:
            return None

        payload = line[len(SSE_DATA_PREFIX):] if line.startswith(SSE_DATA_PREFIX) else line
        if payload.strip() == DONE_SENTINEL:
            raise _Done()
        if not payload.startswith("{"):
            logger.debug(f"Skipping non-JSON line: {line!r}")
            return None

        try:
            frame = json.loads(payload)
            return parse_event(frame)
        except (ValueError, RecursionError) as e:
            logger.warning(f"Failed to parse frame {line!r}: {e}")
            return None
