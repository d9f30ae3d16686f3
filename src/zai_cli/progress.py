"""Live progress indicator shown while a response streams in."""

from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.markup import escape
from rich.status import Status


class ProgressIndicator(Protocol):
    """What the interpreter needs from a progress indicator."""

    text: str

    def stop(self) -> None: ...

    def success(self, text: str) -> None: ...

    def error(self, text: str) -> None: ...


class Spinner:
    """A :class:`rich.status.Status` with a mutable ``text`` field.

    Setting ``text`` updates the live line immediately.  ``success`` and
    ``error`` stop the spinner and leave a final status line behind.
    """

    def __init__(self, console: Console, text: str = ""):
        self._console = console
        self._text = text
        self._status = Status(escape(text), console=console, spinner="dots")
        self._running = False

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: str) -> None:
        self._text = value
        self._status.update(status=escape(value))

    def start(self) -> Spinner:
        if not self._running:
            self._status.start()
            self._running = True
        return self

    def stop(self) -> None:
        if self._running:
            self._status.stop()
            self._running = False

    def success(self, text: str) -> None:
        self.stop()
        self._console.print(f"[green]✔[/green] {escape(text)}")

    def error(self, text: str) -> None:
        self.stop()
        self._console.print(f"[red]✖[/red] {escape(text)}")
