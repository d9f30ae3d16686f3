"""Prompt history persisted between runs."""

from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_HISTORY_SIZE = 30


def load_history(path: str | Path) -> list[str]:
    """Return the saved prompts, oldest first; empty if the file is unreadable."""
    path = Path(path)
    if not path.exists():
        return []
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not load history file {path}: {e}")
        return []
    return [line for line in content.split("\n") if line.strip()]


def save_to_history(command: str, history: list[str], path: str | Path) -> list[str]:
    """Append *command* to *history*, dropping earlier duplicates, and persist it.

    Only the last :data:`MAX_HISTORY_SIZE` prompts are kept.  Returns the
    updated history; a write failure is logged and the update still applies.
    """
    if not command.strip():
        return history

    updated = [item for item in history if item != command]
    updated.append(command)
    updated = updated[-MAX_HISTORY_SIZE:]

    try:
        Path(path).write_text("\n".join(updated) + "\n", encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not save to history file {path}: {e}")
    return updated
