"""In-memory chat transcript and its log-file export."""

from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_serializer

LOG_TITLE = "AI Agents Studio - Terminal Chat History"
DEFAULT_AGENT_LABEL = "Main AI Supervisor"

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*m")
_BARE_SGR_RE = re.compile(r"\[[0-9]+m")


def strip_ansi(text: str) -> str:
    """Remove SGR escape sequences (and stray ``[31m`` remnants) from *text*."""
    return _BARE_SGR_RE.sub("", _ANSI_RE.sub("", text))


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(ts: datetime) -> str:
    return ts.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class MessageRole(Enum):
    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    role: MessageRole
    content: str
    name: str | None = None

    @field_serializer("role")
    def serialize_role(self, role: MessageRole, _info) -> str:
        return role.value


class AnswerMetadata(BaseModel):
    timestamp: datetime = Field(default_factory=_now)
    user: str
    agent: str | None = None


class ChatEntry(BaseModel):
    """One prompt/answer pair as shown in the saved log."""

    timestamp: datetime
    user: str
    agent: str | None
    prompt: str
    response: str

    @property
    def clean_response(self) -> str:
        return strip_ansi(self.response)


class Transcript(BaseModel):
    """Messages exchanged in the current chat session.

    User messages are recorded when sent; an assistant message and its
    metadata are recorded only when an answer arrives, so ``entries()``
    pairs each answered prompt with its answer.
    """

    messages: list[Message] = Field(default_factory=list)
    metadata: list[AnswerMetadata] = Field(default_factory=list)

    def add_user_message(self, content: str) -> None:
        self.messages.append(Message(role=MessageRole.USER, content=content))

    def add_answer(self, content: str, user: str, agent: str | None) -> None:
        self.messages.append(
            Message(role=MessageRole.ASSISTANT, content=content, name=agent)
        )
        self.metadata.append(AnswerMetadata(user=user, agent=agent))

    def clear(self) -> None:
        self.messages.clear()
        self.metadata.clear()

    def entries(self) -> list[ChatEntry]:
        result = []
        answers = iter(self.metadata)
        for prompt, answer in zip(self.messages, self.messages[1:]):
            if prompt.role is not MessageRole.USER or answer.role is not MessageRole.ASSISTANT:
                continue
            meta = next(answers, None)
            if meta is None:
                break
            result.append(ChatEntry(
                timestamp=meta.timestamp,
                user=meta.user,
                agent=meta.agent,
                prompt=prompt.content,
                response=answer.content,
            ))
        return result

    def render_log(self, now: datetime | None = None) -> str:
        entries = self.entries()
        now = now or _now()
        lines = [
            LOG_TITLE,
            f"Generated: {_iso(now)}",
            f"Total Entries: {len(entries)}",
            "=" * 80,
            "",
        ]
        for entry in entries:
            lines += [
                f"[{_iso(entry.timestamp)}]",
                f"User ({entry.user}): {entry.prompt}",
                f"Agent: {entry.agent or DEFAULT_AGENT_LABEL}",
                f"Response: {entry.clean_response}",
                "-" * 40,
                "",
            ]
        return "\n".join(lines) + "\n"

    def save(self, log_dir: str | Path, now: datetime | None = None) -> Path:
        """Write the transcript to a timestamped file under *log_dir*.

        Raises:
            ValueError: If there is nothing to save.
        """
        if not self.entries():
            raise ValueError("No chat history to save")
        now = now or _now()
        directory = Path(log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{now.strftime('%Y-%m-%d_%H-%M-%S')}_chat_history.log"
        path.write_text(self.render_log(now), encoding="utf-8")
        return path
