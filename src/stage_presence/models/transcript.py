"""Transcript data models for chat logs.

:class:`Message` is a pydantic model because it is validated straight from
chat log JSON, which names its fields differently depending on the writer
(``mes``/``message``/``text`` for the body, ``name`` for the speaker).
Everything else here is a plain stdlib dataclass or class.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class Message(BaseModel):
    """A single chat message.

    Attributes:
        text: Message body; empty when the message has no text.
        speaker_name: Display name of the author.
        is_user: ``True`` when the user wrote the message.
        is_system: ``True`` for system/narration messages, which the
            presence logic never reads.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    text: str = Field(default="", validation_alias=AliasChoices("mes", "message", "text"))
    speaker_name: str = Field(default="", validation_alias=AliasChoices("name", "speaker_name"))
    is_user: bool = False
    is_system: bool = False

    @field_validator("text", "speaker_name", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value


class Transcript:
    """Ordered chat messages, most recent last.

    The host appends messages as they arrive; the engine only reads.
    """

    def __init__(self, messages: Iterable[Message] = ()) -> None:
        self._messages: list[Message] = list(messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    @property
    def messages(self) -> Sequence[Message]:
        """A snapshot of the messages, oldest first."""
        return tuple(self._messages)

    def append(self, message: Message) -> None:
        """Add *message* as the newest message."""
        self._messages.append(message)

    def last_message(self) -> Message | None:
        """Return the most recent non-system message, or ``None``."""
        for message in reversed(self._messages):
            if not message.is_system:
                return message
        return None

    def last_character_message(self, names: Iterable[str]) -> Message | None:
        """Return the newest character message whose speaker is in *names*."""
        wanted = set(names)
        for message in reversed(self._messages):
            if message.is_user or message.is_system:
                continue
            if message.speaker_name in wanted:
                return message
        return None


@dataclass(frozen=True)
class ParseWarning:
    """A structured warning produced while parsing a chat log.

    Attributes:
        line_number: 1-based line number of the problematic line.
        message: Human-readable description of the issue.
        raw_line: The original line text that triggered the warning.
    """

    line_number: int
    message: str
    raw_line: str


@dataclass(frozen=True)
class ChatLogParseResult:
    """Top-level return type from the chat log parser.

    Attributes:
        transcript: Parsed messages, in file order.
        speakers: Unique speaker names, ordered by first appearance.
        warnings: Any parse warnings encountered.
        source: File path of the parsed log, or ``"<string>"``.
    """

    transcript: Transcript = field(default_factory=Transcript)
    speakers: list[str] = field(default_factory=list)
    warnings: list[ParseWarning] = field(default_factory=list)
    source: str = "<string>"
