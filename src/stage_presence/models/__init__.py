"""Data models for stage-presence."""

from __future__ import annotations

from stage_presence.models.transcript import (
    ChatLogParseResult,
    Message,
    ParseWarning,
    Transcript,
)

__all__ = [
    "ChatLogParseResult",
    "Message",
    "ParseWarning",
    "Transcript",
]
