"""Custom exceptions for stage-presence.

Exception hierarchy::

    StagePresenceError          (base for all package errors)
    +-- RosterConsistencyError  (roster bookkeeping out of sync)
    +-- ChatLogError            (chat log file cannot be read)

Lookup misses and empty messages are normal outcomes and never raise.
"""

from __future__ import annotations


class StagePresenceError(Exception):
    """Base exception for stage-presence errors."""


class RosterConsistencyError(StagePresenceError):
    """Raised when the roster's internal bookkeeping disagrees with itself.

    The roster engine raises this while reconciling a single name and catches
    it at the per-name boundary: the fault is logged and the name skipped so
    the rest of the refresh still completes.

    Attributes:
        name: The participant name whose bookkeeping was inconsistent.
    """

    def __init__(self, message: str, name: str = "") -> None:
        super().__init__(message)
        self.name = name


class ChatLogError(StagePresenceError):
    """Raised when a chat log file cannot be opened or decoded.

    Individual malformed lines are not errors; they are reported as
    :class:`~stage_presence.models.transcript.ParseWarning` entries.

    Attributes:
        source: Path of the chat log that failed to load.
    """

    def __init__(self, message: str, source: str = "") -> None:
        super().__init__(message)
        self.source = source
