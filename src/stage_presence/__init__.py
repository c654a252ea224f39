"""stage-presence: who is on stage in a multi-party chat.

Resolves which participants are present in the latest chat message and
assigns them to capacity-bounded left/right slots, re-deriving the
assignment as the conversation moves on.
"""

from __future__ import annotations

from stage_presence.config import ChatSettings, ConfigStore, Settings, load_settings
from stage_presence.exceptions import ChatLogError, RosterConsistencyError, StagePresenceError
from stage_presence.models.transcript import ChatLogParseResult, Message, ParseWarning, Transcript
from stage_presence.parser import parse_chat_log, parse_chat_log_file
from stage_presence.presence import PresenceCounter, PresenceResolver
from stage_presence.roster import RosterEngine, RosterSnapshot
from stage_presence.spans import Span, get_non_bracket_spans, parse_bracket_spans
from stage_presence.stage import StageDirector

__version__ = "0.1.0"

__all__ = [
    "ChatLogError",
    "ChatLogParseResult",
    "ChatSettings",
    "ConfigStore",
    "Message",
    "ParseWarning",
    "PresenceCounter",
    "PresenceResolver",
    "RosterConsistencyError",
    "RosterEngine",
    "RosterSnapshot",
    "Settings",
    "Span",
    "StageDirector",
    "StagePresenceError",
    "Transcript",
    "get_non_bracket_spans",
    "load_settings",
    "parse_bracket_spans",
    "parse_chat_log",
    "parse_chat_log_file",
]
