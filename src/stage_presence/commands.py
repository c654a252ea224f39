"""Command-style entry points that edit per-chat settings.

These mirror the two chat commands hosts expose to users and scripts:

- ``members``: set or clear the custom member list (JSON list argument),
- ``emote``: set, lock or clear a member's expression override.

Both return their current value as a string so a command pipeline can
print or chain it.
"""

from __future__ import annotations

import asyncio
import json
import logging

from stage_presence.config import ExpressionOverride
from stage_presence.stage import StageDirector

logger = logging.getLogger(__name__)

_TRUE_WORDS = {"true", "on"}


def is_true_boolean(value: str | bool | None) -> bool:
    """Interpret a command flag; only ``"true"`` and ``"on"`` are true."""
    if isinstance(value, bool):
        return value
    return value is not None and value.strip().lower() in _TRUE_WORDS


def _log_restart_failure(future: asyncio.Future[bool]) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Restart after members change failed: %s", exc, exc_info=exc)


class StageCommands:
    """Command handlers bound to one :class:`StageDirector`."""

    def __init__(self, director: StageDirector) -> None:
        self._director = director
        self.pending_restart: asyncio.Future[bool] | None = None

    def members(self, value: str | None = None) -> str:
        """Set the custom member list from a JSON list; ``[]`` clears it.

        A missing or unparsable *value* leaves the list unchanged.  A change
        schedules a restart of the stage, so this must be called from a
        running event loop.  The restart future is kept in
        :attr:`pending_restart` and a failed restart is logged.

        Returns:
            The current member list as JSON.
        """
        chat = self._director.config.chat
        if value:
            try:
                names = json.loads(value)
            except json.JSONDecodeError:
                names = None
            if isinstance(names, list):
                chat.members = [str(name) for name in names]
                logger.info("Custom members set to %s", chat.members)
                self._watch_restart(self._director.restart())
            else:
                logger.debug("Ignoring members value %r: not a JSON list", value)
        return json.dumps(chat.members)

    def _watch_restart(self, future: asyncio.Future[bool]) -> None:
        # Calls within one debounce window share a future; watch it once.
        if future is self.pending_restart:
            return
        self.pending_restart = future
        future.add_done_callback(_log_restart_failure)

    def emote(
        self,
        value: str | None = None,
        name: str | None = None,
        lock: str | bool | None = False,
        clear: str | bool | None = False,
    ) -> str:
        """Set, lock or clear the expression override of a member.

        Args:
            value: Expression to set; empty just returns the current one.
            name: Member to edit.  Defaults to the author of the latest
                character message, then the active character.
            lock: When true, external expression changes are ignored for
                this member.
            clear: When true, remove the override.

        Returns:
            The override as JSON, or ``""`` when there is none.
        """
        director = self._director
        chat = director.config.chat
        if name is None:
            last_char = director.transcript.last_character_message(director.engine.name_list)
            name = last_char.speaker_name if last_char else director.source.character
        if not name:
            return ""

        if is_true_boolean(clear):
            chat.emotes.pop(name, None)
            logger.info("Expression override cleared for %s", name)
            return ""

        if value:
            chat.emotes[name] = ExpressionOverride(emote=value, is_locked=is_true_boolean(lock))
            logger.info("Expression override for %s set to %r", name, value)
            if director.engine.has_handle(name):
                director.lookup(name, value)

        override = chat.emotes.get(name)
        if override is None:
            return ""
        return json.dumps(override.model_dump(by_alias=True))
