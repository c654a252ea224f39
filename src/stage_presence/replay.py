"""Offline replay of a parsed chat log through the stage.

Used by the CLI.  :func:`resolve_last_message` answers "who is present in
the last message", and :func:`replay_chat_log` feeds the log to a
:class:`~stage_presence.stage.StageDirector` one message at a time,
recording the roster and the visible slots after each tick.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from stage_presence.config import ConfigStore
from stage_presence.history import MemberSource
from stage_presence.models.transcript import ChatLogParseResult, Message, Transcript
from stage_presence.presence import PresenceResolver
from stage_presence.resources import ResourceLocator
from stage_presence.roster import RosterSnapshot
from stage_presence.stage import StageDirector
from stage_presence.surface import InMemorySurface, StageLayout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationStep:
    """Stage state after one replayed message.

    Attributes:
        message: The message that was just appended.
        roster: Roster snapshot after the tick.
        layout: Rendered layout, or ``None`` if the stage did not run.
    """

    message: Message
    roster: RosterSnapshot
    layout: StageLayout | None


def character_names(result: ChatLogParseResult) -> list[str]:
    """Speakers of character (non-user, non-system) messages, first seen first."""
    names = (
        m.speaker_name
        for m in result.transcript
        if m.speaker_name and not m.is_user and not m.is_system
    )
    return list(dict.fromkeys(names))


def resolve_last_message(
    result: ChatLogParseResult,
    config: ConfigStore,
    master_names: Sequence[str] | None = None,
) -> tuple[Message | None, list[str]]:
    """Resolve who is present in the last non-system message of *result*.

    Args:
        result: The parsed chat log.
        config: Settings; the chat's custom members and exclude list apply.
        master_names: Priority list.  Defaults to the custom members, else
            every speaker in order of first appearance.

    Returns:
        The message that was resolved and the ordered present names.
    """
    if master_names is None:
        master_names = config.chat.members or result.speakers
    message = result.transcript.last_message()
    names = PresenceResolver(config).resolve(message, list(master_names))
    logger.info("Resolved %d present name(s) from %s", len(names), result.source)
    return message, names


async def replay_chat_log(
    result: ChatLogParseResult,
    config: ConfigStore,
    locator: ResourceLocator | None = None,
) -> list[SimulationStep]:
    """Replay *result* message by message through a fresh stage.

    The character speakers of the whole log form the group.  The stage is
    ticked directly after each message instead of running its loop, and
    every image lookup is awaited before the step is recorded.
    """
    surface = InMemorySurface()
    director = StageDirector(
        config,
        Transcript(),
        surface,
        locator=locator,
        source=MemberSource(group_members=character_names(result)),
    )
    await director.start(run_loop=False)

    steps: list[SimulationStep] = []
    try:
        for message in result.transcript:
            director.transcript.append(message)
            layout = await director.tick()
            await director.wait_for_lookups()
            steps.append(SimulationStep(message, director.engine.snapshot(), layout))
    finally:
        director.stop()

    logger.info("Replayed %d message(s) from %s", len(steps), result.source)
    return steps
