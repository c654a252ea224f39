"""Priority ordering of participants from transcript history.

The roster engine places names in the order it receives them, so the master
name list handed to it each cycle is ordered from the conversation so far.
Two orderings exist:

- :func:`order_from_history` -- who was speaking or mentioned most recently,
  used with an explicit custom member list.
- :func:`order_by_speaker` -- who spoke, used with group members.

:func:`collect_master_names` picks the right source for the current chat.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from stage_presence.config import ChatSettings
from stage_presence.models.transcript import Message
from stage_presence.presence import PresenceCounter
from stage_presence.spans import Span


@dataclass(frozen=True)
class MemberSource:
    """Who could be on stage, as reported by the host.

    Attributes:
        group_members: Members of the active group chat, in group order.
        character: The single active character outside group chats.
    """

    group_members: list[str] = field(default_factory=list)
    character: str | None = None


def order_from_history(
    names: Sequence[str],
    messages: Iterable[Message],
    counter: PresenceCounter | None = None,
) -> list[str]:
    """Order *names* by their most recent appearance in *messages*.

    Character messages are scanned newest first.  A name is observed in a
    message when it is the speaker or is mentioned word-bounded anywhere in
    the text.  Names first observed in the same message are ordered by
    their earliest mention; a speaker who does not mention themselves leads
    their own message.  The scan stops once every name is placed.

    Args:
        names: Candidate names; duplicates are ignored.
        messages: Transcript messages, oldest first.
        counter: Shared counter, to reuse its compiled patterns.

    Returns:
        The observed names only, most recent first.
    """
    counter = counter or PresenceCounter()
    remaining = list(dict.fromkeys(names))
    order: list[str] = []

    for message in reversed(list(messages)):
        if not remaining:
            break
        if message.is_system or message.is_user:
            continue

        whole = [Span(0, len(message.text), message.text)]
        observed: list[tuple[int, str]] = []
        for name in remaining:
            occurrences = counter.count_occurrences(name, whole)
            if occurrences.first_index is not None:
                observed.append((occurrences.first_index, name))
            elif name == message.speaker_name:
                observed.append((-1, name))

        observed.sort(key=lambda pair: pair[0])
        for _, name in observed:
            order.append(name)
            remaining.remove(name)

    return order


def order_by_speaker(names: Sequence[str], messages: Iterable[Message]) -> list[str]:
    """Order *names* by when they last spoke.

    Character messages are scanned newest first and each newly seen speaker
    is put at the front, so the result ends with the most recent speaker.
    Names that never spoke are left out.
    """
    wanted = set(names)
    order: list[str] = []
    for message in reversed(list(messages)):
        if len(order) >= len(wanted):
            break
        if message.is_system or message.is_user:
            continue
        if message.speaker_name in wanted and message.speaker_name not in order:
            order.insert(0, message.speaker_name)
    return order


def collect_master_names(
    chat: ChatSettings,
    source: MemberSource,
    messages: Iterable[Message],
    counter: PresenceCounter | None = None,
) -> list[str]:
    """Build the master name list for one refresh cycle.

    Precedence: the chat's custom member list, then the group members
    (without excluded names), then the single active character.
    """
    messages = list(messages)

    if chat.members:
        members = list(dict.fromkeys(chat.members))
        ordered = order_from_history(members, messages, counter)
        return ordered + [name for name in members if name not in ordered]

    if source.group_members:
        members = [
            name
            for name in dict.fromkeys(source.group_members)
            if name.strip() and not chat.is_excluded(name)
        ]
        ordered = order_by_speaker(members, messages)
        return ordered + [name for name in members if name not in ordered]

    if source.character and source.character.strip():
        return [source.character]
    return []
