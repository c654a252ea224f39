"""Presence detection and ordering for a single message.

:class:`PresenceCounter` counts word-bounded mentions of a name in the plain
(unbracketed) spans of a text.  :class:`PresenceResolver` turns those counts
into the ordered list of participants present in a message:

1. more mentions first,
2. then earlier first mention,
3. then earlier position in the master name list.

Two rules then adjust the head of the list around the user's own name: a
user message always puts the user first, while a message that merely
mentions the user never lets the user take the primary slot if anyone else
is present.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from dataclasses import dataclass

from stage_presence.config import ConfigStore
from stage_presence.models.transcript import Message
from stage_presence.spans import Span, get_non_bracket_spans

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OccurrenceCount:
    """Mentions of one name in a text.

    Attributes:
        count: Number of word-bounded, non-overlapping matches.
        first_index: Absolute index of the earliest match, or ``None``.
    """

    count: int = 0
    first_index: int | None = None


@dataclass
class PresenceItem:
    """Ranking record for one present participant.

    Attributes:
        name: Participant name as it appears in the master list.
        count: Mentions outside bracket spans.
        first_index: Earliest unbracketed mention, ``None`` sorts last.
        master_index: Position in the master name list (tie-break).
        forced: ``True`` when the user's presence was forced by authorship.
    """

    name: str
    count: int
    first_index: int | None
    master_index: int
    forced: bool = False

    def sort_key(self) -> tuple[int, float, int]:
        first = math.inf if self.first_index is None else self.first_index
        return (-self.count, first, self.master_index)


class PresenceCounter:
    """Counts word-bounded mentions of names, memoizing one regex per name.

    The memo is keyed by the lowercased name and never evicted; it grows
    with the number of distinct names seen, which is bounded by the roster
    sizes the engine works with.
    """

    def __init__(self) -> None:
        self._patterns: dict[str, re.Pattern[str]] = {}

    @property
    def cache_size(self) -> int:
        return len(self._patterns)

    def pattern_for(self, name: str) -> re.Pattern[str]:
        """Return the compiled, case-insensitive word pattern for *name*."""
        key = name.lower()
        pattern = self._patterns.get(key)
        if pattern is None:
            pattern = re.compile(rf"(?<!\w){re.escape(name)}(?!\w)", re.IGNORECASE)
            self._patterns[key] = pattern
        return pattern

    def count_occurrences(self, name: str, spans: Sequence[Span]) -> OccurrenceCount:
        """Count mentions of *name* inside *spans*.

        Args:
            name: The participant name to look for.
            spans: Plain spans carrying their substring in ``text``; spans
                without text are skipped.

        Returns:
            The total count and the smallest absolute match position.
        """
        pattern = self.pattern_for(name)
        count = 0
        first_index: int | None = None
        for span in spans:
            if not span.text:
                continue
            for match in pattern.finditer(span.text):
                count += 1
                absolute = span.start + match.start()
                if first_index is None or absolute < first_index:
                    first_index = absolute
        return OccurrenceCount(count, first_index)


class PresenceResolver:
    """Resolves the ordered list of participants present in a message.

    The resolver reads the exclude list and the custom member override from
    *config* on every call.
    """

    def __init__(self, config: ConfigStore, counter: PresenceCounter | None = None) -> None:
        self._config = config
        self.counter = counter or PresenceCounter()
        self._last_order: list[str] | None = None

    def user_name(self, master_names: Sequence[str]) -> str | None:
        """The user's name: first custom member, else the head of *master_names*."""
        members = self._config.chat.members
        if members:
            return members[0]
        return master_names[0] if master_names else None

    def resolve(self, message: Message | None, master_names: Sequence[str]) -> list[str]:
        """Return the names present in *message*, primary slot first.

        Args:
            message: The most recent non-system message, or ``None``.
            master_names: Priority-ordered, unique participant names.

        Returns:
            Ordered names judged present; empty when nobody is.
        """
        text = message.text if message is not None else ""
        is_user = message is not None and message.is_user
        user_name = self.user_name(master_names)
        if not text and is_user:
            return [user_name] if user_name else []

        spans = get_non_bracket_spans(text)
        chat = self._config.chat
        items: list[PresenceItem] = []
        for master_index, name in enumerate(master_names):
            if chat.is_excluded(name):
                continue
            occurrences = self.counter.count_occurrences(name, spans)
            if occurrences.count > 0:
                items.append(
                    PresenceItem(
                        name=name,
                        count=occurrences.count,
                        first_index=occurrences.first_index,
                        master_index=master_index,
                    )
                )

        if is_user and user_name:
            existing = next((item for item in items if item.name == user_name), None)
            if existing is None:
                items.append(
                    PresenceItem(user_name, count=1, first_index=0, master_index=0, forced=True)
                )
            else:
                existing.forced = True

        items.sort(key=PresenceItem.sort_key)

        user_idx = next((i for i, item in enumerate(items) if item.name == user_name), -1)
        if user_name and not is_user and user_idx == 0 and len(items) > 1:
            items[0], items[1] = items[1], items[0]
        if user_name and is_user and user_idx > 0:
            items.insert(0, items.pop(user_idx))

        names = [item.name for item in items]
        if names != self._last_order:
            logger.debug(
                "Presence counts: %s",
                [(item.name, item.count, item.first_index, item.forced) for item in items],
            )
            logger.debug("Ordered names: %s", names)
            self._last_order = names
        return names
