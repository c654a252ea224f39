"""Capacity-bounded roster and left/right slot assignment.

:class:`RosterEngine` owns the long-lived roster: every tracked name, the
``current`` name, and the ``left`` and ``right`` groups.  Each call to
:meth:`RosterEngine.refresh` reconciles that state against a freshly
computed desired name list in six passes:

1. diff the desired names against the tracked names,
2. drop removed names everywhere (detaching their handles),
3. shrink sides that exceed a lowered capacity into *purgatory*,
4. place added names,
5. re-place purgatory, evicting what no longer fits,
6. backfill unplaced names while any capacity remains.

A side capacity of ``-1`` means unbounded.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal, Protocol

from stage_presence.config import UNBOUNDED, ConfigStore
from stage_presence.exceptions import RosterConsistencyError

logger = logging.getLogger(__name__)

Side = Literal["left", "right"]


class HandleSink(Protocol):
    """Receives visual handle lifecycle signals for roster names."""

    def attach(self, name: str) -> None: ...

    def detach(self, name: str) -> None: ...


@dataclass(frozen=True)
class RosterSnapshot:
    """Read-only view of the roster taken after a refresh.

    Attributes:
        name_list: Every tracked name, in the order it was added.
        left: Names assigned to the left group.
        right: Names assigned to the right group.
        current: The most recently added name awaiting assignment.
        handles: Names currently holding a visual handle.
    """

    name_list: tuple[str, ...] = ()
    left: tuple[str, ...] = ()
    right: tuple[str, ...] = ()
    current: str | None = None
    handles: frozenset[str] = frozenset()

    @property
    def unassigned(self) -> tuple[str, ...]:
        """Tracked names that are neither current nor on a side."""
        placed = set(self.left) | set(self.right) | {self.current}
        return tuple(name for name in self.name_list if name not in placed)


@dataclass
class RosterChange:
    """What a single refresh did.

    Attributes:
        added: Names newly tracked.
        removed: Names no longer tracked.
        attached: Names that received a visual handle.
        detached: Names whose handle was removed because they left.
        evicted: Names whose handle was removed because no side had room
            for them after a capacity change.
    """

    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    attached: list[str] = field(default_factory=list)
    detached: list[str] = field(default_factory=list)
    evicted: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.added or self.removed or self.attached or self.detached or self.evicted)


class RosterEngine:
    """Owns and incrementally reconciles the roster.

    Capacities are read from *config* at the start of every refresh.  All
    handle signals go to *sink*; the engine never touches visuals itself.
    """

    def __init__(self, config: ConfigStore, sink: HandleSink | None = None) -> None:
        self._config = config
        self._sink = sink
        self._busy = False
        self._name_list: list[str] = []
        self._left: list[str] = []
        self._right: list[str] = []
        self._current: str | None = None
        self._handles: set[str] = set()

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def name_list(self) -> list[str]:
        return list(self._name_list)

    def has_handle(self, name: str) -> bool:
        return name in self._handles

    def snapshot(self) -> RosterSnapshot:
        """Return an immutable copy of the current roster state."""
        return RosterSnapshot(
            name_list=tuple(self._name_list),
            left=tuple(self._left),
            right=tuple(self._right),
            current=self._current,
            handles=frozenset(self._handles),
        )

    def clear(self) -> None:
        """Forget every name.  No detach signals are sent."""
        self._name_list.clear()
        self._left.clear()
        self._right.clear()
        self._current = None
        self._handles.clear()

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def refresh(self, desired_names: Sequence[str]) -> RosterChange | None:
        """Reconcile the roster against *desired_names*.

        Args:
            desired_names: The names that should be tracked, in priority
                order.  Duplicates are ignored.

        Returns:
            The :class:`RosterChange` applied, or ``None`` if a refresh was
            already running and this call was skipped.
        """
        if self._busy:
            logger.debug("Roster refresh skipped: already running")
            return None

        self._busy = True
        try:
            return self._reconcile(list(dict.fromkeys(desired_names)))
        finally:
            self._busy = False

    def _reconcile(self, desired: list[str]) -> RosterChange:
        settings = self._config.settings
        num_left, num_right = settings.num_left, settings.num_right

        tracked = set(self._name_list)
        wanted = set(desired)
        change = RosterChange(
            removed=[name for name in self._name_list if name not in wanted],
            added=[name for name in desired if name not in tracked],
        )

        for name in change.removed:
            try:
                self._remove(name)
            except RosterConsistencyError as exc:
                logger.error("Roster inconsistency while removing %r: %s", exc.name, exc)
                continue
            if self._drop_handle(name):
                change.detached.append(name)

        purgatory: list[str] = []
        while self._left and num_left != UNBOUNDED and len(self._left) > num_left:
            purgatory.append(self._left.pop())
        while self._right and num_right != UNBOUNDED and len(self._right) > num_right:
            purgatory.append(self._right.pop())

        for name in change.added:
            self._name_list.append(name)
            self._place(name, num_left, num_right)
            self._add_handle(name)
            change.attached.append(name)

        for name in purgatory:
            if not self._place(name, num_left, num_right) and self._drop_handle(name):
                change.evicted.append(name)

        placed = set(self._left) | set(self._right)
        queue = [
            name for name in self._name_list if name not in placed and name != self._current
        ]
        while queue and self._has_room(num_left, num_right):
            name = queue.pop()
            if self._place(name, num_left, num_right) and name not in self._handles:
                self._add_handle(name)
                change.attached.append(name)

        if change.changed:
            logger.debug(
                "Roster refreshed: +%s -%s evicted=%s left=%s right=%s current=%r",
                change.added,
                change.removed,
                change.evicted,
                self._left,
                self._right,
                self._current,
            )
        return change

    def _remove(self, name: str) -> None:
        if name not in self._name_list:
            raise RosterConsistencyError("name is not tracked", name=name)
        self._name_list.remove(name)
        if name in self._left:
            self._left.remove(name)
        elif name in self._right:
            self._right.remove(name)
        elif self._current == name:
            self._current = None

    def _has_room(self, num_left: int, num_right: int) -> bool:
        return (
            num_left == UNBOUNDED
            or num_right == UNBOUNDED
            or len(self._left) < num_left
            or len(self._right) < num_right
            or self._current is None
        )

    def _select_side(self, num_left: int, num_right: int) -> Side | None:
        left, right = len(self._left), len(self._right)
        if (left < num_left or num_left == UNBOUNDED) and (left <= right or right >= num_right):
            return "left"
        if right < num_right or num_right == UNBOUNDED:
            return "right"
        return None

    def _place(self, name: str, num_left: int, num_right: int) -> bool:
        """Make *name* current or put it on a side.  ``False`` if nothing fits."""
        if self._current is None:
            self._current = name
            return True
        side = self._select_side(num_left, num_right)
        if side == "left":
            self._left.append(name)
        elif side == "right":
            self._right.append(name)
        else:
            return False
        return True

    def _add_handle(self, name: str) -> None:
        self._handles.add(name)
        if self._sink is not None:
            self._sink.attach(name)

    def _drop_handle(self, name: str) -> bool:
        if name not in self._handles:
            return False
        self._handles.discard(name)
        if self._sink is not None:
            self._sink.detach(name)
        return True
