"""Rendering surface contract and visible-slot layout.

The engine does not draw anything.  It tells a :class:`RenderSurface` when a
participant gains or loses its visual handle, which image to show for it,
and, after every tick, which participants occupy the visible slots.
:class:`InMemorySurface` is the in-process implementation used by the CLI
and the tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from stage_presence.roster import Side

MAX_VISIBLE_SLOTS = 4


@dataclass(frozen=True)
class VisibleSlot:
    """One occupied visible slot.

    Attributes:
        name: Participant shown in the slot.
        order: Slot index, 0 being the primary slot.
        side: Screen side the slot belongs to.
    """

    name: str
    order: int
    side: Side


@dataclass(frozen=True)
class StageLayout:
    """Everything the surface needs to draw one tick.

    Attributes:
        slots: Occupied slots, primary first, at most
            :data:`MAX_VISIBLE_SLOTS`.
        highlighted: Name of the character who wrote the last message when
            they hold the primary slot, else ``None``.
    """

    slots: tuple[VisibleSlot, ...] = ()
    highlighted: str | None = None

    @property
    def visible_count(self) -> int:
        return len(self.slots)

    @property
    def names(self) -> list[str]:
        return [slot.name for slot in self.slots]


def slot_side(order: int, visible_count: int) -> Side:
    """Side of slot *order* when *visible_count* slots are shown.

    One slot sits on the left; with two or three, the primary slot is on the
    left and the rest on the right; with four, two per side.
    """
    if visible_count >= MAX_VISIBLE_SLOTS:
        return "left" if order <= 1 else "right"
    return "left" if order == 0 else "right"


def build_layout(ordered_names: Sequence[str], last_speaker: str | None = None) -> StageLayout:
    """Lay out the first :data:`MAX_VISIBLE_SLOTS` of *ordered_names*.

    Args:
        ordered_names: Present participants, primary first.
        last_speaker: Author of the latest character message, if the latest
            message was not written by the user.
    """
    names = list(ordered_names[:MAX_VISIBLE_SLOTS])
    slots = tuple(
        VisibleSlot(name=name, order=order, side=slot_side(order, len(names)))
        for order, name in enumerate(names)
    )
    highlighted = names[0] if names and last_speaker and names[0] == last_speaker else None
    return StageLayout(slots=slots, highlighted=highlighted)


class RenderSurface(Protocol):
    """What the engine drives on the host's display."""

    def attach(self, name: str) -> None: ...

    def detach(self, name: str) -> None: ...

    def set_resource(self, name: str, locator: str | None) -> None: ...

    def render(self, layout: StageLayout) -> None: ...


@dataclass
class InMemorySurface:
    """Records every surface call; holds the latest state for inspection.

    Attributes:
        attached: Names currently holding a handle.
        resources: Last locator set per name (``None`` = fallback image).
        layout: The most recently rendered layout.
        events: Every call, in order, as ``(kind, *args)`` tuples.
    """

    attached: set[str] = field(default_factory=set)
    resources: dict[str, str | None] = field(default_factory=dict)
    layout: StageLayout = field(default_factory=StageLayout)
    events: list[tuple[Any, ...]] = field(default_factory=list)

    def attach(self, name: str) -> None:
        self.attached.add(name)
        self.events.append(("attach", name))

    def detach(self, name: str) -> None:
        self.attached.discard(name)
        self.resources.pop(name, None)
        self.events.append(("detach", name))

    def set_resource(self, name: str, locator: str | None) -> None:
        self.resources[name] = locator
        self.events.append(("resource", name, locator))

    def render(self, layout: StageLayout) -> None:
        self.layout = layout
        self.events.append(("render", layout))
