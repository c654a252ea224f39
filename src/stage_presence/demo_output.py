"""Console output for the stage-presence CLI.

:func:`format_resolution` renders the presence order of one message and
:func:`format_simulation` renders a replayed chat log step by step.  Both
return strings; the ``print_*`` wrappers write them to stdout.
"""

from __future__ import annotations

import sys
from collections.abc import Sequence

from stage_presence.models.transcript import Message
from stage_presence.replay import SimulationStep

_BANNER_WIDTH = 60
_SEPARATOR = "=" * _BANNER_WIDTH
_PREVIEW_CHARS = 48


def format_resolution(source: str, message: Message | None, names: Sequence[str]) -> str:
    """Render the presence order resolved for the last message of a log."""
    lines: list[str] = []
    _append_banner(lines, "PRESENCE")
    lines.append(f"  Log: {source}")
    if message is None:
        lines.append("  No messages.")
    else:
        lines.append(f"  Last message: {_describe(message)}")
        lines.append(f"  Present: {', '.join(names) if names else 'nobody'}")
    lines.append(_SEPARATOR)
    return "\n".join(lines)


def format_simulation(source: str, steps: Sequence[SimulationStep]) -> str:
    """Render every step of a replayed chat log."""
    lines: list[str] = []
    _append_banner(lines, "STAGE SIMULATION")
    lines.append(f"  Log: {source}")
    lines.append(f"  Messages: {len(steps)}")

    for idx, step in enumerate(steps, start=1):
        lines.append("")
        lines.append(f"--- Message {idx}: {_describe(step.message)} ---")
        if step.layout is None:
            lines.append("  Stage not running.")
            continue
        roster = step.roster
        lines.append(f"  Current: {roster.current or '-'}")
        lines.append(f"  Left: {_join(roster.left)}")
        lines.append(f"  Right: {_join(roster.right)}")
        if roster.unassigned:
            lines.append(f"  Waiting: {_join(roster.unassigned)}")
        slots = [
            f"{slot.order}:{slot.name}({slot.side})" for slot in step.layout.slots
        ]
        lines.append(f"  Visible: {_join(slots)}")
        if step.layout.highlighted:
            lines.append(f"  Highlighted: {step.layout.highlighted}")

    lines.append(_SEPARATOR)
    return "\n".join(lines)


def print_resolution(source: str, message: Message | None, names: Sequence[str]) -> None:
    sys.stdout.write(format_resolution(source, message, names) + "\n")


def print_simulation(source: str, steps: Sequence[SimulationStep]) -> None:
    sys.stdout.write(format_simulation(source, steps) + "\n")


def _append_banner(lines: list[str], title: str) -> None:
    lines.append(_SEPARATOR)
    lines.append(f"  {title}")
    lines.append(_SEPARATOR)


def _join(items: Sequence[str]) -> str:
    return ", ".join(items) if items else "-"


def _describe(message: Message) -> str:
    """One-line summary: ``[Speaker] text preview``."""
    speaker = message.speaker_name or "?"
    if message.is_user:
        speaker += " (user)"
    text = " ".join(message.text.split())
    if len(text) > _PREVIEW_CHARS:
        text = text[: _PREVIEW_CHARS - 3] + "..."
    return f"[{speaker}] {text}"
