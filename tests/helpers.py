"""Builders shared by the stage-presence unit tests."""

from __future__ import annotations

import asyncio

from stage_presence.config import ChatSettings, ConfigStore, Settings
from stage_presence.models.transcript import Message


def make_config(num_left: int = -1, num_right: int = 2, **chat: object) -> ConfigStore:
    """Build a config store with the given capacities and chat settings."""
    return ConfigStore(Settings(num_left=num_left, num_right=num_right), ChatSettings(**chat))


def char(speaker: str, text: str) -> Message:
    """A character message."""
    return Message(text=text, speaker_name=speaker)


def user(speaker: str, text: str) -> Message:
    """A user message."""
    return Message(text=text, speaker_name=speaker, is_user=True)


class FakeSleep:
    """Stand-in for ``asyncio.sleep`` that records delays and yields once."""

    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)
        await asyncio.sleep(0)


class FakeLocator:
    """Returns ``<name>/<expression>.png`` for everyone, recording each call."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.calls: list[tuple[str, str | None]] = []
        self.failing = failing or set()

    async def locate(self, name: str, expression: str | None = None) -> str | None:
        self.calls.append((name, expression))
        if name in self.failing:
            raise OSError(f"disk error for {name}")
        return f"{name}/{expression or 'joy'}.png"
