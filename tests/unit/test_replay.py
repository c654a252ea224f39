"""Unit tests for offline chat log replay."""

from __future__ import annotations

import asyncio
import json

from stage_presence.models.transcript import ChatLogParseResult
from stage_presence.parser import parse_chat_log
from stage_presence.replay import character_names, replay_chat_log, resolve_last_message
from tests.helpers import FakeLocator, make_config


def _log(*rows: dict) -> ChatLogParseResult:
    return parse_chat_log("\n".join(json.dumps(row) for row in rows), source="test.jsonl")


DIALOGUE = (
    {"name": "You", "is_user": True, "mes": "Evening, everyone."},
    {"name": "Alice", "mes": "Hello Bob"},
    {"name": "Narrator", "is_system": True, "mes": "A door creaks."},
    {"name": "Bob", "mes": "Hi Alice, Alice"},
)


class TestCharacterNames:
    """Tests for picking the group from a log."""

    def test_skips_user_and_system_speakers(self) -> None:
        """Only character speakers form the group, first seen first."""
        assert character_names(_log(*DIALOGUE)) == ["Alice", "Bob"]

    def test_empty_log(self) -> None:
        """No messages, no characters."""
        assert character_names(_log()) == []


class TestResolveLastMessage:
    """Tests for one-shot resolution."""

    def test_uses_speakers_by_default(self) -> None:
        """Without members every speaker is a candidate."""
        message, names = resolve_last_message(_log(*DIALOGUE), make_config())

        assert message is not None and message.speaker_name == "Bob"
        assert names == ["Alice"]

    def test_members_override_candidates(self) -> None:
        """Configured members replace the speakers."""
        _, names = resolve_last_message(_log(*DIALOGUE), make_config(members=["You", "Bob"]))

        assert names == []

    def test_explicit_master_names(self) -> None:
        """An explicit master list wins over both."""
        _, names = resolve_last_message(_log(*DIALOGUE), make_config(), master_names=["Zed", "Alice"])

        assert names == ["Alice"]

    def test_empty_log(self) -> None:
        """An empty log resolves to no message and nobody."""
        assert resolve_last_message(_log(), make_config()) == (None, [])


class TestReplayChatLog:
    """Tests for the step-by-step replay."""

    def test_one_step_per_message(self) -> None:
        """Every message, system ones included, yields a recorded step."""
        locator = FakeLocator()

        steps = asyncio.run(replay_chat_log(_log(*DIALOGUE), make_config(), locator=locator))

        assert len(steps) == 4
        assert [step.message.speaker_name for step in steps] == ["You", "Alice", "Narrator", "Bob"]

    def test_roster_and_layout_follow_the_log(self) -> None:
        """The roster tracks the group and the layout follows each message."""
        locator = FakeLocator()

        steps = asyncio.run(replay_chat_log(_log(*DIALOGUE), make_config(), locator=locator))

        last = steps[-1]
        assert last.roster.current == "Alice"
        assert last.roster.left == ("Bob",)
        assert steps[1].layout is not None and steps[1].layout.names == ["Bob"]
        assert last.layout is not None and last.layout.names == ["Alice"]
        assert {name for name, _ in locator.calls} == {"Alice", "Bob"}

    def test_disabled_stage_records_no_layout(self) -> None:
        """With the feature off the steps have no layout."""
        config = make_config()
        config.update_settings(is_enabled=False)

        steps = asyncio.run(replay_chat_log(_log(*DIALOGUE), config, locator=FakeLocator()))

        assert all(step.layout is None for step in steps)
        assert all(step.roster.name_list == () for step in steps)
