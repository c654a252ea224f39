"""Shared fixtures for stage-presence tests."""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest

from stage_presence.config import ChatSettings, ConfigStore, Settings
from tests.helpers import FakeSleep

_ENV_VARS = (
    "STAGE_ENABLED",
    "STAGE_NUM_LEFT",
    "STAGE_NUM_RIGHT",
    "STAGE_TRANSITION_MS",
    "STAGE_EXPRESSION",
    "STAGE_EXTENSIONS",
    "STAGE_CHARACTERS_DIR",
    "LOG_LEVEL",
)


@pytest.fixture()
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Remove all stage-presence environment variables.

    Patches ``load_dotenv`` so a real ``.env`` file cannot re-inject values
    that the test explicitly removed.
    """
    monkeypatch.setattr("stage_presence.config.load_dotenv", lambda *_a, **_kw: None)
    for key in _ENV_VARS:
        monkeypatch.delenv(key, raising=False)


@pytest.fixture()
def config() -> ConfigStore:
    """A config store with default settings and an empty chat."""
    return ConfigStore(Settings(), ChatSettings())


@pytest.fixture()
def fake_sleep() -> FakeSleep:
    """A recording, non-waiting replacement for ``asyncio.sleep``."""
    return FakeSleep()


@pytest.fixture(autouse=True)
def _reset_root_logger() -> Generator[None, None, None]:
    """Reset the root logger after each test to prevent handler leaks."""
    root = logging.getLogger()
    package = logging.getLogger("stage_presence")
    original_handlers = root.handlers[:]
    original_level = root.level
    original_package_level = package.level
    yield
    root.handlers = original_handlers
    root.setLevel(original_level)
    package.setLevel(original_package_level)
