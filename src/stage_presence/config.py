"""Configuration loading for stage-presence.

Two layers of configuration feed the engine:

- :class:`Settings` -- global, read from environment variables (with ``.env``
  support via python-dotenv) by :func:`load_settings`.
- :class:`ChatSettings` -- per-chat metadata (excluded names, custom member
  list, expression overrides), validated with pydantic from whatever dict
  the host stores alongside a chat.

:class:`ConfigStore` holds the current value of both.  The engine reads it
at the start of every cycle, so edits take effect on the next tick.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

UNBOUNDED = -1

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

_MINIMUMS = (("num_left", UNBOUNDED), ("num_right", UNBOUNDED), ("transition_ms", 0))


class ConfigError(Exception):
    """Raised when configuration values are missing or invalid."""


@dataclass(frozen=True)
class Settings:
    """Global settings loaded from environment variables.

    Attributes:
        is_enabled: Master switch; a disabled engine never starts and its
            periodic loop ends.
        num_left: Capacity of the left group, ``-1`` for unbounded.
        num_right: Capacity of the right group, ``-1`` for unbounded.
        transition_ms: Animation duration in milliseconds.  Drives the
            re-evaluation interval and the restart delay.
        expression: Default expression used for resource lookups.
        extensions: File extensions tried, in order, by the image locator.
        characters_dir: Root directory holding per-character image folders.
        log_level: Logging level (default ``"INFO"``).
    """

    is_enabled: bool = True
    num_left: int = UNBOUNDED
    num_right: int = 2
    transition_ms: int = 400
    expression: str = "joy"
    extensions: tuple[str, ...] = ("png",)
    characters_dir: str = "characters"
    log_level: str = "INFO"

    @property
    def tick_interval(self) -> float:
        """Seconds between two re-evaluation ticks (never below one second)."""
        return max(self.transition_ms + 100, 1000) / 1000

    @property
    def restart_delay(self) -> float:
        """Seconds to wait between tear-down and set-up during a restart."""
        return max(550, self.transition_ms + 150) / 1000


def _parse_bool(env_var: str, raw: str, errors: list[str]) -> bool | None:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    errors.append(f"{env_var}={raw!r} (expected a boolean)")
    return None


def _parse_int(env_var: str, raw: str, errors: list[str], minimum: int) -> int | None:
    try:
        value = int(raw.strip())
    except ValueError:
        errors.append(f"{env_var}={raw!r} (expected an integer)")
        return None
    if value < minimum:
        errors.append(f"{env_var}={raw!r} (must be >= {minimum})")
        return None
    return value


def load_settings() -> Settings:
    """Load and validate settings from environment variables.

    Calls :func:`dotenv.load_dotenv` so a ``.env`` file in the working
    directory is picked up automatically.  Unset or blank variables keep
    their :class:`Settings` defaults.

    Returns:
        A validated :class:`Settings` instance.

    Raises:
        ConfigError: If any variable holds an unparsable or out-of-range
            value.  The error message names **all** offending variables.
    """
    load_dotenv()

    values: dict[str, Any] = {}
    errors: list[str] = []

    def _raw(env_var: str) -> str:
        return os.environ.get(env_var, "").strip()

    if raw := _raw("STAGE_ENABLED"):
        values["is_enabled"] = _parse_bool("STAGE_ENABLED", raw, errors)

    for env_var, field_name, minimum in (
        ("STAGE_NUM_LEFT", "num_left", UNBOUNDED),
        ("STAGE_NUM_RIGHT", "num_right", UNBOUNDED),
        ("STAGE_TRANSITION_MS", "transition_ms", 0),
    ):
        if raw := _raw(env_var):
            values[field_name] = _parse_int(env_var, raw, errors, minimum)

    if raw := _raw("STAGE_EXPRESSION"):
        values["expression"] = raw
    if raw := _raw("STAGE_EXTENSIONS"):
        extensions = tuple(ext.strip().lstrip(".") for ext in raw.split(",") if ext.strip())
        if extensions:
            values["extensions"] = extensions
    if raw := _raw("STAGE_CHARACTERS_DIR"):
        values["characters_dir"] = raw
    if raw := _raw("LOG_LEVEL"):
        values["log_level"] = raw

    if errors:
        raise ConfigError(f"Invalid environment variables: {', '.join(errors)}")

    return Settings(**values)


# ---------------------------------------------------------------------------
# Per-chat settings
# ---------------------------------------------------------------------------


def _split_names(value: Any) -> list[str]:
    """Accept a comma-separated string or an iterable of names."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(item).strip() for item in value if str(item).strip()]


class ExpressionOverride(BaseModel):
    """A manually chosen expression for one member.

    Attributes:
        emote: Expression name passed to the resource locator.
        is_locked: When ``True``, external expression changes for this
            member are ignored.
    """

    model_config = ConfigDict(populate_by_name=True)

    emote: str
    is_locked: bool = Field(default=False, alias="isLocked")


class ChatSettings(BaseModel):
    """Per-chat settings stored with the chat metadata.

    Attributes:
        exclude: Lowercased names that are never counted as present and are
            dropped from the group member list.
        members: Explicit ordered member override.  When non-empty it
            replaces the group as the master name source and its first
            entry is the user's name.
        emotes: Per-member expression overrides.
        path: Extra directory under the characters root used for lookups.
    """

    model_config = ConfigDict(validate_assignment=True, extra="ignore")

    exclude: list[str] = Field(default_factory=list)
    members: list[str] = Field(default_factory=list)
    emotes: dict[str, ExpressionOverride] = Field(default_factory=dict)
    path: str | None = None

    @field_validator("exclude", mode="before")
    @classmethod
    def _normalize_exclude(cls, value: Any) -> list[str]:
        return [name.lower() for name in _split_names(value)]

    @field_validator("members", mode="before")
    @classmethod
    def _normalize_members(cls, value: Any) -> list[str]:
        return _split_names(value)

    def is_excluded(self, name: str) -> bool:
        """Return ``True`` if *name* is on the exclude list (case-insensitive)."""
        return name.lower() in self.exclude


class ConfigStore:
    """Mutable holder for the current :class:`Settings` and :class:`ChatSettings`.

    The engine never caches values read from the store; every cycle asks
    again, so replacing either object is all an editor has to do.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        chat: ChatSettings | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.chat = chat or ChatSettings()

    def update_settings(self, **changes: Any) -> Settings:
        """Replace the global settings with a copy carrying *changes*.

        Raises:
            ConfigError: If a capacity is below ``-1`` or the transition
                time is negative.  The current settings are kept.
        """
        updated = dataclasses.replace(self.settings, **changes)
        errors = [
            f"{field_name}={getattr(updated, field_name)!r} (must be >= {minimum})"
            for field_name, minimum in _MINIMUMS
            if getattr(updated, field_name) < minimum
        ]
        if errors:
            raise ConfigError(f"Invalid settings: {', '.join(errors)}")
        self.settings = updated
        return self.settings

    def load_chat(self, metadata: dict[str, Any] | None) -> ChatSettings:
        """Validate *metadata* into fresh chat settings and make them current."""
        self.chat = ChatSettings.model_validate(metadata or {})
        return self.chat
