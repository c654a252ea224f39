"""Logging setup for stage-presence.

One stderr handler with pipe-separated fields and ISO 8601 timestamps.
Verbose mode turns on DEBUG output for the ``stage_presence`` loggers only,
so roster and presence traces can be read without debug noise from asyncio
or the host application.
"""

from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "stage_presence"

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# Set on the handler we install; other root handlers are never touched.
_HANDLER_ATTR = "_stage_presence_log_handler"


def _level_number(level: str) -> int:
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Invalid log level: {level!r}")
    return numeric_level


def _find_handler(root: logging.Logger) -> logging.Handler | None:
    for handler in root.handlers:
        if getattr(handler, _HANDLER_ATTR, False):
            return handler
    return None


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Install (or re-level) the stage-presence stderr handler.

    Args:
        level: Root logging level name, e.g. ``"INFO"`` or ``"warning"``.
        verbose: Also emit DEBUG records from ``stage_presence.*`` loggers,
            whatever *level* is.

    Raises:
        ValueError: If *level* is not a recognised logging level string.
    """
    root_level = _level_number(level)
    root = logging.getLogger()
    root.setLevel(root_level)

    package = logging.getLogger(PACKAGE_LOGGER)
    package.setLevel(logging.DEBUG if verbose else logging.NOTSET)
    handler_level = min(root_level, logging.DEBUG) if verbose else root_level

    handler = _find_handler(root)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
        setattr(handler, _HANDLER_ATTR, True)
        root.addHandler(handler)
    handler.setLevel(handler_level)
