"""Expression image lookup.

A locator maps ``(name, expression)`` to something the surface can display.
Not finding an image is a normal outcome: the locator returns ``None`` and
the surface shows its neutral fallback.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from stage_presence.config import ConfigStore

logger = logging.getLogger(__name__)


class ResourceLocator(Protocol):
    """Resolves the image for a participant's expression."""

    async def locate(self, name: str, expression: str | None = None) -> str | None: ...


class ImageLocator:
    """Finds expression images on disk.

    Candidates are ``<characters_dir>/[<chat path>/]<name>/<expression>.<ext>``
    for every configured extension, in order.  When the requested expression
    has no image, the default expression is tried before giving up.
    """

    def __init__(self, config: ConfigStore) -> None:
        self._config = config

    def candidates(self, name: str, expression: str | None = None) -> list[Path]:
        """Return every path tried for *name* and *expression*, in order."""
        settings = self._config.settings
        root = Path(settings.characters_dir)
        if self._config.chat.path:
            root = root / self._config.chat.path
        expression = expression or settings.expression
        return [root / name / f"{expression}.{ext}" for ext in settings.extensions]

    async def locate(self, name: str, expression: str | None = None) -> str | None:
        """Return the first existing candidate as a POSIX path, or ``None``."""
        for path in self.candidates(name, expression):
            if await asyncio.to_thread(path.is_file):
                return path.as_posix()

        default = self._config.settings.expression
        if expression and expression != default:
            logger.debug("No %r image for %s, trying %r", expression, name, default)
            return await self.locate(name)

        logger.debug("No image found for %s", name)
        return None
