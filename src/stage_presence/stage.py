"""Stage director: the engine's lifecycle and its re-evaluation cycle.

:class:`StageDirector` wires the pieces together and owns their lifetime:

- ``start()`` begins the periodic loop (only when the feature is enabled),
- ``stop()`` cancels it and clears the roster,
- ``restart()`` runs the debounced stop / pause / start sequence.

Each tick of the loop:

1. builds the master name list for the chat,
2. reconciles the roster against it (attaching/detaching handles and
   kicking off image lookups for new arrivals),
3. resolves who is present in the last message,
4. renders the first four of them.

Image lookups run as background tasks; a tick never waits for them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from stage_presence.config import ConfigStore
from stage_presence.history import MemberSource, collect_master_names
from stage_presence.models.transcript import Transcript
from stage_presence.presence import PresenceCounter, PresenceResolver
from stage_presence.resources import ImageLocator, ResourceLocator
from stage_presence.roster import RosterChange, RosterEngine
from stage_presence.scheduling import PeriodicTask, RestartGuard, SleepFn
from stage_presence.surface import RenderSurface, StageLayout, build_layout

logger = logging.getLogger(__name__)


class StageDirector:
    """Drives presence resolution and slot assignment for one chat.

    Args:
        config: Settings and chat settings, read fresh every tick.
        transcript: The chat's messages; the host keeps appending to it.
        surface: Display the director drives.
        locator: Image lookup service.  Defaults to :class:`ImageLocator`.
        source: Group members / active character.  Replace via
            :meth:`group_updated` when it changes.
        sleep: Coroutine function for every wait (loop interval, restart
            pause, debounce window).
        restart_wait: Debounce window for :meth:`restart`, in seconds.
    """

    def __init__(
        self,
        config: ConfigStore,
        transcript: Transcript,
        surface: RenderSurface,
        locator: ResourceLocator | None = None,
        source: MemberSource | None = None,
        sleep: SleepFn = asyncio.sleep,
        restart_wait: float = 0.3,
    ) -> None:
        self.config = config
        self.transcript = transcript
        self.surface = surface
        self.locator = locator or ImageLocator(config)
        self.source = source or MemberSource()
        self.counter = PresenceCounter()
        self.resolver = PresenceResolver(config, self.counter)
        self.engine = RosterEngine(config, sink=surface)
        self.layout = StageLayout()
        self._started = False
        self._lookups: dict[str, asyncio.Task[None]] = {}
        self._loop = PeriodicTask(
            self.tick,
            interval=lambda: self.config.settings.tick_interval,
            should_run=self._should_run,
            sleep=sleep,
            name="stage-loop",
        )
        self.guard = RestartGuard(
            teardown=self.stop,
            setup=self.start,
            delay=lambda: self.config.settings.restart_delay,
            sleep=sleep,
            wait=restart_wait,
        )

    @property
    def started(self) -> bool:
        return self._started

    def _should_run(self) -> bool:
        return self._started and self.config.settings.is_enabled

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, run_loop: bool = True) -> None:
        """Start the stage.  Does nothing while the feature is disabled.

        Args:
            run_loop: Start the periodic re-evaluation loop.  Hosts that
                call :meth:`tick` themselves pass ``False``.
        """
        if not self.config.settings.is_enabled:
            logger.info("Stage disabled, not starting")
            return
        if self._started:
            return
        logger.info("Stage starting")
        self._started = True
        if run_loop:
            self._loop.start()

    def stop(self) -> None:
        """Stop the loop, cancel pending lookups and clear the roster."""
        logger.info("Stage stopping")
        self._started = False
        self._loop.cancel()
        for task in self._lookups.values():
            task.cancel()
        self._lookups.clear()
        for name in self.engine.snapshot().handles:
            self.surface.detach(name)
        self.engine.clear()
        self.layout = StageLayout()
        self.surface.render(self.layout)

    def restart(self) -> asyncio.Future[bool]:
        """Debounced full restart; all callers in a burst share one future.

        The future resolves to ``False`` when the restart was dropped because
        another one was still running.
        """
        return self.guard.restart()

    # ------------------------------------------------------------------
    # Re-evaluation
    # ------------------------------------------------------------------

    async def tick(self) -> StageLayout | None:
        """Run one re-evaluation cycle.

        Returns:
            The rendered layout, or ``None`` when the stage is stopped or a
            roster refresh was already in progress.
        """
        if not self._started:
            return None

        master_names = collect_master_names(
            self.config.chat, self.source, self.transcript, self.counter
        )
        change = self.engine.refresh(master_names)
        if change is None:
            return None
        self._follow_up(change)

        message = self.transcript.last_message()
        ordered = self.resolver.resolve(message, self.engine.name_list)
        visible = [name for name in ordered if self.engine.has_handle(name)]

        last_speaker = None
        if message is not None and not message.is_user:
            last_char = self.transcript.last_character_message(self.engine.name_list)
            last_speaker = last_char.speaker_name if last_char else None

        self.layout = build_layout(visible, last_speaker)
        self.surface.render(self.layout)
        return self.layout

    def _follow_up(self, change: RosterChange) -> None:
        for name in change.detached + change.evicted:
            task = self._lookups.pop(name, None)
            if task is not None:
                task.cancel()
        for name in change.attached:
            self.lookup(name)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def lookup(self, name: str, expression: str | None = None) -> asyncio.Task[None]:
        """Resolve *name*'s image in the background and hand it to the surface.

        Without an explicit *expression*, the member's override (if any) is
        used, else the default expression.  A newer lookup for the same name
        replaces an unfinished older one.
        """
        if expression is None:
            override = self.config.chat.emotes.get(name)
            expression = override.emote if override else None

        previous = self._lookups.pop(name, None)
        if previous is not None:
            previous.cancel()

        task = asyncio.get_running_loop().create_task(self._apply_lookup(name, expression))
        self._lookups[name] = task

        def _forget(done: asyncio.Task[None]) -> None:
            if self._lookups.get(name) is done:
                del self._lookups[name]

        task.add_done_callback(_forget)
        return task

    async def _apply_lookup(self, name: str, expression: str | None) -> None:
        try:
            locator = await self.locator.locate(name, expression)
        except Exception:
            logger.warning("Image lookup failed for %s", name, exc_info=True)
            locator = None
        if self._started and self.engine.has_handle(name):
            self.surface.set_resource(name, locator)

    async def wait_for_lookups(self) -> None:
        """Wait until every pending image lookup has finished."""
        while self._lookups:
            await asyncio.gather(*list(self._lookups.values()), return_exceptions=True)

    # ------------------------------------------------------------------
    # Host notifications
    # ------------------------------------------------------------------

    def notify_changed(self) -> asyncio.Task[StageLayout | None]:
        """The host's state changed: re-evaluate soon, outside the caller."""
        return asyncio.get_running_loop().create_task(self.tick())

    def notify_expression_changed(
        self, name: str, expression: str
    ) -> asyncio.Task[None] | None:
        """Another component picked *expression* for *name*.

        Ignored while the roster is refreshing, for names without a handle,
        and for members whose override is locked.
        """
        if self.engine.busy or not self.engine.has_handle(name):
            return None
        override = self.config.chat.emotes.get(name)
        if override is not None and override.is_locked:
            logger.debug("Expression for %s is locked, ignoring %r", name, expression)
            return None
        return self.lookup(name, expression)

    def chat_changed(
        self,
        metadata: dict[str, Any] | None,
        transcript: Transcript | None = None,
        source: MemberSource | None = None,
    ) -> asyncio.Future[bool]:
        """Switch to another chat and restart the stage for it."""
        logger.info("Chat changed")
        self.config.load_chat(metadata)
        if transcript is not None:
            self.transcript = transcript
        if source is not None:
            self.source = source
        return self.restart()

    def group_updated(self, source: MemberSource) -> None:
        """The group's members changed; the next tick picks them up."""
        logger.info("Group updated: %s", source.group_members)
        self.source = source
