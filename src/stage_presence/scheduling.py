"""Debounce, restart serialization and the periodic re-evaluation loop.

All waiting goes through an injectable ``sleep`` coroutine function
(``asyncio.sleep`` by default) so tests can run on virtual time.

- :func:`debounce_async` -- collapse bursts of calls into one execution
  whose result every caller in the burst shares.
- :class:`RestartGuard` -- a debounced tear-down / pause / set-up sequence
  that ignores triggers arriving while a sequence is already running.
- :class:`PeriodicTask` -- a cancellable loop that calls a coroutine at a
  fixed interval for as long as a predicate holds.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]

_DEFAULT_WAIT = 0.3  # seconds


def debounce_async(
    wait: float = _DEFAULT_WAIT,
    sleep: SleepFn = asyncio.sleep,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., asyncio.Future[T]]]:
    """Decorator that debounces a coroutine function.

    Every call restarts a *wait*-second window and returns the same pending
    :class:`asyncio.Future` as every other call made since the last
    execution.  When a window elapses without a new call, the coroutine
    runs once with the arguments of the latest call and its result (or
    exception) resolves the shared future.  A steady stream of calls
    postpones execution indefinitely.

    The decorated function must be called from a running event loop.

    Args:
        wait: Length of the quiet window in seconds.
        sleep: Coroutine function used to wait out the window.

    Returns:
        A decorator producing the debounced callable.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., asyncio.Future[T]]:
        pending: asyncio.Future[T] | None = None
        timer: asyncio.Task[None] | None = None

        async def _fire(future: asyncio.Future[T], args: tuple, kwargs: dict) -> None:
            nonlocal pending, timer
            await sleep(wait)
            # Past this point the window is closed: later calls start a new
            # burst with a new future instead of cancelling this run.
            pending = None
            timer = None
            try:
                result = await func(*args, **kwargs)
            except Exception as exc:
                if not future.done():
                    future.set_exception(exc)
            else:
                if not future.done():
                    future.set_result(result)

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> asyncio.Future[T]:
            nonlocal pending, timer
            loop = asyncio.get_running_loop()
            if timer is not None:
                timer.cancel()
            if pending is None:
                pending = loop.create_future()
            timer = loop.create_task(_fire(pending, args, kwargs))
            return pending

        return wrapper

    return decorator


class RestartGuard:
    """Serializes full restarts of the stage.

    :meth:`restart` is debounced; when it fires, it runs *teardown*, waits
    ``delay()`` seconds and awaits *setup*.  A restart triggered while that
    sequence is running is dropped, not queued.

    Args:
        teardown: Synchronous stop step.
        setup: Coroutine function for the start step.
        delay: Returns the pause between the two steps, in seconds.  Read
            at restart time so configuration edits apply.
        sleep: Coroutine function used for the pause and the debounce window.
        wait: Debounce window in seconds.
    """

    def __init__(
        self,
        teardown: Callable[[], None],
        setup: Callable[[], Awaitable[None]],
        delay: Callable[[], float],
        sleep: SleepFn = asyncio.sleep,
        wait: float = _DEFAULT_WAIT,
    ) -> None:
        self._teardown = teardown
        self._setup = setup
        self._delay = delay
        self._sleep = sleep
        self._restarting = False
        self.runs = 0
        self.restart = debounce_async(wait, sleep)(self._run)

    @property
    def restarting(self) -> bool:
        return self._restarting

    async def _run(self) -> bool:
        if self._restarting:
            logger.debug("Restart ignored: a restart is already running")
            return False
        self._restarting = True
        try:
            logger.info("Restarting stage")
            self.runs += 1
            self._teardown()
            await self._sleep(self._delay())
            await self._setup()
        finally:
            self._restarting = False
        return True


class PeriodicTask:
    """Runs *callback* every ``interval()`` seconds while ``should_run()``.

    The loop checks *should_run* before each iteration, so disabling the
    feature ends it after the current sleep.  :meth:`stop` cancels it
    immediately.  An exception raised by *callback* is logged and the loop
    carries on with the next tick.
    """

    def __init__(
        self,
        callback: Callable[[], Awaitable[Any]],
        interval: Callable[[], float],
        should_run: Callable[[], bool] = lambda: True,
        sleep: SleepFn = asyncio.sleep,
        name: str = "periodic-task",
    ) -> None:
        self._callback = callback
        self._interval = interval
        self._should_run = should_run
        self._sleep = sleep
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop (no-op if running)."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop(), name=self._name)
        logger.debug("%s started", self._name)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.debug("%s stopped", self._name)

    def cancel(self) -> None:
        """Request cancellation without waiting (for synchronous callers)."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()

    async def _loop(self) -> None:
        while self._should_run():
            try:
                await self._callback()
            except Exception:
                logger.exception("%s tick failed", self._name)
            await self._sleep(self._interval())
