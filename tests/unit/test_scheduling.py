"""Unit tests for debouncing, restart serialization and the periodic loop."""

from __future__ import annotations

import asyncio
import logging

import pytest

from stage_presence.scheduling import PeriodicTask, RestartGuard, debounce_async
from tests.helpers import FakeSleep


class GateSleep:
    """A sleep that only returns when the test opens its gate."""

    def __init__(self) -> None:
        self.delays: list[float] = []
        self.gates: list[asyncio.Future[None]] = []

    async def __call__(self, delay: float) -> None:
        gate: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self.delays.append(delay)
        self.gates.append(gate)
        await gate

    def open_latest(self) -> None:
        self.gates[-1].set_result(None)


async def _settle(rounds: int = 5) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


# ---------------------------------------------------------------------------
# debounce_async
# ---------------------------------------------------------------------------


class TestDebounceAsync:
    """Tests for the debounce decorator."""

    def test_burst_runs_once_with_latest_args(self) -> None:
        """N calls inside one window run the function once, with the last arguments."""
        calls: list[int] = []
        sleep = FakeSleep()

        @debounce_async(wait=0.3, sleep=sleep)
        async def work(value: int) -> int:
            calls.append(value)
            return value * 10

        async def scenario() -> list[int]:
            futures = [work(i) for i in range(5)]
            return [await future for future in futures]

        results = asyncio.run(scenario())

        assert calls == [4]
        assert results == [40] * 5

    def test_callers_share_one_future(self) -> None:
        """Every call in a burst returns the very same future."""
        sleep = FakeSleep()

        @debounce_async(wait=0.3, sleep=sleep)
        async def work() -> str:
            return "done"

        async def scenario() -> bool:
            first, second = work(), work()
            same = first is second
            await first
            return same

        assert asyncio.run(scenario()) is True

    def test_each_call_restarts_window(self) -> None:
        """A call during the window postpones execution."""
        calls: list[int] = []
        sleep = GateSleep()

        @debounce_async(wait=0.3, sleep=sleep)
        async def work(value: int) -> int:
            calls.append(value)
            return value

        async def scenario() -> int:
            work(1)
            await _settle()
            future = work(2)
            await _settle()
            assert calls == []
            assert sleep.gates[0].cancelled()
            sleep.open_latest()
            return await future

        assert asyncio.run(scenario()) == 2
        assert calls == [2]
        assert sleep.delays == [0.3, 0.3]

    def test_new_burst_after_execution(self) -> None:
        """Calls after a run start a fresh burst with a new future."""
        calls: list[int] = []
        sleep = FakeSleep()

        @debounce_async(wait=0.1, sleep=sleep)
        async def work(value: int) -> int:
            calls.append(value)
            return value

        async def scenario() -> tuple[int, int, bool]:
            first = work(1)
            a = await first
            second = work(2)
            b = await second
            return a, b, first is second

        assert asyncio.run(scenario()) == (1, 2, False)
        assert calls == [1, 2]

    def test_exception_propagates_to_all_callers(self) -> None:
        """A failure resolves the shared future with the exception."""
        sleep = FakeSleep()

        @debounce_async(wait=0.1, sleep=sleep)
        async def work() -> None:
            raise ValueError("bad")

        async def scenario() -> None:
            first, second = work(), work()
            assert first is second
            await first

        with pytest.raises(ValueError, match="bad"):
            asyncio.run(scenario())

    def test_preserves_function_metadata(self) -> None:
        """The wrapper keeps the wrapped function's name."""

        @debounce_async()
        async def reload_stage() -> None:
            """Reload."""

        assert reload_stage.__name__ == "reload_stage"
        assert reload_stage.__doc__ == "Reload."

    def test_requires_running_loop(self) -> None:
        """Calling outside an event loop is an error."""

        @debounce_async()
        async def work() -> None:
            return None

        with pytest.raises(RuntimeError):
            work()


# ---------------------------------------------------------------------------
# RestartGuard
# ---------------------------------------------------------------------------


class _Steps:
    """Records restart steps."""

    def __init__(self) -> None:
        self.log: list[str] = []
        self.setup_gate: asyncio.Event | None = None
        self.setup_started: asyncio.Event | None = None

    def teardown(self) -> None:
        self.log.append("teardown")

    async def setup(self) -> None:
        self.log.append("setup")
        if self.setup_started is not None:
            self.setup_started.set()
        if self.setup_gate is not None:
            await self.setup_gate.wait()


class TestRestartGuard:
    """Tests for the debounced, non-reentrant restart sequence."""

    def test_sequence_order_and_delay(self) -> None:
        """Tear-down, pause, set-up, in that order."""
        steps = _Steps()
        sleep = FakeSleep()
        guard = RestartGuard(steps.teardown, steps.setup, lambda: 0.55, sleep=sleep)

        async def scenario() -> bool:
            return await guard.restart()

        assert asyncio.run(scenario()) is True
        assert steps.log == ["teardown", "setup"]
        assert sleep.calls == [0.3, 0.55]
        assert guard.runs == 1
        assert not guard.restarting

    def test_burst_collapses_to_one_restart(self) -> None:
        """Many triggers in one window restart once."""
        steps = _Steps()
        guard = RestartGuard(steps.teardown, steps.setup, lambda: 0.55, sleep=FakeSleep())

        async def scenario() -> list[bool]:
            futures = [guard.restart() for _ in range(4)]
            return [await future for future in futures]

        assert asyncio.run(scenario()) == [True] * 4
        assert guard.runs == 1
        assert steps.log == ["teardown", "setup"]

    def test_trigger_during_restart_is_ignored(self) -> None:
        """A restart arriving mid-sequence is dropped, not queued."""
        steps = _Steps()
        guard = RestartGuard(steps.teardown, steps.setup, lambda: 0.55, sleep=FakeSleep())

        async def scenario() -> tuple[bool, bool]:
            steps.setup_gate = asyncio.Event()
            steps.setup_started = asyncio.Event()
            first = guard.restart()
            await steps.setup_started.wait()
            assert guard.restarting
            second = guard.restart()
            ignored = await second
            steps.setup_gate.set()
            return await first, ignored

        assert asyncio.run(scenario()) == (True, False)
        assert guard.runs == 1
        assert steps.log == ["teardown", "setup"]

    def test_delay_read_at_restart_time(self) -> None:
        """The pause length is evaluated when the sequence runs."""
        steps = _Steps()
        sleep = FakeSleep()
        delays = iter([0.55, 0.9])
        guard = RestartGuard(steps.teardown, steps.setup, lambda: next(delays), sleep=sleep)

        async def scenario() -> None:
            await guard.restart()
            await guard.restart()

        asyncio.run(scenario())

        assert sleep.calls == [0.3, 0.55, 0.3, 0.9]
        assert guard.runs == 2

    def test_flag_cleared_after_failed_setup(self) -> None:
        """A failing set-up does not leave the guard stuck."""

        async def broken_setup() -> None:
            raise RuntimeError("no stage")

        guard = RestartGuard(lambda: None, broken_setup, lambda: 0.55, sleep=FakeSleep())

        async def scenario() -> None:
            await guard.restart()

        with pytest.raises(RuntimeError, match="no stage"):
            asyncio.run(scenario())
        assert not guard.restarting


# ---------------------------------------------------------------------------
# PeriodicTask
# ---------------------------------------------------------------------------


class TestPeriodicTask:
    """Tests for the cancellable periodic loop."""

    def test_runs_until_predicate_false(self) -> None:
        """The loop ends on its own once ``should_run`` turns false."""
        ticks: list[int] = []
        sleep = FakeSleep()

        async def tick() -> None:
            ticks.append(len(ticks))

        task = PeriodicTask(tick, lambda: 1.0, should_run=lambda: len(ticks) < 3, sleep=sleep)

        async def scenario() -> None:
            task.start()
            while task.running:
                await asyncio.sleep(0)

        asyncio.run(scenario())

        assert ticks == [0, 1, 2]
        assert sleep.calls == [1.0, 1.0, 1.0]

    def test_stop_cancels_sleeping_loop(self) -> None:
        """Stopping interrupts the interval wait immediately."""
        ticks: list[int] = []
        sleep = GateSleep()

        async def tick() -> None:
            ticks.append(1)

        task = PeriodicTask(tick, lambda: 5.0, sleep=sleep)

        async def scenario() -> None:
            task.start()
            await _settle()
            assert task.running
            await task.stop()

        asyncio.run(scenario())

        assert ticks == [1]
        assert not task.running
        assert sleep.gates[0].cancelled()

    def test_failed_tick_logged_and_loop_continues(self, caplog: pytest.LogCaptureFixture) -> None:
        """An exception in one tick does not end the loop."""
        ticks: list[int] = []

        async def tick() -> None:
            ticks.append(1)
            if len(ticks) == 1:
                raise RuntimeError("tick exploded")

        task = PeriodicTask(
            tick, lambda: 1.0, should_run=lambda: len(ticks) < 2, sleep=FakeSleep(), name="stage-loop"
        )

        async def scenario() -> None:
            task.start()
            while task.running:
                await asyncio.sleep(0)

        with caplog.at_level(logging.ERROR, logger="stage_presence.scheduling"):
            asyncio.run(scenario())

        assert len(ticks) == 2
        assert "stage-loop tick failed" in caplog.text

    def test_start_twice_keeps_one_loop(self) -> None:
        """Starting a running loop does nothing."""
        ticks: list[int] = []
        sleep = GateSleep()

        async def tick() -> None:
            ticks.append(1)

        task = PeriodicTask(tick, lambda: 1.0, sleep=sleep)

        async def scenario() -> None:
            task.start()
            task.start()
            await _settle()
            await task.stop()

        asyncio.run(scenario())

        assert ticks == [1]
        assert len(sleep.gates) == 1

    def test_interval_read_every_iteration(self) -> None:
        """Interval changes apply from the next wait on."""
        ticks: list[int] = []
        sleep = FakeSleep()
        intervals = iter([1.0, 0.5])

        async def tick() -> None:
            ticks.append(1)

        task = PeriodicTask(
            tick, lambda: next(intervals), should_run=lambda: len(ticks) < 2, sleep=sleep
        )

        async def scenario() -> None:
            task.start()
            while task.running:
                await asyncio.sleep(0)

        asyncio.run(scenario())

        assert sleep.calls == [1.0, 0.5]

    def test_cancel_without_waiting(self) -> None:
        """``cancel`` works from synchronous code."""
        sleep = GateSleep()

        async def tick() -> None:
            return None

        task = PeriodicTask(tick, lambda: 1.0, sleep=sleep)

        async def scenario() -> None:
            task.start()
            await _settle()
            task.cancel()
            await _settle()

        asyncio.run(scenario())

        assert not task.running

    def test_stop_when_never_started(self) -> None:
        """Stopping an idle loop is harmless."""

        async def tick() -> None:
            return None

        task = PeriodicTask(tick, lambda: 1.0)

        asyncio.run(task.stop())

        assert not task.running
