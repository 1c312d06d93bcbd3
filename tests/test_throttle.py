"""Unit tests for TrailingThrottle (real event loop, short windows)."""

from __future__ import annotations

import asyncio

import pytest

from pagekeeper.core.throttle import TrailingThrottle

WAIT = 0.05


class Recorder:
    """Async callable that records its arguments and tracks overlap."""

    def __init__(self, duration: float = 0.0) -> None:
        self.calls: list[tuple] = []
        self.started: list[tuple] = []  # recorded synchronously, before any await
        self.duration = duration
        self.active = 0
        self.max_active = 0

    def __call__(self, *args):
        self.started.append(args)
        return self._run(*args)

    async def _run(self, *args):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            await asyncio.sleep(self.duration)
            self.calls.append(args)
            return args
        finally:
            self.active -= 1


class TestTrailingThrottle:
    async def test_first_call_runs_immediately(self):
        fn = Recorder()
        throttle = TrailingThrottle(fn, WAIT)

        future = throttle(1)
        # Prologue ran before returning control
        assert fn.started == [(1,)]
        assert await future == (1,)

    async def test_calls_in_window_coalesce_to_latest_args(self):
        fn = Recorder()
        throttle = TrailingThrottle(fn, WAIT)

        f1 = throttle("a")
        f2 = throttle("b")
        f3 = throttle("c")
        assert throttle.pending

        assert await f1 == ("a",)
        # Trailing call has not run yet: the window is still open
        assert fn.calls == [("a",)]

        assert await f2 == ("c",)
        assert await f3 == ("c",)
        assert fn.calls == [("a",), ("c",)]
        assert not throttle.pending

    async def test_at_most_one_run_per_window(self):
        fn = Recorder()
        throttle = TrailingThrottle(fn, WAIT)

        futures = [throttle(i) for i in range(10)]
        await asyncio.gather(*futures)
        assert len(fn.calls) == 2

    async def test_quiet_period_resets_to_leading_edge(self):
        fn = Recorder()
        throttle = TrailingThrottle(fn, WAIT)

        await throttle(1)
        await asyncio.sleep(WAIT * 2)
        assert not throttle.cooling_down

        future = throttle(2)
        assert fn.started[-1] == (2,)
        await future
        assert fn.calls == [(1,), (2,)]

    async def test_trailing_run_waits_for_slow_run(self):
        fn = Recorder(duration=WAIT * 3)
        throttle = TrailingThrottle(fn, WAIT)

        f1 = throttle(1)
        f2 = throttle(2)
        await asyncio.gather(f1, f2)

        assert fn.calls == [(1,), (2,)]
        assert fn.max_active == 1

    async def test_call_after_window_while_run_in_flight(self):
        fn = Recorder(duration=WAIT * 3)
        throttle = TrailingThrottle(fn, WAIT)

        f1 = throttle(1)
        await asyncio.sleep(WAIT * 1.5)  # window closed, run 1 still going
        f2 = throttle(2)
        await asyncio.gather(f1, f2)

        assert fn.calls == [(1,), (2,)]
        assert fn.max_active == 1

    async def test_exception_reaches_every_coalesced_caller(self):
        async def boom(_x):
            raise ValueError("sink down")

        throttle = TrailingThrottle(boom, WAIT)
        f1 = throttle(1)
        f2 = throttle(2)
        f3 = throttle(3)

        with pytest.raises(ValueError):
            await f1
        for future in (f2, f3):
            with pytest.raises(ValueError):
                await future

    async def test_synchronous_failure_is_delivered_to_caller(self):
        def broken(_x):
            raise RuntimeError("prologue failed")

        throttle = TrailingThrottle(broken, WAIT)
        with pytest.raises(RuntimeError):
            await throttle(1)

    async def test_cancel_drops_pending_call(self):
        fn = Recorder()
        throttle = TrailingThrottle(fn, WAIT)

        f1 = throttle(1)
        f2 = throttle(2)
        throttle.cancel()

        assert await f1 == (1,)
        assert f2.cancelled()
        await asyncio.sleep(WAIT * 2)
        assert fn.calls == [(1,)]
