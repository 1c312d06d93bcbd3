"""Trailing-edge throttle for async callables."""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class TrailingThrottle(Generic[T]):
    """
    Runs at most one call per ``wait``-second window.

    The first call in a quiet period runs immediately (``fn`` is invoked
    synchronously, so its prologue happens before the call returns) and opens
    a window. Calls made while the window is open collapse into one pending
    call holding the latest arguments; it runs once when the window closes,
    and every coalesced caller receives its result. A trailing run never
    starts while the previous run is still in flight.
    """

    def __init__(self, fn: Callable[..., Awaitable[T]], wait: float) -> None:
        self._fn = fn
        self._wait = wait
        self._window: asyncio.TimerHandle | None = None
        self._running: asyncio.Future | None = None
        self._pending: tuple[tuple, dict] | None = None
        self._pending_waiters: list[asyncio.Future] = []
        self._release_on_finish = False

    @property
    def pending(self) -> bool:
        return self._pending is not None

    @property
    def cooling_down(self) -> bool:
        return self._window is not None

    def __call__(self, *args: Any, **kwargs: Any) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()

        if self._window is None and not self._in_flight():
            self._start(args, kwargs, [waiter])
        else:
            self._pending = (args, kwargs)
            self._pending_waiters.append(waiter)
            if self._window is None:
                # Window already closed behind a slow run
                self._release_on_finish = True
            logger.debug("Throttled call coalesced", waiting=len(self._pending_waiters))
        return waiter

    def cancel(self) -> None:
        """Drop the pending call (its callers see CancelledError) and close the window."""
        if self._window is not None:
            self._window.cancel()
            self._window = None
        self._pending = None
        self._release_on_finish = False
        waiters, self._pending_waiters = self._pending_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.cancel()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _in_flight(self) -> bool:
        return self._running is not None and not self._running.done()

    def _start(self, args: tuple, kwargs: dict, waiters: list[asyncio.Future]) -> None:
        loop = asyncio.get_running_loop()
        self._window = loop.call_later(self._wait, self._on_window_end)

        try:
            awaitable = self._fn(*args, **kwargs)
            self._running = asyncio.ensure_future(awaitable)
        except Exception as exc:
            self._running = None
            _settle_exception(waiters, exc)
            return

        self._running.add_done_callback(lambda task: self._on_run_done(task, waiters))

    def _on_window_end(self) -> None:
        self._window = None
        if self._pending is None:
            return
        if self._in_flight():
            # Start the trailing run as soon as the current one settles
            self._release_on_finish = True
            return
        self._start_pending()

    def _on_run_done(self, task: asyncio.Future, waiters: list[asyncio.Future]) -> None:
        if task.cancelled():
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
        elif task.exception() is not None:
            _settle_exception(waiters, task.exception())
        else:
            result = task.result()
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(result)

        if self._release_on_finish:
            self._release_on_finish = False
            self._start_pending()

    def _start_pending(self) -> None:
        if self._pending is None:
            return
        args, kwargs = self._pending
        waiters, self._pending_waiters = self._pending_waiters, []
        self._pending = None
        self._start(args, kwargs, waiters)


def _settle_exception(waiters: list[asyncio.Future], exc: BaseException) -> None:
    for waiter in waiters:
        if not waiter.done():
            waiter.set_exception(exc)
