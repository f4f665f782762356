"""Asyncio scheduling primitives.

- :class:`CancellationTokenSource` / :class:`CancellationToken`: cooperative
  cancellation checked by long computations between awaits.
- :class:`Delayer`: debounce; every ``trigger`` restarts the timer and the
  last task wins.
- :class:`Limiter`: bounds how many coroutines run at once.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Generic, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Read side of a cancellation flag."""

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], Any]] = []

    @property
    def is_cancellation_requested(self) -> bool:
        return self._cancelled

    def on_cancelled(self, callback: Callable[[], Any]) -> None:
        if self._cancelled:
            callback()
        else:
            self._callbacks.append(callback)

    def _cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            callback()


# No source owns this token, so it is never cancelled
NEVER_CANCELLED = CancellationToken()


class CancellationTokenSource:
    """Owns a token and the right to cancel it."""

    def __init__(self) -> None:
        self.token = CancellationToken()

    def cancel(self) -> None:
        self.token._cancel()

    def dispose(self) -> None:
        self.token._callbacks.clear()


class Delayer(Generic[T]):
    """Run the most recently triggered task once *delay* seconds pass quietly.

    Every caller of :meth:`trigger` between two runs receives the same
    future, resolved with the result of the task that finally ran.
    """

    def __init__(self, delay: float) -> None:
        self.default_delay = delay
        self._handle: asyncio.TimerHandle | None = None
        self._completion: asyncio.Future[T] | None = None
        self._task: Callable[[], Awaitable[T]] | None = None
        self._running: set[asyncio.Task[None]] = set()

    def trigger(self, task: Callable[[], Awaitable[T]], delay: float | None = None) -> asyncio.Future[T]:
        loop = asyncio.get_running_loop()
        self._task = task
        self._cancel_timeout()

        if self._completion is None or self._completion.done():
            self._completion = loop.create_future()

        self._handle = loop.call_later(
            self.default_delay if delay is None else delay,
            self._fire,
        )
        return self._completion

    def is_triggered(self) -> bool:
        return self._handle is not None

    @property
    def completion(self) -> asyncio.Future[T] | None:
        return self._completion

    def cancel(self) -> None:
        self._cancel_timeout()
        if self._completion is not None and not self._completion.done():
            self._completion.cancel()
        self._completion = None
        self._task = None

    def dispose(self) -> None:
        self.cancel()
        for running in list(self._running):
            running.cancel()

    def _cancel_timeout(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        completion, task = self._completion, self._task
        self._handle = None
        self._task = None
        if completion is None or task is None:
            return

        async def run() -> None:
            try:
                result = await task()
            except asyncio.CancelledError:
                completion.cancel()
                raise
            except Exception as exc:
                logger.exception("delayer.task_failed")
                if not completion.done():
                    completion.set_exception(exc)
                    # Marks the exception as retrieved; it has already been logged
                    completion.exception()
            else:
                if not completion.done():
                    completion.set_result(result)

        running = asyncio.ensure_future(run())
        self._running.add(running)
        running.add_done_callback(self._running.discard)


class Limiter:
    """Run at most *max_concurrency* queued coroutines at a time."""

    def __init__(self, max_concurrency: int) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def queue(self, factory: Callable[[], Awaitable[T]]) -> T:
        async with self._semaphore:
            return await factory()
