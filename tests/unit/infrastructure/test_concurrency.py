"""Tests for textile_ls.infrastructure.concurrency."""

import asyncio

import pytest

from textile_ls.infrastructure.concurrency import (
    NEVER_CANCELLED,
    CancellationTokenSource,
    Delayer,
    Limiter,
)


class TestCancellation:
    def test_cancel_sets_flag(self):
        source = CancellationTokenSource()
        assert not source.token.is_cancellation_requested
        source.cancel()
        assert source.token.is_cancellation_requested

    def test_callbacks_run_once(self):
        source = CancellationTokenSource()
        calls = []
        source.token.on_cancelled(lambda: calls.append(1))
        source.cancel()
        source.cancel()
        assert calls == [1]

    def test_callback_registered_after_cancel_runs_immediately(self):
        source = CancellationTokenSource()
        source.cancel()
        calls = []
        source.token.on_cancelled(lambda: calls.append(1))
        assert calls == [1]

    def test_never_cancelled(self):
        assert not NEVER_CANCELLED.is_cancellation_requested


class TestDelayer:
    @pytest.mark.asyncio
    async def test_last_task_wins(self):
        delayer: Delayer[str] = Delayer(0.01)
        calls = []

        async def task(name):
            calls.append(name)
            return name

        first = delayer.trigger(lambda: task("first"))
        second = delayer.trigger(lambda: task("second"))

        assert first is second
        assert await second == "second"
        assert calls == ["second"]

    @pytest.mark.asyncio
    async def test_trigger_restarts_timer(self):
        delayer: Delayer[int] = Delayer(0.05)
        calls = []

        async def task():
            calls.append(1)
            return 1

        delayer.trigger(task)
        await asyncio.sleep(0.03)
        completion = delayer.trigger(task)
        await asyncio.sleep(0.03)
        assert calls == []
        await completion
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_new_completion_after_run(self):
        delayer: Delayer[int] = Delayer(0)

        async def task():
            return 1

        first = delayer.trigger(task)
        await first
        second = delayer.trigger(task)
        assert second is not first
        assert await second == 1

    @pytest.mark.asyncio
    async def test_is_triggered(self):
        delayer: Delayer[None] = Delayer(0)

        async def task():
            return None

        assert not delayer.is_triggered()
        completion = delayer.trigger(task)
        assert delayer.is_triggered()
        await completion
        assert not delayer.is_triggered()

    @pytest.mark.asyncio
    async def test_task_failure_reaches_completion(self):
        delayer: Delayer[None] = Delayer(0)

        async def task():
            raise ValueError("bad")

        completion = delayer.trigger(task)
        with pytest.raises(ValueError):
            await completion

    @pytest.mark.asyncio
    async def test_cancel(self):
        delayer: Delayer[None] = Delayer(0.01)
        calls = []

        async def task():
            calls.append(1)

        completion = delayer.trigger(task)
        delayer.cancel()
        await asyncio.sleep(0.03)
        assert completion.cancelled()
        assert calls == []


class TestLimiter:
    def test_rejects_zero(self):
        with pytest.raises(ValueError):
            Limiter(0)

    @pytest.mark.asyncio
    async def test_bounds_concurrency(self):
        limiter = Limiter(2)
        running = 0
        peak = 0

        async def work():
            nonlocal running, peak
            running += 1
            peak = max(peak, running)
            await asyncio.sleep(0.01)
            running -= 1
            return True

        results = await asyncio.gather(*(limiter.queue(work) for _ in range(6)))

        assert results == [True] * 6
        assert peak == 2
