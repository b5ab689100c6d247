"""Tests for the background periodic task runner."""

import asyncio

from relaycord.scheduler.periodic_scheduler import PeriodicScheduler


async def test_runs_repeatedly_until_shutdown():
    calls = []

    async def tick():
        calls.append(1)

    scheduler = PeriodicScheduler("TEST", tick, lambda: 0.01)
    scheduler.start()
    assert scheduler.running

    await asyncio.sleep(0.08)
    await scheduler.shutdown()

    assert len(calls) >= 2
    assert not scheduler.running


async def test_errors_do_not_stop_the_loop():
    calls = []

    async def flaky():
        calls.append(1)
        raise RuntimeError("sweep failed")

    scheduler = PeriodicScheduler("TEST", flaky, lambda: 0.01)
    scheduler.start()
    await asyncio.sleep(0.08)
    await scheduler.shutdown()

    assert len(calls) >= 2


async def test_start_twice_keeps_single_task():
    async def tick():
        pass

    scheduler = PeriodicScheduler("TEST", tick, lambda: 60)
    scheduler.start()
    first = scheduler._task
    scheduler.start()

    assert scheduler._task is first
    await scheduler.shutdown()


async def test_shutdown_without_start_is_safe():
    async def tick():
        pass

    await PeriodicScheduler("TEST", tick, lambda: 60).shutdown()
