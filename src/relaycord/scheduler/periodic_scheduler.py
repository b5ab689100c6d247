"""Generic scheduler for periodic background maintenance.

Runs a user-supplied coroutine on a fixed interval in a background task and
handles lifecycle (start/shutdown) and standard error handling.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from relaycord.util.logger import get_logger

logger = get_logger("periodic_scheduler")


class PeriodicScheduler:
    """
    Reusable scheduler for periodic maintenance operations.

    Args:
        name: Human-readable name for logging (e.g., "DELIVERY CACHE").
        coro: Async callable with no arguments, invoked once per tick.
        get_interval: Callable returning the interval in seconds (called at start).
    """

    def __init__(
        self,
        name: str,
        coro: Callable[[], Awaitable[Any]],
        get_interval: Callable[[], float],
    ) -> None:
        self._name = name
        self._coro = coro
        self._get_interval = get_interval
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run_loop(self, interval: float) -> None:
        """Infinite loop: sleep, run, repeat."""
        logger.info("[%s] Starting periodic task (interval=%.1fs)", self._name, interval)
        try:
            while True:
                await asyncio.sleep(interval)
                try:
                    await self._coro()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.error("[%s] Unexpected error during periodic task: %s", self._name, exc)
        except asyncio.CancelledError:
            logger.info("[%s] Periodic task cancelled", self._name)
            raise

    def start(self) -> None:
        """Start the background task if not already running. Must be called inside a running loop."""
        if self.running:
            logger.warning("[%s] Periodic task already running", self._name)
            return
        interval = self._get_interval()
        self._task = asyncio.create_task(self._run_loop(interval))

    async def shutdown(self) -> None:
        """Stop the task and wait for it to finish."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

        logger.info("[%s] Scheduler shutdown complete", self._name)
