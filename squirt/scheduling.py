"""
Periodic background task.

Runs an async callable on a fixed interval inside the running event loop.
``start`` is idempotent (a second call never creates a second timer),
``trigger`` wakes the loop for an immediate run and ``stop`` cancels it.
An exception in one run is logged and the loop carries on.

Decision: D-012
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

LOG = logging.getLogger("squirt.scheduling")


class PeriodicTask:
    """
    Args:
        name: Used in log messages
        interval: Seconds between runs
        func: Coroutine function called on each run
        run_immediately: Run once as soon as the task starts
    """

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[object]],
        run_immediately: bool = True,
    ) -> None:
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.name = name
        self.interval = interval
        self._func = func
        self._run_immediately = run_immediately
        self._task: Optional[asyncio.Task[None]] = None
        self._wake: Optional[asyncio.Event] = None
        self.run_count = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Start the loop. Returns False if it is already running. Requires a running event loop."""
        if self.is_running:
            LOG.warning("Periodic task %s already running", self.name)
            return False
        self._wake = asyncio.Event()
        if self._run_immediately:
            self._wake.set()
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"periodic:{self.name}")
        LOG.info("Periodic task %s started (interval: %ss)", self.name, self.interval)
        return True

    def trigger(self) -> bool:
        """Run as soon as possible instead of waiting for the interval. False when stopped."""
        if not self.is_running or self._wake is None:
            return False
        self._wake.set()
        return True

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish. Safe to call more than once."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        LOG.info("Periodic task %s stopped", self.name)

    async def _run(self) -> None:
        assert self._wake is not None
        while True:
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
            self._wake.clear()

            try:
                await self._func()
            except Exception:
                LOG.exception("Error in periodic task %s", self.name)
            finally:
                self.run_count += 1
