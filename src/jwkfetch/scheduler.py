"""Periodic job scheduling for the bulk cache refresh.

The refresh logic lives in :meth:`KeySetCacheService.refresh_caches`; this
module only decides when it runs. Anything implementing ``Scheduler`` can
be injected (tests use a recording fake).
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Protocol

from jwkfetch.observability import get_logger

logger = get_logger(__name__)

Job = Callable[[], Awaitable[Any]]


class Scheduler(Protocol):
    """Runs a job every ``interval`` seconds."""

    def every(self, interval: float, job: Job) -> None:
        """Arm ``job`` to run every ``interval`` seconds, first run after one interval."""
        ...

    async def aclose(self) -> None:
        """Stop every armed job."""
        ...


class AsyncioScheduler:
    """Scheduler backed by one asyncio task per job.

    ``every()`` must be called from a running event loop. A job that raises
    is logged and runs again on the next tick.
    """

    def __init__(self) -> None:
        self._tasks: list[asyncio.Task[None]] = []

    def every(self, interval: float, job: Job) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        task = asyncio.get_running_loop().create_task(self._run(interval, job))
        self._tasks.append(task)

    async def _run(self, interval: float, job: Job) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except Exception as exc:  # noqa: BLE001 - a failing tick must not stop the schedule
                logger.exception("jwkfetch.scheduler.job_failed", error=str(exc))

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def aclose(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
