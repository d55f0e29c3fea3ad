"""Task manager: independent periodic loops on asyncio.

Each registered ``CronJob`` gets its own task that sleeps for ``period``
seconds, then awaits the handler. The next sleep starts only after the
handler returns, so a job never overlaps itself. A failing tick is logged
and the loop carries on; ``stop()`` cancels every loop and waits for it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from tron_gateway.metrics.collector import GatewayMetrics

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CronJob:
    """A recurring background job."""

    handler: Callable[[], Awaitable[Any]]
    period: float  # seconds
    name: str = ""


@dataclass
class JobState:
    """Run bookkeeping for one job."""

    runs: int = 0
    failures: int = 0
    last_run: float | None = None  # time.time()
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "runs": self.runs,
            "failures": self.failures,
            "last_run": self.last_run,
            "last_error": self.last_error,
        }


class TaskManager:
    """Runs cron jobs as independent asyncio tasks.

    Usage::

        tm = TaskManager(metrics=gateway_metrics)
        tm.register("monitor_incoming", CronJob(handler=..., period=30))
        await tm.start()
        ...
        await tm.stop()
    """

    def __init__(self, *, metrics: GatewayMetrics | None = None) -> None:
        self._jobs: dict[str, CronJob] = {}
        self._state: dict[str, JobState] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._running = False
        self._metrics = metrics

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def jobs(self) -> dict[str, CronJob]:
        """Registered jobs (name -> CronJob)."""
        return dict(self._jobs)

    def register(self, name: str, job: CronJob) -> None:
        """Register (or replace) a job. Starts it at once if already running."""
        if job.period <= 0:
            msg = f"job {name!r} needs a positive period, got {job.period}"
            raise ValueError(msg)
        resolved = CronJob(handler=job.handler, period=job.period, name=name)
        self._jobs[name] = resolved
        self._state.setdefault(name, JobState())
        if self._running:
            previous = self._tasks.pop(name, None)
            if previous is not None:
                previous.cancel()
            self._tasks[name] = asyncio.create_task(self._run_loop(resolved), name=f"cron:{name}")

    async def start(self) -> None:
        """Start a loop for every registered job."""
        if self._running:
            return
        self._running = True
        for name, job in self._jobs.items():
            self._tasks[name] = asyncio.create_task(self._run_loop(job), name=f"cron:{name}")
        logger.info("TaskManager started with %d jobs: %s", len(self._jobs), ", ".join(self._jobs))

    async def stop(self) -> None:
        """Cancel all loops and wait for them to unwind."""
        if not self._running:
            return
        self._running = False
        for task in self._tasks.values():
            task.cancel()
        results = await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        for r in results:
            if isinstance(r, Exception):
                logger.error("Task error during shutdown: %s", r)
        self._tasks.clear()
        logger.info("TaskManager stopped")

    async def run_job(self, name: str) -> bool:
        """Run one job immediately, outside its schedule.

        Returns:
            True if the handler completed without raising.

        Raises:
            KeyError: If no job is registered under *name*.
        """
        return await self._execute(self._jobs[name])

    def status(self) -> dict[str, dict[str, Any]]:
        return {
            name: {"period": job.period, **self._state[name].to_dict()}
            for name, job in self._jobs.items()
        }

    async def _run_loop(self, job: CronJob) -> None:
        while self._running:
            await asyncio.sleep(job.period)
            if not self._running:
                break
            await self._execute(job)

    async def _execute(self, job: CronJob) -> bool:
        name = job.name or "unnamed"
        state = self._state.setdefault(name, JobState())
        state.runs += 1
        state.last_run = time.time()
        try:
            if self._metrics:
                with self._metrics.track_cron(name):
                    await job.handler()
            else:
                await job.handler()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            state.failures += 1
            state.last_error = str(exc) or type(exc).__name__
            logger.exception("Cron job %r failed", name)
            return False
        state.last_error = None
        return True
