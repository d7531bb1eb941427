"""Fixed-interval job scheduler for the sync engines.

Each PeriodicJob runs its tick to completion (bounded by a timeout) before
waiting for the next interval, so ticks of one job never overlap. Jobs run
as independent asyncio tasks, so the currency sync and the agent scan can
be in flight at the same time.

The job runner is the single place tick failures are logged: typed
SyncError aborts the tick and is logged with its context, anything else is
logged with a traceback. Either way the next tick is scheduled normally.
Stopping is observed while waiting; an in-flight tick is allowed to finish
unless the stop timeout expires.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from inventory_sync.exceptions import SyncError
from inventory_sync.logging import bind_tick_context, clear_tick_context, get_logger

logger = get_logger(__name__)

TickFn = Callable[[], Awaitable[Any]]


@dataclass
class JobStatus:
    """Observable state of a periodic job."""

    name: str
    interval_seconds: float
    ticks: int = 0
    running: bool = False
    last_started_at: float | None = None
    last_finished_at: float | None = None
    last_outcome: str | None = None  # "ok", "aborted", "timeout", "error"
    last_error: str | None = None
    consecutive_failures: int = 0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "interval_seconds": self.interval_seconds,
            "ticks": self.ticks,
            "running": self.running,
            "last_started_at": self.last_started_at,
            "last_finished_at": self.last_finished_at,
            "last_outcome": self.last_outcome,
            "last_error": self.last_error,
            "consecutive_failures": self.consecutive_failures,
        }


class PeriodicJob:
    """Runs ``tick`` every ``interval`` seconds until stopped.

    Args:
        name: Job name used in logs and status.
        tick: Coroutine function doing one unit of work.
        interval: Seconds between the end of one wait and the next tick.
        initial_delay: Seconds before the first tick.
        tick_timeout: Upper bound for a single tick; None for no bound.
    """

    def __init__(
        self,
        name: str,
        tick: TickFn,
        interval: float,
        initial_delay: float = 0.0,
        tick_timeout: float | None = None,
    ) -> None:
        self._name = name
        self._tick = tick
        self._interval = interval
        self._initial_delay = initial_delay
        self._tick_timeout = tick_timeout
        self._stop_event = asyncio.Event()
        self._status = JobStatus(name=name, interval_seconds=interval)

    @property
    def name(self) -> str:
        return self._name

    @property
    def status(self) -> JobStatus:
        return self._status

    def request_stop(self) -> None:
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    async def run(self) -> None:
        """Job loop: wait, tick, repeat until stop is requested."""
        logger.info(
            "job_started",
            job=self._name,
            interval=self._interval,
            initial_delay=self._initial_delay,
        )
        if await self._wait(self._initial_delay):
            while not self.stopping:
                await self.run_once()
                if not await self._wait(self._interval):
                    break
        logger.info("job_stopped", job=self._name, ticks=self._status.ticks)

    async def run_once(self) -> str:
        """Run a single tick through the error handler. Returns the outcome."""
        status = self._status
        status.ticks += 1
        status.running = True
        status.last_started_at = time.time()
        bind_tick_context(self._name, status.ticks)
        started = time.monotonic()

        try:
            result = await asyncio.wait_for(self._tick(), timeout=self._tick_timeout)
        except SyncError as e:
            outcome = "aborted"
            status.last_error = str(e)
            logger.error("tick_aborted", **e.context())
        except asyncio.TimeoutError:
            outcome = "timeout"
            status.last_error = f"tick exceeded {self._tick_timeout}s"
            logger.error("tick_timeout", timeout=self._tick_timeout)
        except asyncio.CancelledError:
            status.running = False
            clear_tick_context()
            raise
        except Exception as e:
            outcome = "error"
            status.last_error = str(e)
            logger.error("tick_error", error=str(e), exc_info=True)
        else:
            outcome = "ok"
            status.last_error = None
            logger.debug("tick_result", result=repr(result))
        finally:
            status.running = False
            status.last_finished_at = time.time()

        status.last_outcome = outcome
        status.consecutive_failures = 0 if outcome == "ok" else status.consecutive_failures + 1
        logger.info(
            "tick_finished",
            outcome=outcome,
            duration_seconds=round(time.monotonic() - started, 3),
        )
        clear_tick_context()
        return outcome

    async def _wait(self, seconds: float) -> bool:
        """Sleep unless stopped first. Returns False if stop was requested."""
        if self.stopping:
            return False
        if seconds <= 0:
            return True
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False


class Scheduler:
    """Owns the periodic jobs and their tasks.

    Usage:
        scheduler = Scheduler()
        scheduler.add_job(PeriodicJob("currency_sync", engine.tick, 2700))
        await scheduler.start()
        ...
        await scheduler.stop()
    """

    def __init__(self, stop_timeout: float = 30.0) -> None:
        self._jobs: dict[str, PeriodicJob] = {}
        self._tasks: dict[str, asyncio.Task] = {}  # type: ignore[type-arg]
        self._stop_timeout = stop_timeout

    def add_job(self, job: PeriodicJob) -> None:
        if job.name in self._jobs:
            raise ValueError(f"Job {job.name!r} already registered")
        self._jobs[job.name] = job

    @property
    def jobs(self) -> list[PeriodicJob]:
        return list(self._jobs.values())

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks.values())

    async def start(self) -> None:
        """Launch every job as a background task."""
        if self.running:
            logger.warning("scheduler_already_running")
            return
        for name, job in self._jobs.items():
            self._tasks[name] = asyncio.create_task(job.run(), name=f"job:{name}")
        logger.info("scheduler_started", jobs=list(self._jobs))

    async def stop(self) -> None:
        """Request every job to stop and wait for in-flight ticks.

        Ticks still running after ``stop_timeout`` are cancelled.
        """
        for job in self._jobs.values():
            job.request_stop()

        tasks = list(self._tasks.values())
        if tasks:
            _, pending = await asyncio.wait(tasks, timeout=self._stop_timeout)
            for task in pending:
                task.cancel()
            for task in pending:
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            if pending:
                logger.warning("scheduler_cancelled_ticks", count=len(pending))

        self._tasks.clear()
        logger.info("scheduler_stopped")

    async def wait(self) -> None:
        """Block until every job task has finished."""
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)

    def status(self) -> list[dict]:
        return [job.status.to_dict() for job in self._jobs.values()]
