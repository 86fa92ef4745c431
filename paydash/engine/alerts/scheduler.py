"""
Notification Scheduler: periodic threshold evaluation and cleanup.

Runs inside the application event loop. Jobs are synchronous engine calls
executed in a worker thread via asyncio.to_thread and awaited one at a
time, so two evaluation cycles never overlap. One scheduler per deployment
is assumed; the cooldown check is not atomic across processes.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import structlog

from paydash.models.notifications import EvaluationReport

logger = structlog.get_logger()


@dataclass
class PeriodicJob:
    """A registered job and its run bookkeeping."""

    name: str
    callback: Callable[[], Any]
    interval_seconds: int
    next_run: datetime
    run_count: int = 0
    error_count: int = 0
    last_run: Optional[datetime] = None
    last_error: Optional[str] = None


class NotificationScheduler:
    """
    Async loop that runs due jobs on a fixed check interval.

    Example:
        >>> scheduler = NotificationScheduler(check_interval_seconds=30)
        >>> scheduler.register("threshold_evaluation", evaluator.run_cycle, 3600)
        >>> await scheduler.start()
    """

    def __init__(self, check_interval_seconds: int = 30):
        self.check_interval_seconds = check_interval_seconds
        self._jobs: dict[str, PeriodicJob] = {}
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._running

    def register(
        self,
        name: str,
        callback: Callable[[], Any],
        interval_seconds: int,
        run_immediately: bool = False,
    ) -> PeriodicJob:
        """Register a job; replaces any job with the same name."""
        now = datetime.utcnow()
        job = PeriodicJob(
            name=name,
            callback=callback,
            interval_seconds=interval_seconds,
            next_run=now if run_immediately else now + timedelta(seconds=interval_seconds),
        )
        self._jobs[name] = job
        logger.info(
            "scheduled_job_registered",
            job=name,
            interval_seconds=interval_seconds,
            next_run=job.next_run.isoformat(),
        )
        return job

    async def start(self) -> None:
        """Start the background loop."""
        if self._running:
            logger.warning("scheduler_already_running")
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        logger.info("scheduler_started", job_count=len(self._jobs))

    async def stop(self) -> None:
        """Stop the loop and wait for it to exit."""
        if not self._running:
            return
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("scheduler_stopped")

    async def run_due(self, now: Optional[datetime] = None) -> list[str]:
        """Run every job whose next_run has passed. Returns the job names run."""
        now = now or datetime.utcnow()
        ran = []
        for job in list(self._jobs.values()):
            if now >= job.next_run:
                await self._execute(job)
                ran.append(job.name)
        return ran

    async def _run_loop(self) -> None:
        while self._running:
            await self.run_due()
            await asyncio.sleep(self.check_interval_seconds)

    async def _execute(self, job: PeriodicJob) -> None:
        started = datetime.utcnow()
        try:
            result = await asyncio.to_thread(job.callback)
            job.run_count += 1
            job.last_error = None
            if isinstance(result, EvaluationReport) and result.failed:
                job.error_count += 1
                job.last_error = f"{len(result.failed)} rule(s) failed"
                logger.warning(
                    "scheduled_job_partial_failure",
                    job=job.name,
                    failed_rules=[o.rule_id for o in result.failed],
                )
            else:
                job.error_count = 0
        except Exception as e:
            job.error_count += 1
            job.last_error = str(e)
            logger.error("scheduled_job_failed", job=job.name, error=str(e), exc_info=True)
        finally:
            job.last_run = datetime.utcnow()
            job.next_run = started + timedelta(seconds=job.interval_seconds)

        logger.info(
            "scheduled_job_completed",
            job=job.name,
            duration_ms=round((job.last_run - started).total_seconds() * 1000, 2),
            next_run=job.next_run.isoformat(),
        )

    def get_status(self) -> dict:
        return {
            "running": self._running,
            "jobs": [
                {
                    "name": job.name,
                    "interval_seconds": job.interval_seconds,
                    "next_run": job.next_run.isoformat(),
                    "last_run": job.last_run.isoformat() if job.last_run else None,
                    "run_count": job.run_count,
                    "error_count": job.error_count,
                    "last_error": job.last_error,
                }
                for job in self._jobs.values()
            ],
        }
