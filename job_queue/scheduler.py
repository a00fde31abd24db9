"""
Scheduler — Turns cron triggers into ordinary queue messages.

The scheduler bootstrap job is itself a queued job: when a worker consumes it,
it reads the configured cron entries and installs one cron callback per entry.
Each firing calls enqueue() as an independent task of the cron engine, so a
scheduled enqueue is never tied to the bootstrap job's own lifetime.

Expected to run once per worker at startup (the worker enqueues it itself).
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Optional

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from config.settings import CronEntry, JobsConfig, load_jobs_config
from job_queue.errors import InvalidScheduleError, QueueError, SchedulerDependencyError
from job_queue.message import Message
from job_queue.registry import RegisteredJob

logger = structlog.get_logger()

SCHEDULER_BOOTSTRAP_JOB = "scheduler_bootstrap"

EnqueueFunc = Callable[[str, dict[str, Any]], Awaitable[Message]]
CronCallback = Callable[[], Awaitable[None]]
JobsConfigLoader = Callable[[], JobsConfig]


class CronEngine(ABC):
    """Minimal cron engine surface used by the bootstrap job."""

    @abstractmethod
    def add_func(self, spec: str, callback: CronCallback) -> str:
        """Schedule ``callback`` on ``spec``. Raises InvalidScheduleError for bad specs."""
        ...

    @abstractmethod
    def start(self) -> None:
        ...

    @abstractmethod
    def stop(self) -> None:
        ...


class APSchedulerCronEngine(CronEngine):
    """CronEngine backed by APScheduler's AsyncIOScheduler (standard 5-field specs)."""

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None, timezone: str = "UTC"):
        self._timezone = timezone
        self._scheduler = scheduler or AsyncIOScheduler(timezone=timezone)

    def add_func(self, spec: str, callback: CronCallback) -> str:
        try:
            trigger = CronTrigger.from_crontab(spec, timezone=self._timezone)
        except ValueError as e:
            raise InvalidScheduleError(spec, str(e)) from e
        job = self._scheduler.add_job(callback, trigger)
        logger.info("cron_job_added", spec=spec, cron_id=job.id)
        return job.id

    def start(self) -> None:
        self._scheduler.start()
        logger.info("cron_engine_started")

    def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
            logger.info("cron_engine_stopped")


def new_scheduler_bootstrap_job(
    cron_engine: Optional[CronEngine],
    loader: Optional[JobsConfigLoader],
    enqueue: Optional[EnqueueFunc],
) -> RegisteredJob:
    """
    Build the ``scheduler_bootstrap`` job.

    Entries missing a spec or job name are skipped and not counted. The
    handler fails if a collaborator is missing or the cron engine rejects a
    spec; schedules installed before the rejected one stay installed.
    On success ``message.metadata["scheduled"]`` holds the installed count.
    """

    async def handler(message: Message) -> None:
        if cron_engine is None or enqueue is None:
            raise SchedulerDependencyError("scheduler dependencies missing")

        config = (loader or load_jobs_config)()
        count = 0
        for entry in config.cron_entries:
            if not entry.spec or not entry.job:
                continue
            cron_engine.add_func(entry.spec, _enqueue_callback(enqueue, entry))
            count += 1

        message.metadata = {"scheduled": count}
        logger.info("schedules_installed", count=count)

    return RegisteredJob(
        name=SCHEDULER_BOOTSTRAP_JOB,
        handler=handler,
        max_retries=1,
    )


def _enqueue_callback(enqueue: EnqueueFunc, entry: CronEntry) -> CronCallback:
    # a factory per entry, so each callback closes over its own entry
    async def fire() -> None:
        try:
            message = await enqueue(entry.job, dict(entry.payload))
        except QueueError as e:
            logger.error("scheduled_enqueue_failed",
                         schedule=entry.name,
                         job=entry.job,
                         error=str(e))
            return
        logger.info("scheduled_job_enqueued",
                    schedule=entry.name,
                    job=entry.job,
                    message_id=message.id)

    return fire
