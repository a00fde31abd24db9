"""
Worker entry point — Runs the job consumer and cron scheduler in one process.

Startup:
  1. build the list store and queue from settings
  2. register the domain jobs and the scheduler bootstrap job
  3. enqueue scheduler_bootstrap once so cron entries get installed
  4. start the cron engine and consume until SIGINT/SIGTERM

Every worker sharing a namespace must run the same registrations.

Usage:
    job-worker --config config/settings.yaml
    python -m worker.main
"""
from __future__ import annotations

import argparse
import asyncio
import signal
from typing import Optional

import structlog
from dotenv import load_dotenv

from config.settings import JobsConfig, Settings, get_settings, load_jobs_config, load_settings
from job_queue.errors import QueueError
from job_queue.queue import JobQueue
from job_queue.scheduler import (
    SCHEDULER_BOOTSTRAP_JOB,
    APSchedulerCronEngine,
    CronEngine,
    new_scheduler_bootstrap_job,
)
from job_queue.store import create_list_store
from jobs import new_email_send_job, new_notification_fanout_job, new_webhook_dispatch_job
from jobs.transports import (
    EmailSender,
    FanoutNotifier,
    HttpWebhookDispatcher,
    LoggingEmailSender,
    LoggingFanoutNotifier,
    WebhookDispatcher,
)
from utils.logging import configure_logging

logger = structlog.get_logger()


def register_worker_jobs(
    queue: JobQueue,
    cron_engine: CronEngine,
    email_sender: EmailSender,
    webhook_dispatcher: WebhookDispatcher,
    notifier: FanoutNotifier,
    jobs_loader=None,
) -> None:
    """Register every job this worker can run, including the scheduler bootstrap."""
    queue.register(new_notification_fanout_job(notifier))
    queue.register(new_email_send_job(email_sender))
    queue.register(new_webhook_dispatch_job(webhook_dispatcher))
    queue.register(new_scheduler_bootstrap_job(cron_engine, jobs_loader, queue.enqueue))


async def run_worker(settings: Optional[Settings] = None) -> None:
    """Run until a termination signal arrives. Raises StoreError if the store fails."""
    settings = settings or get_settings()

    store = create_list_store(settings.queue)
    await store.connect()

    queue = JobQueue(
        store,
        namespace=settings.queue.namespace,
        wait_time=settings.queue.wait_time,
    )
    cron_engine = APSchedulerCronEngine(timezone=settings.timezone)
    webhook_dispatcher = HttpWebhookDispatcher(timeout=settings.webhook.timeout)

    def jobs_loader() -> JobsConfig:
        return load_jobs_config(settings)

    register_worker_jobs(
        queue,
        cron_engine,
        email_sender=LoggingEmailSender(),
        webhook_dispatcher=webhook_dispatcher,
        notifier=LoggingFanoutNotifier(),
        jobs_loader=jobs_loader,
    )

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await queue.enqueue(SCHEDULER_BOOTSTRAP_JOB, {})
    except QueueError as e:
        logger.error("scheduler_bootstrap_enqueue_failed", error=str(e))

    cron_engine.start()
    logger.info("worker_started",
                app=settings.app_name,
                backend=settings.queue.backend,
                namespace=settings.queue.namespace,
                jobs=[job.name for job in queue.jobs()])
    try:
        await queue.consume(stop_event)
    finally:
        cron_engine.stop()
        await webhook_dispatcher.close()
        await store.close()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
        logger.info("worker_stopped")


def main(argv: Optional[list[str]] = None) -> int:
    load_dotenv()

    parser = argparse.ArgumentParser(description="Run the background job worker")
    parser.add_argument("--config", default=None, help="path to settings YAML")
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    configure_logging(settings.log_level, settings.log_format)

    try:
        asyncio.run(run_worker(settings))
    except QueueError as e:
        logger.error("worker_consumer_error", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
