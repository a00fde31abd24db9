"""Tests for worker wiring and the process entry point."""
import os
import signal

import pytest

from config.settings import CronEntry, QueueConfig, Settings
from job_queue.errors import StoreError
from job_queue.scheduler import SCHEDULER_BOOTSTRAP_JOB
from jobs import EMAIL_SEND_JOB, NOTIFICATION_FANOUT_JOB, WEBHOOK_DISPATCH_JOB
from worker import main as worker_main
from worker.main import register_worker_jobs

from conftest import (
    FakeCronEngine,
    RecordingEmailSender,
    RecordingNotifier,
    RecordingWebhookDispatcher,
    drain,
    jobs_loader,
)


class TestRegisterWorkerJobs:
    def test_registers_all_jobs(self, queue, cron_engine):
        register_worker_jobs(
            queue,
            cron_engine,
            email_sender=RecordingEmailSender(),
            webhook_dispatcher=RecordingWebhookDispatcher(),
            notifier=RecordingNotifier(),
        )
        assert sorted(job.name for job in queue.jobs()) == sorted([
            NOTIFICATION_FANOUT_JOB,
            EMAIL_SEND_JOB,
            WEBHOOK_DISPATCH_JOB,
            SCHEDULER_BOOTSTRAP_JOB,
        ])

    @pytest.mark.asyncio
    async def test_scheduled_email_flows_through_queue(self, queue, cron_engine):
        sender = RecordingEmailSender()
        register_worker_jobs(
            queue,
            cron_engine,
            email_sender=sender,
            webhook_dispatcher=RecordingWebhookDispatcher(),
            notifier=RecordingNotifier(),
            jobs_loader=jobs_loader(CronEntry(
                name="nightly",
                spec="0 2 * * *",
                job=EMAIL_SEND_JOB,
                payload={"to": "ops@example.com", "subject": "Nightly digest"},
            )),
        )

        await queue.enqueue(SCHEDULER_BOOTSTRAP_JOB)
        await drain(queue)
        assert len(cron_engine.entries) == 1

        _, fire = cron_engine.entries[0]
        await fire()
        await drain(queue)

        assert sender.sent == [("ops@example.com", "Nightly digest", "")]
        assert await queue.read_dlq(10) == []


class SignallingCronEngine(FakeCronEngine):
    """Sends SIGTERM to the process once the worker starts its cron engine."""

    def __init__(self, timezone: str = "UTC"):
        super().__init__()
        self.stopped = False

    def start(self):
        super().start()
        os.kill(os.getpid(), signal.SIGTERM)

    def stop(self):
        super().stop()
        self.stopped = True


class TestRunWorker:
    @pytest.mark.asyncio
    async def test_stops_on_sigterm(self, monkeypatch):
        engines = []

        def make_engine(timezone="UTC"):
            engine = SignallingCronEngine(timezone)
            engines.append(engine)
            return engine

        monkeypatch.setattr(worker_main, "APSchedulerCronEngine", make_engine)
        settings = Settings(queue=QueueConfig(backend="memory", namespace="wtest", wait_time=0.05))

        await worker_main.run_worker(settings)

        assert len(engines) == 1
        assert engines[0].stopped


class TestMain:
    def test_store_failure_exits_nonzero(self, tmp_path, monkeypatch):
        async def failing_worker(settings):
            raise StoreError("connection refused")

        monkeypatch.setattr(worker_main, "run_worker", failing_worker)
        assert worker_main.main(["--config", str(tmp_path / "absent.yaml")]) == 1

    def test_clean_exit(self, tmp_path, monkeypatch):
        seen = []

        async def quiet_worker(settings):
            seen.append(settings)

        config = tmp_path / "settings.yaml"
        config.write_text("app_name: MainTest\n")
        monkeypatch.setattr(worker_main, "run_worker", quiet_worker)

        assert worker_main.main(["--config", str(config)]) == 0
        assert seen[0].app_name == "MainTest"
