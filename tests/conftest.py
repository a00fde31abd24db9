"""Shared test fixtures for the job queue."""
import pytest

from config.settings import CronEntry, JobsConfig
from job_queue.message import Message
from job_queue.queue import JobQueue
from job_queue.registry import RegisteredJob
from job_queue.scheduler import CronEngine
from job_queue.store import InMemoryListStore
from jobs.transports import EmailSender, FanoutNotifier, WebhookDispatcher


class IntentionalFailure(Exception):
    pass


# ──────────────────────────────────────────────────────────────
#  Fakes
# ──────────────────────────────────────────────────────────────

class RecordingEmailSender(EmailSender):
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.attempts = 0
        self.sent: list[tuple[str, str, str]] = []

    async def send(self, to, subject, body):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise IntentionalFailure("smtp unavailable")
        self.sent.append((to, subject, body))


class RecordingNotifier(FanoutNotifier):
    def __init__(self, fail_for: str = ""):
        self.fail_for = fail_for
        self.delivered: list[tuple[str, str]] = []

    async def send_to_user(self, user_id, message):
        if user_id == self.fail_for:
            raise IntentionalFailure(f"user {user_id} unreachable")
        self.delivered.append((user_id, message))


class RecordingWebhookDispatcher(WebhookDispatcher):
    def __init__(self):
        self.calls: list[tuple[str, dict, bytes]] = []

    async def post(self, url, headers, body):
        self.calls.append((url, dict(headers), body))


class FakeCronEngine(CronEngine):
    def __init__(self, reject: set = None):
        self.reject = reject or set()
        self.entries: list[tuple[str, object]] = []
        self.started = False

    def add_func(self, spec, callback):
        from job_queue.errors import InvalidScheduleError
        if spec in self.reject:
            raise InvalidScheduleError(spec, "rejected by fake engine")
        self.entries.append((spec, callback))
        return f"cron-{len(self.entries)}"

    def start(self):
        self.started = True

    def stop(self):
        self.started = False


# ──────────────────────────────────────────────────────────────
#  Helpers
# ──────────────────────────────────────────────────────────────

async def drain(queue: JobQueue, timeout: float = 0.01) -> int:
    """Process messages until the main list stays empty for ``timeout``."""
    processed = 0
    while await queue.process_next(timeout=timeout):
        processed += 1
    return processed


def noop_job(name: str = "noop", **kwargs) -> RegisteredJob:
    async def handler(message: Message) -> None:
        return None
    return RegisteredJob(name=name, handler=handler, **kwargs)


def failing_job(name: str = "always_fail", error: str = "intentional failure", **kwargs) -> RegisteredJob:
    async def handler(message: Message) -> None:
        raise IntentionalFailure(error)
    return RegisteredJob(name=name, handler=handler, **kwargs)


def jobs_loader(*entries: CronEntry):
    return lambda: JobsConfig(cron_entries=list(entries))


# ──────────────────────────────────────────────────────────────
#  Fixtures
# ──────────────────────────────────────────────────────────────

@pytest.fixture
def store() -> InMemoryListStore:
    return InMemoryListStore()


@pytest.fixture
def queue(store) -> JobQueue:
    return JobQueue(store, namespace="itest", wait_time=0.05)


@pytest.fixture
def cron_engine() -> FakeCronEngine:
    return FakeCronEngine()
