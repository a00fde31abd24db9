"""
Job Registry — Process-local table of job name → handler + retry/timeout policy.

Each JobQueue owns one registry. Workers sharing a namespace must register the
same jobs; the registry is never shared between processes.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Awaitable, Callable, Optional

import structlog

from job_queue.errors import InvalidJobError
from job_queue.message import DEFAULT_MAX_RETRIES, Message

logger = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 30.0

# A handler signals failure by raising; returning normally is success.
JobHandler = Callable[[Message], Awaitable[None]]


@dataclass(frozen=True)
class RegisteredJob:
    """Registry entry; never serialized."""
    name: str
    handler: Optional[JobHandler]
    max_retries: int = 0           # 0 → DEFAULT_MAX_RETRIES
    timeout: float = 0.0           # seconds, 0 → DEFAULT_TIMEOUT_SECONDS


class JobRegistry:
    """Thread-safe name → RegisteredJob mapping."""

    def __init__(self):
        self._lock = threading.Lock()
        self._jobs: dict[str, RegisteredJob] = {}

    def register(self, job: RegisteredJob) -> RegisteredJob:
        """Add or replace a job, filling default policy values. Returns the stored entry."""
        if not job.name:
            raise InvalidJobError("job name is required")
        if job.handler is None:
            raise InvalidJobError(f"job {job.name}: handler cannot be None")
        if job.max_retries < 0:
            raise InvalidJobError(f"job {job.name}: max_retries cannot be negative")
        if job.timeout < 0:
            raise InvalidJobError(f"job {job.name}: timeout cannot be negative")

        stored = replace(
            job,
            max_retries=job.max_retries or DEFAULT_MAX_RETRIES,
            timeout=job.timeout or DEFAULT_TIMEOUT_SECONDS,
        )
        with self._lock:
            self._jobs[stored.name] = stored
        logger.info("job_registered",
                    job=stored.name,
                    max_retries=stored.max_retries,
                    timeout=stored.timeout)
        return stored

    def get(self, name: str) -> Optional[RegisteredJob]:
        with self._lock:
            return self._jobs.get(name)

    def list(self) -> list[RegisteredJob]:
        """Snapshot of registered jobs; callers may mutate the returned list freely."""
        with self._lock:
            return list(self._jobs.values())

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._jobs

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
