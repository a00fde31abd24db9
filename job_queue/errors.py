"""
Queue Errors — Exception taxonomy for registration, enqueue, storage and jobs.

  QueueError
  ├── InvalidJobError           bad registration (empty name, missing handler)
  ├── JobNotRegisteredError     enqueue of an unknown job name
  ├── SerializationError        message could not be encoded
  │   └── MessageDecodeError    stored entry could not be decoded
  ├── StoreError                backing list store failure
  ├── SchedulerDependencyError  bootstrap job wired without cron engine/enqueue
  ├── InvalidScheduleError      cron spec rejected by the cron engine
  └── InvalidPayloadError       job payload missing or malformed fields
"""
from __future__ import annotations


class QueueError(Exception):
    """Base class for all job queue errors."""


class InvalidJobError(QueueError):
    """Raised when a job definition cannot be registered."""


class JobNotRegisteredError(QueueError):
    """Raised when enqueueing a job name that has no registry entry."""

    def __init__(self, job_name: str):
        super().__init__(f"job {job_name} is not registered")
        self.job_name = job_name


class SerializationError(QueueError):
    """Raised when a message cannot be converted to its wire format."""


class MessageDecodeError(SerializationError):
    """Raised when a stored entry is not a valid message."""


class StoreError(QueueError):
    """Raised when the backing list store fails."""


class SchedulerDependencyError(QueueError):
    """Raised when the scheduler bootstrap job lacks its collaborators."""


class InvalidScheduleError(QueueError):
    """Raised when the cron engine rejects a schedule spec."""

    def __init__(self, spec: str, reason: str = ""):
        message = f"invalid cron spec {spec!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.spec = spec


class InvalidPayloadError(QueueError):
    """Raised by job handlers when required payload fields are missing."""
