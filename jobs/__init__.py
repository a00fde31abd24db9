"""
Domain jobs — Email delivery, webhook dispatch and notification fan-out.

Each factory returns a RegisteredJob whose side effects go through a
transport passed in by the caller (see jobs.transports).
"""
from jobs.email_send import EMAIL_SEND_JOB, new_email_send_job
from jobs.notification_fanout import NOTIFICATION_FANOUT_JOB, new_notification_fanout_job
from jobs.webhook_dispatch import WEBHOOK_DISPATCH_JOB, new_webhook_dispatch_job

__all__ = [
    "EMAIL_SEND_JOB",
    "NOTIFICATION_FANOUT_JOB",
    "WEBHOOK_DISPATCH_JOB",
    "new_email_send_job",
    "new_notification_fanout_job",
    "new_webhook_dispatch_job",
]
