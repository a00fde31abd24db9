"""Notification fan-out job: delivers one text to each listed user, in order."""
from __future__ import annotations

from job_queue.errors import InvalidPayloadError
from job_queue.message import Message
from job_queue.registry import RegisteredJob
from jobs.transports import FanoutNotifier

NOTIFICATION_FANOUT_JOB = "notification_fanout"


def new_notification_fanout_job(notifier: FanoutNotifier) -> RegisteredJob:
    """
    Payload:
        user_ids  list of user ids; empty or non-string ids are skipped
        message   notification text (required)

    A failed delivery fails the whole job, so a retry re-notifies users
    that were already reached.
    """

    async def handler(message: Message) -> None:
        user_ids = message.payload.get("user_ids")
        text = message.payload.get("message")
        if not isinstance(user_ids, list):
            raise InvalidPayloadError("invalid fanout payload: 'user_ids' must be a list")
        if not isinstance(text, str) or not text:
            raise InvalidPayloadError("invalid fanout payload: 'message' is required")

        delivered = 0
        for user_id in user_ids:
            if not isinstance(user_id, str) or not user_id:
                continue
            await notifier.send_to_user(user_id, text)
            delivered += 1

        message.metadata = {
            "delivered": delivered,
            "text": text,
        }

    return RegisteredJob(
        name=NOTIFICATION_FANOUT_JOB,
        handler=handler,
        max_retries=2,
    )
