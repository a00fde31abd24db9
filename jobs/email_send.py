"""Email delivery job: sends one message through the injected EmailSender."""
from __future__ import annotations

from job_queue.errors import InvalidPayloadError
from job_queue.message import Message
from job_queue.registry import RegisteredJob
from jobs.transports import EmailSender

EMAIL_SEND_JOB = "email_send"


def new_email_send_job(sender: EmailSender) -> RegisteredJob:
    """
    Payload:
        to       recipient address (required)
        subject  subject line (required)
        body     plain text body (optional)
    """

    async def handler(message: Message) -> None:
        to = message.payload.get("to")
        subject = message.payload.get("subject")
        body = message.payload.get("body", "")
        if not isinstance(to, str) or not to or not isinstance(subject, str) or not subject:
            raise InvalidPayloadError("missing email fields: 'to' and 'subject' are required")
        if not isinstance(body, str):
            raise InvalidPayloadError("email 'body' must be a string")

        await sender.send(to, subject, body)

        message.metadata = {
            "to": to,
            "subject": subject,
            "status": "sent",
        }

    return RegisteredJob(
        name=EMAIL_SEND_JOB,
        handler=handler,
        max_retries=5,
        timeout=45.0,
    )
