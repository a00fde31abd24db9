"""
Webhook dispatch job: POSTs a signed body through the injected WebhookDispatcher.

The X-Signature header is the lowercase hex HMAC-SHA256 of the exact bytes
sent, keyed by the payload's secret. Receivers recompute it over the raw
request body.
"""
from __future__ import annotations

import hashlib
import hmac
import json
from typing import Any

from job_queue.errors import InvalidPayloadError
from job_queue.message import Message
from job_queue.registry import RegisteredJob
from jobs.transports import WebhookDispatcher

WEBHOOK_DISPATCH_JOB = "webhook_dispatch"
SIGNATURE_HEADER = "X-Signature"


def encode_body(body: Any) -> bytes:
    """Strings are sent verbatim; anything else as compact, key-sorted JSON."""
    if isinstance(body, str):
        return body.encode("utf-8")
    try:
        return json.dumps(body, sort_keys=True, separators=(",", ":")).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise InvalidPayloadError(f"webhook body is not JSON-serializable: {e}") from e


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def new_webhook_dispatch_job(dispatcher: WebhookDispatcher) -> RegisteredJob:
    """
    Payload:
        url     target endpoint (required)
        secret  HMAC key (required)
        body    request body (required; str or JSON value)
    """

    async def handler(message: Message) -> None:
        url = message.payload.get("url")
        secret = message.payload.get("secret")
        if not isinstance(url, str) or not url or not isinstance(secret, str) or not secret \
                or "body" not in message.payload:
            raise InvalidPayloadError("invalid webhook payload: 'url', 'secret' and 'body' are required")

        body = encode_body(message.payload["body"])
        signature = sign(secret, body)
        headers = {
            "Content-Type": "application/json",
            SIGNATURE_HEADER: signature,
        }

        await dispatcher.post(url, headers, body)

        message.metadata = {
            "url": url,
            "signature": signature,
        }

    return RegisteredJob(
        name=WEBHOOK_DISPATCH_JOB,
        handler=handler,
        max_retries=4,
    )
