"""
Transports — Side-effect capabilities injected into the domain job handlers.

Each interface has exactly one method so handlers never resolve transports
themselves and tests can substitute a fake per concern.

Provided implementations:
  Logging*               log-only transports for local runs and demos
  HttpWebhookDispatcher  real HTTP POST via httpx
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import httpx
import structlog

from job_queue.errors import QueueError

logger = structlog.get_logger()


class WebhookDeliveryError(QueueError):
    """Raised when a webhook endpoint rejects or cannot receive a request."""


class EmailSender(ABC):

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        ...


class FanoutNotifier(ABC):

    @abstractmethod
    async def send_to_user(self, user_id: str, message: str) -> None:
        ...


class WebhookDispatcher(ABC):

    @abstractmethod
    async def post(self, url: str, headers: dict[str, str], body: bytes) -> None:
        ...


# ──────────────────────────────────────────────────────────────
#  Log-only transports
# ──────────────────────────────────────────────────────────────

class LoggingEmailSender(EmailSender):
    """Logs outgoing email instead of sending it."""

    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info("email_sent", to=to, subject=subject, body_length=len(body))


class LoggingFanoutNotifier(FanoutNotifier):

    async def send_to_user(self, user_id: str, message: str) -> None:
        logger.info("fanout_delivered", user_id=user_id, message=message)


class LoggingWebhookDispatcher(WebhookDispatcher):

    async def post(self, url: str, headers: dict[str, str], body: bytes) -> None:
        logger.info("webhook_posted",
                    url=url,
                    headers=headers,
                    body=body.decode("utf-8", errors="replace"))


# ──────────────────────────────────────────────────────────────
#  HTTP transport
# ──────────────────────────────────────────────────────────────

class HttpWebhookDispatcher(WebhookDispatcher):
    """
    Posts webhook bodies with httpx. Non-2xx responses and transport errors
    raise WebhookDeliveryError so the queue's retry accounting kicks in;
    retries are left to the queue rather than done here.
    """

    def __init__(self, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.timeout = timeout
        self.client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(timeout=self.timeout)
        return self.client

    async def post(self, url: str, headers: dict[str, str], body: bytes) -> None:
        client = await self._get_client()
        try:
            response = await client.post(url, headers=headers, content=body)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise WebhookDeliveryError(
                f"webhook {url} returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            raise WebhookDeliveryError(f"webhook {url} failed: {e}") from e
        logger.info("webhook_delivered", url=url, status=response.status_code)

    async def close(self) -> None:
        if self.client is not None and not self.client.is_closed:
            await self.client.aclose()
