"""Tests for the transports injected into the domain jobs."""
import httpx
import pytest

from job_queue.message import Message
from jobs.transports import (
    HttpWebhookDispatcher,
    LoggingEmailSender,
    LoggingFanoutNotifier,
    LoggingWebhookDispatcher,
    WebhookDeliveryError,
)
from jobs.webhook_dispatch import SIGNATURE_HEADER, WEBHOOK_DISPATCH_JOB, new_webhook_dispatch_job, sign


def mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestHttpWebhookDispatcher:
    @pytest.mark.asyncio
    async def test_posts_exact_body_and_headers(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(204)

        dispatcher = HttpWebhookDispatcher(client=mock_client(handler))
        await dispatcher.post(
            "https://example.com/hook",
            {"Content-Type": "application/json", "X-Signature": "abc"},
            b'{"x":1}',
        )
        await dispatcher.close()

        assert len(requests) == 1
        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://example.com/hook"
        assert request.content == b'{"x":1}'
        assert request.headers["content-type"] == "application/json"
        assert request.headers["x-signature"] == "abc"

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        dispatcher = HttpWebhookDispatcher(client=mock_client(lambda r: httpx.Response(500)))
        with pytest.raises(WebhookDeliveryError, match="returned 500"):
            await dispatcher.post("https://example.com/hook", {}, b"{}")

    @pytest.mark.asyncio
    async def test_connection_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        dispatcher = HttpWebhookDispatcher(client=mock_client(handler))
        with pytest.raises(WebhookDeliveryError, match="failed"):
            await dispatcher.post("https://example.com/hook", {}, b"{}")

    @pytest.mark.asyncio
    async def test_receiver_can_verify_signature(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append((request.headers[SIGNATURE_HEADER], request.content))
            return httpx.Response(200)

        dispatcher = HttpWebhookDispatcher(client=mock_client(handler))
        job = new_webhook_dispatch_job(dispatcher)
        await job.handler(Message(job=WEBHOOK_DISPATCH_JOB, payload={
            "url": "https://example.com/hook", "secret": "s3cret", "body": {"x": 1},
        }))
        await dispatcher.close()

        signature, body = received[0]
        assert signature == sign("s3cret", body)

    @pytest.mark.asyncio
    async def test_creates_client_lazily(self):
        dispatcher = HttpWebhookDispatcher(timeout=2.0)
        assert dispatcher.client is None
        client = await dispatcher._get_client()
        assert client is await dispatcher._get_client()
        await dispatcher.close()
        assert client.is_closed


class TestLoggingTransports:
    @pytest.mark.asyncio
    async def test_log_only_transports_accept_calls(self):
        await LoggingEmailSender().send("a@example.com", "Hi", "body")
        await LoggingFanoutNotifier().send_to_user("u1", "hello")
        await LoggingWebhookDispatcher().post("https://example.com/hook", {}, b"{}")
