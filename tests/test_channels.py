"""
Tests for the channel sinks.
"""
import httpx
import pytest

from dispute_engine.core import ChannelDeliveryException
from dispute_engine.notifications.domain import NotificationData
from dispute_engine.notifications.infrastructure import (
    CircuitBreaker, CircuitState, InAppChannelSink, LoggingChannelSink,
    WebhookChannelSink
)


def _notification():
    return NotificationData(
        id="n1",
        user_id="buyer_42",
        type="DISPUTE",
        category="URGENT",
        title="Dispute Escalated",
        message="Immediate attention required.",
        priority="URGENT",
        data={"disputeId": "d1"},
    )


def _webhook(handler, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return WebhookChannelSink("https://hooks.example.com/notify", backoff_base=0, http_client=client, **kwargs)


@pytest.mark.asyncio
async def test_webhook_posts_rendered_notification():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    sink = _webhook(handler)

    assert await sink.send(_notification(), "EMAIL") is True
    body = requests[0].read().decode()
    assert '"channel":"EMAIL"' in body.replace(" ", "")
    assert '"dispute_id":"d1"' in body.replace(" ", "")
    await sink.close()


@pytest.mark.asyncio
async def test_webhook_retries_then_succeeds():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(503 if len(attempts) < 3 else 200)

    sink = _webhook(handler, max_retries=3)

    assert await sink.send(_notification(), "SMS") is True
    assert len(attempts) == 3
    await sink.close()


@pytest.mark.asyncio
async def test_webhook_raises_after_exhausting_retries():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    sink = _webhook(handler, max_retries=2)

    with pytest.raises(ChannelDeliveryException) as exc_info:
        await sink.send(_notification(), "PUSH")

    assert exc_info.value.channel == "PUSH"
    assert "connection refused" in exc_info.value.message
    await sink.close()


@pytest.mark.asyncio
async def test_open_circuit_rejects_without_calling():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(500)

    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=60)
    sink = _webhook(handler, max_retries=1, circuit_breaker=breaker)

    with pytest.raises(ChannelDeliveryException):
        await sink.send(_notification(), "EMAIL")
    assert breaker.state == CircuitState.OPEN

    with pytest.raises(ChannelDeliveryException) as exc_info:
        await sink.send(_notification(), "EMAIL")

    assert "circuit breaker open" in exc_info.value.message
    assert len(calls) == 1
    await sink.close()


def test_circuit_half_opens_after_recovery_timeout():
    breaker = CircuitBreaker(failure_threshold=1, recovery_timeout=0)

    breaker.record_failure()

    assert breaker.state == CircuitState.HALF_OPEN
    assert breaker.allow_request()
    breaker.record_success()
    assert breaker.state == CircuitState.CLOSED


@pytest.mark.asyncio
async def test_in_app_sink_publishes_to_subscribers():
    sink = InAppChannelSink()
    received = []
    sink.subscribe(received.append)

    assert await sink.send(_notification(), "IN_APP") is True
    assert [n.id for n in received] == ["n1"]

    sink.close()
    await sink.send(_notification(), "IN_APP")
    assert len(received) == 1


@pytest.mark.asyncio
async def test_logging_sink_always_succeeds():
    assert await LoggingChannelSink().send(_notification(), "EMAIL") is True
