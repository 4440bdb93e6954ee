"""
Channel Sinks
=============

Delivery transports for the channel dispatcher:
- LoggingChannelSink: writes the notification to the structured log
- InAppChannelSink: publishes onto an in-process event bus
- WebhookChannelSink: POSTs JSON to a webhook with circuit breaker and retries
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from dispute_engine.core import ChannelDeliveryException
from dispute_engine.notifications.application import IChannelSink
from dispute_engine.notifications.domain import NotificationData
from dispute_engine.shared.infrastructure.event_bus import EventBus, Listener, Unsubscribe
from dispute_engine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


class LoggingChannelSink(IChannelSink):
    """Records the delivery in the log; always succeeds."""

    async def send(self, notification: NotificationData, channel: str) -> bool:
        logger.info(
            "Notification delivered to channel",
            extra={
                "channel": channel,
                "notification_id": notification.id,
                "user_id": notification.user_id,
                "title": notification.title,
            }
        )
        return True


class InAppChannelSink(IChannelSink):
    """Fans notifications out to in-process subscribers (e.g. a websocket hub)."""

    def __init__(self):
        self._bus: EventBus[NotificationData] = EventBus("notifications.in_app")

    async def send(self, notification: NotificationData, channel: str) -> bool:
        self._bus.publish(notification)
        return True

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self._bus.subscribe(listener)

    def close(self) -> None:
        self._bus.clear()


class CircuitState:
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """
    Circuit breaker for an unreliable downstream.

    States:
    - CLOSED: Normal operation, requests pass through
    - OPEN: After N failures, reject all requests for M seconds
    - HALF_OPEN: After timeout, allow a trial request
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        recovery_timeout: float = 60.0
    ):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._opened_at: Optional[float] = None

    @property
    def state(self) -> str:
        if self._state == CircuitState.OPEN and self._opened_at is not None:
            if time.monotonic() - self._opened_at >= self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
        return self._state

    def allow_request(self) -> bool:
        return self.state in (CircuitState.CLOSED, CircuitState.HALF_OPEN)

    def record_success(self) -> None:
        self._failure_count = 0
        self._state = CircuitState.CLOSED

    def record_failure(self) -> None:
        self._failure_count += 1
        if self._failure_count >= self.failure_threshold or self._state == CircuitState.HALF_OPEN:
            self._state = CircuitState.OPEN
            self._opened_at = time.monotonic()
            logger.warning(
                "Circuit breaker opened",
                extra={
                    "failure_count": self._failure_count,
                    "recovery_timeout": self.recovery_timeout
                }
            )


class WebhookChannelSink(IChannelSink):
    """
    Webhook transport for EMAIL / SMS / PUSH.

    Posts the rendered notification as JSON. Handles:
    - Circuit breaker to stop hammering a dead endpoint
    - Exponential backoff retry
    - Timeout handling
    """

    def __init__(
        self,
        webhook_url: str,
        timeout_seconds: float = 5.0,
        max_retries: int = 3,
        backoff_base: float = 0.5,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self._circuit_breaker = circuit_breaker or CircuitBreaker(failure_threshold=5, recovery_timeout=60)
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout_seconds)
        return self._http_client

    @staticmethod
    def _build_payload(notification: NotificationData, channel: str) -> Dict[str, Any]:
        return {
            "channel": channel,
            "notification_id": notification.id,
            "user_id": notification.user_id,
            "type": notification.type,
            "category": notification.category,
            "priority": notification.priority,
            "title": notification.title,
            "message": notification.message,
            "dispute_id": notification.dispute_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def send(self, notification: NotificationData, channel: str) -> bool:
        if not self._circuit_breaker.allow_request():
            raise ChannelDeliveryException(
                channel, "circuit breaker open",
                {"notification_id": notification.id}
            )

        payload = self._build_payload(notification, channel)
        last_error = "no attempt made"

        for attempt in range(self.max_retries):
            try:
                client = await self._get_client()
                response = await client.post(self.webhook_url, json=payload)

                if response.is_success:
                    self._circuit_breaker.record_success()
                    logger.info(
                        "Webhook notification sent",
                        extra={
                            "channel": channel,
                            "notification_id": notification.id,
                            "attempt": attempt + 1
                        }
                    )
                    return True

                last_error = f"webhook returned {response.status_code}"
                logger.warning(
                    "Webhook returned non-success status",
                    extra={
                        "status_code": response.status_code,
                        "attempt": attempt + 1
                    }
                )

            except httpx.HTTPError as e:
                last_error = str(e) or type(e).__name__
                logger.error(
                    "Webhook request failed",
                    extra={
                        "error": last_error,
                        "attempt": attempt + 1,
                        "notification_id": notification.id
                    }
                )

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.backoff_base * (2 ** attempt))

        self._circuit_breaker.record_failure()
        raise ChannelDeliveryException(
            channel, last_error,
            {"notification_id": notification.id, "attempts": self.max_retries}
        )

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None
