"""
Notification Services
=====================

Periodic delivery of queued notifications.

The dispatcher drains PENDING notifications on a fixed interval. It only
ever moves a notification to SENT or FAILED; DELIVERED and READ come
from explicit acknowledgements through the notification store.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, Mapping, Optional

from dispute_engine.config import NotificationPriority
from dispute_engine.core import ChannelDeliveryException
from dispute_engine.notifications.application import (
    IChannelSink, NotificationStore, PreferenceStore
)
from dispute_engine.notifications.domain import NotificationData
from dispute_engine.shared.infrastructure.logging import get_logger, log_latency
from dispute_engine.shared.infrastructure.scheduler import IntervalScheduler

logger = get_logger(__name__)


class ChannelDispatcher:
    """
    Delivers PENDING notifications through their channel sinks.

    Per notification:
    1. Inside the recipient's quiet hours -> left PENDING for a later tick
    2. Otherwise every channel is sent sequentially, each call bounded by
       ``channel_timeout_seconds``
    3. All channels succeed -> SENT; any failure -> FAILED, no retry
    """

    def __init__(
        self,
        notifications: NotificationStore,
        preferences: PreferenceStore,
        sinks: Mapping[str, IChannelSink],
        channel_timeout_seconds: float = 10.0,
        quiet_hours_bypass_urgent: bool = False,
        interval_seconds: int = 30,
    ):
        self._notifications = notifications
        self._preferences = preferences
        self._sinks: Dict[str, IChannelSink] = dict(sinks)
        self._timeout = channel_timeout_seconds
        self._bypass_urgent = quiet_hours_bypass_urgent
        self._scheduler = IntervalScheduler("channel_dispatcher", interval_seconds)

    def register_sink(self, channel: str, sink: IChannelSink) -> None:
        self._sinks[channel] = sink

    async def run_once(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Run a single dispatch pass.

        Args:
            now: Wall-clock time used for quiet hours and ``sent_at``

        Returns:
            Summary of the pass
        """
        now = now or datetime.now(timezone.utc)
        summary = {"processed": 0, "sent": 0, "failed": 0, "deferred": 0}

        pending = self._notifications.pending()
        if not pending:
            return summary

        with log_latency(logger, "channel_dispatcher.run_once", pending=len(pending)):
            for notification in pending:
                summary["processed"] += 1
                try:
                    outcome = await self._dispatch(notification, now)
                except Exception as e:
                    # Bookkeeping failure; the notification stays where it was
                    logger.error(
                        "Notification dispatch failed",
                        extra={"notification_id": notification.id, "error": str(e)}
                    )
                    continue
                summary[outcome] += 1

        logger.info("Dispatch pass complete", extra=summary)
        return summary

    async def _dispatch(self, notification: NotificationData, now: datetime) -> str:
        preferences = self._preferences.get(notification.user_id)
        bypass = self._bypass_urgent and notification.priority == NotificationPriority.URGENT

        if not bypass and self._preferences.is_quiet_hours(preferences, now):
            logger.debug(
                "Notification deferred for quiet hours",
                extra={"notification_id": notification.id, "user_id": notification.user_id}
            )
            return "deferred"

        try:
            for channel in notification.channels:
                await self._send(notification, channel)
        except ChannelDeliveryException as e:
            self._notifications.mark_failed(notification.id, e.message, now)
            return "failed"

        self._notifications.mark_sent(notification.id, now)
        return "sent"

    async def _send(self, notification: NotificationData, channel: str) -> None:
        sink = self._sinks.get(channel)
        if sink is None:
            raise ChannelDeliveryException(channel, "no sink registered")

        try:
            delivered = await asyncio.wait_for(sink.send(notification, channel), timeout=self._timeout)
        except ChannelDeliveryException:
            raise
        except asyncio.TimeoutError as e:
            raise ChannelDeliveryException(
                channel, f"timed out after {self._timeout}s"
            ) from e
        except Exception as e:
            raise ChannelDeliveryException(channel, str(e) or type(e).__name__) from e

        if delivered is False:
            raise ChannelDeliveryException(channel, "sink reported failure")

    async def start(self) -> None:
        """Start periodic dispatch (no-op if already running)."""
        await self._scheduler.start(self.run_once)

    async def stop(self) -> None:
        """Stop periodic dispatch; an in-flight pass is allowed to finish."""
        await self._scheduler.stop()

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running
