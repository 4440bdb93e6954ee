"""
Dispute Engine
==============

Composition root owning all tracking and notification state.

One DisputeEngine instance replaces module-level singletons: the FastAPI
app keeps it on ``app.state``, tests build their own. It wires:

- lifecycle signals -> tracking events + rule-engine triggers
- tracking store -> notification bridge (SLA breaches, auto-escalations,
  messages, evidence, resolution proposals)
- monitor and dispatcher periodic jobs
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from fastapi import Request

from dispute_engine.config import (
    Channel, EventType, Settings, TriggerType, get_settings
)
from dispute_engine.notifications.application import (
    DigestBuilder, IChannelSink, NotificationStore, PreferenceStore,
    RuleEngine, TemplateRegistry
)
from dispute_engine.notifications.domain import NotificationData
from dispute_engine.notifications.infrastructure import (
    InAppChannelSink, LoggingChannelSink, WebhookChannelSink,
    default_rules, default_templates
)
from dispute_engine.notifications.services import ChannelDispatcher
from dispute_engine.shared.infrastructure.logging import get_logger
from dispute_engine.tracking.application import (
    DisputeLifecycleTracker, IDisputeSource, ISLACalculator,
    ITrackingPolicyProvider, IWorkflowRuleSource, TrackingEventStore
)
from dispute_engine.tracking.domain import DisputeSnapshot, TrackingEvent
from dispute_engine.tracking.infrastructure import (
    InMemoryDisputeSource, PriorityThresholdSLACalculator,
    StaticWorkflowRuleSource, TrackingPolicyManager
)
from dispute_engine.tracking.services import DisputeMonitor

logger = get_logger(__name__)


# Tracking event types forwarded to the rule engine by the bridge.
# Lifecycle triggers are fired directly by the signal methods instead.
BRIDGED_EVENT_TRIGGERS: Dict[str, str] = {
    EventType.SLA_BREACH: TriggerType.SLA_BREACH,
    EventType.AUTO_ACTION: TriggerType.DISPUTE_AUTO_ESCALATED,
    EventType.MESSAGE_ADDED: TriggerType.DISPUTE_MESSAGE_ADDED,
    EventType.EVIDENCE_ADDED: TriggerType.DISPUTE_EVIDENCE_ADDED,
    EventType.RESOLUTION_PROPOSED: TriggerType.DISPUTE_RESOLUTION_PROPOSED,
}


@dataclass
class SignalResult:
    """What a lifecycle signal produced."""
    events: List[TrackingEvent] = field(default_factory=list)
    notifications: List[NotificationData] = field(default_factory=list)


def build_default_sinks(settings: Settings, in_app: InAppChannelSink) -> Dict[str, IChannelSink]:
    """IN_APP goes to the in-process bus; other channels to the webhook when configured, else the log."""
    sinks: Dict[str, IChannelSink] = {Channel.IN_APP: in_app}

    if settings.notification_webhook_url:
        external: IChannelSink = WebhookChannelSink(
            settings.notification_webhook_url,
            timeout_seconds=settings.webhook_timeout_seconds,
        )
    else:
        external = LoggingChannelSink()

    for channel in (Channel.EMAIL, Channel.SMS, Channel.PUSH):
        sinks[channel] = external
    return sinks


class DisputeEngine:
    """
    Owns the tracking store, monitor, templates, rules, notification queue,
    preferences and dispatcher for its lifetime.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        dispute_source: Optional[IDisputeSource] = None,
        sla_calculator: Optional[ISLACalculator] = None,
        rule_source: Optional[IWorkflowRuleSource] = None,
        policy_provider: Optional[ITrackingPolicyProvider] = None,
        sinks: Optional[Mapping[str, IChannelSink]] = None,
    ):
        self.settings = settings or get_settings()

        # ---------- Tracking ----------
        self.policy = policy_provider or TrackingPolicyManager()
        self.disputes = dispute_source or InMemoryDisputeSource()
        self.store = TrackingEventStore(max_events=self.settings.max_tracking_events)
        self.tracker = DisputeLifecycleTracker(self.store)
        self.monitor = DisputeMonitor(
            store=self.store,
            dispute_source=self.disputes,
            sla_calculator=sla_calculator or PriorityThresholdSLACalculator(self.policy),
            rule_source=rule_source or StaticWorkflowRuleSource(),
            policy_provider=self.policy,
            breach_dedup_hours=self.settings.sla_breach_dedup_hours,
            escalation_dedup_hours=self.settings.auto_escalation_dedup_hours,
            interval_seconds=self.settings.monitor_interval_seconds,
        )

        # ---------- Notifications ----------
        self.templates = TemplateRegistry(default_templates())
        self.notifications = NotificationStore()
        self.preferences = PreferenceStore()
        self.rules = RuleEngine(self.templates, self.notifications, self.preferences, default_rules())
        self.digests = DigestBuilder(self.notifications)
        self.in_app = InAppChannelSink()
        self.sinks: Dict[str, IChannelSink] = (
            dict(sinks) if sinks is not None else build_default_sinks(self.settings, self.in_app)
        )
        self.dispatcher = ChannelDispatcher(
            notifications=self.notifications,
            preferences=self.preferences,
            sinks=self.sinks,
            channel_timeout_seconds=self.settings.channel_timeout_seconds,
            quiet_hours_bypass_urgent=self.settings.quiet_hours_bypass_urgent,
            interval_seconds=self.settings.dispatch_interval_seconds,
        )

        self._known: Dict[str, DisputeSnapshot] = {}
        self._unsubscribers: List[Callable[[], None]] = []
        self._started = False
        self._connect()

    # ---------- Wiring ----------

    def _connect(self) -> None:
        if not self._unsubscribers:
            self._unsubscribers.append(self.store.subscribe(self._bridge))

    def _bridge(self, event: TrackingEvent) -> None:
        trigger = BRIDGED_EVENT_TRIGGERS.get(event.type)
        if trigger is None:
            return

        payload: Dict[str, Any] = {
            **event.metadata,
            "disputeId": event.dispute_id,
            "event": event.to_dict(),
        }
        known = self._known.get(event.dispute_id)
        if known is not None:
            payload.setdefault("disputeReason", known.reason)
            payload["dispute"] = known.to_payload()
        if event.user_id:
            payload.setdefault("userId", event.user_id)
        if event.user_name:
            payload.setdefault("senderName", event.user_name)

        self.rules.trigger(trigger, payload, now=event.timestamp)

    def _remember(self, dispute: DisputeSnapshot) -> None:
        # closed disputes are never monitored again, so they are dropped
        if dispute.is_closed:
            self._known.pop(dispute.id, None)
            if isinstance(self.disputes, InMemoryDisputeSource):
                self.disputes.remove(dispute.id)
            return

        self._known[dispute.id] = dispute
        if isinstance(self.disputes, InMemoryDisputeSource):
            self.disputes.put(dispute)

    @staticmethod
    def _base_payload(dispute: DisputeSnapshot) -> Dict[str, Any]:
        return {
            "disputeId": dispute.id,
            "disputeReason": dispute.reason,
            "dispute": dispute.to_payload(),
        }

    # ---------- Lifecycle signals ----------

    def dispute_created(self, dispute: DisputeSnapshot) -> SignalResult:
        self._remember(dispute)
        events = self.tracker.dispute_created(dispute)
        notifications = self.rules.trigger(TriggerType.DISPUTE_CREATED, {
            **self._base_payload(dispute),
            "transactionId": dispute.transaction_id,
            "priority": dispute.priority,
        })
        return SignalResult(events, notifications)

    def dispute_updated(
        self,
        dispute: DisputeSnapshot,
        previous: Optional[DisputeSnapshot] = None
    ) -> SignalResult:
        self._remember(dispute)
        events = self.tracker.dispute_updated(dispute, previous)
        if previous is None:
            return SignalResult(events)

        notifications: List[NotificationData] = []
        if dispute.status != previous.status:
            notifications += self.rules.trigger(TriggerType.DISPUTE_STATUS_CHANGED, {
                **self._base_payload(dispute),
                "previousStatus": previous.status,
                "newStatus": dispute.status,
            })
        if dispute.priority != previous.priority:
            notifications += self.rules.trigger(TriggerType.DISPUTE_PRIORITY_CHANGED, {
                **self._base_payload(dispute),
                "previousPriority": previous.priority,
                "newPriority": dispute.priority,
            })
        return SignalResult(events, notifications)

    def dispute_resolved(self, dispute: DisputeSnapshot) -> SignalResult:
        self._remember(dispute)
        events = self.tracker.dispute_resolved(dispute)
        notifications = self.rules.trigger(TriggerType.DISPUTE_RESOLVED, {
            **self._base_payload(dispute),
            "resolution": dispute.resolution,
            "resolutionNotes": dispute.resolution_notes,
        })
        return SignalResult(events, notifications)

    def dispute_escalated(self, dispute: DisputeSnapshot, reason: str) -> SignalResult:
        self._remember(dispute)
        events = self.tracker.dispute_escalated(dispute, reason)
        notifications = self.rules.trigger(TriggerType.DISPUTE_ESCALATED, {
            **self._base_payload(dispute),
            "escalationReason": reason,
        })
        return SignalResult(events, notifications)

    # ---------- Lifecycle ----------

    async def start(self) -> None:
        """Load the policy, start the file watcher and both periodic jobs."""
        if self._started:
            return

        self._connect()
        if isinstance(self.policy, TrackingPolicyManager):
            self.policy.load(self.settings.tracking_policy_path)
            self.policy.start_watching()

        await self.monitor.start()
        await self.dispatcher.start()
        self._started = True
        logger.info("Dispute engine started")

    async def stop(self) -> None:
        """Stop both jobs and drop every listener (safe to call repeatedly)."""
        await self.monitor.stop()
        await self.dispatcher.stop()

        if isinstance(self.policy, TrackingPolicyManager):
            self.policy.stop_watching()

        for sink in set(self.sinks.values()):
            if isinstance(sink, WebhookChannelSink):
                await sink.close()

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self.store.close()
        self.notifications.close()
        self.in_app.close()

        if self._started:
            logger.info("Dispute engine stopped")
        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started

    def status(self) -> Dict[str, str]:
        return {
            "dispute_monitor": "running" if self.monitor.is_running else "stopped",
            "channel_dispatcher": "running" if self.dispatcher.is_running else "stopped",
            "tracking_events": str(len(self.store)),
            "notifications": str(len(self.notifications)),
        }


def get_engine(request: Request) -> DisputeEngine:
    """FastAPI dependency returning the engine created in the app lifespan."""
    return request.app.state.engine
