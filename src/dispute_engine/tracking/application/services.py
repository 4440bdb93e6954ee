"""
Tracking Application Services
=============================

Application services for the tracking bounded context:

- TrackingEventStore: bounded, newest-first audit log with pub/sub
- DisputeLifecycleTracker: turns lifecycle signals into tracking events
- MetricsAggregator: on-demand statistics and dashboard bundle

Collaborators outside this context are described by the interfaces at
the top of the module (Dependency Inversion).
"""

from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, Iterable, List, Mapping, Optional, Union
from uuid import uuid4

from pydantic import ValidationError

from dispute_engine.config import (
    CLOSED_STATUSES, DisputeStatus, EventType, Severity
)
from dispute_engine.core import MalformedEventException
from dispute_engine.shared.infrastructure.event_bus import EventBus, Listener, Unsubscribe
from dispute_engine.shared.infrastructure.logging import get_logger
from dispute_engine.tracking.application.dto import TrackingEventDraft
from dispute_engine.tracking.domain import (
    DisputeSnapshot, SeverityCalculator, TrackingDashboard, TrackingEvent,
    TrackingFilter, TrackingMetrics, TrackingPolicy, WorkflowRuleRef
)

logger = get_logger(__name__)


# ========== Collaborator Interfaces (Dependency Inversion) ==========

class IDisputeSource(ABC):
    """Listing of disputes for the monitor to scan."""

    @abstractmethod
    async def list_disputes(self) -> List[DisputeSnapshot]:
        """Return the current user disputes."""


class ISLACalculator(ABC):
    """External time-math collaborator."""

    @abstractmethod
    def calculate_sla_status(self, dispute: DisputeSnapshot, now: datetime) -> str:
        """Return ON_TIME, AT_RISK or OVERDUE."""

    @abstractmethod
    def calculate_time_to_resolution(self, dispute: DisputeSnapshot, now: datetime) -> float:
        """Return elapsed hours since the dispute was created."""


class IWorkflowRuleSource(ABC):
    """Read-only view of the external workflow rules."""

    @abstractmethod
    def get_rules(self) -> List[WorkflowRuleRef]:
        """Return all workflow rules."""


class ITrackingPolicyProvider(ABC):
    """Access to the current SLA / escalation policy."""

    @abstractmethod
    def get_policy(self) -> TrackingPolicy:
        """Get current tracking policy."""


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ========== Application Services ==========

class MetricsAggregator:
    """
    Computes statistics over the event log.

    The response-time and time-to-resolution figures are estimates built
    from whatever events are still in the bounded log.
    """

    RESPONSE_TYPES = (EventType.STATUS_CHANGE, EventType.MESSAGE_ADDED)

    def calculate(self, events: List[TrackingEvent]) -> TrackingMetrics:
        total = len(events)
        if total == 0:
            return TrackingMetrics()

        by_type: Dict[str, int] = {}
        by_severity: Dict[str, int] = {}
        escalations = 0
        resolutions = 0

        for event in events:
            by_type[event.type] = by_type.get(event.type, 0) + 1
            by_severity[event.severity] = by_severity.get(event.severity, 0) + 1
            if event.type == EventType.ESCALATION:
                escalations += 1
            if self._is_resolution(event):
                resolutions += 1

        return TrackingMetrics(
            total_events=total,
            events_by_type=by_type,
            events_by_severity=by_severity,
            average_response_time=self._average_response_minutes(events),
            escalation_rate=escalations / total * 100,
            resolution_rate=resolutions / total * 100,
            time_to_resolution=self._average_resolution_hours(events),
        )

    def dashboard(
        self,
        events: List[TrackingEvent],
        now: Optional[datetime] = None
    ) -> TrackingDashboard:
        """Compose the dashboard bundle; ``events`` must be newest-first."""
        now = _utc(now or datetime.now(timezone.utc))
        today = now.date()
        metrics = self.calculate(events)

        todays = [e for e in events if e.timestamp.astimezone(timezone.utc).date() == today]
        urgent = [e for e in events if e.severity in (Severity.CRITICAL, Severity.HIGH)]

        return TrackingDashboard(
            active_disputes=self._count_active(events),
            events_today=len(todays),
            escalations_today=sum(1 for e in todays if e.type == EventType.ESCALATION),
            average_resolution_time=metrics.time_to_resolution,
            recent_events=events[:10],
            urgent_alerts=urgent[:5],
            performance_metrics=metrics,
        )

    @staticmethod
    def _is_resolution(event: TrackingEvent) -> bool:
        return (
            event.type == EventType.STATUS_CHANGE
            and event.metadata.get("newStatus") == DisputeStatus.RESOLVED
        )

    @staticmethod
    def _by_dispute(events: Iterable[TrackingEvent]) -> Dict[str, List[TrackingEvent]]:
        grouped: Dict[str, List[TrackingEvent]] = {}
        for event in sorted(events, key=lambda e: e.timestamp):
            grouped.setdefault(event.dispute_id, []).append(event)
        return grouped

    def _average_response_minutes(self, events: List[TrackingEvent]) -> float:
        samples = []
        for history in self._by_dispute(events).values():
            first = history[0]
            reply = next((e for e in history[1:] if e.type in self.RESPONSE_TYPES), None)
            if reply is not None:
                samples.append((reply.timestamp - first.timestamp).total_seconds() / 60)
        return round(sum(samples) / len(samples), 2) if samples else 0.0

    def _average_resolution_hours(self, events: List[TrackingEvent]) -> float:
        samples = []
        for history in self._by_dispute(events).values():
            first = history[0]
            resolved = next((e for e in history if self._is_resolution(e)), None)
            if resolved is not None:
                samples.append((resolved.timestamp - first.timestamp).total_seconds() / 3600)
        return round(sum(samples) / len(samples), 2) if samples else 0.0

    def _count_active(self, events: List[TrackingEvent]) -> int:
        active = 0
        for history in self._by_dispute(events).values():
            statuses = [
                e.metadata.get("newStatus") for e in history
                if e.type == EventType.STATUS_CHANGE and e.metadata.get("newStatus")
            ]
            if not statuses or statuses[-1] not in CLOSED_STATUSES:
                active += 1
        return active


class TrackingEventStore:
    """
    Append-only, bounded, newest-first log of tracking events.

    Appends fan out synchronously to subscribers; a failing subscriber is
    logged and skipped. Malformed drafts are logged and dropped.
    """

    def __init__(
        self,
        max_events: int = 1000,
        aggregator: Optional[MetricsAggregator] = None
    ):
        self.max_events = max_events
        self._events: Deque[TrackingEvent] = deque(maxlen=max_events)
        self._aggregator = aggregator or MetricsAggregator()
        self._event_bus: EventBus[TrackingEvent] = EventBus("tracking.events")
        self._metrics_bus: EventBus[TrackingMetrics] = EventBus("tracking.metrics")

    def append(
        self,
        draft: Union[Mapping[str, Any], TrackingEventDraft],
        now: Optional[datetime] = None
    ) -> Optional[TrackingEvent]:
        """
        Validate ``draft``, stamp it and prepend it to the log.

        Args:
            draft: Partial event (``dispute_id``, ``type`` required)
            now: Timestamp override, defaults to the current UTC time

        Returns:
            The stored event, or None if the draft was malformed
        """
        try:
            parsed = self._parse(draft)
        except MalformedEventException as e:
            logger.warning(
                "Malformed tracking event dropped",
                extra={"error": e.message, **e.details}
            )
            return None

        event = TrackingEvent(
            id=f"event_{uuid4().hex}",
            dispute_id=parsed.dispute_id,
            type=parsed.type,
            title=parsed.title,
            description=parsed.description,
            timestamp=_utc(now or datetime.now(timezone.utc)),
            severity=parsed.severity,
            user_id=parsed.user_id,
            user_name=parsed.user_name,
            metadata=parsed.metadata,
        )

        # deque(maxlen) evicts the oldest entry from the right
        self._events.appendleft(event)

        logger.info(
            "Tracking event appended",
            extra={
                "event_id": event.id,
                "dispute_id": event.dispute_id,
                "event_type": event.type,
                "severity": event.severity,
            }
        )

        self._event_bus.publish(event)
        if len(self._metrics_bus):
            self._metrics_bus.publish(self.metrics())

        return event

    @staticmethod
    def _parse(draft: Any) -> TrackingEventDraft:
        if isinstance(draft, TrackingEventDraft):
            return draft
        if not isinstance(draft, Mapping):
            raise MalformedEventException(
                "Tracking event draft must be a mapping",
                {"draft_type": type(draft).__name__}
            )
        try:
            return TrackingEventDraft.model_validate(dict(draft))
        except ValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise MalformedEventException(
                "Tracking event draft failed validation",
                {"invalid_fields": fields, "dispute_id": draft.get("dispute_id")}
            ) from e

    def track_custom_event(
        self,
        dispute_id: str,
        type: str,
        title: str,
        description: str,
        severity: str = Severity.MEDIUM,
        metadata: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
    ) -> Optional[TrackingEvent]:
        """Record an ad-hoc event (messages, evidence, resolution proposals)."""
        return self.append({
            "dispute_id": dispute_id,
            "type": type,
            "title": title,
            "description": description,
            "severity": severity,
            "metadata": metadata or {},
            "user_id": user_id,
            "user_name": user_name,
        })

    def query(self, filter: Optional[TrackingFilter] = None) -> List[TrackingEvent]:
        """Return matching events, newest-first, then paginate."""
        events = list(self._events)
        if filter is None:
            return events

        if filter.dispute_id:
            events = [e for e in events if e.dispute_id == filter.dispute_id]
        if filter.type:
            events = [e for e in events if e.type == filter.type]
        if filter.severity:
            events = [e for e in events if e.severity == filter.severity]
        if filter.user_id:
            events = [e for e in events if e.user_id == filter.user_id]
        if filter.start:
            start = _utc(filter.start)
            events = [e for e in events if e.timestamp >= start]
        if filter.end:
            end = _utc(filter.end)
            events = [e for e in events if e.timestamp <= end]

        if filter.offset:
            events = events[filter.offset:]
        if filter.limit is not None:
            events = events[:filter.limit]

        return events

    def has_recent_event(
        self,
        dispute_id: str,
        event_type: str,
        since: datetime
    ) -> bool:
        since = _utc(since)
        return any(
            e.dispute_id == dispute_id and e.type == event_type and e.timestamp > since
            for e in self._events
        )

    def metrics(self) -> TrackingMetrics:
        return self._aggregator.calculate(list(self._events))

    def dashboard(self, now: Optional[datetime] = None) -> TrackingDashboard:
        return self._aggregator.dashboard(list(self._events), now)

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self._event_bus.subscribe(listener)

    def subscribe_metrics(self, listener: Listener) -> Unsubscribe:
        return self._metrics_bus.subscribe(listener)

    def clear(self) -> None:
        self._events.clear()
        if len(self._metrics_bus):
            self._metrics_bus.publish(self.metrics())

    def close(self) -> None:
        """Drop every subscriber."""
        self._event_bus.clear()
        self._metrics_bus.clear()

    @property
    def events(self) -> List[TrackingEvent]:
        return list(self._events)

    def __len__(self) -> int:
        return len(self._events)


class DisputeLifecycleTracker:
    """
    Converts dispute lifecycle signals into tracking events.
    """

    def __init__(self, store: TrackingEventStore):
        self._store = store

    def dispute_created(self, dispute: DisputeSnapshot) -> List[TrackingEvent]:
        return self._append_all([{
            "dispute_id": dispute.id,
            "type": EventType.STATUS_CHANGE,
            "title": "Dispute Created",
            "description": f'New dispute "{dispute.reason}" has been created',
            "severity": Severity.MEDIUM,
            "user_id": dispute.raised_by,
            "metadata": {
                "disputeType": dispute.dispute_type,
                "priority": dispute.priority,
                "raisedBy": dispute.raised_by,
                "newStatus": dispute.status,
            },
        }])

    def dispute_updated(
        self,
        dispute: DisputeSnapshot,
        previous: Optional[DisputeSnapshot] = None
    ) -> List[TrackingEvent]:
        if previous is None:
            return []

        changed_at = datetime.now(timezone.utc).isoformat()
        drafts = []

        if dispute.status != previous.status:
            drafts.append({
                "dispute_id": dispute.id,
                "type": EventType.STATUS_CHANGE,
                "title": "Status Changed",
                "description": (
                    f"Dispute status changed from {previous.status} to {dispute.status}"
                ),
                "severity": SeverityCalculator.for_status_change(previous.status, dispute.status),
                "metadata": {
                    "previousStatus": previous.status,
                    "newStatus": dispute.status,
                    "changedAt": changed_at,
                },
            })

        if dispute.priority != previous.priority:
            drafts.append({
                "dispute_id": dispute.id,
                "type": EventType.PRIORITY_CHANGE,
                "title": "Priority Changed",
                "description": (
                    f"Dispute priority changed from {previous.priority} to {dispute.priority}"
                ),
                "severity": SeverityCalculator.for_priority_change(previous.priority, dispute.priority),
                "metadata": {
                    "previousPriority": previous.priority,
                    "newPriority": dispute.priority,
                    "changedAt": changed_at,
                },
            })

        return self._append_all(drafts)

    def dispute_resolved(self, dispute: DisputeSnapshot) -> List[TrackingEvent]:
        return self._append_all([{
            "dispute_id": dispute.id,
            "type": EventType.STATUS_CHANGE,
            "title": "Dispute Resolved",
            "description": f'Dispute "{dispute.reason}" has been resolved',
            "severity": Severity.HIGH,
            "user_id": dispute.resolved_by,
            "metadata": {
                "newStatus": DisputeStatus.RESOLVED,
                "resolution": dispute.resolution,
                "resolvedBy": dispute.resolved_by,
                "resolvedAt": dispute.resolved_at.isoformat() if dispute.resolved_at else None,
            },
        }])

    def dispute_escalated(self, dispute: DisputeSnapshot, reason: str) -> List[TrackingEvent]:
        return self._append_all([{
            "dispute_id": dispute.id,
            "type": EventType.ESCALATION,
            "title": "Dispute Escalated",
            "description": f'Dispute "{dispute.reason}" has been escalated: {reason}',
            "severity": Severity.CRITICAL,
            "metadata": {
                "reason": reason,
                "previousStatus": dispute.status,
                "escalatedAt": datetime.now(timezone.utc).isoformat(),
            },
        }])

    def _append_all(self, drafts: List[Dict[str, Any]]) -> List[TrackingEvent]:
        appended = []
        for draft in drafts:
            event = self._store.append(draft)
            if event is not None:
                appended.append(event)
        return appended
