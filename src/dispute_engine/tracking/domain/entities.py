"""
Tracking Domain Entities
========================

Pure Python domain entities for dispute tracking.

These entities carry no infrastructure concerns; the event store, the
monitor and the metrics aggregator all work on them directly.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional

from dispute_engine.config import CLOSED_STATUSES, DisputeStatus, Priority, Severity


@dataclass
class DisputeSnapshot:
    """
    Read-only view of a dispute passed in with each lifecycle signal.

    The engine never mutates a snapshot; callers hand over a fresh one
    whenever the dispute changes.
    """

    id: str
    reason: str
    status: str = DisputeStatus.OPEN
    priority: str = Priority.MEDIUM
    raised_by: Optional[str] = None
    raised_against: Optional[str] = None
    transaction_id: Optional[str] = None
    dispute_type: Optional[str] = None
    resolution: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_closed(self) -> bool:
        """Check if the dispute has reached a terminal status."""
        return self.status in CLOSED_STATUSES

    def to_payload(self) -> Dict[str, Any]:
        """Camel-cased dict used as template / condition data."""
        return {
            "id": self.id,
            "reason": self.reason,
            "status": self.status,
            "priority": self.priority,
            "raisedBy": self.raised_by,
            "raisedAgainst": self.raised_against,
            "transactionId": self.transaction_id,
            "disputeType": self.dispute_type,
            "resolution": self.resolution,
            "resolutionNotes": self.resolution_notes,
            "resolvedBy": self.resolved_by,
            "resolvedAt": self.resolved_at.isoformat() if self.resolved_at else None,
            "createdAt": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class TrackingEvent:
    """
    Immutable audit record of a dispute-relevant change or action.
    """

    id: str
    dispute_id: str
    type: str
    title: str
    description: str
    timestamp: datetime
    severity: str = Severity.MEDIUM
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # metadata is a read-only copy of whatever the caller passed
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "dispute_id": self.dispute_id,
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class WorkflowRuleRef:
    """External workflow rule as seen by the auto-escalation check."""

    id: str
    name: str
    enabled: bool = True

    @property
    def is_auto_escalation(self) -> bool:
        return "auto-escalate" in self.name.lower()


@dataclass
class TrackingMetrics:
    """
    Statistics derived from the event log.

    ``average_response_time`` (minutes) and ``time_to_resolution`` (hours)
    are approximations computed from the bounded log, not exact clocks.
    """

    total_events: int = 0
    events_by_type: Dict[str, int] = field(default_factory=dict)
    events_by_severity: Dict[str, int] = field(default_factory=dict)
    average_response_time: float = 0.0
    escalation_rate: float = 0.0
    resolution_rate: float = 0.0
    time_to_resolution: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_events": self.total_events,
            "events_by_type": dict(self.events_by_type),
            "events_by_severity": dict(self.events_by_severity),
            "average_response_time": self.average_response_time,
            "escalation_rate": self.escalation_rate,
            "resolution_rate": self.resolution_rate,
            "time_to_resolution": self.time_to_resolution,
        }


@dataclass
class TrackingDashboard:
    """Dashboard bundle composed on demand from the event log."""

    active_disputes: int
    events_today: int
    escalations_today: int
    average_resolution_time: float
    recent_events: List[TrackingEvent]
    urgent_alerts: List[TrackingEvent]
    performance_metrics: TrackingMetrics

    def to_dict(self) -> dict:
        return {
            "active_disputes": self.active_disputes,
            "events_today": self.events_today,
            "escalations_today": self.escalations_today,
            "average_resolution_time": self.average_resolution_time,
            "recent_events": [e.to_dict() for e in self.recent_events],
            "urgent_alerts": [e.to_dict() for e in self.urgent_alerts],
            "performance_metrics": self.performance_metrics.to_dict(),
        }
