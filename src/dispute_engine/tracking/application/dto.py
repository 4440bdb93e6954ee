"""
Tracking Application DTOs
=========================

Data Transfer Objects for the tracking API layer, plus the internal
draft model used to validate events before they enter the store.
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime


# ========== Type Aliases for Literals ==========
EventTypeStr = Literal[
    "STATUS_CHANGE", "PRIORITY_CHANGE", "ASSIGNMENT_CHANGE",
    "MESSAGE_ADDED", "EVIDENCE_ADDED",
    "RESOLUTION_PROPOSED", "RESOLUTION_ACCEPTED", "RESOLUTION_REJECTED",
    "SLA_BREACH", "ESCALATION", "AUTO_ACTION",
]
SeverityStr = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]
PriorityStr = Literal["LOW", "MEDIUM", "HIGH", "URGENT"]
DisputeStatusStr = Literal[
    "OPEN", "IN_REVIEW", "AWAITING_RESPONSE", "MEDIATION",
    "ESCALATED", "RESOLVED", "CLOSED",
]


# ========== Internal DTOs ==========

class TrackingEventDraft(BaseModel):
    """
    Partial tracking event as handed to ``TrackingEventStore.append``.

    ``id`` and ``timestamp`` are assigned by the store.
    """
    dispute_id: str = Field(..., min_length=1)
    type: EventTypeStr
    title: str = ""
    description: str = ""
    severity: SeverityStr = "MEDIUM"
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ========== Request DTOs ==========

class DisputeSnapshotDTO(BaseModel):
    """Dispute snapshot carried by a lifecycle signal."""
    id: str = Field(..., min_length=1, description="Dispute ID")
    reason: str = Field(..., description="Dispute reason")
    status: DisputeStatusStr = Field(default="OPEN")
    priority: PriorityStr = Field(default="MEDIUM")
    raised_by: Optional[str] = None
    raised_against: Optional[str] = None
    transaction_id: Optional[str] = None
    dispute_type: Optional[str] = None
    resolution: Optional[str] = None
    resolution_notes: Optional[str] = None
    resolved_by: Optional[str] = None
    resolved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def to_domain(self) -> Any:
        """Convert to domain snapshot."""
        from dispute_engine.tracking.domain import DisputeSnapshot

        data = self.model_dump(exclude_none=True)
        return DisputeSnapshot(**data)


class DisputeCreatedSignal(BaseModel):
    dispute: DisputeSnapshotDTO


class DisputeUpdatedSignal(BaseModel):
    dispute: DisputeSnapshotDTO
    previous: Optional[DisputeSnapshotDTO] = None


class DisputeResolvedSignal(BaseModel):
    dispute: DisputeSnapshotDTO


class DisputeEscalatedSignal(BaseModel):
    dispute: DisputeSnapshotDTO
    reason: str = Field(..., min_length=1, description="Escalation reason")


class CustomEventRequest(BaseModel):
    """Request model for recording an ad-hoc tracking event."""
    dispute_id: str = Field(..., min_length=1)
    type: EventTypeStr
    title: str = Field(..., min_length=1)
    description: str = ""
    severity: SeverityStr = "MEDIUM"
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ========== Response DTOs ==========

class TrackingEventResponse(BaseModel):
    id: str
    dispute_id: str
    type: EventTypeStr
    title: str
    description: str
    timestamp: datetime
    severity: SeverityStr
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EventListResponse(BaseModel):
    events: List[TrackingEventResponse]
    count: int


class MetricsResponse(BaseModel):
    total_events: int
    events_by_type: Dict[str, int]
    events_by_severity: Dict[str, int]
    average_response_time: float = Field(..., description="Approximate minutes to first response")
    escalation_rate: float = Field(..., description="Percentage of events that are escalations")
    resolution_rate: float = Field(..., description="Percentage of events that resolve a dispute")
    time_to_resolution: float = Field(..., description="Approximate hours to resolution")


class DashboardResponse(BaseModel):
    active_disputes: int
    events_today: int
    escalations_today: int
    average_resolution_time: float
    recent_events: List[TrackingEventResponse]
    urgent_alerts: List[TrackingEventResponse]
    performance_metrics: MetricsResponse


class SignalResponse(BaseModel):
    """Result of processing a lifecycle signal."""
    events: List[TrackingEventResponse] = Field(default_factory=list)
    notifications_created: int = 0


class MonitorRunResponse(BaseModel):
    disputes_scanned: int
    sla_breaches: int
    auto_actions: int
    failures: int
