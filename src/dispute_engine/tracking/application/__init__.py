"""
Tracking Application Layer
==========================

Application layer for dispute tracking.

Contains:
- Services: event store, lifecycle tracker, metrics aggregator
- Interfaces: dispute source, SLA calculator, workflow rules, policy provider
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer and collaborator interfaces,
but not on concrete infrastructure implementations.
"""

from dispute_engine.tracking.application.dto import (
    TrackingEventDraft,
    DisputeSnapshotDTO,
    DisputeCreatedSignal,
    DisputeUpdatedSignal,
    DisputeResolvedSignal,
    DisputeEscalatedSignal,
    CustomEventRequest,
    TrackingEventResponse,
    EventListResponse,
    MetricsResponse,
    DashboardResponse,
    SignalResponse,
    MonitorRunResponse,
)
from dispute_engine.tracking.application.services import (
    TrackingEventStore,
    DisputeLifecycleTracker,
    MetricsAggregator,
    IDisputeSource,
    ISLACalculator,
    IWorkflowRuleSource,
    ITrackingPolicyProvider,
)

__all__ = [
    # DTOs
    "TrackingEventDraft",
    "DisputeSnapshotDTO",
    "DisputeCreatedSignal",
    "DisputeUpdatedSignal",
    "DisputeResolvedSignal",
    "DisputeEscalatedSignal",
    "CustomEventRequest",
    "TrackingEventResponse",
    "EventListResponse",
    "MetricsResponse",
    "DashboardResponse",
    "SignalResponse",
    "MonitorRunResponse",
    # Services
    "TrackingEventStore",
    "DisputeLifecycleTracker",
    "MetricsAggregator",
    # Collaborator Interfaces
    "IDisputeSource",
    "ISLACalculator",
    "IWorkflowRuleSource",
    "ITrackingPolicyProvider",
]
