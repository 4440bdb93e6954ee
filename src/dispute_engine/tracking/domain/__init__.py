"""
Tracking Domain Layer
=====================

Domain layer for dispute tracking.

Contains:
- Entities: TrackingEvent, DisputeSnapshot, WorkflowRuleRef, TrackingMetrics, TrackingDashboard
- Value Objects: TrackingPolicy, TrackingFilter
- Domain Services: SeverityCalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from dispute_engine.tracking.domain.entities import (
    DisputeSnapshot,
    TrackingEvent,
    WorkflowRuleRef,
    TrackingMetrics,
    TrackingDashboard,
)
from dispute_engine.tracking.domain.value_objects import (
    SeverityCalculator,
    TrackingPolicy,
    TrackingFilter,
    PRIORITY_RANKS,
)

__all__ = [
    # Entities
    "DisputeSnapshot",
    "TrackingEvent",
    "WorkflowRuleRef",
    "TrackingMetrics",
    "TrackingDashboard",
    # Value Objects & Services
    "SeverityCalculator",
    "TrackingPolicy",
    "TrackingFilter",
    "PRIORITY_RANKS",
]
