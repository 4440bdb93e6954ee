"""
Tracking Value Objects
======================

Immutable value objects and pure calculators for the tracking domain.

- SeverityCalculator: table-driven severity for status / priority changes
- TrackingPolicy: SLA and auto-escalation thresholds loaded from YAML
- TrackingFilter: query parameters for the event store
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator

from dispute_engine.config import (
    DisputeStatus, Priority, Severity, VALID_PRIORITIES
)

PRIORITY_RANKS: Dict[str, int] = {
    Priority.LOW: 1,
    Priority.MEDIUM: 2,
    Priority.HIGH: 3,
    Priority.URGENT: 4,
}

DEFAULT_SLA_HOURS: Dict[str, float] = {
    Priority.URGENT: 24,
    Priority.HIGH: 72,
    Priority.MEDIUM: 168,
    Priority.LOW: 336,
}

DEFAULT_ESCALATION_HOURS: Dict[str, float] = {
    Priority.URGENT: 2,
    Priority.HIGH: 24,
    Priority.MEDIUM: 72,
    Priority.LOW: 168,
}


class SeverityCalculator:
    """
    Pure functions deriving event severity.

    Both tables are fixed; unknown priorities rank as MEDIUM.
    """

    CRITICAL_STATUSES = (DisputeStatus.OPEN, DisputeStatus.IN_REVIEW)
    HIGH_STATUSES = (DisputeStatus.RESOLVED, DisputeStatus.CLOSED)

    @staticmethod
    def for_status_change(old_status: Optional[str], new_status: str) -> str:
        if new_status in SeverityCalculator.CRITICAL_STATUSES:
            return Severity.CRITICAL
        if new_status in SeverityCalculator.HIGH_STATUSES:
            return Severity.HIGH
        return Severity.MEDIUM

    @staticmethod
    def for_priority_change(old_priority: Optional[str], new_priority: str) -> str:
        old_rank = PRIORITY_RANKS.get(old_priority, 2)
        new_rank = PRIORITY_RANKS.get(new_priority, 2)

        if new_rank > old_rank:
            return Severity.HIGH
        if new_rank < old_rank:
            return Severity.LOW
        return Severity.MEDIUM


class TrackingPolicy(BaseModel):
    """
    SLA and auto-escalation thresholds, loaded from YAML.

    Missing priorities are filled in with the built-in defaults, so a
    partial file only overrides what it names.
    """

    sla_hours: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_SLA_HOURS),
        description="Hours after creation at which a dispute is OVERDUE"
    )
    at_risk_ratio: float = Field(
        default=0.8,
        gt=0,
        le=1,
        description="Fraction of the SLA after which a dispute is AT_RISK"
    )
    escalation_hours: Dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_ESCALATION_HOURS),
        description="Hours an OPEN dispute may wait before auto-escalation"
    )

    @field_validator("sla_hours")
    @classmethod
    def validate_sla_hours(cls, v: Dict[str, float]) -> Dict[str, float]:
        for priority in VALID_PRIORITIES:
            v.setdefault(priority, DEFAULT_SLA_HOURS[priority])
        return v

    @field_validator("escalation_hours")
    @classmethod
    def validate_escalation_hours(cls, v: Dict[str, float]) -> Dict[str, float]:
        for priority in VALID_PRIORITIES:
            v.setdefault(priority, DEFAULT_ESCALATION_HOURS[priority])
        return v

    def sla_threshold(self, priority: str) -> float:
        return self.sla_hours.get(priority, self.sla_hours[Priority.MEDIUM])

    def escalation_threshold(self, priority: str) -> float:
        return self.escalation_hours.get(priority, self.escalation_hours[Priority.MEDIUM])


@dataclass(frozen=True)
class TrackingFilter:
    """Filter and pagination for event queries. Date bounds are inclusive."""

    dispute_id: Optional[str] = None
    type: Optional[str] = None
    severity: Optional[str] = None
    user_id: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    limit: Optional[int] = None
    offset: int = 0
