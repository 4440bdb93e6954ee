"""
Tracking Infrastructure Layer
=============================

Default collaborators for dispute tracking:
- Tracking policy manager (YAML + watchdog hot-reload)
- SLA calculator
- Dispute source and workflow rule source
"""

from dispute_engine.tracking.infrastructure.external import (
    TrackingPolicyManager,
    PriorityThresholdSLACalculator,
    InMemoryDisputeSource,
    StaticWorkflowRuleSource,
    DEFAULT_WORKFLOW_RULES,
)

__all__ = [
    "TrackingPolicyManager",
    "PriorityThresholdSLACalculator",
    "InMemoryDisputeSource",
    "StaticWorkflowRuleSource",
    "DEFAULT_WORKFLOW_RULES",
]
