"""
Dispute Tracking Module
=======================

Bounded Context for the dispute audit trail and SLA monitoring.

Responsibilities:
- Turn dispute lifecycle signals into tracking events
- Keep a bounded, newest-first event log with subscriptions
- Detect SLA breaches and auto-escalation conditions on a schedule
- Compute metrics and the dashboard bundle on demand
- Hot-reload SLA / escalation thresholds from YAML via watchdog
"""

__version__ = "1.0.0"
