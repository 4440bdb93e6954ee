"""
Dispute Engine
==============

Dispute tracking and notification service.

Bounded contexts:
- tracking: audit trail, SLA monitor, metrics
- notifications: templates, rules, preferences, delivery
"""

__version__ = "1.0.0"
