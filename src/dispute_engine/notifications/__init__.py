"""
Notification Module
===================

Bounded Context for rule-driven, multi-channel dispute notifications.

Responsibilities:
- Keep runtime-editable templates and conditional rules
- Turn triggers into PENDING notifications, honouring cooldowns and
  per-user channel / category preferences
- Deliver queued notifications on a schedule, deferring during quiet hours
- Track delivery acknowledgements and build per-user digests
"""

__version__ = "1.0.0"
