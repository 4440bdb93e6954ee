"""
Notification Domain Layer
=========================

Domain layer for the notification pipeline.

Contains:
- Entities: NotificationTemplate, NotificationRule, NotificationData,
  NotificationPreferences, QuietHours, NotificationDigest
- Value Objects: Condition, MISSING
- Domain Services: ConditionEvaluator, TemplateRenderer, QuietHoursCalculator

This layer has no dependencies on infrastructure - pure Python business logic.
"""

from dispute_engine.notifications.domain.value_objects import (
    MISSING,
    Condition,
    ConditionEvaluator,
    TemplateRenderer,
    QuietHoursCalculator,
    resolve_field,
    priority_from_category,
)
from dispute_engine.notifications.domain.entities import (
    NotificationTemplate,
    NotificationRule,
    NotificationData,
    NotificationPreferences,
    QuietHours,
    NotificationDigest,
)

__all__ = [
    # Entities
    "NotificationTemplate",
    "NotificationRule",
    "NotificationData",
    "NotificationPreferences",
    "QuietHours",
    "NotificationDigest",
    # Value Objects & Services
    "MISSING",
    "Condition",
    "ConditionEvaluator",
    "TemplateRenderer",
    "QuietHoursCalculator",
    "resolve_field",
    "priority_from_category",
]
