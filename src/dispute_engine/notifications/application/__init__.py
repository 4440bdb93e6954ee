"""
Notification Application Layer
==============================

Application layer for the notification pipeline.

Contains:
- Services: template registry, rule engine, notification store,
  preference store, digest builder
- Interfaces: channel sink
- DTOs: Data transfer objects for API serialization

This layer depends on the domain layer only.
"""

from dispute_engine.notifications.application.dto import (
    TemplateCreateRequest,
    TemplateUpdateRequest,
    RuleCreateRequest,
    RuleUpdateRequest,
    PreferencesUpdateRequest,
    QuietHoursUpdate,
    TriggerRequest,
    TemplateResponse,
    RuleResponse,
    NotificationResponse,
    NotificationListResponse,
    PreferencesResponse,
    DigestResponse,
    TriggerResponse,
    DispatchRunResponse,
)
from dispute_engine.notifications.application.services import (
    IChannelSink,
    TemplateRegistry,
    NotificationStore,
    PreferenceStore,
    RuleEngine,
    DigestBuilder,
)

__all__ = [
    # DTOs
    "TemplateCreateRequest",
    "TemplateUpdateRequest",
    "RuleCreateRequest",
    "RuleUpdateRequest",
    "PreferencesUpdateRequest",
    "QuietHoursUpdate",
    "TriggerRequest",
    "TemplateResponse",
    "RuleResponse",
    "NotificationResponse",
    "NotificationListResponse",
    "PreferencesResponse",
    "DigestResponse",
    "TriggerResponse",
    "DispatchRunResponse",
    # Services
    "TemplateRegistry",
    "NotificationStore",
    "PreferenceStore",
    "RuleEngine",
    "DigestBuilder",
    # Interfaces
    "IChannelSink",
]
