"""
Notification Domain Entities
============================

Pure Python domain entities for the notification pipeline.

Templates and rules are mutable configuration; a NotificationData record
moves through its status machine only via the notification store.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dispute_engine.config import (
    Channel, Frequency, NotificationPriority, NotificationStatus,
    TemplateCategory, TemplateType, VALID_TEMPLATE_TYPES
)
from dispute_engine.notifications.domain.value_objects import Condition


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class NotificationTemplate:
    """
    Message pattern with ``{{variable}}`` placeholders.

    ``type`` doubles as the preference category the recipient can opt
    out of; ``category`` drives the notification priority.
    """

    id: str
    name: str
    type: str = TemplateType.DISPUTE
    category: str = TemplateCategory.INFO
    title: str = ""
    message: str = ""
    variables: List[str] = field(default_factory=list)
    channels: List[str] = field(default_factory=list)
    enabled: bool = True
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "category": self.category,
            "title": self.title,
            "message": self.message,
            "variables": list(self.variables),
            "channels": list(self.channels),
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class NotificationRule:
    """
    Conditional mapping from a trigger to a template.

    Rules with a lower ``priority`` value are applied first.
    """

    id: str
    name: str
    template_id: str
    description: str = ""
    conditions: List[Condition] = field(default_factory=list)
    channels: List[str] = field(default_factory=list)
    enabled: bool = True
    priority: int = 1
    cooldown_minutes: int = 0
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "conditions": [c.model_dump() for c in self.conditions],
            "template_id": self.template_id,
            "channels": list(self.channels),
            "enabled": self.enabled,
            "priority": self.priority,
            "cooldown_minutes": self.cooldown_minutes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class NotificationData:
    """A rendered notification queued for (or past) delivery."""

    id: str
    user_id: str
    type: str
    category: str
    title: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    channels: List[str] = field(default_factory=list)
    priority: str = NotificationPriority.MEDIUM
    status: str = NotificationStatus.PENDING
    created_at: datetime = field(default_factory=_now)
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def rule_id(self) -> Optional[str]:
        return self.data.get("ruleId")

    @property
    def dispute_id(self) -> Optional[str]:
        return self.data.get("disputeId")

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "category": self.category,
            "title": self.title,
            "message": self.message,
            "data": self.data,
            "channels": list(self.channels),
            "priority": self.priority,
            "status": self.status,
            "created_at": self.created_at.isoformat(),
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "read_at": self.read_at.isoformat() if self.read_at else None,
            "failure_reason": self.failure_reason,
            "metadata": self.metadata,
        }


@dataclass
class QuietHours:
    """Daily window, in the recipient's timezone, during which delivery is deferred."""

    enabled: bool = False
    start: str = "22:00"
    end: str = "08:00"
    timezone: str = "UTC"


def _all_categories() -> Dict[str, bool]:
    return {category: True for category in VALID_TEMPLATE_TYPES}


@dataclass
class NotificationPreferences:
    """
    Per-user delivery preferences.

    A user with no stored preferences gets this permissive default:
    every channel and category enabled, quiet hours off.
    """

    user_id: str
    email: bool = True
    sms: bool = True
    push: bool = True
    in_app: bool = True
    quiet_hours: QuietHours = field(default_factory=QuietHours)
    categories: Dict[str, bool] = field(default_factory=_all_categories)
    frequency: str = Frequency.IMMEDIATE
    digest_enabled: bool = False

    def channel_enabled(self, channel: str) -> bool:
        toggles = {
            Channel.EMAIL: self.email,
            Channel.SMS: self.sms,
            Channel.PUSH: self.push,
            Channel.IN_APP: self.in_app,
        }
        return toggles.get(channel, False)

    def category_enabled(self, template_type: str) -> bool:
        # Categories the user never mentioned stay opted in
        return self.categories.get(template_type, True)

    def to_dict(self) -> dict:
        return {
            "user_id": self.user_id,
            "email": self.email,
            "sms": self.sms,
            "push": self.push,
            "in_app": self.in_app,
            "quiet_hours": {
                "enabled": self.quiet_hours.enabled,
                "start": self.quiet_hours.start,
                "end": self.quiet_hours.end,
                "timezone": self.quiet_hours.timezone,
            },
            "categories": dict(self.categories),
            "frequency": self.frequency,
            "digest_enabled": self.digest_enabled,
        }


@dataclass
class NotificationDigest:
    """Summary of a user's notifications over a trailing period."""

    id: str
    user_id: str
    type: str
    period_start: datetime
    period_end: datetime
    notifications: List[NotificationData]
    total: int
    by_type: Dict[str, int]
    by_category: Dict[str, int]
    urgent: int
    generated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "type": self.type,
            "period": {
                "start": self.period_start.isoformat(),
                "end": self.period_end.isoformat(),
            },
            "notifications": [n.to_dict() for n in self.notifications],
            "summary": {
                "total": self.total,
                "by_type": dict(self.by_type),
                "by_category": dict(self.by_category),
                "urgent": self.urgent,
            },
            "generated_at": self.generated_at.isoformat(),
        }
