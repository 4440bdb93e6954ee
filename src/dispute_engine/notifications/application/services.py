"""
Notification Application Services
=================================

Application services for the notification bounded context:

- TemplateRegistry: runtime-mutable templates and rendering
- NotificationStore: queue of notifications with a forward-only status machine
- PreferenceStore: per-user delivery preferences
- RuleEngine: trigger -> matching rules -> PENDING notifications
- DigestBuilder: per-user summaries over a trailing period

Channel delivery is behind the IChannelSink interface (Dependency Inversion).
"""

from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import uuid4

from dispute_engine.config import (
    DigestType, NotificationPriority, NotificationStatus
)
from dispute_engine.core import (
    InvalidTransitionException, ResourceNotFoundException,
    TemplateResolutionException, ValidationException
)
from dispute_engine.notifications.domain import (
    MISSING, ConditionEvaluator, NotificationData, NotificationDigest,
    NotificationPreferences, NotificationRule, NotificationTemplate,
    QuietHoursCalculator, TemplateRenderer,
    priority_from_category, resolve_field
)
from dispute_engine.shared.infrastructure.event_bus import EventBus, Listener, Unsubscribe
from dispute_engine.shared.infrastructure.logging import get_logger

logger = get_logger(__name__)


# ========== Channel Interface (Dependency Inversion) ==========

class IChannelSink(ABC):
    """Per-channel send primitive; transport is up to the implementation."""

    @abstractmethod
    async def send(self, notification: NotificationData, channel: str) -> bool:
        """
        Deliver a fully rendered notification.

        Returns:
            True on success. False or an exception means the delivery failed.
        """


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ========== Template Registry ==========

class TemplateRegistry:
    """Runtime-mutable template catalogue."""

    def __init__(self, templates: Optional[Iterable[NotificationTemplate]] = None):
        self._templates: Dict[str, NotificationTemplate] = {}
        for template in templates or []:
            self._templates[template.id] = template

    def create(self, template: NotificationTemplate) -> NotificationTemplate:
        if not template.id:
            template.id = f"template_{uuid4().hex[:12]}"
        if template.id in self._templates:
            raise ValidationException(
                f"Template '{template.id}' already exists",
                {"template_id": template.id}
            )
        self._templates[template.id] = template
        logger.info("Template created", extra={"template_id": template.id})
        return template

    def update(self, template_id: str, changes: Mapping[str, Any]) -> NotificationTemplate:
        template = self.require(template_id)
        for key, value in changes.items():
            if key in ("id", "created_at", "updated_at") or not hasattr(template, key):
                continue
            setattr(template, key, value)
        template.updated_at = _utc_now()
        logger.info(
            "Template updated",
            extra={"template_id": template_id, "fields": sorted(changes)}
        )
        return template

    def delete(self, template_id: str) -> None:
        self.require(template_id)
        del self._templates[template_id]
        logger.info("Template deleted", extra={"template_id": template_id})

    def get(self, template_id: str) -> Optional[NotificationTemplate]:
        return self._templates.get(template_id)

    def require(self, template_id: str) -> NotificationTemplate:
        template = self._templates.get(template_id)
        if template is None:
            raise ResourceNotFoundException("Template", template_id)
        return template

    def list(self) -> List[NotificationTemplate]:
        return list(self._templates.values())

    def resolve(self, template_id: str, rule_id: Optional[str] = None) -> NotificationTemplate:
        """Return an enabled template or raise TemplateResolutionException."""
        template = self._templates.get(template_id)
        if template is None or not template.enabled:
            raise TemplateResolutionException(template_id, rule_id)
        return template

    @staticmethod
    def render(template: NotificationTemplate, payload: Mapping[str, Any]) -> Tuple[str, str]:
        """Render title and message; unresolved placeholders stay verbatim."""
        return (
            TemplateRenderer.render(template.title, payload),
            TemplateRenderer.render(template.message, payload),
        )


# ========== Notification Store ==========

class NotificationStore:
    """
    Notification queue with a forward-only status machine.

    PENDING -> SENT -> DELIVERED -> READ, SENT -> READ, PENDING -> FAILED.
    Every add and transition is published to subscribers.

    Notifications are kept for the store's lifetime; pruning old ones is
    left to the owner. Cooldown lookups go through a per (rule, dispute)
    index of the latest creation time, so they do not scan the queue.
    """

    TRANSITIONS = {
        NotificationStatus.PENDING: (NotificationStatus.SENT, NotificationStatus.FAILED),
        NotificationStatus.SENT: (NotificationStatus.DELIVERED, NotificationStatus.READ),
        NotificationStatus.DELIVERED: (NotificationStatus.READ,),
        NotificationStatus.READ: (),
        NotificationStatus.FAILED: (),
    }

    def __init__(self):
        self._notifications: Dict[str, NotificationData] = {}
        self._latest: Dict[Tuple[Optional[str], Optional[str]], datetime] = {}
        self._bus: EventBus[NotificationData] = EventBus("notifications")

    def add(self, notification: NotificationData) -> NotificationData:
        self._notifications[notification.id] = notification
        key = (notification.rule_id, notification.dispute_id)
        created_at = _utc(notification.created_at)
        if key not in self._latest or created_at > self._latest[key]:
            self._latest[key] = created_at
        logger.info(
            "Notification queued",
            extra={
                "notification_id": notification.id,
                "user_id": notification.user_id,
                "rule_id": notification.rule_id,
                "priority": notification.priority,
            }
        )
        self._bus.publish(notification)
        return notification

    def get(self, notification_id: str) -> NotificationData:
        notification = self._notifications.get(notification_id)
        if notification is None:
            raise ResourceNotFoundException("Notification", notification_id)
        return notification

    def list(
        self,
        user_id: Optional[str] = None,
        status: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[NotificationData]:
        """Newest-first, optionally filtered."""
        items = list(reversed(self._notifications.values()))
        if user_id:
            items = [n for n in items if n.user_id == user_id]
        if status:
            items = [n for n in items if n.status == status]
        if limit is not None:
            items = items[:limit]
        return items

    def pending(self) -> List[NotificationData]:
        """Oldest-first, so the dispatcher drains in arrival order."""
        return [n for n in self._notifications.values() if n.status == NotificationStatus.PENDING]

    def has_recent(self, rule_id: str, dispute_id: Optional[str], since: datetime) -> bool:
        """Whether ``rule_id`` produced a notification for ``dispute_id`` after ``since``."""
        latest = self._latest.get((rule_id, dispute_id))
        return latest is not None and latest > _utc(since)

    def mark_sent(self, notification_id: str, now: Optional[datetime] = None) -> NotificationData:
        return self._transition(notification_id, NotificationStatus.SENT, "sent_at", now)

    def mark_failed(
        self,
        notification_id: str,
        reason: str,
        now: Optional[datetime] = None
    ) -> NotificationData:
        notification = self._transition(notification_id, NotificationStatus.FAILED, None, now, reason)
        logger.warning(
            "Notification delivery failed",
            extra={"notification_id": notification_id, "reason": reason}
        )
        return notification

    def mark_delivered(self, notification_id: str, now: Optional[datetime] = None) -> NotificationData:
        return self._transition(notification_id, NotificationStatus.DELIVERED, "delivered_at", now)

    def mark_read(self, notification_id: str, now: Optional[datetime] = None) -> NotificationData:
        return self._transition(notification_id, NotificationStatus.READ, "read_at", now)

    def _transition(
        self,
        notification_id: str,
        target: str,
        stamp_field: Optional[str],
        now: Optional[datetime],
        failure_reason: Optional[str] = None
    ) -> NotificationData:
        notification = self.get(notification_id)
        if target not in self.TRANSITIONS.get(notification.status, ()):
            raise InvalidTransitionException(notification_id, notification.status, target)

        notification.status = target
        if stamp_field:
            setattr(notification, stamp_field, _utc(now) if now else _utc_now())
        if failure_reason is not None:
            notification.failure_reason = failure_reason

        self._bus.publish(notification)
        return notification

    def subscribe(self, listener: Listener) -> Unsubscribe:
        return self._bus.subscribe(listener)

    def close(self) -> None:
        """Drop every subscriber."""
        self._bus.clear()

    def __len__(self) -> int:
        return len(self._notifications)


# ========== Preference Store ==========

class PreferenceStore:
    """Per-user preferences; unknown users get the permissive default."""

    def __init__(self):
        self._preferences: Dict[str, NotificationPreferences] = {}

    def get(self, user_id: str) -> NotificationPreferences:
        stored = self._preferences.get(user_id)
        if stored is not None:
            return stored
        return NotificationPreferences(user_id=user_id)

    def update(self, user_id: str, changes: Mapping[str, Any]) -> NotificationPreferences:
        """
        Merge ``changes`` into the user's preferences.

        ``quiet_hours`` and ``categories`` are merged key by key; ``None``
        values are ignored.
        """
        current = self.get(user_id)
        fields: Dict[str, Any] = {}

        for key, value in changes.items():
            if value is None or key == "user_id":
                continue
            if key == "quiet_hours":
                quiet = {k: v for k, v in dict(value).items() if v is not None}
                fields["quiet_hours"] = replace(current.quiet_hours, **quiet)
            elif key == "categories":
                fields["categories"] = {**current.categories, **dict(value)}
            elif hasattr(current, key):
                fields[key] = value

        updated = replace(
            current,
            quiet_hours=fields.pop("quiet_hours", replace(current.quiet_hours)),
            categories=fields.pop("categories", dict(current.categories)),
            **fields
        )
        self._preferences[user_id] = updated
        logger.info(
            "Preferences updated",
            extra={"user_id": user_id, "fields": sorted(k for k, v in changes.items() if v is not None)}
        )
        return updated

    @staticmethod
    def allowed_channels(
        preferences: NotificationPreferences,
        channels: Iterable[str],
        template_type: str
    ) -> List[str]:
        """Rule channels the user accepts, in rule order; none if the category is opted out."""
        if not preferences.category_enabled(template_type):
            return []
        return [c for c in channels if preferences.channel_enabled(c)]

    @staticmethod
    def is_quiet_hours(preferences: NotificationPreferences, now: Optional[datetime] = None) -> bool:
        return QuietHoursCalculator.is_quiet(preferences.quiet_hours, now)


# ========== Rule Engine ==========

class RuleEngine:
    """
    Turns triggers into PENDING notifications.

    For each trigger, enabled rules whose condition chain matches are
    applied in ascending priority order. A rule is skipped when its
    template is unavailable, it is cooling down for the dispute, or the
    recipient accepts none of its channels.
    """

    RECIPIENT_PATHS = ("dispute.raisedBy", "dispute.raisedAgainst", "raisedBy", "userId")
    DEFAULT_RECIPIENT = "system"

    def __init__(
        self,
        templates: TemplateRegistry,
        notifications: NotificationStore,
        preferences: PreferenceStore,
        rules: Optional[Iterable[NotificationRule]] = None
    ):
        self._templates = templates
        self._notifications = notifications
        self._preferences = preferences
        self._rules: Dict[str, NotificationRule] = {}
        for rule in rules or []:
            self._rules[rule.id] = rule

    def trigger(
        self,
        type: str,
        payload: Optional[Mapping[str, Any]] = None,
        now: Optional[datetime] = None
    ) -> List[NotificationData]:
        """
        Fire a trigger.

        Args:
            type: Trigger type, e.g. DISPUTE_CREATED
            payload: Trigger data (``disputeId``, ``dispute``, template variables)
            now: Creation time override, defaults to the current UTC time

        Returns:
            Notifications created by this trigger
        """
        payload = dict(payload or {})
        context = {"type": type, **payload}
        now = _utc(now) if now else _utc_now()

        # sorted() is stable, so equal priorities keep registration order
        matching = sorted(
            (r for r in self._rules.values()
             if r.enabled and ConditionEvaluator.evaluate_all(r.conditions, context)),
            key=lambda r: r.priority
        )

        created = []
        for rule in matching:
            try:
                notification = self._apply(rule, type, payload, context, now)
            except TemplateResolutionException as e:
                logger.debug("Rule skipped, template unavailable", extra=e.details)
                continue
            except Exception as e:
                logger.error(
                    "Rule application failed",
                    extra={"rule_id": rule.id, "trigger": type, "error": str(e)}
                )
                continue
            if notification is not None:
                created.append(notification)

        return created

    def _apply(
        self,
        rule: NotificationRule,
        type: str,
        payload: Dict[str, Any],
        context: Dict[str, Any],
        now: datetime
    ) -> Optional[NotificationData]:
        template = self._templates.resolve(rule.template_id, rule.id)
        dispute_id = payload.get("disputeId")

        if rule.cooldown_minutes > 0 and self._notifications.has_recent(
            rule.id, dispute_id, now - timedelta(minutes=rule.cooldown_minutes)
        ):
            logger.debug(
                "Rule cooling down",
                extra={"rule_id": rule.id, "dispute_id": dispute_id}
            )
            return None

        user_id = self._recipient(payload)
        preferences = self._preferences.get(user_id)
        channels = self._preferences.allowed_channels(preferences, rule.channels, template.type)
        if not channels:
            logger.debug(
                "Rule skipped, no allowed channels",
                extra={"rule_id": rule.id, "user_id": user_id}
            )
            return None

        title, message = self._templates.render(template, context)

        notification = NotificationData(
            id=f"notif_{uuid4().hex}",
            user_id=user_id,
            type=template.type,
            category=template.category,
            title=title,
            message=message,
            data={**payload, "ruleId": rule.id, "templateId": template.id},
            channels=channels,
            priority=priority_from_category(template.category),
            status=NotificationStatus.PENDING,
            created_at=now,
            metadata={"trigger": type},
        )
        return self._notifications.add(notification)

    def _recipient(self, payload: Mapping[str, Any]) -> str:
        for path in self.RECIPIENT_PATHS:
            value = resolve_field(payload, path)
            if value is not MISSING and value:
                return str(value)
        return self.DEFAULT_RECIPIENT

    # ---------- Rule CRUD ----------

    def create_rule(self, rule: NotificationRule) -> NotificationRule:
        if not rule.id:
            rule.id = f"rule_{uuid4().hex[:12]}"
        if rule.id in self._rules:
            raise ValidationException(f"Rule '{rule.id}' already exists", {"rule_id": rule.id})
        self._rules[rule.id] = rule
        logger.info("Rule created", extra={"rule_id": rule.id, "template_id": rule.template_id})
        return rule

    def update_rule(self, rule_id: str, changes: Mapping[str, Any]) -> NotificationRule:
        rule = self.get_rule(rule_id)
        for key, value in changes.items():
            if key in ("id", "created_at", "updated_at") or not hasattr(rule, key):
                continue
            setattr(rule, key, value)
        rule.updated_at = _utc_now()
        logger.info("Rule updated", extra={"rule_id": rule_id, "fields": sorted(changes)})
        return rule

    def delete_rule(self, rule_id: str) -> None:
        self.get_rule(rule_id)
        del self._rules[rule_id]
        logger.info("Rule deleted", extra={"rule_id": rule_id})

    def get_rule(self, rule_id: str) -> NotificationRule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise ResourceNotFoundException("Rule", rule_id)
        return rule

    def list_rules(self) -> List[NotificationRule]:
        return sorted(self._rules.values(), key=lambda r: r.priority)


# ========== Digest Builder ==========

class DigestBuilder:
    """Summarises a user's notifications over a trailing period."""

    PERIODS = {
        DigestType.DAILY: timedelta(days=1),
        DigestType.WEEKLY: timedelta(days=7),
        DigestType.MONTHLY: timedelta(days=30),
    }

    def __init__(self, notifications: NotificationStore):
        self._notifications = notifications

    def build(
        self,
        user_id: str,
        digest_type: str = DigestType.DAILY,
        now: Optional[datetime] = None
    ) -> NotificationDigest:
        if digest_type not in self.PERIODS:
            raise ValidationException(
                f"Unknown digest type '{digest_type}'",
                {"digest_type": digest_type}
            )

        end = _utc(now) if now else _utc_now()
        start = end - self.PERIODS[digest_type]
        items = [
            n for n in self._notifications.list(user_id=user_id)
            if start <= n.created_at <= end
        ]

        by_type: Dict[str, int] = {}
        by_category: Dict[str, int] = {}
        for n in items:
            by_type[n.type] = by_type.get(n.type, 0) + 1
            by_category[n.category] = by_category.get(n.category, 0) + 1

        return NotificationDigest(
            id=f"digest_{uuid4().hex[:12]}",
            user_id=user_id,
            type=digest_type,
            period_start=start,
            period_end=end,
            notifications=items,
            total=len(items),
            by_type=by_type,
            by_category=by_category,
            urgent=sum(1 for n in items if n.priority == NotificationPriority.URGENT),
            generated_at=end,
        )
