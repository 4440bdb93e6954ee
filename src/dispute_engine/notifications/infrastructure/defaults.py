"""
Built-in templates and rules.

The engine seeds its registry and rule engine from these on startup.
Factories return fresh objects so each engine owns its own copies.
"""

from typing import List

from dispute_engine.config import (
    Channel, TemplateCategory, TemplateType, TriggerType
)
from dispute_engine.notifications.domain import (
    Condition, NotificationRule, NotificationTemplate
)

ALL_CHANNELS = [Channel.EMAIL, Channel.SMS, Channel.PUSH, Channel.IN_APP]


def default_templates() -> List[NotificationTemplate]:
    return [
        NotificationTemplate(
            id="dispute_created",
            name="Dispute Created",
            type=TemplateType.DISPUTE,
            category=TemplateCategory.WARNING,
            title="New Dispute: {{disputeReason}}",
            message=(
                "A new dispute has been created for transaction {{transactionId}}. "
                "Reason: {{disputeReason}}. Priority: {{priority}}."
            ),
            variables=["disputeReason", "transactionId", "priority"],
            channels=[Channel.EMAIL, Channel.PUSH, Channel.IN_APP],
        ),
        NotificationTemplate(
            id="dispute_escalated",
            name="Dispute Escalated",
            type=TemplateType.DISPUTE,
            category=TemplateCategory.URGENT,
            title="Dispute Escalated: {{disputeReason}}",
            message=(
                "Dispute {{disputeId}} has been escalated due to {{escalationReason}}. "
                "Immediate attention required."
            ),
            variables=["disputeReason", "disputeId", "escalationReason"],
            channels=list(ALL_CHANNELS),
        ),
        NotificationTemplate(
            id="dispute_resolved",
            name="Dispute Resolved",
            type=TemplateType.DISPUTE,
            category=TemplateCategory.SUCCESS,
            title="Dispute Resolved: {{disputeReason}}",
            message=(
                "Dispute {{disputeId}} has been resolved. Resolution: {{resolution}}. "
                "Resolution notes: {{resolutionNotes}}."
            ),
            variables=["disputeReason", "disputeId", "resolution", "resolutionNotes"],
            channels=[Channel.EMAIL, Channel.PUSH, Channel.IN_APP],
        ),
        NotificationTemplate(
            id="sla_breach",
            name="SLA Breach",
            type=TemplateType.DISPUTE,
            category=TemplateCategory.ERROR,
            title="SLA Breach: {{disputeReason}}",
            message=(
                "Dispute {{disputeId}} has exceeded its SLA threshold. "
                "Time elapsed: {{timeElapsed}} hours."
            ),
            variables=["disputeReason", "disputeId", "timeElapsed"],
            channels=list(ALL_CHANNELS),
        ),
        NotificationTemplate(
            id="auto_escalation",
            name="Auto-escalation",
            type=TemplateType.DISPUTE,
            category=TemplateCategory.URGENT,
            title="Auto-escalated: {{disputeReason}}",
            message=(
                "Dispute {{disputeId}} was auto-escalated by {{ruleName}} "
                "after {{timeElapsed}} hours open."
            ),
            variables=["disputeReason", "disputeId", "ruleName", "timeElapsed"],
            channels=list(ALL_CHANNELS),
        ),
        NotificationTemplate(
            id="evidence_added",
            name="Evidence Added",
            type=TemplateType.DISPUTE,
            category=TemplateCategory.INFO,
            title="New Evidence: {{disputeReason}}",
            message=(
                "New evidence has been added to dispute {{disputeId}}. "
                "File: {{fileName}}. Type: {{fileType}}."
            ),
            variables=["disputeReason", "disputeId", "fileName", "fileType"],
            channels=[Channel.PUSH, Channel.IN_APP],
        ),
        NotificationTemplate(
            id="message_added",
            name="Message Added",
            type=TemplateType.DISPUTE,
            category=TemplateCategory.INFO,
            title="New Message: {{disputeReason}}",
            message="A new message has been added to dispute {{disputeId}} by {{senderName}}.",
            variables=["disputeReason", "disputeId", "senderName"],
            channels=[Channel.PUSH, Channel.IN_APP],
        ),
        NotificationTemplate(
            id="resolution_proposed",
            name="Resolution Proposed",
            type=TemplateType.DISPUTE,
            category=TemplateCategory.INFO,
            title="Resolution Proposed: {{disputeReason}}",
            message=(
                "A resolution has been proposed for dispute {{disputeId}}. "
                "Resolution: {{resolution}}. Please review and respond."
            ),
            variables=["disputeReason", "disputeId", "resolution"],
            channels=[Channel.EMAIL, Channel.PUSH, Channel.IN_APP],
        ),
        NotificationTemplate(
            id="security_alert",
            name="Security Alert",
            type=TemplateType.SECURITY,
            category=TemplateCategory.ERROR,
            title="Security Alert: {{alertType}}",
            message="A security alert has been triggered: {{alertDescription}}. Please review immediately.",
            variables=["alertType", "alertDescription"],
            channels=list(ALL_CHANNELS),
        ),
    ]


def _on(trigger: str) -> List[Condition]:
    return [Condition(field="type", operator="equals", value=trigger)]


def default_rules() -> List[NotificationRule]:
    return [
        NotificationRule(
            id="dispute_created_rule",
            name="Notify on Dispute Creation",
            description="Send notification when a new dispute is created",
            conditions=_on(TriggerType.DISPUTE_CREATED),
            template_id="dispute_created",
            channels=[Channel.EMAIL, Channel.PUSH, Channel.IN_APP],
            priority=1,
            cooldown_minutes=0,
        ),
        NotificationRule(
            id="dispute_escalated_rule",
            name="Notify on Dispute Escalation",
            description="Send urgent notification when a dispute is escalated",
            conditions=_on(TriggerType.DISPUTE_ESCALATED),
            template_id="dispute_escalated",
            channels=list(ALL_CHANNELS),
            priority=1,
            cooldown_minutes=0,
        ),
        NotificationRule(
            id="sla_breach_rule",
            name="Notify on SLA Breach",
            description="Send urgent notification when SLA is breached",
            conditions=_on(TriggerType.SLA_BREACH),
            template_id="sla_breach",
            channels=list(ALL_CHANNELS),
            priority=1,
            cooldown_minutes=60,
        ),
        NotificationRule(
            id="auto_escalation_rule",
            name="Notify on Auto-escalation",
            description="Send urgent notification when a workflow rule auto-escalates a dispute",
            conditions=_on(TriggerType.DISPUTE_AUTO_ESCALATED),
            template_id="auto_escalation",
            channels=list(ALL_CHANNELS),
            priority=2,
            cooldown_minutes=60,
        ),
    ]
