"""
Tests for the notification rule engine and template registry.
"""
from datetime import datetime, timedelta, timezone

import pytest

from dispute_engine.core import ResourceNotFoundException, ValidationException
from dispute_engine.notifications.application import (
    NotificationStore, PreferenceStore, RuleEngine, TemplateRegistry
)
from dispute_engine.notifications.domain import (
    Condition, NotificationRule, NotificationTemplate
)
from dispute_engine.notifications.infrastructure import default_rules, default_templates

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _rule(id="r1", template_id="dispute_created", trigger="DISPUTE_CREATED", **overrides):
    data = {
        "id": id,
        "name": f"Rule {id}",
        "template_id": template_id,
        "conditions": [Condition(field="type", operator="equals", value=trigger)],
        "channels": ["IN_APP"],
    }
    data.update(overrides)
    return NotificationRule(**data)


@pytest.fixture
def templates():
    return TemplateRegistry(default_templates())


@pytest.fixture
def notifications():
    return NotificationStore()


@pytest.fixture
def preferences():
    return PreferenceStore()


@pytest.fixture
def build_engine(templates, notifications, preferences):
    def _build(rules):
        return RuleEngine(templates, notifications, preferences, rules)
    return _build


def test_matching_rule_creates_pending_notification(build_engine, notifications):
    engine = build_engine([_rule()])

    created = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW)

    assert len(created) == 1
    notification = created[0]
    assert notification.status == "PENDING"
    assert notification.data["disputeId"] == "d1"
    assert notification.data["templateId"] == "dispute_created"
    assert notification.data["ruleId"] == "r1"
    assert notification.metadata == {"trigger": "DISPUTE_CREATED"}
    assert notification.user_id == "system"
    assert notification.priority == "MEDIUM"
    assert notification.created_at == NOW
    assert notification.title == "New Dispute: {{disputeReason}}"
    assert len(notifications) == 1


def test_non_matching_trigger_creates_nothing(build_engine, notifications):
    engine = build_engine([_rule()])

    assert engine.trigger("DISPUTE_RESOLVED", {"disputeId": "d1"}, now=NOW) == []
    assert len(notifications) == 0


def test_template_is_rendered_with_payload(build_engine):
    engine = build_engine([_rule()])

    created = engine.trigger("DISPUTE_CREATED", {
        "disputeId": "d1",
        "disputeReason": "Item not received",
        "transactionId": "txn_9001",
        "priority": "HIGH",
    }, now=NOW)

    assert created[0].title == "New Dispute: Item not received"
    assert created[0].message == (
        "A new dispute has been created for transaction txn_9001. "
        "Reason: Item not received. Priority: HIGH."
    )


def test_cooldown_suppresses_repeats_per_dispute(build_engine, notifications):
    engine = build_engine([_rule(cooldown_minutes=60)])

    engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW)
    engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW + timedelta(minutes=30))
    assert len(notifications) == 1

    engine.trigger("DISPUTE_CREATED", {"disputeId": "d2"}, now=NOW + timedelta(minutes=30))
    assert len(notifications) == 2

    engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW + timedelta(minutes=61))
    assert len(notifications) == 3


def test_naive_trigger_time_is_treated_as_utc(build_engine, notifications):
    engine = build_engine([_rule(cooldown_minutes=60)])
    naive = NOW.replace(tzinfo=None)

    first = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=naive)
    second = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=naive + timedelta(minutes=30))
    third = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW + timedelta(minutes=61))

    assert first[0].created_at == NOW
    assert second == []
    assert len(third) == 1
    assert len(notifications) == 2


def test_zero_cooldown_always_fires(build_engine, notifications):
    engine = build_engine([_rule(cooldown_minutes=0)])

    for _ in range(3):
        engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW)

    assert len(notifications) == 3


def test_disabled_or_missing_template_skips_rule(build_engine, templates, notifications):
    templates.update("dispute_created", {"enabled": False})
    engine = build_engine([_rule(), _rule(id="r2", template_id="does_not_exist"), _rule(id="r3", template_id="dispute_escalated")])

    created = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW)

    assert [n.data["ruleId"] for n in created] == ["r3"]


def test_disabled_rule_is_ignored(build_engine):
    engine = build_engine([_rule(enabled=False)])

    assert engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW) == []


def test_rules_apply_in_priority_order(build_engine):
    engine = build_engine([
        _rule(id="late", priority=5),
        _rule(id="first", priority=0),
        _rule(id="tie_a", priority=2),
        _rule(id="tie_b", priority=2),
    ])

    created = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW)

    assert [n.data["ruleId"] for n in created] == ["first", "tie_a", "tie_b", "late"]


def test_conditions_see_nested_dispute_payload(build_engine):
    urgent_only = _rule(conditions=[
        Condition(field="type", operator="equals", value="DISPUTE_CREATED"),
        Condition(field="dispute.priority", operator="in", value=["HIGH", "URGENT"]),
    ])
    engine = build_engine([urgent_only])

    low = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1", "dispute": {"priority": "LOW"}}, now=NOW)
    urgent = engine.trigger("DISPUTE_CREATED", {"disputeId": "d2", "dispute": {"priority": "URGENT"}}, now=NOW)

    assert low == []
    assert len(urgent) == 1


@pytest.mark.parametrize("payload,expected", [
    ({"dispute": {"raisedBy": "buyer_42", "raisedAgainst": "seller_7"}}, "buyer_42"),
    ({"dispute": {"raisedBy": None, "raisedAgainst": "seller_7"}}, "seller_7"),
    ({"raisedBy": "buyer_9"}, "buyer_9"),
    ({"userId": "agent_1"}, "agent_1"),
    ({}, "system"),
])
def test_recipient_resolution(build_engine, payload, expected):
    engine = build_engine([_rule()])

    created = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1", **payload}, now=NOW)

    assert created[0].user_id == expected


def test_channels_are_filtered_by_preferences(build_engine, preferences):
    preferences.update("buyer_42", {"email": False, "sms": False})
    engine = build_engine([_rule(channels=["EMAIL", "SMS", "PUSH", "IN_APP"])])

    created = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1", "raisedBy": "buyer_42"}, now=NOW)

    assert created[0].channels == ["PUSH", "IN_APP"]


def test_no_allowed_channels_skips_rule(build_engine, preferences, notifications):
    preferences.update("buyer_42", {"in_app": False})
    engine = build_engine([_rule(channels=["IN_APP"])])

    assert engine.trigger("DISPUTE_CREATED", {"disputeId": "d1", "raisedBy": "buyer_42"}, now=NOW) == []
    assert len(notifications) == 0


def test_category_opt_out_skips_rule(build_engine, preferences):
    preferences.update("buyer_42", {"categories": {"DISPUTE": False}})
    engine = build_engine([_rule()])

    assert engine.trigger("DISPUTE_CREATED", {"disputeId": "d1", "raisedBy": "buyer_42"}, now=NOW) == []


def test_template_edits_apply_to_later_triggers(build_engine, templates):
    engine = build_engine([_rule()])
    templates.update("dispute_created", {"title": "Heads up: {{disputeId}}"})

    created = engine.trigger("DISPUTE_CREATED", {"disputeId": "d1"}, now=NOW)

    assert created[0].title == "Heads up: d1"


def test_default_rules_cover_lifecycle_triggers(build_engine):
    engine = build_engine(default_rules())
    payload = {"disputeId": "d1", "disputeReason": "Damaged item", "escalationReason": "No reply"}

    escalated = engine.trigger("DISPUTE_ESCALATED", payload, now=NOW)

    assert len(escalated) == 1
    assert escalated[0].priority == "URGENT"
    assert escalated[0].channels == ["EMAIL", "SMS", "PUSH", "IN_APP"]
    assert escalated[0].message == (
        "Dispute d1 has been escalated due to No reply. Immediate attention required."
    )


class TestRuleCrud:
    def test_create_get_update_delete(self, build_engine):
        engine = build_engine([])

        rule = engine.create_rule(_rule(id=""))
        assert rule.id.startswith("rule_")
        assert engine.get_rule(rule.id) is rule

        engine.update_rule(rule.id, {"enabled": False, "priority": 3})
        assert engine.get_rule(rule.id).enabled is False
        assert engine.get_rule(rule.id).priority == 3

        engine.delete_rule(rule.id)
        with pytest.raises(ResourceNotFoundException):
            engine.get_rule(rule.id)

    def test_duplicate_id_is_rejected(self, build_engine):
        engine = build_engine([_rule()])

        with pytest.raises(ValidationException):
            engine.create_rule(_rule())

    def test_list_is_sorted_by_priority(self, build_engine):
        engine = build_engine([_rule(id="b", priority=2), _rule(id="a", priority=1)])

        assert [r.id for r in engine.list_rules()] == ["a", "b"]


class TestTemplateRegistry:
    def test_create_and_delete(self, templates):
        template = templates.create(NotificationTemplate(
            id="",
            name="Payment Held",
            type="PAYMENT",
            category="WARNING",
            title="Payment held for {{disputeId}}",
            message="Funds are on hold.",
        ))

        assert template.id.startswith("template_")
        assert templates.require(template.id) is template

        templates.delete(template.id)
        assert templates.get(template.id) is None
        with pytest.raises(ResourceNotFoundException):
            templates.delete(template.id)

    def test_duplicate_template_is_rejected(self, templates):
        with pytest.raises(ValidationException):
            templates.create(NotificationTemplate(id="dispute_created", name="Dup"))

    def test_update_ignores_identity_fields(self, templates):
        updated = templates.update("sla_breach", {"id": "renamed", "category": "URGENT"})

        assert updated.id == "sla_breach"
        assert updated.category == "URGENT"
