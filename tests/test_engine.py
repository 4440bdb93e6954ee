"""
Tests for the dispute engine wiring: lifecycle signals, the tracking to
notification bridge, and start/stop.
"""
from datetime import datetime, timedelta, timezone

import pytest

from dispute_engine.config import EventType
from dispute_engine.engine import DisputeEngine
from dispute_engine.notifications.domain import Condition, NotificationRule
from dispute_engine.tracking.domain import TrackingFilter

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)


def _by_rule(engine, rule_id):
    return [n for n in engine.notifications.list() if n.rule_id == rule_id]


@pytest.mark.asyncio
async def test_dispute_created_records_event_and_notifies(engine, make_dispute):
    result = engine.dispute_created(make_dispute(priority="HIGH"))

    assert [e.type for e in result.events] == [EventType.STATUS_CHANGE]
    assert len(result.notifications) == 1
    notification = result.notifications[0]
    assert notification.user_id == "buyer_42"
    assert notification.title == "New Dispute: Item not received"
    assert notification.data["ruleId"] == "dispute_created_rule"
    assert notification.data["dispute"]["raisedAgainst"] == "seller_7"


@pytest.mark.asyncio
async def test_escalation_notifies_exactly_once(engine, make_dispute):
    result = engine.dispute_escalated(make_dispute(), "Seller unresponsive")

    assert [e.type for e in result.events] == [EventType.ESCALATION]
    assert len(_by_rule(engine, "dispute_escalated_rule")) == 1
    assert len(engine.notifications) == 1
    assert result.notifications[0].priority == "URGENT"


@pytest.mark.asyncio
async def test_update_fires_change_triggers(engine, make_dispute):
    engine.rules.create_rule(NotificationRule(
        id="status_rule",
        name="Status changes",
        template_id="dispute_created",
        conditions=[Condition(field="type", operator="equals", value="DISPUTE_STATUS_CHANGED")],
        channels=["IN_APP"],
    ))
    previous = make_dispute(status="OPEN")
    current = make_dispute(status="MEDIATION")

    result = engine.dispute_updated(current, previous)

    assert [e.type for e in result.events] == [EventType.STATUS_CHANGE]
    assert [n.rule_id for n in result.notifications] == ["status_rule"]
    assert result.notifications[0].data["newStatus"] == "MEDIATION"


@pytest.mark.asyncio
async def test_resolved_signal(engine, make_dispute):
    resolved = make_dispute(status="RESOLVED", resolution="FULL_REFUND", resolved_by="agent_1")

    result = engine.dispute_resolved(resolved)

    assert result.events[0].metadata["newStatus"] == "RESOLVED"
    # the default catalogue has no DISPUTE_RESOLVED rule
    assert result.notifications == []


@pytest.mark.asyncio
async def test_closed_disputes_leave_the_monitoring_set(engine, make_dispute):
    engine.dispute_created(make_dispute("d1", hours_open=30, priority="URGENT"))
    engine.dispute_created(make_dispute("d2", hours_open=30, priority="URGENT"))

    engine.dispute_resolved(make_dispute("d1", status="RESOLVED", resolution="FULL_REFUND"))

    assert [d.id for d in await engine.disputes.list_disputes()] == ["d2"]
    summary = await engine.monitor.run_once(now=NOW)
    assert summary["disputes_scanned"] == 1


@pytest.mark.asyncio
async def test_monitor_breach_is_bridged_to_notifications(engine, make_dispute):
    engine.dispute_created(make_dispute(priority="URGENT", hours_open=30))

    await engine.monitor.run_once(now=NOW)
    await engine.monitor.run_once(now=NOW + timedelta(minutes=10))

    breaches = engine.store.query(TrackingFilter(type=EventType.SLA_BREACH))
    assert len(breaches) == 1

    sla_notifications = _by_rule(engine, "sla_breach_rule")
    assert len(sla_notifications) == 1
    assert sla_notifications[0].user_id == "buyer_42"
    assert sla_notifications[0].title == "SLA Breach: Item not received"
    assert sla_notifications[0].data["slaStatus"] == "OVERDUE"

    # two workflow rules fire per tick, cooldown keeps one notification
    actions = engine.store.query(TrackingFilter(type=EventType.AUTO_ACTION))
    assert len(actions) == 4
    assert len(_by_rule(engine, "auto_escalation_rule")) == 1


@pytest.mark.asyncio
async def test_custom_message_event_is_bridged(engine, make_dispute):
    engine.dispute_created(make_dispute())
    engine.rules.create_rule(NotificationRule(
        id="message_rule",
        name="Messages",
        template_id="message_added",
        conditions=[Condition(field="type", operator="equals", value="DISPUTE_MESSAGE_ADDED")],
        channels=["IN_APP"],
    ))

    engine.store.track_custom_event(
        dispute_id="d1",
        type=EventType.MESSAGE_ADDED,
        title="Message Added",
        description="Seller replied",
        user_id="seller_7",
        user_name="Acme Store",
    )

    notifications = _by_rule(engine, "message_rule")
    assert len(notifications) == 1
    assert notifications[0].message == "A new message has been added to dispute d1 by Acme Store."
    assert notifications[0].user_id == "buyer_42"


@pytest.mark.asyncio
async def test_full_pipeline_delivers_through_sinks(engine, make_dispute, recording_sink):
    created = engine.dispute_created(make_dispute()).notifications[0]

    summary = await engine.dispatcher.run_once(now=NOW)

    assert summary["sent"] == 1
    assert engine.notifications.get(created.id).status == "SENT"
    assert recording_sink.sent == [
        (created.id, "EMAIL"), (created.id, "PUSH"), (created.id, "IN_APP")
    ]


@pytest.mark.asyncio
async def test_start_stop_lifecycle(settings, recording_sink):
    settings.monitor_interval_seconds = 30
    settings.dispatch_interval_seconds = 30
    engine = DisputeEngine(settings, sinks={"IN_APP": recording_sink})

    await engine.start()
    await engine.start()
    assert engine.is_running
    assert engine.status()["dispute_monitor"] == "running"
    assert engine.status()["channel_dispatcher"] == "running"

    await engine.stop()
    await engine.stop()
    assert not engine.is_running
    assert engine.status()["dispute_monitor"] == "stopped"


@pytest.mark.asyncio
async def test_stop_drops_the_bridge(engine):
    await engine.stop()

    engine.store.append({
        "dispute_id": "d1",
        "type": EventType.SLA_BREACH,
        "title": "SLA Breach Detected",
    })

    assert len(engine.store) == 1
    assert len(engine.notifications) == 0


@pytest.mark.asyncio
async def test_policy_file_is_loaded_on_start(settings):
    settings.tracking_policy_path.write_text("escalation_hours:\n  URGENT: 10\n")
    engine = DisputeEngine(settings)

    await engine.start()
    try:
        assert engine.policy.get_policy().escalation_threshold("URGENT") == 10
        assert engine.policy.get_policy().escalation_threshold("HIGH") == 24
    finally:
        await engine.stop()
