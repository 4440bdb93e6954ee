"""
Tests for the SLA breach and auto-escalation monitor.
"""
from datetime import datetime, timedelta, timezone

import pytest

from dispute_engine.config import EventType, Severity
from dispute_engine.tracking.application import TrackingEventStore
from dispute_engine.tracking.domain import (
    DisputeSnapshot, TrackingFilter, TrackingPolicy, WorkflowRuleRef
)
from dispute_engine.tracking.infrastructure import (
    InMemoryDisputeSource, PriorityThresholdSLACalculator,
    StaticWorkflowRuleSource, TrackingPolicyManager
)
from dispute_engine.tracking.services import DisputeMonitor

NOW = datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

URGENT_RULE = WorkflowRuleRef(id="wf_1", name="Auto-escalate Urgent Disputes")


def _dispute(id="d1", hours_open=3, **overrides):
    data = {
        "id": id,
        "reason": "Item not received",
        "priority": "URGENT",
        "status": "OPEN",
        "raised_by": "buyer_42",
        "raised_against": "seller_7",
        "created_at": NOW - timedelta(hours=hours_open),
    }
    data.update(overrides)
    return DisputeSnapshot(**data)


def _monitor(disputes, rules=(URGENT_RULE,), store=None, calculator=None, **kwargs):
    policy = TrackingPolicyManager(TrackingPolicy())
    store = store or TrackingEventStore()
    monitor = DisputeMonitor(
        store=store,
        dispute_source=InMemoryDisputeSource(disputes),
        sla_calculator=calculator or PriorityThresholdSLACalculator(policy),
        rule_source=StaticWorkflowRuleSource(list(rules)),
        policy_provider=policy,
        **kwargs
    )
    return monitor, store


def _of_type(store, event_type):
    return store.query(TrackingFilter(type=event_type))


@pytest.mark.asyncio
async def test_auto_escalation_repeats_every_tick():
    monitor, store = _monitor([_dispute(hours_open=3)])

    for tick in range(3):
        summary = await monitor.run_once(now=NOW + timedelta(seconds=30 * tick))
        assert summary["auto_actions"] == 1

    actions = _of_type(store, EventType.AUTO_ACTION)
    assert len(actions) == 3
    assert all(e.severity == Severity.HIGH for e in actions)
    assert actions[0].title == "Auto-escalation Triggered"
    assert actions[0].metadata["ruleId"] == "wf_1"
    assert actions[0].metadata["threshold"] == 2


@pytest.mark.asyncio
async def test_auto_escalation_fires_once_per_matching_rule():
    rules = [
        URGENT_RULE,
        WorkflowRuleRef(id="wf_2", name="AUTO-ESCALATE stale disputes"),
        WorkflowRuleRef(id="wf_3", name="Auto-escalate disabled", enabled=False),
        WorkflowRuleRef(id="wf_4", name="Assign to mediator"),
    ]
    monitor, store = _monitor([_dispute(hours_open=3)], rules=rules)

    await monitor.run_once(now=NOW)

    fired = {e.metadata["ruleId"] for e in _of_type(store, EventType.AUTO_ACTION)}
    assert fired == {"wf_1", "wf_2"}


@pytest.mark.asyncio
@pytest.mark.parametrize("overrides", [
    {"hours_open": 1},
    {"status": "IN_REVIEW"},
    {"priority": "HIGH"},
])
async def test_auto_escalation_requires_open_dispute_past_threshold(overrides):
    monitor, store = _monitor([_dispute(**overrides)])

    await monitor.run_once(now=NOW)

    assert _of_type(store, EventType.AUTO_ACTION) == []


@pytest.mark.asyncio
async def test_auto_escalation_dedup_window_when_configured():
    monitor, store = _monitor([_dispute(hours_open=3)], escalation_dedup_hours=24)

    await monitor.run_once(now=NOW)
    await monitor.run_once(now=NOW + timedelta(minutes=30))

    assert len(_of_type(store, EventType.AUTO_ACTION)) == 1


@pytest.mark.asyncio
async def test_sla_breach_recorded_once_per_window():
    # URGENT SLA is 24h, so 30h open is OVERDUE
    monitor, store = _monitor([_dispute(hours_open=30)], rules=[])

    first = await monitor.run_once(now=NOW)
    second = await monitor.run_once(now=NOW + timedelta(hours=1))
    third = await monitor.run_once(now=NOW + timedelta(hours=25))

    assert (first["sla_breaches"], second["sla_breaches"], third["sla_breaches"]) == (1, 0, 1)

    breaches = _of_type(store, EventType.SLA_BREACH)
    assert len(breaches) == 2
    latest = breaches[0]
    assert latest.severity == Severity.CRITICAL
    assert latest.title == "SLA Breach Detected"
    assert latest.metadata["slaStatus"] == "OVERDUE"
    assert latest.metadata["raisedBy"] == "buyer_42"


@pytest.mark.asyncio
async def test_closed_disputes_are_not_breached():
    resolved = _dispute(hours_open=30, status="RESOLVED", resolved_at=NOW - timedelta(hours=1))
    monitor, store = _monitor([resolved], rules=[])

    summary = await monitor.run_once(now=NOW)

    assert summary["sla_breaches"] == 0
    assert len(store) == 0


@pytest.mark.asyncio
async def test_failing_dispute_does_not_stop_the_pass():
    class FlakyCalculator(PriorityThresholdSLACalculator):
        def calculate_sla_status(self, dispute, now):
            if dispute.id == "broken":
                raise ValueError("bad timestamps")
            return super().calculate_sla_status(dispute, now)

    policy = TrackingPolicyManager(TrackingPolicy())
    monitor, store = _monitor(
        [_dispute("broken", hours_open=30), _dispute("d2", hours_open=30)],
        rules=[],
        calculator=FlakyCalculator(policy),
    )

    summary = await monitor.run_once(now=NOW)

    assert summary == {"disputes_scanned": 2, "sla_breaches": 1, "auto_actions": 0, "failures": 1}
    assert [e.dispute_id for e in store.events] == ["d2"]


@pytest.mark.asyncio
async def test_sla_failure_does_not_skip_auto_escalation():
    class BrokenStatusCalculator(PriorityThresholdSLACalculator):
        def calculate_sla_status(self, dispute, now):
            raise RuntimeError("sla service unavailable")

    policy = TrackingPolicyManager(TrackingPolicy())
    monitor, store = _monitor(
        [_dispute(hours_open=5)],
        calculator=BrokenStatusCalculator(policy),
    )

    summary = await monitor.run_once(now=NOW)

    assert summary == {"disputes_scanned": 1, "sla_breaches": 0, "auto_actions": 1, "failures": 1}
    assert [e.type for e in store.events] == [EventType.AUTO_ACTION]


@pytest.mark.asyncio
async def test_start_and_stop_are_idempotent():
    monitor, _ = _monitor([], interval_seconds=30)

    await monitor.start()
    await monitor.start()
    assert monitor.is_running

    await monitor.stop()
    await monitor.stop()
    assert not monitor.is_running


@pytest.mark.asyncio
async def test_zero_interval_disables_scheduling():
    monitor, _ = _monitor([], interval_seconds=0)

    await monitor.start()

    assert not monitor.is_running
