"""
Tracking Services
=================

Periodic SLA and auto-escalation monitoring.

The monitor scans the dispute source on a fixed interval and appends
SLA_BREACH and AUTO_ACTION events to the tracking store. Everything it
produces goes through the store, so downstream listeners (the
notification bridge, metrics subscribers) see monitor output the same way
they see lifecycle events.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from dispute_engine.config import DisputeStatus, EventType, SLAStatus, Severity
from dispute_engine.shared.infrastructure.logging import get_logger, log_latency
from dispute_engine.shared.infrastructure.scheduler import IntervalScheduler
from dispute_engine.tracking.application import (
    IDisputeSource, ISLACalculator, ITrackingPolicyProvider,
    IWorkflowRuleSource, TrackingEventStore
)
from dispute_engine.tracking.domain import DisputeSnapshot

logger = get_logger(__name__)


class DisputeMonitor:
    """
    Evaluates SLA compliance and auto-escalation rules for all disputes.

    This service:
    1. Lists disputes from the dispute source
    2. Appends a CRITICAL SLA_BREACH for overdue open disputes
       (at most one per dispute per de-dup window)
    3. Appends a HIGH AUTO_ACTION per matching auto-escalate rule for
       OPEN disputes past their priority threshold
    """

    def __init__(
        self,
        store: TrackingEventStore,
        dispute_source: IDisputeSource,
        sla_calculator: ISLACalculator,
        rule_source: IWorkflowRuleSource,
        policy_provider: ITrackingPolicyProvider,
        breach_dedup_hours: float = 24.0,
        escalation_dedup_hours: Optional[float] = None,
        interval_seconds: int = 30,
    ):
        self._store = store
        self._dispute_source = dispute_source
        self._sla_calculator = sla_calculator
        self._rule_source = rule_source
        self._policy_provider = policy_provider
        self._breach_dedup = timedelta(hours=breach_dedup_hours)
        self._escalation_dedup = (
            timedelta(hours=escalation_dedup_hours)
            if escalation_dedup_hours is not None else None
        )
        self._scheduler = IntervalScheduler("dispute_monitor", interval_seconds)

    async def run_once(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Run a single monitoring pass.

        Args:
            now: Evaluation time, defaults to the current UTC time

        Returns:
            Summary of the pass
        """
        now = now or datetime.now(timezone.utc)
        summary = {"disputes_scanned": 0, "sla_breaches": 0, "auto_actions": 0, "failures": 0}

        with log_latency(logger, "dispute_monitor.run_once"):
            disputes = await self._dispute_source.list_disputes()

            for dispute in disputes:
                summary["disputes_scanned"] += 1
                try:
                    if self._check_sla(dispute, now):
                        summary["sla_breaches"] += 1
                except Exception as e:
                    summary["failures"] += 1
                    logger.error(
                        "SLA check failed",
                        extra={"dispute_id": dispute.id, "error": str(e)}
                    )

                try:
                    summary["auto_actions"] += self._check_auto_escalation(dispute, now)
                except Exception as e:
                    summary["failures"] += 1
                    logger.error(
                        "Auto-escalation check failed",
                        extra={"dispute_id": dispute.id, "error": str(e)}
                    )

        if summary["sla_breaches"] or summary["auto_actions"] or summary["failures"]:
            logger.info("Dispute monitor pass complete", extra=summary)

        return summary

    def _check_sla(self, dispute: DisputeSnapshot, now: datetime) -> bool:
        if dispute.is_closed:
            return False

        sla_status = self._sla_calculator.calculate_sla_status(dispute, now)
        if sla_status != SLAStatus.OVERDUE:
            return False

        if self._store.has_recent_event(dispute.id, EventType.SLA_BREACH, now - self._breach_dedup):
            return False

        event = self._store.append({
            "dispute_id": dispute.id,
            "type": EventType.SLA_BREACH,
            "title": "SLA Breach Detected",
            "description": f'Dispute "{dispute.reason}" has exceeded SLA limits',
            "severity": Severity.CRITICAL,
            "metadata": {
                "disputeReason": dispute.reason,
                "timeElapsed": self._sla_calculator.calculate_time_to_resolution(dispute, now),
                "priority": dispute.priority,
                "slaStatus": sla_status,
                "raisedBy": dispute.raised_by,
                "raisedAgainst": dispute.raised_against,
            },
        }, now=now)
        return event is not None

    def _check_auto_escalation(self, dispute: DisputeSnapshot, now: datetime) -> int:
        if dispute.status != DisputeStatus.OPEN:
            return 0

        rules = [r for r in self._rule_source.get_rules() if r.enabled and r.is_auto_escalation]
        if not rules:
            return 0

        if self._escalation_dedup is not None and self._store.has_recent_event(
            dispute.id, EventType.AUTO_ACTION, now - self._escalation_dedup
        ):
            return 0

        threshold = self._policy_provider.get_policy().escalation_threshold(dispute.priority)
        elapsed = self._sla_calculator.calculate_time_to_resolution(dispute, now)
        if elapsed < threshold:
            return 0

        fired = 0
        for rule in rules:
            event = self._store.append({
                "dispute_id": dispute.id,
                "type": EventType.AUTO_ACTION,
                "title": "Auto-escalation Triggered",
                "description": f'Dispute "{dispute.reason}" auto-escalated by rule: {rule.name}',
                "severity": Severity.HIGH,
                "metadata": {
                    "ruleId": rule.id,
                    "ruleName": rule.name,
                    "timeElapsed": elapsed,
                    "threshold": threshold,
                    "priority": dispute.priority,
                    "disputeReason": dispute.reason,
                    "raisedBy": dispute.raised_by,
                    "raisedAgainst": dispute.raised_against,
                },
            }, now=now)
            if event is not None:
                fired += 1
        return fired

    async def start(self) -> None:
        """Start periodic monitoring (no-op if already running)."""
        await self._scheduler.start(self.run_once)

    async def stop(self) -> None:
        """Stop periodic monitoring (safe to call when stopped)."""
        await self._scheduler.stop()

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running
