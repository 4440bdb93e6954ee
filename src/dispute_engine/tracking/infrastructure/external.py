"""
Tracking External Collaborators
===============================

Default implementations of the collaborators the monitor depends on:
- YAML tracking policy with watchdog hot-reload
- Priority-threshold SLA calculator
- In-memory dispute source
- Static workflow rule source
"""

import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml
from watchdog.events import FileSystemEventHandler
from watchdog.observers import Observer

from dispute_engine.config import SLAStatus
from dispute_engine.shared.infrastructure.logging import get_logger
from dispute_engine.tracking.application import (
    IDisputeSource, ISLACalculator, ITrackingPolicyProvider, IWorkflowRuleSource
)
from dispute_engine.tracking.domain import DisputeSnapshot, TrackingPolicy, WorkflowRuleRef

logger = get_logger(__name__)


class PolicyFileHandler(FileSystemEventHandler):
    """Watchdog event handler for tracking policy file changes."""

    def __init__(self, policy_manager: "TrackingPolicyManager", policy_path: Path):
        self.policy_manager = policy_manager
        self.policy_path = policy_path
        super().__init__()

    def on_modified(self, event):
        """Handle file modification event."""
        if event.is_directory:
            return
        if Path(event.src_path).resolve() == self.policy_path.resolve():
            logger.info("Tracking policy file changed", extra={"path": str(event.src_path)})
            self.policy_manager.reload()


class TrackingPolicyManager(ITrackingPolicyProvider):
    """
    Thread-safe tracking policy holder with hot-reload support.

    Uses watchdog to monitor the YAML file so thresholds can be tuned
    without restarting the service. A missing file means defaults.
    """

    def __init__(self, policy: Optional[TrackingPolicy] = None):
        self._policy: Optional[TrackingPolicy] = policy
        self._lock = threading.Lock()
        self._path: Optional[Path] = None
        self._observer = None

    def load(self, path: Path) -> TrackingPolicy:
        """Initial policy load."""
        self._path = Path(path)
        self._policy = self._load_from_file(self._path)
        return self._policy

    def _load_from_file(self, path: Path) -> TrackingPolicy:
        """Load and parse YAML policy file."""
        if not path.exists():
            logger.warning("Tracking policy file not found, using defaults", extra={"path": str(path)})
            return TrackingPolicy()

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return TrackingPolicy(**data)

    def reload(self) -> bool:
        """Reload the policy from file; keeps the old one on failure."""
        if self._path is None:
            return False

        try:
            new_policy = self._load_from_file(self._path)
            with self._lock:
                self._policy = new_policy
            logger.info("Tracking policy reloaded successfully")
            return True
        except Exception as e:
            logger.error("Failed to reload tracking policy", extra={"error": str(e)})
            return False

    def start_watching(self) -> None:
        """
        Start watching the policy file for changes.

        Skips watching if the file doesn't exist or the platform does not
        support file notifications.
        """
        if self._path is None:
            raise RuntimeError("Policy not loaded. Call load() first.")

        if not self._path.exists():
            logger.info(
                "Policy file doesn't exist, skipping file watch",
                extra={"path": str(self._path)}
            )
            return

        try:
            self._observer = Observer()
            handler = PolicyFileHandler(self, self._path)
            self._observer.schedule(
                handler,
                str(self._path.resolve().parent),
                recursive=False
            )
            self._observer.start()
            logger.info("Started watching policy file", extra={"path": str(self._path)})
        except OSError as e:
            logger.warning("File watching not available, using static policy", extra={"error": str(e)})
            self._observer = None

    def stop_watching(self) -> None:
        """Stop watching the policy file (safe to call even if not watching)."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def get_policy(self) -> TrackingPolicy:
        with self._lock:
            if self._policy is None:
                self._policy = TrackingPolicy()
            return self._policy

    @property
    def policy(self) -> TrackingPolicy:
        return self.get_policy()


class PriorityThresholdSLACalculator(ISLACalculator):
    """
    SLA status from hours elapsed against a per-priority threshold.

    OVERDUE once elapsed exceeds the threshold, AT_RISK once it exceeds
    ``at_risk_ratio`` of it, ON_TIME otherwise.
    """

    def __init__(self, policy_provider: ITrackingPolicyProvider):
        self._policy_provider = policy_provider

    def calculate_time_to_resolution(self, dispute: DisputeSnapshot, now: datetime) -> float:
        created_at = dispute.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)

        end = now
        if dispute.resolved_at is not None and dispute.is_closed:
            end = dispute.resolved_at
            if end.tzinfo is None:
                end = end.replace(tzinfo=timezone.utc)

        return (end - created_at).total_seconds() / 3600

    def calculate_sla_status(self, dispute: DisputeSnapshot, now: datetime) -> str:
        policy = self._policy_provider.get_policy()
        threshold = policy.sla_threshold(dispute.priority)
        hours_elapsed = self.calculate_time_to_resolution(dispute, now)

        if hours_elapsed > threshold:
            return SLAStatus.OVERDUE
        if hours_elapsed > threshold * policy.at_risk_ratio:
            return SLAStatus.AT_RISK
        return SLAStatus.ON_TIME


class InMemoryDisputeSource(IDisputeSource):
    """Dispute listing backed by a dict, kept current by the engine's signals."""

    def __init__(self, disputes: Optional[Iterable[DisputeSnapshot]] = None):
        self._disputes: Dict[str, DisputeSnapshot] = {}
        for dispute in disputes or []:
            self.put(dispute)

    def put(self, dispute: DisputeSnapshot) -> None:
        self._disputes[dispute.id] = dispute

    def remove(self, dispute_id: str) -> None:
        self._disputes.pop(dispute_id, None)

    async def list_disputes(self) -> List[DisputeSnapshot]:
        return list(self._disputes.values())


DEFAULT_WORKFLOW_RULES = [
    WorkflowRuleRef(id="auto_escalate_urgent", name="Auto-escalate Urgent Disputes"),
    WorkflowRuleRef(id="auto_escalate_overdue", name="Auto-escalate Overdue Disputes"),
]


class StaticWorkflowRuleSource(IWorkflowRuleSource):
    """Fixed list of workflow rules."""

    def __init__(self, rules: Optional[Iterable[WorkflowRuleRef]] = None):
        self._rules = list(DEFAULT_WORKFLOW_RULES if rules is None else rules)

    def get_rules(self) -> List[WorkflowRuleRef]:
        return list(self._rules)
