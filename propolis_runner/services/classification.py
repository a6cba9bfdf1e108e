"""Status classification for poll snapshots.

Terminal and failure membership are looked up in per-policy tables so that the
only behavioural switch between variants is the AgentErrorPolicy value.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, MutableMapping

from ..models.batch_schemas import AgentErrorPolicy, PollSnapshot, RunStatus, TestRun

TERMINAL_STATUSES: Dict[AgentErrorPolicy, FrozenSet[str]] = {
    AgentErrorPolicy.FAIL: frozenset({RunStatus.COMPLETED.value, RunStatus.FAILED.value, RunStatus.AGENT_ERROR.value}),
    AgentErrorPolicy.IGNORE: frozenset({RunStatus.COMPLETED.value, RunStatus.FAILED.value, RunStatus.AGENT_ERROR.value}),
    AgentErrorPolicy.WAIT: frozenset({RunStatus.COMPLETED.value, RunStatus.FAILED.value}),
}

FAILURE_STATUSES: Dict[AgentErrorPolicy, FrozenSet[str]] = {
    AgentErrorPolicy.FAIL: frozenset({RunStatus.FAILED.value, RunStatus.AGENT_ERROR.value}),
    AgentErrorPolicy.IGNORE: frozenset({RunStatus.FAILED.value}),
    AgentErrorPolicy.WAIT: frozenset({RunStatus.FAILED.value}),
}

# Statuses shown as another status in logs and the summary
DISPLAY_STATUSES: Dict[str, str] = {
    RunStatus.NEEDS_MANUAL_REVIEW.value: RunStatus.RUNNING.value,
}


def display_status(status: str) -> str:
    return DISPLAY_STATUSES.get(status, status)


@dataclass(frozen=True)
class SnapshotCounts:
    """Per-bucket run counts for one snapshot."""
    queued: int = 0
    running: int = 0
    completed: int = 0
    failed: int = 0
    agent_error: int = 0
    other: int = 0

    @property
    def total(self) -> int:
        return (
            self.queued + self.running + self.completed
            + self.failed + self.agent_error + self.other
        )


def count_statuses(snapshot: PollSnapshot) -> SnapshotCounts:
    """Count runs per status bucket. NEEDS_MANUAL_REVIEW counts as running."""
    buckets = {"queued": 0, "running": 0, "completed": 0, "failed": 0, "agent_error": 0, "other": 0}
    for run in snapshot:
        status = display_status(run.status)
        if status == RunStatus.QUEUED.value:
            buckets["queued"] += 1
        elif status == RunStatus.RUNNING.value:
            buckets["running"] += 1
        elif status == RunStatus.COMPLETED.value:
            buckets["completed"] += 1
        elif status == RunStatus.FAILED.value:
            buckets["failed"] += 1
        elif status == RunStatus.AGENT_ERROR.value:
            buckets["agent_error"] += 1
        else:
            buckets["other"] += 1
    return SnapshotCounts(**buckets)


@dataclass(frozen=True)
class StatusPolicy:
    """Terminal and failure sets selected by one AgentErrorPolicy."""
    agent_error_policy: AgentErrorPolicy = AgentErrorPolicy.FAIL

    @property
    def terminal_statuses(self) -> FrozenSet[str]:
        return TERMINAL_STATUSES[self.agent_error_policy]

    @property
    def failure_statuses(self) -> FrozenSet[str]:
        return FAILURE_STATUSES[self.agent_error_policy]

    def is_terminal(self, status: str) -> bool:
        return status in self.terminal_statuses

    def is_failure(self, status: str) -> bool:
        return status in self.failure_statuses

    def is_fully_terminal(self, snapshot: PollSnapshot) -> bool:
        return all(self.is_terminal(run.status) for run in snapshot)

    def failed_runs(self, snapshot: PollSnapshot) -> List[TestRun]:
        return [run for run in snapshot if self.is_failure(run.status)]

    def passed_runs(self, snapshot: PollSnapshot) -> List[TestRun]:
        return [run for run in snapshot if run.status == RunStatus.COMPLETED.value]

    def ignored_agent_errors(self, snapshot: PollSnapshot) -> List[TestRun]:
        """AGENT_ERROR runs that finished without counting as failures."""
        if self.is_failure(RunStatus.AGENT_ERROR.value):
            return []
        return [run for run in snapshot if run.status == RunStatus.AGENT_ERROR.value]


def changed_runs(snapshot: PollSnapshot, previous: MutableMapping[str, str]) -> List[TestRun]:
    """
    Return runs whose displayed status differs from the previous cycle and record the new ones.

    Statuses are compared as displayed, so NEEDS_MANUAL_REVIEW and RUNNING
    count as the same state.

    Args:
        snapshot: Runs from the current poll
        previous: runId -> last displayed status, updated in place

    Returns:
        Changed runs in snapshot order
    """
    changed = [run for run in snapshot if previous.get(run.run_id) != display_status(run.status)]
    for run in changed:
        previous[run.run_id] = display_status(run.status)
    return changed
