"""Polling loop that follows a batch until it finishes or times out"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from ..models.batch_schemas import LogMode, PollSnapshot
from ..services.batch_client import BatchClient
from ..services.classification import StatusPolicy, changed_runs, count_statuses
from ..services.pipeline import Pipeline
from ..services.reporting import format_cycle_heading, format_run_line

logger = logging.getLogger(__name__)


class PollState(str, Enum):
    POLLING = "POLLING"
    DONE = "DONE"
    TIMED_OUT = "TIMED_OUT"


@dataclass
class PollResult:
    """Where the loop stopped and the last snapshot it saw."""
    state: PollState
    batch_run_id: str
    snapshot: PollSnapshot = field(default_factory=list)
    poll_count: int = 0
    elapsed_seconds: float = 0.0


class BatchPoller:
    """
    Polls one batch until every run is terminal or the ceiling is reached.

    State machine: POLLING -> DONE | TIMED_OUT. Each cycle issues exactly one
    status request, logs progress, then either stops or sleeps for the fixed
    interval. Poll failures propagate (PollRequestError) and end the loop.

    The clock and sleep functions are injectable so tests can drive elapsed
    time and multiple cycles without real delays.
    """

    def __init__(
        self,
        client: BatchClient,
        pipeline: Pipeline,
        policy: StatusPolicy,
        interval_seconds: float = 10.0,
        timeout_seconds: float = 1200.0,
        log_mode: LogMode = LogMode.FULL,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.pipeline = pipeline
        self.policy = policy
        self.interval_seconds = interval_seconds
        self.timeout_seconds = timeout_seconds
        self.log_mode = log_mode
        self.clock = clock
        self.sleep = sleep

    async def run(self, batch_run_id: str, previous: Optional[Dict[str, str]] = None) -> PollResult:
        """
        Poll until DONE or TIMED_OUT.

        Args:
            batch_run_id: Batch to follow
            previous: runId -> last displayed status, used in CHANGES log mode

        Returns:
            PollResult with the terminal state and final snapshot
        """
        previous = {} if previous is None else previous
        state = PollState.POLLING
        started = self.clock()
        poll_count = 0
        snapshot: PollSnapshot = []
        logger.info(
            f"Polling batch {batch_run_id} every {self.interval_seconds:g}s "
            f"(timeout {self.timeout_seconds:g}s)"
        )

        while state == PollState.POLLING:
            poll_count += 1
            snapshot = await self.client.poll_batch(batch_run_id)
            self.report_cycle(poll_count, snapshot, previous)

            elapsed = self.clock() - started
            state = self.next_state(snapshot, elapsed)
            if state == PollState.POLLING:
                await self.sleep(self.interval_seconds)
                # Never poll again once the ceiling has passed during the wait
                if self.clock() - started >= self.timeout_seconds:
                    state = PollState.TIMED_OUT

        elapsed = self.clock() - started
        logger.info(f"Batch {batch_run_id} reached {state.value} after {poll_count} polls ({elapsed:.1f}s)")
        return PollResult(
            state=state,
            batch_run_id=batch_run_id,
            snapshot=snapshot,
            poll_count=poll_count,
            elapsed_seconds=elapsed,
        )

    def next_state(self, snapshot: PollSnapshot, elapsed_seconds: float) -> PollState:
        """Termination check for a snapshot observed after elapsed_seconds."""
        if self.policy.is_fully_terminal(snapshot):
            return PollState.DONE
        if elapsed_seconds >= self.timeout_seconds:
            return PollState.TIMED_OUT
        return PollState.POLLING

    def report_cycle(self, poll_count: int, snapshot: PollSnapshot, previous: Dict[str, str]) -> None:
        """Log progress for one poll in the configured log mode."""
        changed = changed_runs(snapshot, previous)

        if self.log_mode == LogMode.CHANGES:
            for run in changed:
                self.pipeline.info(format_run_line(run, self.policy))
            return

        with self.pipeline.group(format_cycle_heading(poll_count, count_statuses(snapshot))):
            for run in snapshot:
                self.pipeline.info(format_run_line(run, self.policy))
