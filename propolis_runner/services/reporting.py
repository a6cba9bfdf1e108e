"""Formatting of progress lines, the results table and the final outcome"""
import logging
from typing import List

from ..errors import TestFailure, TimeoutExceeded
from ..models.batch_schemas import PollSnapshot, RunStatus, TestRun
from .classification import SnapshotCounts, StatusPolicy, display_status
from .pipeline import Pipeline

logger = logging.getLogger(__name__)

SUMMARY_HEADING = "Propolis Test Batch Results"

# Keyed on display status, so NEEDS_MANUAL_REVIEW shares the RUNNING icon
STATUS_ICONS = {
    RunStatus.QUEUED.value: "⏳",
    RunStatus.RUNNING.value: "🏃",
    RunStatus.COMPLETED.value: "✅",
    RunStatus.FAILED.value: "❌",
    RunStatus.AGENT_ERROR.value: "⚠️",
}


def status_icon(status: str) -> str:
    return STATUS_ICONS.get(display_status(status), "")


def format_run_line(run: TestRun, policy: StatusPolicy) -> str:
    """One progress line: icon, name, display status and, once finished, the results link."""
    line = f"{status_icon(run.status)} {run.display_name} → {display_status(run.status)}".strip()
    if policy.is_terminal(run.status) and run.url:
        line += f" ({run.url})"
    return line


def format_cycle_heading(poll_count: int, counts: SnapshotCounts) -> str:
    return (
        f"Poll #{poll_count}: {counts.queued} queued, {counts.running} running, "
        f"{counts.completed} completed, {counts.failed} failed, "
        f"{counts.agent_error} agent errors"
    )


def _table_cell(value: str) -> str:
    return value.replace("|", "\\|").replace("\n", " ")


def _logs_link(url: str) -> str:
    # Angle-bracket destinations may hold spaces and parentheses but not <, > or newlines
    target = url.replace("<", "%3C").replace(">", "%3E").replace("\n", "").replace("\r", "")
    return _table_cell(f"[Logs](<{target}>)")


def build_summary_markdown(snapshot: PollSnapshot) -> str:
    """Results table for the step summary, one row per run."""
    lines = [
        f"## {SUMMARY_HEADING}",
        "",
        "|   | Suite | Status | Link |",
        "|---|-------|--------|------|",
    ]
    for run in snapshot:
        link = _logs_link(run.url) if run.url else ""
        lines.append(
            f"| {status_icon(run.status)} | {_table_cell(run.display_name)} "
            f"| {display_status(run.status)} | {link} |"
        )
    return "\n".join(lines) + "\n"


def build_failure_report(failed_runs: List[TestRun]) -> str:
    lines = ["❌ The following test suites failed:"]
    for run in failed_runs:
        lines.append(f"- Test {run.run_id} ({run.display_name}): {run.url or 'no link'}")
    return "\n".join(lines)


def build_success_message(passed_count: int, ignored_agent_errors: int = 0) -> str:
    message = f"✅ All test suites passed. ({passed_count} tests completed successfully)"
    if ignored_agent_errors:
        message += f" ({ignored_agent_errors} agent errors ignored)"
    return message


def build_timeout_message(batch_run_id: str, timeout_seconds: float) -> str:
    minutes = timeout_seconds / 60
    minutes_text = f"{minutes:g}"
    return (
        f"⏰ Test execution exceeded {minutes_text} minutes. "
        f"Propolis is still tracking batch {batch_run_id} independently."
    )


def report_results(snapshot: PollSnapshot, policy: StatusPolicy, pipeline: Pipeline) -> str:
    """
    Publish the results table and classify a fully finished batch.

    Args:
        snapshot: The final, fully terminal snapshot
        policy: Decides which statuses count as failures
        pipeline: Receives the summary and the success line

    Returns:
        The success message

    Raises:
        TestFailure: At least one run is in the failure set
    """
    pipeline.write_summary(build_summary_markdown(snapshot))

    failed = policy.failed_runs(snapshot)
    if failed:
        logger.info(f"{len(failed)} of {len(snapshot)} runs failed")
        raise TestFailure(build_failure_report(failed), failed_runs=failed)

    message = build_success_message(
        len(policy.passed_runs(snapshot)),
        len(policy.ignored_agent_errors(snapshot)),
    )
    pipeline.info(message)
    return message


def report_timeout(batch_run_id: str, timeout_seconds: float, pipeline: Pipeline) -> None:
    """Warn that the ceiling was reached and raise TimeoutExceeded. No table is written."""
    message = build_timeout_message(batch_run_id, timeout_seconds)
    pipeline.warning(message)
    raise TimeoutExceeded(message, batch_run_id=batch_run_id, timeout_seconds=timeout_seconds)
