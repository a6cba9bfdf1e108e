"""Runner entry point: trigger a batch, poll it, report the outcome"""
import asyncio
import logging
import sys
from typing import Optional

from .config import Settings, load_settings
from .errors import RunnerError, TestFailure, TimeoutExceeded
from .models.batch_schemas import TriggerRequest
from .services.batch_client import BatchClient
from .services.classification import StatusPolicy
from .services.pipeline import Pipeline
from .services.repository_context import resolve_repository_context
from .services.reporting import report_results, report_timeout
from .worker.poller import BatchPoller, PollState

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Diagnostic logging on stderr, apart from the pipeline's stdout stream."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )


async def run_batch(
    settings: Settings,
    pipeline: Pipeline,
    client: Optional[BatchClient] = None,
    poller_factory=BatchPoller,
) -> str:
    """
    Trigger a batch and, unless non-blocking, follow it to a result.

    Args:
        settings: Resolved configuration
        pipeline: Pipeline surface for logs, outputs and the summary
        client: Pre-built client (tests); built from settings otherwise
        poller_factory: Callable building the poller, overridable for tests

    Returns:
        The batch identifier

    Raises:
        RunnerError: Any failure or failed outcome of the invocation
    """
    if client is None:
        client = BatchClient(
            api_key=settings.api_key,
            api_url=settings.api_url,
            timeout=settings.request_timeout_seconds,
        )

    async with client:
        request = TriggerRequest(
            base_url=settings.base_url,
            repository_context=resolve_repository_context(settings),
        )
        batch_run_id = await client.trigger_batch(request)
        pipeline.info(f"Triggered batchRunId: {batch_run_id}")
        pipeline.set_output("batchRunId", batch_run_id)

        if settings.non_blocking:
            pipeline.info("Non-blocking mode: not waiting for test results")
            pipeline.set_output("result", "triggered")
            return batch_run_id

        policy = StatusPolicy(settings.agent_error_policy)
        poller = poller_factory(
            client=client,
            pipeline=pipeline,
            policy=policy,
            interval_seconds=settings.poll_interval_seconds,
            timeout_seconds=settings.poll_timeout_seconds,
            log_mode=settings.log_mode,
        )
        result = await poller.run(batch_run_id)

    if result.state == PollState.TIMED_OUT:
        pipeline.set_output("result", "timed_out")
        report_timeout(batch_run_id, settings.poll_timeout_seconds, pipeline)

    try:
        report_results(result.snapshot, policy, pipeline)
    except TestFailure:
        pipeline.set_output("result", "failed")
        raise
    pipeline.set_output("result", "passed")
    return batch_run_id


def run(settings: Optional[Settings] = None, pipeline: Optional[Pipeline] = None) -> int:
    """Run one invocation and return its exit status."""
    try:
        settings = settings or load_settings()
    except RunnerError as e:
        pipeline = pipeline or Pipeline()
        pipeline.set_failed(f"❌ Action failed: {e}")
        return pipeline.exit_code

    configure_logging(settings.log_level)
    if pipeline is None:
        pipeline = Pipeline(
            output_file=settings.github_output,
            summary_file=settings.github_step_summary,
        )

    try:
        asyncio.run(run_batch(settings, pipeline))
    except (TestFailure, TimeoutExceeded) as e:
        pipeline.set_failed(str(e))
    except RunnerError as e:
        logger.error(f"Invocation failed: {e}")
        pipeline.set_failed(f"❌ Action failed: {e}")
    except Exception as e:
        logger.exception("Unexpected error")
        pipeline.set_failed(f"❌ Action failed: {e}")
    return pipeline.exit_code


def main():
    """Console entry point."""
    sys.exit(run())


if __name__ == "__main__":
    main()
