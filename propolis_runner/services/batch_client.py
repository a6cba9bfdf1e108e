"""Client for communicating with the test-execution service"""
import httpx
import logging
from typing import Optional
from urllib.parse import quote

from pydantic import ValidationError

from ..errors import ConfigurationError, MissingBatchIdError, PollRequestError, TransportError
from ..models.batch_schemas import PollSnapshot, PollTestBatchResponse, TriggerRequest

logger = logging.getLogger(__name__)

TRIGGER_PATH = "/api/testing/runAllTestsInBatch"
POLL_PATH = "/api/testing/pollTestBatch/{batch_run_id}"


class BatchClient:
    """
    HTTP client for runner-service communication.

    Handles the two calls a runner invocation makes:
    - Triggering a batch of test runs
    - Polling the batch for the current snapshot of its runs

    Errors are never retried here; httpx errors are wrapped into the
    runner's own error types and propagated.
    """

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.propolis.tech",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not api_key:
            raise ConfigurationError(
                "Missing API key: set the apiKey input or the PROPOLIS_API_KEY environment variable"
            )
        self.api_url = api_url.rstrip('/')
        self.client = httpx.AsyncClient(
            base_url=self.api_url,
            headers={"X-API-Key": api_key},
            timeout=timeout,
            transport=transport,
        )
        logger.info(f"BatchClient initialized: service={self.api_url}")

    async def __aenter__(self) -> "BatchClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def trigger_batch(self, request: TriggerRequest) -> str:
        """
        Start a batch of test runs on the service.

        Args:
            request: Target URL and repository context to forward

        Returns:
            The batch identifier assigned by the service

        Raises:
            TransportError: The call failed or returned a non-success status
            MissingBatchIdError: The response carried no batchRunId
        """
        payload = request.to_payload()
        logger.debug(f"Triggering batch with payload keys: {sorted(payload)}")
        try:
            response = await self.client.post(TRIGGER_PATH, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"Trigger request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        batch_run_id = data.get("batchRunId") if isinstance(data, dict) else None
        if not batch_run_id or not isinstance(batch_run_id, str):
            raise MissingBatchIdError("Missing batchRunId in trigger response")

        logger.info(f"Batch {batch_run_id} triggered")
        return batch_run_id

    async def poll_batch(self, batch_run_id: str) -> PollSnapshot:
        """
        Fetch the current snapshot of every run in a batch.

        Args:
            batch_run_id: Identifier returned by trigger_batch

        Returns:
            Runs in the order the service reports them

        Raises:
            PollRequestError: The call failed or the response is malformed
        """
        path = POLL_PATH.format(batch_run_id=quote(batch_run_id, safe=""))
        try:
            response = await self.client.get(path)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise PollRequestError(f"Poll request for batch {batch_run_id} failed: {e}") from e

        try:
            snapshot = PollTestBatchResponse.model_validate(response.json()).test_runs
        except (ValueError, ValidationError) as e:
            raise PollRequestError(f"Malformed poll response for batch {batch_run_id}: {e}") from e

        logger.debug(f"Polled batch {batch_run_id}: {len(snapshot)} runs")
        return snapshot

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
        logger.debug("BatchClient closed")
