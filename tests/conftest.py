"""
Pytest configuration for runner tests.

Isolates tests from the pipeline environment and provides fakes for
HTTP, time and the pipeline log stream.
"""

import io
import json
import os
import sys
from typing import Callable, Dict, List, Optional

import httpx
import pytest

# Add project root to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from propolis_runner.config import Settings
from propolis_runner.models.batch_schemas import TestRun
from propolis_runner.services.batch_client import BatchClient
from propolis_runner.services.pipeline import Pipeline

API_URL = "https://api.test.propolis"
ENV_PREFIXES = ("INPUT_", "GITHUB_", "PROPOLIS_", "POLL_", "REQUEST_TIMEOUT", "LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove pipeline variables so the host CI does not leak into Settings."""
    for name in list(os.environ):
        if name.upper().startswith(ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)


def make_run(run_id: str, status: str, name: Optional[str] = None, url: Optional[str] = None) -> TestRun:
    return TestRun(
        run_id=run_id,
        friendly_name=name or f"Suite {run_id}",
        status=status,
        url=url if url is not None else f"https://app.propolis.tech/runs/{run_id}",
    )


def snapshot_payload(*runs: TestRun) -> dict:
    return {"testRuns": [run.model_dump(by_alias=True) for run in runs]}


def make_settings(**overrides) -> Settings:
    values = {
        "input_apikey": "test-api-key",
        "propolis_api_url": API_URL,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class FakeService:
    """
    In-memory stand-in for the test-execution service.

    Poll responses are served in order; the last one repeats once the
    queue runs dry.
    """

    def __init__(self, batch_run_id: Optional[str] = "b1", polls: Optional[List] = None):
        self.trigger_response = {"batchRunId": batch_run_id} if batch_run_id else {}
        self.trigger_status = 200
        self.poll_responses = list(polls or [])
        self.poll_status = 200
        self.requests: List[httpx.Request] = []

    @property
    def trigger_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/runAllTestsInBatch")]

    @property
    def poll_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if "/pollTestBatch/" in r.url.path]

    def trigger_body(self, index: int = 0) -> dict:
        return json.loads(self.trigger_requests[index].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/api/testing/runAllTestsInBatch":
            return httpx.Response(self.trigger_status, json=self.trigger_response)
        if request.url.path.startswith("/api/testing/pollTestBatch/"):
            if self.poll_status != 200:
                return httpx.Response(self.poll_status, json={"error": "boom"})
            payload = self.poll_responses.pop(0) if len(self.poll_responses) > 1 else self.poll_responses[0]
            return httpx.Response(200, json=payload)
        return httpx.Response(404)

    def client(self, api_key: str = "test-api-key") -> BatchClient:
        return BatchClient(
            api_key=api_key,
            api_url=API_URL,
            transport=httpx.MockTransport(self.handler),
        )


class FakeClock:
    """Monotonic clock advanced only by FakeSleep."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now


class FakeSleep:
    """Records requested delays and advances the fake clock instead of waiting."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        self.clock.now += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_sleep(fake_clock) -> FakeSleep:
    return FakeSleep(fake_clock)


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def pipeline(log_stream, tmp_path) -> Pipeline:
    return Pipeline(
        stream=log_stream,
        output_file=str(tmp_path / "github_output"),
        summary_file=str(tmp_path / "step_summary.md"),
    )


@pytest.fixture
def read_outputs(pipeline) -> Callable[[], Dict[str, str]]:
    def _read() -> Dict[str, str]:
        path = pipeline.output_file
        if not os.path.exists(path):
            return {}
        with open(path, encoding="utf-8") as f:
            return dict(line.rstrip("\n").split("=", 1) for line in f if "=" in line)
    return _read
