"""Error taxonomy for a runner invocation"""
from typing import List, Optional


class RunnerError(Exception):
    """Base class for every error that ends an invocation as failed."""
    pass


class ConfigurationError(RunnerError):
    """Raised when required configuration (the API key) is missing."""
    pass


class TransportError(RunnerError):
    """Raised when an HTTP call fails or returns a non-success status."""
    pass


class PollRequestError(TransportError):
    """Raised when a status poll fails. Fatal, never treated as still running."""
    pass


class MissingBatchIdError(RunnerError):
    """Raised when the trigger response carries no batch identifier."""
    pass


class TestFailure(RunnerError):
    """One or more runs finished in the failure set. A reported outcome, not a defect."""

    __test__ = False  # keep pytest from collecting this class

    def __init__(self, message: str, failed_runs: Optional[List] = None):
        super().__init__(message)
        self.failed_runs = failed_runs or []


class TimeoutExceeded(RunnerError):
    """Polling passed the wall-clock ceiling before every run finished."""

    def __init__(self, message: str, batch_run_id: str, timeout_seconds: float):
        super().__init__(message)
        self.batch_run_id = batch_run_id
        self.timeout_seconds = timeout_seconds
