"""Schemas for runner-service communication"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RunStatus(str, Enum):
    """Statuses the service reports for a single test run."""
    QUEUED = "QUEUED"
    RUNNING = "RUNNING"
    NEEDS_MANUAL_REVIEW = "NEEDS_MANUAL_REVIEW"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    AGENT_ERROR = "AGENT_ERROR"


class AgentErrorPolicy(str, Enum):
    """How AGENT_ERROR runs count toward termination and failure."""
    FAIL = "fail"
    IGNORE = "ignore"
    WAIT = "wait"


class LogMode(str, Enum):
    """Per-cycle progress logging style."""
    FULL = "full"
    CHANGES = "changes"


class RepositoryContext(BaseModel):
    """Repository metadata forwarded verbatim with the trigger call."""
    model_config = ConfigDict(populate_by_name=True)

    commit_sha: Optional[str] = Field(None, alias="commitSha")
    repository_url: Optional[str] = Field(None, alias="repositoryUrl")
    branch: Optional[str] = None
    commit_message: Optional[str] = Field(None, alias="commitMessage")

    def is_empty(self) -> bool:
        return not any(
            (self.commit_sha, self.repository_url, self.branch, self.commit_message)
        )


class TriggerRequest(BaseModel):
    """Body of the runAllTestsInBatch call."""
    model_config = ConfigDict(populate_by_name=True)

    base_url: Optional[str] = Field(None, alias="baseUrl")
    repository_context: Optional[RepositoryContext] = Field(None, alias="repositoryContext")

    def to_payload(self) -> dict:
        """JSON body with absent fields left out entirely."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TestRun(BaseModel):
    """One suite execution inside a batch, as of a single poll."""
    __test__ = False

    # Numeric ids and links are accepted as text
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    run_id: str = Field(alias="runId")
    friendly_name: Optional[str] = Field(None, alias="friendlyName")
    status: str
    url: Optional[str] = None

    @property
    def display_name(self) -> str:
        """Friendly name, or the run id when the service sent none."""
        return self.friendly_name or self.run_id


class PollTestBatchResponse(BaseModel):
    """Full snapshot returned by pollTestBatch."""
    test_runs: List[TestRun] = Field(alias="testRuns")


# A snapshot is the ordered run list of one poll response
PollSnapshot = List[TestRun]
