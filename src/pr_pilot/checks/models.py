"""Models for CI check data and polling results."""

from collections.abc import Callable
from datetime import datetime
from enum import Enum
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class ErrorType(str, Enum):
    """Coarse category of a CI failure."""

    TEST_FAILURE = "test_failure"
    LINTING_ERROR = "linting_error"
    TYPE_ERROR = "type_error"
    SECURITY_ISSUE = "security_issue"
    BUILD_ERROR = "build_error"
    FORMAT_ERROR = "format_error"
    UNKNOWN = "unknown"


class OverallStatus(str, Enum):
    """Aggregate status of all checks on a commit."""

    SUCCESS = "success"
    FAILURE = "failure"
    PENDING = "pending"


class CheckOutput(BaseModel):
    """Output block attached to a check run."""

    model_config = ConfigDict(extra="ignore")

    title: str | None = None
    summary: str | None = None
    text: str | None = None
    annotations_count: int = 0


class CheckRun(BaseModel):
    """One CI job's status and conclusion for a commit."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: int | None = Field(default=None, description="Check run identifier")
    name: str = Field(description="Check name")
    status: str = Field(default="queued", description="queued, in_progress or completed")
    conclusion: str | None = Field(
        default=None,
        description="success, failure, cancelled, timed_out, skipped, neutral, ...",
    )
    started_at: datetime | None = None
    completed_at: datetime | None = None
    output: CheckOutput | None = None
    url: str | None = Field(default=None, alias="html_url")


class CommitStatus(BaseModel):
    """Legacy named status entry for a commit."""

    model_config = ConfigDict(extra="ignore")

    context: str
    state: str = Field(description="success, pending, failure or error")
    description: str | None = None
    target_url: str | None = None


class Annotation(BaseModel):
    """Line-level annotation attached to a check run."""

    model_config = ConfigDict(extra="ignore")

    path: str
    start_line: int
    end_line: int
    annotation_level: str
    message: str
    title: str | None = None
    raw_details: str | None = None


class PullRequest(BaseModel):
    """The parts of a pull request the workflow needs."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    number: int
    title: str = ""
    head_sha: str = ""
    head_ref: str = ""
    base_ref: str = ""
    url: str | None = Field(default=None, alias="html_url")

    @model_validator(mode="before")
    @classmethod
    def flatten_refs(cls, data: Any) -> Any:
        """Lift ``head.sha``/``head.ref``/``base.ref`` out of the API payload."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        head = data.pop("head", None)
        base = data.pop("base", None)
        if isinstance(head, dict):
            data.setdefault("head_sha", head.get("sha", ""))
            data.setdefault("head_ref", head.get("ref", ""))
        if isinstance(base, dict):
            data.setdefault("base_ref", base.get("ref", ""))
        return data


class FailureDetail(BaseModel):
    """Normalized, classified record of one failing check."""

    check_name: str = Field(description="Name of the failing check")
    error_type: ErrorType = Field(description="Classified failure category")
    summary: str = Field(description="Summary text from the check output")
    affected_files: list[str] = Field(default_factory=list, description="Files mentioned in the output")
    suggested_fix: str | None = Field(default=None, description="Suggested command or action")
    url: str | None = Field(default=None, description="Link to the check details")
    check_run_id: int | None = Field(default=None, description="Check run id, for annotations")
    annotations: list[Annotation] = Field(default_factory=list)


class CheckSummary(BaseModel):
    """Normalized status of every check on a pull request's head commit."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    pending: int = 0
    skipped: int = 0
    overall_status: OverallStatus = OverallStatus.PENDING
    failure_details: list[FailureDetail] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime | None = None
    duration: int | None = Field(default=None, description="Longest completed check, in ms")

    @model_validator(mode="after")
    def check_counts(self) -> Self:
        """Reject summaries whose buckets don't add up to the total."""
        counted = self.passed + self.failed + self.pending + self.skipped
        if counted != self.total:
            raise ValueError(f"total ({self.total}) must equal passed+failed+pending+skipped ({counted})")
        return self

    @property
    def failing_check_names(self) -> set[str]:
        """Names of the checks currently failing."""
        return {detail.check_name for detail in self.failure_details}


class PollStrategyType(str, Enum):
    """How the interval between polls evolves."""

    FIXED = "fixed"
    EXPONENTIAL = "exponential"


class PollStrategy(BaseModel):
    """Polling interval policy. All values are milliseconds."""

    type: PollStrategyType = PollStrategyType.EXPONENTIAL
    initial_interval: int = Field(default=5000, gt=0)
    multiplier: float | None = Field(default=1.5, gt=0)
    max_interval: int | None = Field(default=30000, gt=0)


class ProgressUpdate(BaseModel):
    """Snapshot handed to ``on_progress`` whenever the counts change."""

    timestamp: datetime
    elapsed: int = Field(description="Milliseconds since the wait started")
    summary: CheckSummary
    total: int
    passed: int
    failed: int
    pending: int
    new_failures: list[str] = Field(default_factory=list)
    new_passes: list[str] = Field(default_factory=list)


ProgressCallback = Callable[[ProgressUpdate], None]

DEFAULT_RETRY_PATTERNS = ["timeout", "network", "flaky"]


class WaitOptions(BaseModel):
    """Options for waiting on a pull request's checks."""

    timeout: int = Field(default=600_000, gt=0, description="Overall wait limit in ms")
    poll_strategy: PollStrategy = Field(default_factory=PollStrategy)
    fail_fast: bool = True
    retry_patterns: list[str] = Field(default_factory=list)
    max_retries: int = Field(default=3, ge=0)
    retry_delay: int = Field(default=5000, ge=0, description="Wait after a retryable failure, in ms")
    on_progress: ProgressCallback | None = Field(default=None, exclude=True)


class WaitReason(str, Enum):
    """Why a wait ended."""

    COMPLETED = "completed"
    NO_CHECKS = "no_checks"
    TIMEOUT = "timeout"
    CRITICAL_FAILURE = "critical_failure"


class PollState(str, Enum):
    """Lifecycle of a single ``wait_for_checks`` call."""

    INITIAL = "initial"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CRITICAL_FAILURE = "critical_failure"


class WaitResult(BaseModel):
    """Outcome of waiting on CI checks."""

    success: bool
    reason: WaitReason
    summary: CheckSummary | None = None
    retries_used: int = 0
    duration: int = Field(default=0, description="Milliseconds spent waiting")
