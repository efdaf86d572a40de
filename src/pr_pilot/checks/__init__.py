"""CI check status collection, classification and polling."""

from pr_pilot.checks.aggregator import CheckStatusAggregator, calculate_duration, extract_files
from pr_pilot.checks.base import CheckStatusSource
from pr_pilot.checks.classifier import FailureClassifier, SecurityIssueKind, classify_security_issue
from pr_pilot.checks.exceptions import (
    CheckError,
    CheckSourceError,
    CheckTimeoutError,
    TransientSourceError,
)
from pr_pilot.checks.models import (
    CheckRun,
    CheckSummary,
    CommitStatus,
    ErrorType,
    FailureDetail,
    OverallStatus,
    PollStrategy,
    PollStrategyType,
    ProgressUpdate,
    WaitOptions,
    WaitReason,
    WaitResult,
)
from pr_pilot.checks.poller import PollScheduler, calculate_next_interval

__all__ = [
    "CheckError",
    "CheckRun",
    "CheckSourceError",
    "CheckStatusAggregator",
    "CheckStatusSource",
    "CheckSummary",
    "CheckTimeoutError",
    "CommitStatus",
    "ErrorType",
    "FailureClassifier",
    "FailureDetail",
    "OverallStatus",
    "PollScheduler",
    "PollStrategy",
    "PollStrategyType",
    "ProgressUpdate",
    "SecurityIssueKind",
    "TransientSourceError",
    "WaitOptions",
    "WaitReason",
    "WaitResult",
    "calculate_duration",
    "calculate_next_interval",
    "classify_security_issue",
    "extract_files",
]
