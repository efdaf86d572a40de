"""Normalization of raw check runs and commit statuses into a CheckSummary."""

import asyncio
import logging
import re
from datetime import UTC, datetime

from pr_pilot.checks.base import CheckStatusSource
from pr_pilot.checks.classifier import FailureClassifier
from pr_pilot.checks.models import (
    Annotation,
    CheckRun,
    CheckSummary,
    CommitStatus,
    FailureDetail,
    OverallStatus,
)
from pr_pilot.checks.suggestions import SuggestionEngine

logger = logging.getLogger(__name__)

FAILED_CONCLUSIONS = frozenset({"failure", "cancelled", "timed_out"})
SKIPPED_CONCLUSIONS = frozenset({"skipped"})
FAILED_STATES = frozenset({"failure", "error"})

_EXT = r"\.(?:py|tsx?|jsx?|go|rs)\b"

FILE_PATTERNS = (
    # pytest: tests/test_auth.py::test_login FAILED
    re.compile(rf"([\w\-/.]+{_EXT})::"),
    # tsc: src/components/Button.tsx(45,12): error TS2322
    re.compile(rf"([\w\-/.]+{_EXT})\(\d+,\d+\)"),
    # traceback: File "app/models/user.py", line 123
    re.compile(rf'File "([\w\-/.]+{_EXT})"'),
    # eslint: /home/ci/work/src/app.js
    re.compile(rf"(?<![\w\-./])/([\w\-/]+{_EXT})"),
)


def extract_files(text: str | None) -> list[str]:
    """Extract file paths mentioned in check output.

    Args:
        text: Raw check output text

    Returns:
        Unique file paths in the order they first appear
    """
    if not text:
        return []

    found: list[tuple[int, str]] = []
    for pattern in FILE_PATTERNS:
        found.extend((match.start(1), match.group(1)) for match in pattern.finditer(text))

    found.sort(key=lambda item: item[0])
    return list(dict.fromkeys(path for _, path in found))


def calculate_duration(check_runs: list[CheckRun]) -> int | None:
    """Longest run time among completed checks.

    Args:
        check_runs: Check runs to inspect

    Returns:
        Duration in milliseconds, or None when no check has both timestamps
    """
    durations = [
        int((run.completed_at - run.started_at).total_seconds() * 1000)
        for run in check_runs
        if run.started_at is not None and run.completed_at is not None
    ]
    if not durations:
        return None
    return max(durations)


class CheckStatusAggregator:
    """Fetches check data for a pull request and summarizes it."""

    def __init__(
        self,
        source: CheckStatusSource,
        classifier: FailureClassifier | None = None,
        suggestions: SuggestionEngine | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            source: Provider of pull request and check data
            classifier: Failure classifier (default: keyword classifier)
            suggestions: Suggestion engine for failure details
        """
        self.source = source
        self.classifier = classifier or FailureClassifier()
        self.suggestions = suggestions or SuggestionEngine()

    async def get_detailed_check_status(self, pr_number: int) -> CheckSummary:
        """Get a fresh summary of every check on a pull request's head commit.

        Args:
            pr_number: Pull request number

        Returns:
            Check summary for the head commit
        """
        pull_request = await self.source.get_pull_request(pr_number)
        head_sha = pull_request.head_sha

        check_runs, statuses = await asyncio.gather(
            self.source.list_check_runs(head_sha),
            self.source.get_combined_status(head_sha),
        )
        logger.debug(
            f"PR #{pr_number} @ {head_sha[:7]}: {len(check_runs)} check runs, {len(statuses)} statuses"
        )

        return self.summarize(check_runs, statuses)

    def summarize(self, check_runs: list[CheckRun], statuses: list[CommitStatus]) -> CheckSummary:
        """Bucket check runs and statuses into a summary.

        Args:
            check_runs: Check runs for the commit
            statuses: Commit statuses for the commit

        Returns:
            Summary with counts, overall status and failure details
        """
        passed = failed = pending = skipped = 0
        failure_details: list[FailureDetail] = []

        for run in check_runs:
            if run.status != "completed":
                pending += 1
            elif run.conclusion in FAILED_CONCLUSIONS:
                failed += 1
                failure_details.append(self._build_failure_detail(run))
            elif run.conclusion in SKIPPED_CONCLUSIONS:
                skipped += 1
            else:
                passed += 1

        for status in statuses:
            if status.state in FAILED_STATES:
                failed += 1
            elif status.state == "pending":
                pending += 1
            else:
                passed += 1

        if failed > 0:
            overall = OverallStatus.FAILURE
        elif pending > 0:
            overall = OverallStatus.PENDING
        else:
            overall = OverallStatus.SUCCESS

        now = datetime.now(UTC)
        start_times = [run.started_at for run in check_runs if run.started_at is not None]

        return CheckSummary(
            total=len(check_runs) + len(statuses),
            passed=passed,
            failed=failed,
            pending=pending,
            skipped=skipped,
            overall_status=overall,
            failure_details=failure_details,
            started_at=min(start_times) if start_times else now,
            completed_at=now if pending == 0 else None,
            duration=calculate_duration(check_runs),
        )

    def _build_failure_detail(self, run: CheckRun) -> FailureDetail:
        """Classify a failed check run.

        Args:
            run: Failed check run

        Returns:
            Failure detail for the run
        """
        output = run.output
        summary = (output.summary if output else None) or "No summary available"
        affected_files = extract_files(output.text if output else None)
        error_type = self.classifier.classify(run)

        return FailureDetail(
            check_name=run.name,
            error_type=error_type,
            summary=summary,
            affected_files=affected_files,
            suggested_fix=self.suggestions.get_suggestion(summary, error_type, affected_files),
            url=run.url,
            check_run_id=run.id,
        )

    async def get_check_annotations(self, check_run_id: int, limit: int = 50) -> list[Annotation]:
        """Fetch annotations for a failed check run.

        Args:
            check_run_id: Check run identifier
            limit: Maximum annotations to fetch

        Returns:
            Annotations for the run
        """
        return await self.source.list_annotations(check_run_id, limit)

    async def with_annotations(self, summary: CheckSummary, limit: int = 50) -> CheckSummary:
        """Return a copy of the summary with annotations on each failure.

        Args:
            summary: Summary to enrich
            limit: Maximum annotations per check run

        Returns:
            Summary whose failure details carry annotations
        """
        details = []
        for detail in summary.failure_details:
            if detail.check_run_id is None:
                details.append(detail)
                continue
            annotations = await self.get_check_annotations(detail.check_run_id, limit)
            details.append(detail.model_copy(update={"annotations": annotations}))

        return summary.model_copy(update={"failure_details": details})
