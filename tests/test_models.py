"""Tests for top-level models."""

from datetime import UTC, datetime

from pr_pilot.autofix import AutoFixResult, FixReason
from pr_pilot.checks import CheckSummary, OverallStatus, WaitReason, WaitResult
from pr_pilot.models import CIRunSummary


def summary(status: OverallStatus) -> CheckSummary:
    """Create a one-check summary with the given status."""
    failed = 1 if status == OverallStatus.FAILURE else 0
    return CheckSummary(
        total=1,
        passed=1 - failed,
        failed=failed,
        overall_status=status,
        started_at=datetime.now(UTC),
    )


class TestCIRunSummary:
    """Tests for CIRunSummary."""

    def test_empty(self) -> None:
        """Test a run that saw nothing."""
        run = CIRunSummary(pr_number=1)

        assert run.checks_passed is False
        assert run.fixed == 0
        assert run.has_failures is True

    def test_wait_result_decides(self) -> None:
        """Test the wait result wins over the summary."""
        run = CIRunSummary(
            pr_number=1,
            summary=summary(OverallStatus.FAILURE),
            wait_result=WaitResult(success=True, reason=WaitReason.NO_CHECKS),
        )

        assert run.checks_passed is True
        assert run.has_failures is False

    def test_snapshot_status(self) -> None:
        """Test the summary status is used without a wait."""
        assert CIRunSummary(pr_number=1, summary=summary(OverallStatus.SUCCESS)).checks_passed is True
        assert CIRunSummary(pr_number=1, summary=summary(OverallStatus.PENDING)).checks_passed is False

    def test_fixed_excludes_dry_runs(self) -> None:
        """Test only applied fixes are counted."""
        run = CIRunSummary(
            pr_number=1,
            summary=summary(OverallStatus.FAILURE),
            fix_results=[
                AutoFixResult(success=True, commit_sha="abc"),
                AutoFixResult(success=True, reason=FixReason.DRY_RUN),
                AutoFixResult(success=False, reason=FixReason.NO_CHANGES),
            ],
        )

        assert run.fixed == 1
        assert run.has_failures is False
