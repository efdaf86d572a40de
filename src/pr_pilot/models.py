"""Top-level models for pr-pilot."""

from pydantic import BaseModel, Field

from pr_pilot.autofix.metrics import AutoFixMetrics
from pr_pilot.autofix.models import AutoFixResult
from pr_pilot.checks.models import CheckSummary, OverallStatus, WaitResult


class CIRunSummary(BaseModel):
    """Outcome of waiting on a pull request and auto-fixing its failures."""

    pr_number: int = Field(description="Pull request number")
    summary: CheckSummary | None = Field(default=None, description="Last check summary seen")
    wait_result: WaitResult | None = Field(default=None, description="Set when the run waited for checks")
    fix_results: list[AutoFixResult] = Field(default_factory=list, description="One result per error type")
    metrics: AutoFixMetrics | None = Field(default=None, description="Auto-fix metrics after the run")

    @property
    def checks_passed(self) -> bool:
        """Check if CI ended green.

        Returns:
            True if the wait succeeded, or the snapshot shows no failures
        """
        if self.wait_result is not None:
            return self.wait_result.success
        return self.summary is not None and self.summary.overall_status == OverallStatus.SUCCESS

    @property
    def fixed(self) -> int:
        """Number of successful, non-simulated fixes."""
        return sum(1 for r in self.fix_results if r.success and r.reason is None)

    @property
    def has_failures(self) -> bool:
        """Check if CI failed and no fix was applied.

        Returns:
            True if the caller should report failure
        """
        return not self.checks_passed and self.fixed == 0
