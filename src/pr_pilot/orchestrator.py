"""Main workflow orchestration for pr-pilot."""

import logging

from rich.console import Console

from pr_pilot.autofix import AutoFixEngine, AutoFixResult, MetricsStore
from pr_pilot.checks import (
    CheckStatusAggregator,
    CheckSummary,
    ErrorType,
    FailureDetail,
    PollScheduler,
    WaitResult,
)
from pr_pilot.checks.models import ProgressCallback
from pr_pilot.config import PrPilotConfig
from pr_pilot.github import GitHubClient, parse_github_remote
from pr_pilot.models import CIRunSummary
from pr_pilot.vcs import VCSManager
from pr_pilot.vcs.git import GitManager
from pr_pilot.verification import VerifyRunner

logger = logging.getLogger(__name__)


def distinct_failures(summary: CheckSummary) -> list[FailureDetail]:
    """First failure of each error type, in check order.

    Args:
        summary: Check summary

    Returns:
        One failure detail per error type
    """
    seen: set[ErrorType] = set()
    failures: list[FailureDetail] = []
    for detail in summary.failure_details:
        if detail.error_type in seen:
            continue
        seen.add(detail.error_type)
        failures.append(detail)
    return failures


class PrPilotOrchestrator:
    """Orchestrates waiting on CI and auto-fixing failures."""

    def __init__(
        self,
        config: PrPilotConfig,
        vcs: VCSManager | None = None,
        console: Console | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            config: Application configuration
            vcs: Version control manager (default: Git repository in the current directory)
            console: Rich console for user-facing output
        """
        self.config = config
        self.console = console or Console()
        self._vcs = vcs
        self.metrics = MetricsStore()

    @property
    def vcs(self) -> VCSManager:
        """Version control manager, opened on first use."""
        if self._vcs is None:
            self._vcs = GitManager()
        return self._vcs

    def _client(self) -> GitHubClient:
        """Create a GitHub client, deriving owner/repo from origin when not configured."""
        config = self.config
        if not config.github_owner or not config.github_repo:
            owner, repo = parse_github_remote(self.vcs.get_remote_url())
            config = config.with_repository(owner, repo)
        return GitHubClient(config)

    async def get_status(self, pr_number: int, with_annotations: bool = False) -> CheckSummary:
        """Take one snapshot of a pull request's checks.

        Args:
            pr_number: Pull request number
            with_annotations: Attach annotations to each failure

        Returns:
            Current check summary
        """
        async with self._client() as client:
            aggregator = CheckStatusAggregator(client)
            summary = await aggregator.get_detailed_check_status(pr_number)
            if with_annotations and summary.failure_details:
                summary = await aggregator.with_annotations(summary)
        return summary

    async def wait(
        self,
        pr_number: int,
        on_progress: ProgressCallback | None = None,
        **overrides: object,
    ) -> WaitResult:
        """Wait for a pull request's checks to finish.

        Args:
            pr_number: Pull request number
            on_progress: Called whenever check counts change
            **overrides: WaitOptions fields overriding the ``ci`` config

        Returns:
            WaitResult describing how the wait ended

        Raises:
            CheckTimeoutError: If checks are still running at the timeout
        """
        options = self.config.ci.to_wait_options(on_progress=on_progress, **overrides)

        async with self._client() as client:
            scheduler = PollScheduler(CheckStatusAggregator(client))
            return await scheduler.wait_for_checks(pr_number, options)

    def create_engine(self, client: GitHubClient | None = None) -> AutoFixEngine:
        """Build an auto-fix engine for the working tree.

        Args:
            client: GitHub client used to open fix pull requests

        Returns:
            Engine sharing this orchestrator's metrics
        """
        settings = self.config.auto_fix
        return AutoFixEngine(
            vcs=self.vcs,
            config=settings.to_engine_config(),
            verifier=VerifyRunner(self.vcs.repo_path, command=settings.verify_command),
            pr_creator=client,
            metrics=self.metrics,
            package_manager=settings.package_manager,
            command_overrides=settings.commands,
        )

    async def run(
        self,
        pr_number: int,
        dry_run: bool | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> CIRunSummary:
        """Wait on a pull request's checks, then auto-fix what failed.

        Args:
            pr_number: Pull request number
            dry_run: Simulate fixes (default: ``auto_fix.enable_dry_run``)
            on_progress: Called whenever check counts change

        Returns:
            Summary of the wait and any fix attempts

        Raises:
            CheckTimeoutError: If checks are still running at the timeout
        """
        result = CIRunSummary(pr_number=pr_number)

        async with self._client() as client:
            aggregator = CheckStatusAggregator(client)

            if self.config.ci.wait_for_checks:
                self.console.print(f"[yellow]Waiting for checks on PR #{pr_number}...[/yellow]")
                options = self.config.ci.to_wait_options(on_progress=on_progress)
                wait_result = await PollScheduler(aggregator).wait_for_checks(pr_number, options)
                result.wait_result = wait_result
                result.summary = wait_result.summary
            else:
                result.summary = await aggregator.get_detailed_check_status(pr_number)

            summary = result.summary
            if result.checks_passed or summary is None or not summary.failure_details:
                result.metrics = self.metrics.snapshot()
                return result

            if not self.config.auto_fix.enabled:
                logger.info("Auto-fix disabled, not attempting fixes")
                result.metrics = self.metrics.snapshot()
                return result

            engine = self.create_engine(client)
            for failure in distinct_failures(summary):
                fix = await engine.attempt_fix(failure, pr_number, dry_run=dry_run)
                self._report_fix(failure, fix)
                result.fix_results.append(fix)

        result.metrics = self.metrics.snapshot()
        return result

    def _report_fix(self, failure: FailureDetail, fix: AutoFixResult) -> None:
        """Print the outcome of one fix attempt."""
        label = f"{failure.check_name} ({failure.error_type.value})"
        if fix.success and fix.reason is not None:
            self.console.print(f"  [cyan]Would run[/cyan] {fix.command} for {label}")
        elif fix.success:
            where = f"PR #{fix.pr_number}" if fix.pr_number else f"commit {(fix.commit_sha or '')[:7]}"
            self.console.print(f"  [green]✓ Fixed[/green] {label} -> {where}")
        else:
            reason = fix.reason.value if fix.reason else "unknown"
            self.console.print(f"  [red]✗ Not fixed[/red] {label}: {reason}")
