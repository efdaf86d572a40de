"""Bounded, reversible automated fixes for classified CI failures."""

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime

from pr_pilot.autofix.base import PullRequestCreator
from pr_pilot.autofix.commands import CommandResolver, detect_language
from pr_pilot.autofix.metrics import AutoFixMetrics, MetricsStore
from pr_pilot.autofix.models import (
    AutoFixConfig,
    AutoFixResult,
    FixReason,
    FixState,
    FixTask,
    Language,
)
from pr_pilot.autofix.snapshot import WorkingTreeSnapshot
from pr_pilot.checks.classifier import SecurityIssueKind, classify_security_issue
from pr_pilot.checks.exceptions import CheckSourceError
from pr_pilot.checks.models import ErrorType, FailureDetail, PullRequest
from pr_pilot.process import ProcessRunner
from pr_pilot.vcs.base import VCSManager
from pr_pilot.vcs.exceptions import VCSError
from pr_pilot.verification.models import VerifyResult
from pr_pilot.verification.runner import VerifyRunner

logger = logging.getLogger(__name__)

MAX_ERROR_OUTPUT = 500

FIX_TITLES = {
    FixTask.LINT: "fix: auto-fix linting errors",
    FixTask.FORMAT: "style: auto-format code",
    FixTask.DEPENDENCY_AUDIT: "fix: auto-fix dependency vulnerabilities",
}


def task_for(error_type: ErrorType) -> FixTask | None:
    """Map an error type to the fix task that repairs it."""
    if error_type == ErrorType.LINTING_ERROR:
        return FixTask.LINT
    if error_type == ErrorType.FORMAT_ERROR:
        return FixTask.FORMAT
    if error_type == ErrorType.SECURITY_ISSUE:
        return FixTask.DEPENDENCY_AUDIT
    return None


class AutoFixEngine:
    """Runs fix commands for CI failures with rollback, limits and metrics.

    The engine owns its working tree while an attempt runs; attempts on one
    engine are serialized. Use one engine per checkout.
    """

    def __init__(
        self,
        vcs: VCSManager,
        config: AutoFixConfig | None = None,
        runner: ProcessRunner | None = None,
        verifier: VerifyRunner | None = None,
        resolver: CommandResolver | None = None,
        pr_creator: PullRequestCreator | None = None,
        metrics: MetricsStore | None = None,
        package_manager: str | None = None,
        command_overrides: Mapping[str, str] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the engine.

        Args:
            vcs: Version control collaborator for the working tree
            config: Engine limits (default: AutoFixConfig())
            runner: Process runner for fix commands
            verifier: Verification runner (default: one rooted at the working tree)
            resolver: Fix command resolver
            pr_creator: Opens pull requests when ``config.create_pr`` is set
            metrics: Metrics store (default: a new store owned by this engine)
            package_manager: Package manager used to adapt fix commands
            command_overrides: Fix commands keyed by task name
            clock: Monotonic clock returning seconds
        """
        self.vcs = vcs
        self.config = config or AutoFixConfig()
        self.runner = runner or ProcessRunner()
        self.verifier = verifier or VerifyRunner(vcs.repo_path, runner=self.runner)
        self.resolver = resolver or CommandResolver(vcs.repo_path)
        self.pr_creator = pr_creator
        self.metrics = metrics or MetricsStore()
        self.package_manager = package_manager
        self.command_overrides = dict(command_overrides or {})
        self._clock = clock
        self._attempts: dict[ErrorType, int] = {}
        self._states: dict[ErrorType, FixState] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def is_auto_fixable(error_type: ErrorType, summary: str = "") -> bool:
        """Check whether an error type can be repaired by a tool.

        Security issues are fixable only when they are dependency
        vulnerabilities; leaked secrets never are.

        Args:
            error_type: Classified error type
            summary: Failure summary, used to sub-classify security issues

        Returns:
            True if a fix command may repair the failure
        """
        if error_type in (ErrorType.LINTING_ERROR, ErrorType.FORMAT_ERROR):
            return True
        if error_type == ErrorType.SECURITY_ISSUE:
            return classify_security_issue(summary) == SecurityIssueKind.DEPENDENCY_VULNERABILITY
        return False

    @property
    def _opens_pr(self) -> bool:
        return self.config.create_pr and self.pr_creator is not None

    def attempts_used(self, error_type: ErrorType) -> int:
        """Number of non-dry-run attempts made for an error type."""
        return self._attempts.get(error_type, 0)

    def get_state(self, error_type: ErrorType) -> FixState:
        """Current fix state for an error type."""
        return self._states.get(error_type, FixState.NOT_ATTEMPTED)

    def get_metrics(self) -> AutoFixMetrics:
        """Get a snapshot of the engine's metrics."""
        return self.metrics.snapshot()

    def export_metrics(self) -> str:
        """Serialize the engine's metrics as JSON."""
        return self.metrics.export()

    def reset_metrics(self) -> None:
        """Zero the engine's metrics."""
        self.metrics.reset()

    async def attempt_fix(
        self,
        failure: FailureDetail,
        pr_number: int,
        dry_run: bool | None = None,
    ) -> AutoFixResult:
        """Try to fix one failing check.

        Classified outcomes (not fixable, limits, tool failures, oversized
        fixes, failed verification) are returned. On every failure path the
        working tree is restored to its pre-attempt state.

        Args:
            failure: Classified failure to fix
            pr_number: Pull request the failure belongs to
            dry_run: Simulate without running the fix (default: config.enable_dry_run)

        Returns:
            AutoFixResult describing the outcome

        Raises:
            SnapshotError: If another snapshot of the working tree is outstanding
            VCSOperationError: If the working tree cannot be snapshotted or restored
        """
        async with self._lock:
            return await self._attempt(failure, pr_number, dry_run)

    async def _attempt(self, failure: FailureDetail, pr_number: int, dry_run: bool | None) -> AutoFixResult:
        error_type = failure.error_type
        use_dry_run = self.config.enable_dry_run if dry_run is None else dry_run
        used = self.attempts_used(error_type)

        if used >= self.config.max_attempts:
            logger.warning(f"Max attempts ({self.config.max_attempts}) reached for {error_type.value}")
            self._states[error_type] = FixState.SKIPPED_MAX_ATTEMPTS
            return AutoFixResult(
                success=False,
                reason=FixReason.MAX_ATTEMPTS_EXCEEDED,
                error_type=error_type,
                attempts=used,
            )

        if not self.is_auto_fixable(error_type, failure.summary):
            logger.info(f"Error type {error_type.value} is not auto-fixable ({failure.check_name})")
            self._states[error_type] = FixState.SKIPPED_NOT_FIXABLE
            return AutoFixResult(
                success=False,
                reason=FixReason.NOT_AUTO_FIXABLE,
                error_type=error_type,
                attempts=used,
            )

        start = self._clock()
        task = task_for(error_type)
        language = detect_language(failure.affected_files)
        command = None
        if task is not None:
            command = self.resolver.resolve(
                task,
                language,
                self.package_manager,
                self.command_overrides,
                failure.affected_files,
            )

        if use_dry_run:
            self.metrics.record_dry_run()
            if command is None:
                return AutoFixResult(
                    success=False,
                    reason=FixReason.NO_FIX_COMMAND,
                    error_type=error_type,
                    language=language,
                    attempts=used,
                )
            logger.info(f"[dry run] Would run for {failure.check_name}: {command}")
            return AutoFixResult(
                success=True,
                reason=FixReason.DRY_RUN,
                error_type=error_type,
                language=language,
                command=command,
                estimated_changed_files=len(failure.affected_files),
                attempts=used,
                duration=self._elapsed(start),
            )

        attempt = used + 1
        self._attempts[error_type] = attempt
        self._states[error_type] = FixState.ATTEMPTING
        logger.info(
            f"Auto-fix attempt {attempt}/{self.config.max_attempts} for {error_type.value} on PR #{pr_number}"
        )

        try:
            result = await self._run_fix(failure, pr_number, task, language, command)
        except Exception:
            self._states[error_type] = FixState.FAILED
            self.metrics.record_attempt(
                AutoFixResult(
                    success=False,
                    error_type=error_type,
                    duration=self._elapsed(start),
                ),
                reason="unexpected_error",
            )
            raise

        result = result.model_copy(
            update={
                "error_type": error_type,
                "language": language,
                "command": command,
                "attempts": attempt,
                "duration": self._elapsed(start),
            }
        )
        self._finish(result)
        return result

    async def _run_fix(
        self,
        failure: FailureDetail,
        pr_number: int,
        task: FixTask | None,
        language: Language,
        command: str | None,
    ) -> AutoFixResult:
        if task is None or command is None:
            logger.warning(f"No fix command available for {language.value}")
            return AutoFixResult(success=False, reason=FixReason.NO_FIX_COMMAND)

        snapshot = WorkingTreeSnapshot(self.vcs)
        snapshot.take()

        try:
            logger.info(f"Running fix command: {command}")
            try:
                run = await self.runner.run(
                    command,
                    timeout=self.config.fix_timeout,
                    cwd=self.vcs.repo_path,
                    shell=True,
                )
            except (TimeoutError, OSError) as e:
                snapshot.restore()
                return AutoFixResult(
                    success=False,
                    reason=FixReason.FIX_EXECUTION_FAILED,
                    rolled_back=True,
                    error=str(e) or f"Fix command timed out after {self.config.fix_timeout}s",
                )

            if not run.success:
                snapshot.restore()
                output = (run.stderr or run.stdout).strip()
                return AutoFixResult(
                    success=False,
                    reason=FixReason.FIX_EXECUTION_FAILED,
                    rolled_back=True,
                    error=output[:MAX_ERROR_OUTPUT] or f"Fix command exited with {run.exit_code}",
                )

            changed_lines = self.vcs.diff_stat()
            if changed_lines == 0:
                snapshot.release()
                return AutoFixResult(success=False, reason=FixReason.NO_CHANGES, changed_lines=0)

            if changed_lines > self.config.max_changed_lines:
                logger.warning(f"Fix changed {changed_lines} lines (limit {self.config.max_changed_lines})")
                snapshot.restore()
                return AutoFixResult(
                    success=False,
                    reason=FixReason.TOO_MANY_CHANGES,
                    changed_lines=changed_lines,
                    rolled_back=True,
                )

            if not self._opens_pr:
                # An in-place commit must not collide with the stashed local changes
                overlap = snapshot.conflicting_paths()
                if overlap:
                    logger.warning(f"Fix touches files with local changes: {', '.join(overlap)}")
                    snapshot.restore()
                    return AutoFixResult(
                        success=False,
                        reason=FixReason.LOCAL_CHANGES_CONFLICT,
                        changed_lines=changed_lines,
                        rolled_back=True,
                        error=f"Fix touches files with local changes: {', '.join(overlap)}",
                    )

            if self.config.require_tests:
                verification = await self._verify()
                if not verification.success:
                    snapshot.restore()
                    return AutoFixResult(
                        success=False,
                        reason=FixReason.VERIFICATION_FAILED,
                        changed_lines=changed_lines,
                        rolled_back=True,
                        verification_failed=True,
                        verification_errors=verification.errors,
                    )

            try:
                commit_sha, pull_request = await self._materialize(failure, pr_number, task, command, changed_lines)
            except (VCSError, CheckSourceError) as e:
                logger.error(f"Failed to materialize fix: {e}")
                snapshot.restore()
                return AutoFixResult(
                    success=False,
                    reason=FixReason.MATERIALIZATION_FAILED,
                    changed_lines=changed_lines,
                    rolled_back=True,
                    error=str(e),
                )

            snapshot.release()
            return AutoFixResult(
                success=True,
                changed_lines=changed_lines,
                commit_sha=commit_sha,
                pr_number=pull_request.number if pull_request else None,
                pr_url=pull_request.url if pull_request else None,
            )

        except BaseException:
            logger.error("Unexpected error during auto-fix, restoring working tree")
            snapshot.restore()
            raise

    async def _verify(self) -> VerifyResult:
        try:
            return await self.verifier.run_checks(timeout=self.config.verify_timeout)
        except Exception as e:
            logger.warning(f"Verification raised: {e}")
            return VerifyResult(success=False, output=str(e), errors=[str(e)])

    async def _materialize(
        self,
        failure: FailureDetail,
        pr_number: int,
        task: FixTask,
        command: str,
        changed_lines: int,
    ) -> tuple[str | None, PullRequest | None]:
        """Commit the fix in place, or on a new branch with a pull request.

        Returns:
            Tuple of (commit SHA, opened pull request or None)
        """
        title = FIX_TITLES[task]
        body = "\n".join([
            f"Automated fix for failing check `{failure.check_name}` on PR #{pr_number}.",
            "",
            f"- Error type: {failure.error_type.value}",
            f"- Command: `{command}`",
            f"- Changed lines: {changed_lines}",
        ])
        message = f"{title}\n\n{body}"

        if not self._opens_pr or self.pr_creator is None:
            commit_sha = self.vcs.commit_all(message)
            logger.info(f"Committed fix on {self.vcs.get_current_branch()}")
            return commit_sha, None

        original_branch = self.vcs.get_current_branch()
        fix_branch = f"{original_branch}-autofix-{datetime.now(UTC).strftime('%Y%m%d%H%M%S')}"
        self.vcs.create_branch(fix_branch)

        try:
            commit_sha = self.vcs.commit_all(message)
            self.vcs.push(fix_branch)
            pull_request = await self.pr_creator.create_pull_request(
                title=title,
                body=body,
                head=fix_branch,
                base=original_branch,
            )
        except BaseException:
            try:
                self.vcs.checkout(original_branch)
            except VCSError as checkout_error:
                logger.error(f"Failed to switch back to {original_branch}: {checkout_error}")
            raise

        self.vcs.checkout(original_branch)
        logger.info(f"Opened fix PR #{pull_request.number} from {fix_branch}")
        return commit_sha, pull_request

    def _finish(self, result: AutoFixResult) -> None:
        error_type = result.error_type or ErrorType.UNKNOWN
        if result.success:
            self._states[error_type] = FixState.FIXED
            logger.info(f"Auto-fix succeeded for {error_type.value} ({result.changed_lines} lines)")
        else:
            self._states[error_type] = FixState.ROLLED_BACK if result.rolled_back else FixState.FAILED
            reason = result.reason.value if result.reason else "unknown"
            logger.warning(f"Auto-fix failed for {error_type.value}: {reason} (rolled back: {result.rolled_back})")
        self.metrics.record_attempt(result)

    def _elapsed(self, start: float) -> int:
        return int((self._clock() - start) * 1000)
