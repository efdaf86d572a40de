"""Tests for the auto-fix engine."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import git
import pytest

from pr_pilot.autofix import (
    AutoFixConfig,
    AutoFixEngine,
    CommandResolver,
    FixReason,
    FixState,
    Language,
    MetricsStore,
    PullRequestCreator,
)
from pr_pilot.autofix.engine import task_for
from pr_pilot.autofix.models import FixTask
from pr_pilot.checks.models import ErrorType, FailureDetail, PullRequest
from pr_pilot.process import CommandResult, ProcessRunner
from pr_pilot.vcs import VCSManager
from pr_pilot.vcs.exceptions import VCSOperationError
from pr_pilot.vcs.git import GitManager
from pr_pilot.verification import VerifyResult, VerifyRunner

LINT_COMMAND = "npx eslint --fix src/app.ts"


@pytest.fixture
def vcs(tmp_path: Path) -> MagicMock:
    """Create a mock VCS manager rooted at a temporary directory."""
    manager = MagicMock(spec=VCSManager)
    manager.repo_path = tmp_path
    manager.stash.return_value = False
    manager.diff_stat.return_value = 12
    manager.stashed_paths.return_value = set()
    manager.changed_paths.return_value = set()
    manager.commit_all.return_value = "abc1234"
    manager.get_current_branch.return_value = "feature"
    return manager


@pytest.fixture
def runner() -> AsyncMock:
    """Create a mock process runner whose commands succeed."""
    process_runner = AsyncMock(spec=ProcessRunner)
    process_runner.run.return_value = CommandResult(exit_code=0, stdout="fixed", stderr="")
    return process_runner


@pytest.fixture
def verifier() -> AsyncMock:
    """Create a mock verification runner that passes."""
    verify_runner = AsyncMock(spec=VerifyRunner)
    verify_runner.run_checks.return_value = VerifyResult(success=True, output="all good")
    return verify_runner


@pytest.fixture
def resolver() -> MagicMock:
    """Create a mock command resolver."""
    command_resolver = MagicMock(spec=CommandResolver)
    command_resolver.resolve.return_value = LINT_COMMAND
    return command_resolver


@pytest.fixture
def pr_creator() -> AsyncMock:
    """Create a mock pull request creator."""
    creator = AsyncMock(spec=PullRequestCreator)
    creator.create_pull_request.return_value = PullRequest(
        number=43,
        head_ref="feature-autofix",
        base_ref="feature",
        url="https://github.com/octo/demo/pull/43",
    )
    return creator


@pytest.fixture
def lint_failure() -> FailureDetail:
    """Create a lint failure."""
    return FailureDetail(
        check_name="eslint",
        error_type=ErrorType.LINTING_ERROR,
        summary="2 problems (2 errors, 0 warnings)",
        affected_files=["src/app.ts"],
    )


def make_engine(
    vcs: MagicMock,
    runner: AsyncMock,
    verifier: AsyncMock,
    resolver: MagicMock,
    pr_creator: AsyncMock | None = None,
    **config: object,
) -> AutoFixEngine:
    """Create an engine wired to mocks."""
    return AutoFixEngine(
        vcs=vcs,
        config=AutoFixConfig(**config),
        runner=runner,
        verifier=verifier,
        resolver=resolver,
        pr_creator=pr_creator,
    )


class TestTaskFor:
    """Tests for task_for."""

    @pytest.mark.parametrize(
        ("error_type", "task"),
        [
            (ErrorType.LINTING_ERROR, FixTask.LINT),
            (ErrorType.FORMAT_ERROR, FixTask.FORMAT),
            (ErrorType.SECURITY_ISSUE, FixTask.DEPENDENCY_AUDIT),
            (ErrorType.TEST_FAILURE, None),
            (ErrorType.UNKNOWN, None),
        ],
    )
    def test_mapping(self, error_type: ErrorType, task: FixTask | None) -> None:
        """Test error types map to fix tasks."""
        assert task_for(error_type) == task


class TestIsAutoFixable:
    """Tests for AutoFixEngine.is_auto_fixable."""

    @pytest.mark.parametrize("error_type", [ErrorType.LINTING_ERROR, ErrorType.FORMAT_ERROR])
    def test_tool_fixable(self, error_type: ErrorType) -> None:
        """Test lint and format failures are fixable."""
        assert AutoFixEngine.is_auto_fixable(error_type) is True

    @pytest.mark.parametrize(
        "error_type",
        [ErrorType.TEST_FAILURE, ErrorType.BUILD_ERROR, ErrorType.TYPE_ERROR, ErrorType.UNKNOWN],
    )
    def test_not_fixable(self, error_type: ErrorType) -> None:
        """Test other failures are not fixable."""
        assert AutoFixEngine.is_auto_fixable(error_type) is False

    def test_dependency_vulnerability_fixable(self) -> None:
        """Test vulnerable dependencies are fixable."""
        assert AutoFixEngine.is_auto_fixable(ErrorType.SECURITY_ISSUE, "npm audit: 3 high severity vulnerabilities")

    def test_secret_leak_not_fixable(self) -> None:
        """Test leaked secrets are never fixable."""
        assert not AutoFixEngine.is_auto_fixable(ErrorType.SECURITY_ISSUE, "Hardcoded secret detected in config.py")

    def test_secret_wins_over_dependency(self) -> None:
        """Test secret wording wins when both kinds appear."""
        assert not AutoFixEngine.is_auto_fixable(
            ErrorType.SECURITY_ISSUE, "API key found in dependency lockfile"
        )


class TestAttemptFix:
    """Tests for AutoFixEngine.attempt_fix."""

    @pytest.mark.asyncio
    async def test_dry_run_does_not_mutate(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test dry run reports the plan without touching the tree or the attempt budget."""
        engine = make_engine(vcs, runner, verifier, resolver)

        result = await engine.attempt_fix(lint_failure, 42, dry_run=True)

        assert result.success is True
        assert result.reason == FixReason.DRY_RUN
        assert result.command == LINT_COMMAND
        assert result.language == Language.TYPESCRIPT
        assert result.estimated_changed_files == 1
        assert engine.attempts_used(ErrorType.LINTING_ERROR) == 0
        runner.run.assert_not_awaited()
        vcs.stash.assert_not_called()
        vcs.commit_all.assert_not_called()

        metrics = engine.get_metrics()
        assert metrics.dry_run_attempts == 1
        assert metrics.total_attempts == 0

    @pytest.mark.asyncio
    async def test_dry_run_from_config(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test enable_dry_run applies unless the caller overrides it."""
        engine = make_engine(vcs, runner, verifier, resolver, enable_dry_run=True, create_pr=False)

        simulated = await engine.attempt_fix(lint_failure, 42)
        real = await engine.attempt_fix(lint_failure, 42, dry_run=False)

        assert simulated.reason == FixReason.DRY_RUN
        assert real.success is True
        assert real.reason is None
        runner.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_dry_run_without_command(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test dry run reports a missing fix tool."""
        resolver.resolve.return_value = None
        engine = make_engine(vcs, runner, verifier, resolver)

        result = await engine.attempt_fix(lint_failure, 42, dry_run=True)

        assert result.success is False
        assert result.reason == FixReason.NO_FIX_COMMAND
        assert engine.attempts_used(ErrorType.LINTING_ERROR) == 0

    @pytest.mark.asyncio
    async def test_success_commits_in_place(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test a verified fix is committed on the current branch when create_pr is off."""
        engine = make_engine(vcs, runner, verifier, resolver, create_pr=False)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.success is True
        assert result.reason is None
        assert result.commit_sha == "abc1234"
        assert result.changed_lines == 12
        assert result.attempts == 1
        assert result.pr_number is None
        assert engine.get_state(ErrorType.LINTING_ERROR) == FixState.FIXED
        runner.run.assert_awaited_once_with(LINT_COMMAND, timeout=300, cwd=vcs.repo_path, shell=True)
        verifier.run_checks.assert_awaited_once_with(timeout=120)
        vcs.create_branch.assert_not_called()
        vcs.discard_changes.assert_not_called()
        assert vcs.commit_all.call_args.args[0].startswith("fix: auto-fix linting errors")

    @pytest.mark.asyncio
    async def test_success_opens_pull_request(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        pr_creator: AsyncMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test a fix lands on a new branch with a pull request into the original branch."""
        engine = make_engine(vcs, runner, verifier, resolver, pr_creator=pr_creator)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.success is True
        assert result.pr_number == 43
        assert result.pr_url == "https://github.com/octo/demo/pull/43"

        fix_branch = vcs.create_branch.call_args.args[0]
        assert fix_branch.startswith("feature-autofix-")
        vcs.push.assert_called_once_with(fix_branch)
        vcs.checkout.assert_called_once_with("feature")

        kwargs = pr_creator.create_pull_request.call_args.kwargs
        assert kwargs["head"] == fix_branch
        assert kwargs["base"] == "feature"
        assert kwargs["title"] == "fix: auto-fix linting errors"
        assert "PR #42" in kwargs["body"]

    @pytest.mark.asyncio
    async def test_too_many_changes_rolls_back(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test oversized fixes are rolled back before verification."""
        vcs.diff_stat.return_value = 5000
        engine = make_engine(vcs, runner, verifier, resolver, max_changed_lines=1000)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.success is False
        assert result.reason == FixReason.TOO_MANY_CHANGES
        assert result.changed_lines == 5000
        assert result.rolled_back is True
        assert engine.get_state(ErrorType.LINTING_ERROR) == FixState.ROLLED_BACK
        vcs.discard_changes.assert_called_once()
        verifier.run_checks.assert_not_awaited()
        vcs.commit_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_rollback_reapplies_local_changes(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test stashed local changes come back after a rollback."""
        vcs.stash.return_value = True
        vcs.diff_stat.return_value = 5000
        engine = make_engine(vcs, runner, verifier, resolver)

        await engine.attempt_fix(lint_failure, 42)

        assert [c[0] for c in vcs.method_calls if c[0] in ("stash", "discard_changes", "stash_pop")] == [
            "stash",
            "discard_changes",
            "stash_pop",
        ]

    @pytest.mark.asyncio
    async def test_no_changes(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test a fix command that changes nothing."""
        vcs.diff_stat.return_value = 0
        engine = make_engine(vcs, runner, verifier, resolver)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.success is False
        assert result.reason == FixReason.NO_CHANGES
        assert result.rolled_back is False
        vcs.discard_changes.assert_not_called()
        verifier.run_checks.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_verification_failure_rolls_back(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test failed verification restores the tree and reports the errors."""
        verifier.run_checks.return_value = VerifyResult(
            success=False,
            output="1 failed",
            errors=["FAILED tests/test_app.py::test_main"],
        )
        engine = make_engine(vcs, runner, verifier, resolver)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.success is False
        assert result.reason == FixReason.VERIFICATION_FAILED
        assert result.verification_failed is True
        assert result.verification_errors == ["FAILED tests/test_app.py::test_main"]
        assert result.rolled_back is True
        vcs.discard_changes.assert_called_once()
        vcs.commit_all.assert_not_called()

        metrics = engine.get_metrics()
        assert metrics.verification_failures == 1
        assert metrics.rollback_count == 1
        assert metrics.by_reason == {"verification_failed": 1}

    @pytest.mark.asyncio
    async def test_verifier_exception_counts_as_failure(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test an exception from the verifier is treated as failed verification."""
        verifier.run_checks.side_effect = OSError("bash not found")
        engine = make_engine(vcs, runner, verifier, resolver)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.reason == FixReason.VERIFICATION_FAILED
        assert result.verification_errors == ["bash not found"]
        vcs.discard_changes.assert_called_once()

    @pytest.mark.asyncio
    async def test_skip_verification(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test require_tests=False skips verification."""
        engine = make_engine(vcs, runner, verifier, resolver, require_tests=False, create_pr=False)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.success is True
        verifier.run_checks.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fix_command_fails(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test a non-zero exit from the fix command."""
        runner.run.return_value = CommandResult(exit_code=2, stdout="", stderr="eslint: config not found\n")
        engine = make_engine(vcs, runner, verifier, resolver)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.reason == FixReason.FIX_EXECUTION_FAILED
        assert result.error == "eslint: config not found"
        assert result.rolled_back is True
        vcs.diff_stat.assert_not_called()

    @pytest.mark.asyncio
    async def test_fix_command_timeout(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test a fix command that times out."""
        runner.run.side_effect = TimeoutError()
        engine = make_engine(vcs, runner, verifier, resolver, fix_timeout=30)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.reason == FixReason.FIX_EXECUTION_FAILED
        assert result.error == "Fix command timed out after 30s"
        vcs.discard_changes.assert_called_once()

    @pytest.mark.asyncio
    async def test_no_fix_command_uses_attempt(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test a missing tool fails without snapshotting but still counts as an attempt."""
        resolver.resolve.return_value = None
        engine = make_engine(vcs, runner, verifier, resolver)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.reason == FixReason.NO_FIX_COMMAND
        assert result.attempts == 1
        vcs.stash.assert_not_called()
        runner.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_not_fixable(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
    ) -> None:
        """Test test failures are never attempted."""
        failure = FailureDetail(check_name="unit", error_type=ErrorType.TEST_FAILURE, summary="3 failed")
        engine = make_engine(vcs, runner, verifier, resolver)

        result = await engine.attempt_fix(failure, 42)

        assert result.success is False
        assert result.reason == FixReason.NOT_AUTO_FIXABLE
        assert engine.attempts_used(ErrorType.TEST_FAILURE) == 0
        assert engine.get_state(ErrorType.TEST_FAILURE) == FixState.SKIPPED_NOT_FIXABLE
        resolver.resolve.assert_not_called()
        runner.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_secret_leak_not_attempted(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
    ) -> None:
        """Test leaked secrets are never auto-fixed."""
        failure = FailureDetail(
            check_name="gitleaks",
            error_type=ErrorType.SECURITY_ISSUE,
            summary="Secret detected: AWS credential",
        )
        engine = make_engine(vcs, runner, verifier, resolver)

        result = await engine.attempt_fix(failure, 42)

        assert result.reason == FixReason.NOT_AUTO_FIXABLE
        runner.run.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_max_attempts(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test the attempt budget per error type."""
        verifier.run_checks.return_value = VerifyResult(success=False, errors=["still broken"])
        engine = make_engine(vcs, runner, verifier, resolver, max_attempts=2)

        first = await engine.attempt_fix(lint_failure, 42)
        second = await engine.attempt_fix(lint_failure, 42)
        runner.run.reset_mock()
        verifier.run_checks.reset_mock()
        third = await engine.attempt_fix(lint_failure, 42)

        assert first.attempts == 1
        assert second.attempts == 2
        assert third.success is False
        assert third.reason == FixReason.MAX_ATTEMPTS_EXCEEDED
        assert third.attempts == 2
        assert engine.get_state(ErrorType.LINTING_ERROR) == FixState.SKIPPED_MAX_ATTEMPTS
        runner.run.assert_not_awaited()
        verifier.run_checks.assert_not_awaited()
        assert engine.get_metrics().total_attempts == 2

    @pytest.mark.asyncio
    async def test_attempt_budget_per_error_type(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test budgets are tracked separately per error type."""
        vcs.diff_stat.return_value = 0
        engine = make_engine(vcs, runner, verifier, resolver, max_attempts=1)
        format_failure = FailureDetail(
            check_name="prettier",
            error_type=ErrorType.FORMAT_ERROR,
            summary="Code style issues found",
            affected_files=["src/app.ts"],
        )

        await engine.attempt_fix(lint_failure, 42)
        result = await engine.attempt_fix(format_failure, 42)

        assert result.reason == FixReason.NO_CHANGES
        assert engine.attempts_used(ErrorType.LINTING_ERROR) == 1
        assert engine.attempts_used(ErrorType.FORMAT_ERROR) == 1

    @pytest.mark.asyncio
    async def test_materialization_failure(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        pr_creator: AsyncMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test a rejected push restores the tree and returns to the original branch."""
        vcs.push.side_effect = VCSOperationError("rejected")
        engine = make_engine(vcs, runner, verifier, resolver, pr_creator=pr_creator)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.success is False
        assert result.reason == FixReason.MATERIALIZATION_FAILED
        assert result.error == "rejected"
        assert result.rolled_back is True
        vcs.checkout.assert_called_once_with("feature")
        vcs.discard_changes.assert_called_once()
        pr_creator.create_pull_request.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_checkout_keeps_original_error(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        pr_creator: AsyncMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test the push error is reported when switching back to the original branch also fails."""
        vcs.push.side_effect = VCSOperationError("rejected")
        vcs.checkout.side_effect = VCSOperationError("checkout failed")
        engine = make_engine(vcs, runner, verifier, resolver, pr_creator=pr_creator)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.reason == FixReason.MATERIALIZATION_FAILED
        assert result.error == "rejected"
        assert result.rolled_back is True
        vcs.checkout.assert_called_once_with("feature")
        vcs.discard_changes.assert_called_once()

    @pytest.mark.asyncio
    async def test_local_changes_conflict_rolls_back(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test an in-place fix touching locally edited files is rolled back before committing."""
        vcs.stash.return_value = True
        vcs.stashed_paths.return_value = {"src/app.ts", "README.md"}
        vcs.changed_paths.return_value = {"src/app.ts"}
        engine = make_engine(vcs, runner, verifier, resolver, create_pr=False)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.success is False
        assert result.reason == FixReason.LOCAL_CHANGES_CONFLICT
        assert result.rolled_back is True
        assert result.error == "Fix touches files with local changes: src/app.ts"
        verifier.run_checks.assert_not_awaited()
        vcs.commit_all.assert_not_called()
        assert [c[0] for c in vcs.method_calls if c[0] in ("stash", "discard_changes", "stash_pop")] == [
            "stash",
            "discard_changes",
            "stash_pop",
        ]
        assert engine.get_metrics().by_reason == {"local_changes_conflict": 1}

    @pytest.mark.asyncio
    async def test_overlap_allowed_when_opening_pull_request(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        pr_creator: AsyncMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test fixes committed on a separate branch don't collide with local changes."""
        vcs.stash.return_value = True
        vcs.stashed_paths.return_value = {"src/app.ts"}
        vcs.changed_paths.return_value = {"src/app.ts"}
        engine = make_engine(vcs, runner, verifier, resolver, pr_creator=pr_creator)

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.success is True
        assert result.pr_number == 43
        vcs.stashed_paths.assert_not_called()
        vcs.stash_pop.assert_called_once()

    @pytest.mark.asyncio
    async def test_unexpected_error_restores_and_propagates(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test programming errors propagate after the tree is restored."""
        runner.run.side_effect = RuntimeError("boom")
        engine = make_engine(vcs, runner, verifier, resolver)

        with pytest.raises(RuntimeError, match="boom"):
            await engine.attempt_fix(lint_failure, 42)

        vcs.discard_changes.assert_called_once()
        assert engine.get_state(ErrorType.LINTING_ERROR) == FixState.FAILED
        assert engine.get_metrics().by_reason == {"unexpected_error": 1}

    @pytest.mark.asyncio
    async def test_shared_metrics_store(
        self,
        vcs: MagicMock,
        runner: AsyncMock,
        verifier: AsyncMock,
        resolver: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test metrics land in an injected store."""
        store = MetricsStore()
        engine = AutoFixEngine(
            vcs=vcs,
            config=AutoFixConfig(create_pr=False),
            runner=runner,
            verifier=verifier,
            resolver=resolver,
            metrics=store,
        )

        await engine.attempt_fix(lint_failure, 42)

        snapshot = store.snapshot()
        assert snapshot.successful_fixes == 1
        assert snapshot.by_error_type["linting_error"].successes == 1

        engine.reset_metrics()
        assert store.snapshot().total_attempts == 0


class TestAttemptFixOnRealRepository:
    """Auto-fix against a real Git working tree."""

    @pytest.fixture
    def resolver_for(self) -> MagicMock:
        """Create a resolver mock; tests set the command."""
        return MagicMock(spec=CommandResolver)

    @pytest.mark.asyncio
    async def test_oversized_fix_leaves_tree_identical(
        self,
        git_repo: Path,
        resolver_for: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test a rollback restores tracked, untracked and staged local state exactly."""
        (git_repo / "README.md").write_text("# demo\nlocal edit\n")
        (git_repo / "notes.txt").write_text("scratch\n")
        resolver_for.resolve.return_value = "seq 1 2000 > generated.txt && echo 'x = 1' >> app.py"
        vcs = GitManager(git_repo)
        engine = AutoFixEngine(
            vcs=vcs,
            config=AutoFixConfig(max_changed_lines=1000),
            resolver=resolver_for,
        )

        result = await engine.attempt_fix(lint_failure, 42)

        assert result.reason == FixReason.TOO_MANY_CHANGES
        assert result.changed_lines is not None
        assert result.changed_lines > 1000
        assert result.rolled_back is True
        assert not (git_repo / "generated.txt").exists()
        assert (git_repo / "app.py").read_text() == "def main():\n    return 1\n"
        assert (git_repo / "README.md").read_text() == "# demo\nlocal edit\n"
        assert (git_repo / "notes.txt").read_text() == "scratch\n"
        assert git.Repo(git_repo).git.stash("list") == ""

    @pytest.mark.asyncio
    async def test_fix_committed_in_place(
        self,
        git_repo: Path,
        resolver_for: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test a successful fix becomes a commit on the current branch."""
        resolver_for.resolve.return_value = "printf 'def main():\\n    return 2\\n' > app.py"
        engine = AutoFixEngine(
            vcs=GitManager(git_repo),
            config=AutoFixConfig(require_tests=False, create_pr=False),
            resolver=resolver_for,
        )

        result = await engine.attempt_fix(lint_failure, 42)

        repo = git.Repo(git_repo)
        assert result.success is True
        assert result.changed_lines == 2
        assert result.commit_sha == repo.head.commit.hexsha
        assert repo.head.commit.message.startswith("fix: auto-fix linting errors")
        assert not repo.is_dirty(untracked_files=True)

    @pytest.mark.asyncio
    async def test_fix_overlapping_local_changes_rolled_back(
        self,
        git_repo: Path,
        resolver_for: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test an in-place fix of a locally edited file leaves HEAD and the edit untouched."""
        local_edit = "def main():\n    return 99  # local wip\n"
        (git_repo / "app.py").write_text(local_edit)
        resolver_for.resolve.return_value = "printf 'def main():\\n    return 2\\n' > app.py"
        engine = AutoFixEngine(
            vcs=GitManager(git_repo),
            config=AutoFixConfig(require_tests=False, create_pr=False),
            resolver=resolver_for,
        )

        result = await engine.attempt_fix(lint_failure, 42)

        repo = git.Repo(git_repo)
        assert result.success is False
        assert result.reason == FixReason.LOCAL_CHANGES_CONFLICT
        assert result.rolled_back is True
        assert repo.head.commit.message == "Initial commit"
        assert (git_repo / "app.py").read_text() == local_edit
        assert repo.git.stash("list") == ""
        assert engine.get_metrics().by_reason == {"local_changes_conflict": 1}

    @pytest.mark.asyncio
    async def test_fix_beside_local_changes_committed(
        self,
        git_repo: Path,
        resolver_for: MagicMock,
        lint_failure: FailureDetail,
    ) -> None:
        """Test local edits to other files survive an in-place fix and stay out of its commit."""
        (git_repo / "README.md").write_text("# demo\nlocal edit\n")
        resolver_for.resolve.return_value = "printf 'def main():\\n    return 2\\n' > app.py"
        engine = AutoFixEngine(
            vcs=GitManager(git_repo),
            config=AutoFixConfig(require_tests=False, create_pr=False),
            resolver=resolver_for,
        )

        result = await engine.attempt_fix(lint_failure, 42)

        repo = git.Repo(git_repo)
        assert result.success is True
        assert set(repo.head.commit.stats.files) == {"app.py"}
        assert (git_repo / "README.md").read_text() == "# demo\nlocal edit\n"
        assert repo.git.stash("list") == ""
