"""Data models for automated fixes."""

from enum import Enum

from pydantic import BaseModel, Field

from pr_pilot.checks.models import ErrorType


class AutoFixConfig(BaseModel):
    """Limits and switches for AutoFixEngine."""

    max_attempts: int = Field(default=2, ge=1, le=5, description="Non-dry-run attempts allowed per error type")
    max_changed_lines: int = Field(default=1000, ge=1, le=10000, description="Largest diff a fix may produce")
    require_tests: bool = Field(default=True, description="Run verification before accepting a fix")
    enable_dry_run: bool = Field(default=False, description="Default for attempts that don't choose")
    create_pr: bool = Field(default=True, description="Open a pull request instead of committing in place")
    fix_timeout: int = Field(default=300, gt=0, description="Fix command timeout in seconds")
    verify_timeout: int = Field(default=120, gt=0, description="Verification timeout in seconds")


class FixState(str, Enum):
    """Lifecycle of fixes for one error type."""

    NOT_ATTEMPTED = "not_attempted"
    ATTEMPTING = "attempting"
    FIXED = "fixed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    SKIPPED_NOT_FIXABLE = "skipped_not_fixable"
    SKIPPED_MAX_ATTEMPTS = "skipped_max_attempts"


class FixReason(str, Enum):
    """Why an attempt ended the way it did."""

    MAX_ATTEMPTS_EXCEEDED = "max_attempts_exceeded"
    NOT_AUTO_FIXABLE = "not_auto_fixable"
    NO_FIX_COMMAND = "no_fix_command"
    DRY_RUN = "dry_run"
    FIX_EXECUTION_FAILED = "fix_execution_failed"
    NO_CHANGES = "no_changes"
    TOO_MANY_CHANGES = "too_many_changes"
    LOCAL_CHANGES_CONFLICT = "local_changes_conflict"
    VERIFICATION_FAILED = "verification_failed"
    MATERIALIZATION_FAILED = "materialization_failed"


class FixTask(str, Enum):
    """Kind of fix command to resolve."""

    LINT = "lint"
    FORMAT = "format"
    DEPENDENCY_AUDIT = "dependency_audit"


class Language(str, Enum):
    """Project language inferred from affected files."""

    TYPESCRIPT = "typescript"
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    GO = "go"
    RUST = "rust"
    UNKNOWN = "unknown"

    @property
    def is_node(self) -> bool:
        """Whether the language uses the Node.js toolchain."""
        return self in (Language.TYPESCRIPT, Language.JAVASCRIPT)


class AutoFixResult(BaseModel):
    """Outcome of one attemptFix call."""

    success: bool
    reason: FixReason | None = None
    error_type: ErrorType | None = None
    pr_number: int | None = Field(default=None, description="Pull request opened for the fix")
    pr_url: str | None = None
    commit_sha: str | None = Field(default=None, description="Commit holding the fix")
    changed_lines: int | None = None
    attempts: int | None = Field(default=None, description="Attempts used for this error type")
    rolled_back: bool = False
    verification_failed: bool = False
    verification_errors: list[str] = Field(default_factory=list)
    command: str | None = Field(default=None, description="Fix command run or planned")
    language: Language | None = None
    estimated_changed_files: int | None = Field(default=None, description="Dry run estimate")
    error: str | None = Field(default=None, description="Tool or collaborator error message")
    duration: int = Field(default=0, description="Attempt duration in ms")
