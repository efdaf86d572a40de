"""GitHub-specific exceptions."""

from pr_pilot.checks.exceptions import CheckSourceError, TransientSourceError


class GitHubError(CheckSourceError):
    """Base exception for GitHub errors."""


class GitHubAPIError(GitHubError):
    """API request failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        """Initialize API error.

        Args:
            message: Error message
            status_code: HTTP status code if available
        """
        super().__init__(message)
        self.status_code = status_code


class GitHubAuthError(GitHubAPIError):
    """Authentication failed."""


class GitHubNotFoundError(GitHubAPIError):
    """Repository, pull request or check run not found (or not visible to the token)."""


class PullRequestExistsError(GitHubAPIError):
    """A pull request already exists for the branch."""


class GitHubTransientError(GitHubAPIError, TransientSourceError):
    """Network hiccup, server error or rate limit; safe to retry later."""
