"""GitHub API integration for pr-pilot."""

from pr_pilot.github.client import GitHubClient, parse_github_remote
from pr_pilot.github.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubError,
    GitHubNotFoundError,
    GitHubTransientError,
    PullRequestExistsError,
)

__all__ = [
    "GitHubAPIError",
    "GitHubAuthError",
    "GitHubClient",
    "GitHubError",
    "GitHubNotFoundError",
    "GitHubTransientError",
    "PullRequestExistsError",
    "parse_github_remote",
]
