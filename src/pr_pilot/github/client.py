"""GitHub REST API client."""

import logging
import re
from typing import Any

import httpx

from pr_pilot.autofix.base import PullRequestCreator
from pr_pilot.checks.base import CheckStatusSource
from pr_pilot.checks.models import Annotation, CheckRun, CommitStatus, PullRequest
from pr_pilot.config import MissingConfigurationError, PrPilotConfig
from pr_pilot.github.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubNotFoundError,
    GitHubTransientError,
    PullRequestExistsError,
)

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
PAGE_SIZE = 100

_SSH_REMOTE = re.compile(r"git@github\.com:(?P<owner>[^/]+)/(?P<repo>.+?)(?:\.git)?/?$")
_HTTPS_REMOTE = re.compile(r"https?://(?:[^@/]+@)?github\.com/(?P<owner>[^/]+)/(?P<repo>.+?)(?:\.git)?/?$")


def parse_github_remote(url: str) -> tuple[str, str]:
    """Parse a GitHub remote URL into owner and repository name.

    Args:
        url: Remote URL in SSH (git@github.com:owner/repo.git) or HTTPS form

    Returns:
        Tuple of (owner, repo)

    Raises:
        ValueError: If the URL is not a GitHub remote
    """
    url = url.strip()
    for pattern in (_SSH_REMOTE, _HTTPS_REMOTE):
        match = pattern.match(url)
        if match:
            return match.group("owner"), match.group("repo")
    raise ValueError(f"Could not parse git URL: {url}")


class GitHubClient(CheckStatusSource, PullRequestCreator):
    """Client for the GitHub checks, statuses and pulls APIs."""

    def __init__(self, config: PrPilotConfig, owner: str | None = None, repo: str | None = None) -> None:
        """Initialize the GitHub client.

        Args:
            config: Application configuration
            owner: Repository owner (default: from config)
            repo: Repository name (default: from config)

        Raises:
            MissingConfigurationError: If owner or repository is unknown
        """
        self.config = config
        self.base_url = config.github_api_url
        self.owner = owner or config.github_owner
        self.repo = repo or config.github_repo
        if not self.owner or not self.repo:
            raise MissingConfigurationError("GitHub owner and repository are required (GITHUB_OWNER, GITHUB_REPO)")
        self._client: httpx.AsyncClient | None = None

    def _get_headers(self) -> dict[str, str]:
        """Get default request headers.

        Returns:
            Headers with authentication and API version
        """
        return {
            "Authorization": f"Bearer {self.config.github_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }

    @property
    def repo_path(self) -> str:
        """Path prefix for repository endpoints."""
        return f"/repos/{self.owner}/{self.repo}"

    async def __aenter__(self) -> "GitHubClient":
        """Async context manager entry.

        Returns:
            Self
        """
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self._get_headers(),
            timeout=30.0,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        """Async context manager exit.

        Args:
            exc_type: Exception type
            exc_val: Exception value
            exc_tb: Exception traceback
        """
        if self._client:
            await self._client.aclose()

    async def _request(self, method: str, endpoint: str, **kwargs: Any) -> Any:
        """Make an HTTP request to the GitHub API.

        Args:
            method: HTTP method
            endpoint: API endpoint (without base URL)
            **kwargs: Additional arguments for httpx

        Returns:
            Decoded JSON response

        Raises:
            GitHubAuthError: Authentication failed
            GitHubNotFoundError: Resource not found
            GitHubTransientError: Network error, server error or rate limit
            GitHubAPIError: Any other failed request
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use async context manager.")

        try:
            response = await self._client.request(method, endpoint, **kwargs)
        except httpx.TransportError as e:
            raise GitHubTransientError(f"HTTP error: {e}") from e
        except httpx.HTTPError as e:
            raise GitHubAPIError(f"HTTP error: {e}") from e

        status = response.status_code

        if status == 401:
            raise GitHubAuthError("Authentication failed. Check your GitHub token.", status_code=status)

        if status == 404:
            raise GitHubNotFoundError(f"Not found: {endpoint}", status_code=status)

        if status == 429 or status >= 500 or (status == 403 and response.headers.get("x-ratelimit-remaining") == "0"):
            raise GitHubTransientError(f"GitHub temporarily unavailable ({status}): {response.text}", status_code=status)

        if status >= 400:
            raise GitHubAPIError(f"API request failed: {response.text}", status_code=status)

        if status == 204 or not response.content:
            return {}

        return response.json()

    async def get_pull_request(self, number: int) -> PullRequest:
        """Fetch a pull request.

        Args:
            number: Pull request number

        Returns:
            Pull request details including the head commit SHA
        """
        data = await self._request("GET", f"{self.repo_path}/pulls/{number}")
        return PullRequest.model_validate(data)

    async def list_check_runs(self, ref: str) -> list[CheckRun]:
        """List all check runs for a commit, following pagination.

        Args:
            ref: Commit SHA or ref

        Returns:
            Check runs for the ref
        """
        runs: list[CheckRun] = []
        page = 1

        while True:
            data = await self._request(
                "GET",
                f"{self.repo_path}/commits/{ref}/check-runs",
                params={"per_page": PAGE_SIZE, "page": page},
            )
            batch = data.get("check_runs", [])
            runs.extend(CheckRun.model_validate(item) for item in batch)

            total = data.get("total_count", len(runs))
            if not batch or len(runs) >= total:
                break
            page += 1

        logger.debug(f"Fetched {len(runs)} check runs for {ref}")
        return runs

    async def get_combined_status(self, ref: str) -> list[CommitStatus]:
        """List legacy commit statuses for a commit.

        Args:
            ref: Commit SHA or ref

        Returns:
            Commit statuses for the ref
        """
        data = await self._request("GET", f"{self.repo_path}/commits/{ref}/status")
        return [CommitStatus.model_validate(item) for item in data.get("statuses", [])]

    async def list_annotations(self, check_run_id: int, limit: int = 50) -> list[Annotation]:
        """List annotations of a check run.

        Args:
            check_run_id: Check run identifier
            limit: Maximum annotations to return

        Returns:
            Annotations for the run
        """
        data = await self._request(
            "GET",
            f"{self.repo_path}/check-runs/{check_run_id}/annotations",
            params={"per_page": min(limit, PAGE_SIZE)},
        )
        return [Annotation.model_validate(item) for item in data[:limit]]

    async def create_pull_request(
        self,
        title: str,
        body: str,
        head: str,
        base: str,
        draft: bool = False,
    ) -> PullRequest:
        """Open a pull request.

        Args:
            title: Pull request title
            body: Pull request description
            head: Branch containing the changes
            base: Branch to merge into
            draft: Open as draft

        Returns:
            The created pull request

        Raises:
            PullRequestExistsError: If a pull request already exists for the branch
        """
        payload = {"title": title, "body": body, "head": head, "base": base, "draft": draft}
        try:
            data = await self._request("POST", f"{self.repo_path}/pulls", json=payload)
        except GitHubAPIError as e:
            if e.status_code == 422:
                raise PullRequestExistsError(
                    "Pull request already exists for this branch", status_code=422
                ) from e
            raise

        pull_request = PullRequest.model_validate(data)
        logger.info(f"Opened PR #{pull_request.number}: {title}")
        return pull_request
