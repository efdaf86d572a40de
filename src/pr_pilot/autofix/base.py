"""Collaborator interfaces for auto-fix."""

from abc import ABC, abstractmethod

from pr_pilot.checks.models import PullRequest


class PullRequestCreator(ABC):
    """Opens pull requests for materialized fixes."""

    @abstractmethod
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
        """
