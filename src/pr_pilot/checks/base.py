"""Abstract check-status source consumed by the aggregator and poller."""

from abc import ABC, abstractmethod

from pr_pilot.checks.models import Annotation, CheckRun, CommitStatus, PullRequest


class CheckStatusSource(ABC):
    """Read-only provider of pull request check data.

    GitHub is the shipped implementation; other CI providers plug in by
    implementing these four calls.
    """

    @abstractmethod
    async def get_pull_request(self, number: int) -> PullRequest:
        """Fetch a pull request (for its head commit).

        Args:
            number: Pull request number

        Returns:
            Pull request details
        """

    @abstractmethod
    async def list_check_runs(self, ref: str) -> list[CheckRun]:
        """List check runs for a commit.

        Args:
            ref: Commit SHA or ref

        Returns:
            All check runs reported for the ref
        """

    @abstractmethod
    async def get_combined_status(self, ref: str) -> list[CommitStatus]:
        """List legacy commit statuses for a commit.

        Args:
            ref: Commit SHA or ref

        Returns:
            Commit status entries
        """

    @abstractmethod
    async def list_annotations(self, check_run_id: int, limit: int = 50) -> list[Annotation]:
        """List annotations of a check run.

        Args:
            check_run_id: Check run identifier
            limit: Maximum annotations to return

        Returns:
            Annotations for the run
        """
