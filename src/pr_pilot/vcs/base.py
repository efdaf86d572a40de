"""Abstract base class for version control operations used by auto-fix.

Auto-fix snapshots the working tree before running a fix command, measures
what the command changed and either materializes or discards the result.
"""

from abc import ABC, abstractmethod
from pathlib import Path


class VCSManager(ABC):
    """Abstract base class for version control system managers."""

    repo_path: Path

    @abstractmethod
    def is_clean(self) -> bool:
        """Check if working directory is clean (no changes, no untracked files).

        Returns:
            True if working directory is clean
        """

    @abstractmethod
    def get_current_branch(self) -> str:
        """Get the name of the current branch.

        Returns:
            Current branch name

        Raises:
            VCSOperationError: If unable to determine branch
        """

    @abstractmethod
    def stash(self, message: str = "pr-pilot snapshot") -> bool:
        """Stash all local changes, including untracked files.

        Args:
            message: Stash message

        Returns:
            True if anything was stashed, False if the tree was already clean

        Raises:
            VCSOperationError: If stashing fails
        """

    @abstractmethod
    def stash_pop(self) -> None:
        """Re-apply and drop the most recent stash.

        Raises:
            VCSOperationError: If the stash cannot be applied
        """

    @abstractmethod
    def discard_changes(self) -> None:
        """Reset tracked files to HEAD and remove untracked files.

        Raises:
            VCSOperationError: If the reset fails
        """

    @abstractmethod
    def diff_stat(self) -> int:
        """Count changed lines in the working tree relative to HEAD.

        Returns:
            Inserted plus deleted lines, including lines of new untracked files
        """

    @abstractmethod
    def changed_paths(self) -> set[str]:
        """Paths that differ from HEAD, including untracked files.

        Returns:
            Repository-relative paths
        """

    @abstractmethod
    def stashed_paths(self) -> set[str]:
        """Paths recorded in the most recent stash, including untracked files.

        Returns:
            Repository-relative paths
        """

    @abstractmethod
    def create_branch(self, name: str, checkout: bool = True) -> None:
        """Create a branch at HEAD.

        Args:
            name: Branch name
            checkout: Switch to the new branch, carrying local changes along

        Raises:
            VCSOperationError: If the branch cannot be created
        """

    @abstractmethod
    def checkout(self, branch: str) -> None:
        """Switch to an existing branch.

        Args:
            branch: Branch name

        Raises:
            VCSOperationError: If checkout fails
        """

    @abstractmethod
    def commit_all(self, message: str) -> str | None:
        """Stage every change (including untracked files) and commit.

        Args:
            message: Commit message

        Returns:
            Commit identifier, or None if there was nothing to commit

        Raises:
            VCSOperationError: If the commit fails
        """

    @abstractmethod
    def push(self, branch: str, remote: str = "origin") -> None:
        """Push a branch and set its upstream.

        Args:
            branch: Branch to push
            remote: Remote name

        Raises:
            VCSOperationError: If the push fails
        """

    @abstractmethod
    def get_remote_url(self, remote: str = "origin") -> str:
        """Get the URL of a remote.

        Args:
            remote: Remote name

        Returns:
            Remote URL

        Raises:
            VCSOperationError: If the remote does not exist
        """
