"""Git operations manager."""

import logging
from pathlib import Path

import git

from pr_pilot.vcs.base import VCSManager
from pr_pilot.vcs.exceptions import NotARepositoryError, VCSOperationError

logger = logging.getLogger(__name__)


def _count_lines(path: Path) -> int:
    """Count lines in a file, counting a trailing unterminated line."""
    try:
        data = path.read_bytes()
    except OSError:
        return 0
    if not data:
        return 0
    return data.count(b"\n") + (0 if data.endswith(b"\n") else 1)


class GitManager(VCSManager):
    """Manages Git operations for pr-pilot."""

    def __init__(self, repo_path: str | Path | None = None) -> None:
        """Initialize Git manager.

        Args:
            repo_path: Path to Git repository (default: current directory)

        Raises:
            NotARepositoryError: If path is not a Git repository
        """
        try:
            self.repo = git.Repo(Path(repo_path or Path.cwd()), search_parent_directories=True)
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as e:
            msg = f"Not a Git repository: {repo_path or Path.cwd()}"
            raise NotARepositoryError(msg) from e
        except git.GitError as e:
            msg = f"Git error: {e}"
            raise VCSOperationError(msg) from e

        self.repo_path = Path(self.repo.working_tree_dir or Path.cwd())

    def is_clean(self) -> bool:
        """Check if working directory is clean (no uncommitted changes).

        Returns:
            True if working directory is clean
        """
        return not self.repo.is_dirty(untracked_files=True)

    def get_current_branch(self) -> str:
        """Get the name of the current branch.

        Returns:
            Current branch name

        Raises:
            VCSOperationError: If unable to determine branch (e.g. detached HEAD)
        """
        try:
            return self.repo.active_branch.name
        except TypeError as e:
            msg = f"Unable to get current branch: {e}"
            raise VCSOperationError(msg) from e

    def stash(self, message: str = "pr-pilot snapshot") -> bool:
        """Stash all local changes, including untracked files.

        Args:
            message: Stash message

        Returns:
            True if anything was stashed, False if the tree was already clean

        Raises:
            VCSOperationError: If stashing fails
        """
        if self.is_clean():
            return False

        try:
            self.repo.git.stash("push", "--include-untracked", "-m", message)
        except git.GitCommandError as e:
            msg = f"Failed to stash changes: {e}"
            raise VCSOperationError(msg) from e

        logger.debug(f"Stashed local changes: {message}")
        return True

    def stash_pop(self) -> None:
        """Re-apply and drop the most recent stash, restoring the index too.

        Raises:
            VCSOperationError: If the stash cannot be applied
        """
        try:
            self.repo.git.stash("pop", "--index")
        except git.GitCommandError as e:
            msg = f"Failed to restore stashed changes: {e}"
            raise VCSOperationError(msg) from e

    def discard_changes(self) -> None:
        """Reset tracked files to HEAD and remove untracked files.

        Ignored files are left alone.

        Raises:
            VCSOperationError: If the reset fails
        """
        try:
            self.repo.git.reset("--hard", "HEAD")
            self.repo.git.clean("-fd")
        except git.GitCommandError as e:
            msg = f"Failed to discard changes: {e}"
            raise VCSOperationError(msg) from e

    def diff_stat(self) -> int:
        """Count changed lines in the working tree relative to HEAD.

        Binary files count as zero lines.

        Returns:
            Inserted plus deleted lines, including lines of new untracked files

        Raises:
            VCSOperationError: If the diff cannot be computed
        """
        try:
            numstat = self.repo.git.diff("HEAD", "--numstat")
        except git.GitCommandError as e:
            msg = f"Failed to compute diff: {e}"
            raise VCSOperationError(msg) from e

        changed = 0
        for line in numstat.splitlines():
            parts = line.split("\t")
            if len(parts) < 3:
                continue
            added, deleted = parts[0], parts[1]
            # Binary files report "-"
            if added.isdigit():
                changed += int(added)
            if deleted.isdigit():
                changed += int(deleted)

        for untracked in self.repo.untracked_files:
            changed += _count_lines(self.repo_path / untracked)

        return changed

    def changed_paths(self) -> set[str]:
        """Paths that differ from HEAD, including untracked files.

        Returns:
            Repository-relative paths

        Raises:
            VCSOperationError: If the diff cannot be computed
        """
        try:
            tracked = self.repo.git.diff("HEAD", "--name-only").splitlines()
        except git.GitCommandError as e:
            msg = f"Failed to list changed files: {e}"
            raise VCSOperationError(msg) from e

        return set(tracked) | set(self.repo.untracked_files)

    def stashed_paths(self) -> set[str]:
        """Paths recorded in the most recent stash, including untracked files.

        Returns:
            Repository-relative paths

        Raises:
            VCSOperationError: If there is no stash to inspect
        """
        try:
            tracked = self.repo.git.diff("--name-only", "stash@{0}^1", "stash@{0}").splitlines()
        except git.GitCommandError as e:
            msg = f"Failed to inspect stash: {e}"
            raise VCSOperationError(msg) from e

        # Untracked files live in the stash's third parent, which only exists if any were stashed
        try:
            untracked = self.repo.git.ls_tree("-r", "--name-only", "stash@{0}^3").splitlines()
        except git.GitCommandError:
            untracked = []

        return set(tracked) | set(untracked)

    def create_branch(self, name: str, checkout: bool = True) -> None:
        """Create a branch at HEAD.

        Args:
            name: Branch name
            checkout: Switch to the new branch, carrying local changes along

        Raises:
            VCSOperationError: If the branch cannot be created
        """
        try:
            if checkout:
                self.repo.git.checkout("-b", name)
            else:
                self.repo.create_head(name)
        except (git.GitCommandError, OSError) as e:
            msg = f"Failed to create branch {name}: {e}"
            raise VCSOperationError(msg) from e

    def checkout(self, branch: str) -> None:
        """Switch to an existing branch.

        Args:
            branch: Branch name

        Raises:
            VCSOperationError: If checkout fails
        """
        try:
            self.repo.git.checkout(branch)
        except git.GitCommandError as e:
            msg = f"Failed to checkout {branch}: {e}"
            raise VCSOperationError(msg) from e

    def commit_all(self, message: str) -> str | None:
        """Stage every change (including untracked files) and commit.

        Args:
            message: Commit message

        Returns:
            Commit SHA, or None if there was nothing to commit

        Raises:
            VCSOperationError: If the commit fails
        """
        try:
            self.repo.git.add("--all")

            if not self.repo.index.diff("HEAD"):
                return None

            commit = self.repo.index.commit(message)
            return commit.hexsha

        except git.GitError as e:
            msg = f"Failed to create commit: {e}"
            raise VCSOperationError(msg) from e

    def push(self, branch: str, remote: str = "origin") -> None:
        """Push a branch and set its upstream.

        Args:
            branch: Branch to push
            remote: Remote name

        Raises:
            VCSOperationError: If the push fails
        """
        try:
            self.repo.git.push("--set-upstream", remote, branch)
        except git.GitCommandError as e:
            msg = f"Failed to push {branch} to {remote}: {e}"
            raise VCSOperationError(msg) from e

        logger.info(f"Pushed {branch} to {remote}")

    def get_remote_url(self, remote: str = "origin") -> str:
        """Get the URL of a remote.

        Args:
            remote: Remote name

        Returns:
            Remote URL

        Raises:
            VCSOperationError: If the remote does not exist
        """
        try:
            return self.repo.remote(remote).url
        except ValueError as e:
            msg = f"Remote not found: {remote}"
            raise VCSOperationError(msg) from e
