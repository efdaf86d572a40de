"""Stash-backed snapshots of the working tree."""

import logging
import threading
from pathlib import Path

from pr_pilot.vcs.base import VCSManager
from pr_pilot.vcs.exceptions import SnapshotError

logger = logging.getLogger(__name__)

_outstanding: set[Path] = set()
_outstanding_lock = threading.Lock()


class WorkingTreeSnapshot:
    """Pre-fix state of a working tree.

    Local changes are stashed so the fix command runs against HEAD. The
    snapshot ends with either ``restore()`` (drop whatever the fix did) or
    ``release()`` (keep the fix); both re-apply the stashed changes and are
    no-ops once the snapshot has ended. Only one snapshot per working tree may
    be outstanding at a time.
    """

    def __init__(self, vcs: VCSManager, message: str = "pr-pilot auto-fix snapshot") -> None:
        self.vcs = vcs
        self.message = message
        self.stashed = False
        self.active = False
        self._key = Path(vcs.repo_path).resolve()

    def take(self) -> None:
        """Stash local changes (including untracked files).

        Raises:
            SnapshotError: If a snapshot of this working tree is already outstanding
            VCSOperationError: If stashing fails
        """
        with _outstanding_lock:
            if self._key in _outstanding:
                raise SnapshotError(f"A snapshot of {self._key} is already outstanding")
            _outstanding.add(self._key)

        try:
            self.stashed = self.vcs.stash(self.message)
        except Exception:
            self._end()
            raise

        self.active = True
        logger.debug(f"Snapshot taken of {self._key} (stashed={self.stashed})")

    def conflicting_paths(self) -> list[str]:
        """Paths changed since ``take()`` that the stashed changes also touch.

        Committing such a change would make re-applying the stash conflict.

        Returns:
            Sorted repository-relative paths, empty if nothing was stashed
        """
        if not self.active or not self.stashed:
            return []
        return sorted(self.vcs.stashed_paths() & self.vcs.changed_paths())

    def restore(self) -> None:
        """Discard all changes made since ``take()`` and re-apply stashed changes."""
        if not self.active:
            return
        try:
            self.vcs.discard_changes()
            if self.stashed:
                self.vcs.stash_pop()
        finally:
            self._end()
        logger.debug(f"Snapshot of {self._key} restored")

    def release(self) -> None:
        """Keep the current tree and re-apply stashed changes on top of it."""
        if not self.active:
            return
        try:
            if self.stashed:
                self.vcs.stash_pop()
        finally:
            self._end()

    def _end(self) -> None:
        self.active = False
        with _outstanding_lock:
            _outstanding.discard(self._key)
