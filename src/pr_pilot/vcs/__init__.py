"""Version control abstraction for pr-pilot."""

from pr_pilot.vcs.base import VCSManager
from pr_pilot.vcs.exceptions import (
    NotARepositoryError,
    SnapshotError,
    VCSError,
    VCSOperationError,
)

__all__ = [
    "NotARepositoryError",
    "SnapshotError",
    "VCSError",
    "VCSManager",
    "VCSOperationError",
]
