"""VCS exceptions for pr-pilot."""


class VCSError(Exception):
    """Base exception for all VCS-related errors."""


class NotARepositoryError(VCSError):
    """Raised when a directory is not a valid repository."""


class VCSOperationError(VCSError):
    """Raised when a VCS operation fails."""


class SnapshotError(VCSError):
    """Raised when a working-tree snapshot is taken while another is outstanding."""
