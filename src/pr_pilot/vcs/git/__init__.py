"""Git VCS implementation for pr-pilot."""

from pr_pilot.vcs.git.manager import GitManager

__all__ = [
    "GitManager",
]
