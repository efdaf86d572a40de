"""Exceptions raised while collecting or waiting on CI checks."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pr_pilot.checks.models import CheckSummary


class CheckError(Exception):
    """Base exception for check-status errors."""


class CheckSourceError(CheckError):
    """A check-status source could not answer."""


class TransientSourceError(CheckSourceError):
    """Temporary failure talking to a check-status source.

    Pollers swallow these and try again on the next tick.
    """


class CheckTimeoutError(CheckError, TimeoutError):
    """CI checks did not reach a terminal state in time."""

    def __init__(self, timeout: int, summary: "CheckSummary | None" = None) -> None:
        """Initialize timeout error.

        Args:
            timeout: The wait limit that was exceeded, in milliseconds
            summary: Last summary observed before giving up
        """
        super().__init__(f"CI checks did not complete within {timeout}ms")
        self.timeout = timeout
        self.summary = summary
