"""Pre-commit verification of auto-fix results."""

from pr_pilot.verification.models import VerifyResult
from pr_pilot.verification.runner import VerifyRunner, parse_errors

__all__ = [
    "VerifyResult",
    "VerifyRunner",
    "parse_errors",
]
