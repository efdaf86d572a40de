"""Automated fixes for classified CI failures."""

from pr_pilot.autofix.base import PullRequestCreator
from pr_pilot.autofix.commands import CommandResolver, detect_language
from pr_pilot.autofix.engine import AutoFixEngine
from pr_pilot.autofix.metrics import AutoFixMetrics, MetricsStore
from pr_pilot.autofix.models import (
    AutoFixConfig,
    AutoFixResult,
    FixReason,
    FixState,
    FixTask,
    Language,
)
from pr_pilot.autofix.snapshot import WorkingTreeSnapshot

__all__ = [
    "AutoFixConfig",
    "AutoFixEngine",
    "AutoFixMetrics",
    "AutoFixResult",
    "CommandResolver",
    "FixReason",
    "FixState",
    "FixTask",
    "Language",
    "MetricsStore",
    "PullRequestCreator",
    "WorkingTreeSnapshot",
    "detect_language",
]
