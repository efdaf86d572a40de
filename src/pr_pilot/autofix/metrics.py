"""Auto-fix metrics store."""

import threading
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pr_pilot.autofix.models import AutoFixResult


def _now() -> datetime:
    return datetime.now(UTC)


class ErrorTypeStats(BaseModel):
    """Attempt counters for one error type."""

    attempts: int = 0
    successes: int = 0
    failures: int = 0


class AutoFixMetrics(BaseModel):
    """Counters for auto-fix attempts.

    Serializes with camelCase keys (``totalAttempts``, ``byErrorType``, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_attempts: int = 0
    successful_fixes: int = 0
    failed_fixes: int = 0
    rollback_count: int = 0
    verification_failures: int = 0
    dry_run_attempts: int = 0
    by_error_type: dict[str, ErrorTypeStats] = Field(default_factory=dict)
    by_reason: dict[str, int] = Field(default_factory=dict)
    average_fix_duration: float | None = Field(default=None, description="Mean successful fix time in ms")
    total_fix_duration: int = Field(default=0, description="Summed successful fix time in ms")
    start_time: datetime = Field(default_factory=_now)
    last_updated: datetime = Field(default_factory=_now)


class MetricsStore:
    """Thread-safe owner of one engine's AutoFixMetrics."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics = AutoFixMetrics()

    def record_attempt(self, result: AutoFixResult, reason: str | None = None) -> None:
        """Record a completed non-dry-run attempt.

        Args:
            result: Attempt outcome
            reason: Reason to count instead of ``result.reason``
        """
        error_type = result.error_type.value if result.error_type else "unknown"
        reason = reason or (result.reason.value if result.reason else None)

        with self._lock:
            m = self._metrics
            m.total_attempts += 1

            stats = m.by_error_type.setdefault(error_type, ErrorTypeStats())
            stats.attempts += 1

            if result.success:
                m.successful_fixes += 1
                stats.successes += 1
                m.total_fix_duration += result.duration
                m.average_fix_duration = m.total_fix_duration / m.successful_fixes
            else:
                m.failed_fixes += 1
                stats.failures += 1
                if reason:
                    m.by_reason[reason] = m.by_reason.get(reason, 0) + 1

            if result.rolled_back:
                m.rollback_count += 1
            if result.verification_failed:
                m.verification_failures += 1

            m.last_updated = _now()

    def record_dry_run(self) -> None:
        """Record a simulated attempt."""
        with self._lock:
            self._metrics.dry_run_attempts += 1
            self._metrics.last_updated = _now()

    def snapshot(self) -> AutoFixMetrics:
        """Get a copy of the current metrics.

        Returns:
            Deep copy safe to read while attempts continue
        """
        with self._lock:
            return self._metrics.model_copy(deep=True)

    def reset(self) -> None:
        """Zero all counters and restart the clock."""
        with self._lock:
            self._metrics = AutoFixMetrics()

    def export(self) -> str:
        """Serialize the metrics as JSON with camelCase keys.

        Returns:
            JSON document
        """
        return self.snapshot().model_dump_json(by_alias=True, indent=2)
