"""Adaptive polling of CI checks until they reach a terminal state."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from pr_pilot.checks.aggregator import CheckStatusAggregator
from pr_pilot.checks.classifier import FailureClassifier
from pr_pilot.checks.exceptions import CheckTimeoutError, TransientSourceError
from pr_pilot.checks.models import (
    CheckSummary,
    OverallStatus,
    PollState,
    PollStrategy,
    PollStrategyType,
    ProgressUpdate,
    WaitOptions,
    WaitReason,
    WaitResult,
)

logger = logging.getLogger(__name__)

NO_CHECKS_GRACE_PERIOD = 20_000
MAX_REGISTRATION_WAIT = 5_000
FAST_CHECK_THRESHOLD = 10_000
DEFAULT_MULTIPLIER = 1.5
DEFAULT_MAX_INTERVAL = 30_000


def calculate_next_interval(
    current: int,
    strategy: PollStrategy,
    last_check_duration: int | None = None,
) -> int:
    """Compute the delay before the next poll.

    Args:
        current: Interval used for the previous poll, in ms
        strategy: Polling strategy
        last_check_duration: Longest completed check so far, in ms

    Returns:
        Next interval in ms
    """
    if strategy.type == PollStrategyType.FIXED:
        return strategy.initial_interval

    multiplier = strategy.multiplier if strategy.multiplier is not None else DEFAULT_MULTIPLIER
    max_interval = strategy.max_interval if strategy.max_interval is not None else DEFAULT_MAX_INTERVAL
    next_interval = min(int(current * multiplier), max_interval)

    # Checks that finish quickly are worth polling more aggressively.
    if last_check_duration is not None and last_check_duration < FAST_CHECK_THRESHOLD:
        next_interval = max(next_interval // 2, strategy.initial_interval)

    return next_interval


def has_status_changed(previous: CheckSummary | None, current: CheckSummary) -> bool:
    """Check whether the passed/failed/pending counts moved since last tick."""
    if previous is None:
        return True
    return (previous.passed, previous.failed, previous.pending) != (
        current.passed,
        current.failed,
        current.pending,
    )


def new_failures(previous: CheckSummary | None, current: CheckSummary) -> list[str]:
    """Names of checks that started failing since the previous tick."""
    if previous is None:
        return []
    before = previous.failing_check_names
    return [d.check_name for d in current.failure_details if d.check_name not in before]


def new_passes(previous: CheckSummary | None, current: CheckSummary) -> list[str]:
    """Names of checks that stopped failing since the previous tick."""
    if previous is None:
        return []
    now_failing = current.failing_check_names
    return sorted(name for name in previous.failing_check_names if name not in now_failing)


class PollScheduler:
    """Waits on one pull request's checks with adaptive backoff.

    Instances hold per-wait state, so use one scheduler per pull request when
    polling several concurrently.
    """

    def __init__(
        self,
        aggregator: CheckStatusAggregator,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            aggregator: Source of check summaries
            clock: Monotonic clock returning seconds
            sleep: Coroutine that suspends for a number of seconds
        """
        self.aggregator = aggregator
        self._clock = clock
        self._sleep = sleep
        self.state = PollState.INITIAL

    def _elapsed(self, start: float) -> int:
        return int((self._clock() - start) * 1000)

    async def _pause(self, milliseconds: int, start: float, timeout: int) -> None:
        """Sleep, waking no later than the wait deadline."""
        remaining = max(0, timeout - self._elapsed(start))
        await self._sleep(min(milliseconds, remaining) / 1000)

    async def wait_for_checks(self, pr_number: int, options: WaitOptions | None = None) -> WaitResult:
        """Poll a pull request's checks until they finish.

        Args:
            pr_number: Pull request number
            options: Wait options (default: 10 minute timeout, exponential backoff)

        Returns:
            WaitResult describing how the wait ended

        Raises:
            CheckTimeoutError: If checks are still running when the timeout expires
        """
        options = options or WaitOptions()
        strategy = options.poll_strategy
        grace_period = min(NO_CHECKS_GRACE_PERIOD, options.timeout)

        start = self._clock()
        previous: CheckSummary | None = None
        retries_used = 0
        registration_polls = 0
        interval = strategy.initial_interval
        self.state = PollState.POLLING

        while True:
            if self._elapsed(start) >= options.timeout:
                if previous is not None and previous.total == 0:
                    # Timeout shorter than the grace window still ends the wait quietly.
                    return self._no_checks(pr_number, options, previous, retries_used, self._elapsed(start))
                self.state = PollState.TIMED_OUT
                logger.warning(f"PR #{pr_number}: checks still running after {options.timeout}ms")
                raise CheckTimeoutError(options.timeout, previous)

            try:
                summary = await self.aggregator.get_detailed_check_status(pr_number)
            except TransientSourceError as e:
                logger.warning(f"PR #{pr_number}: transient error while polling, retrying: {e}")
                await self._pause(interval, start, options.timeout)
                continue

            elapsed = self._elapsed(start)

            if summary.total == 0:
                if elapsed < grace_period:
                    # Checks may not be registered yet right after a push.
                    wait = min(MAX_REGISTRATION_WAIT, 1000 * 2**registration_polls)
                    registration_polls += 1
                    previous = summary
                    await self._pause(wait, start, options.timeout)
                    continue

                return self._no_checks(pr_number, options, summary, retries_used, elapsed)

            self._report_progress(options, previous, summary, elapsed)

            if options.fail_fast and self._has_critical_failure(summary):
                critical = [d.check_name for d in summary.failure_details if FailureClassifier.is_critical(d.error_type)]
                logger.info(f"PR #{pr_number}: failing fast on critical failure in {', '.join(critical)}")
                self.state = PollState.CRITICAL_FAILURE
                return WaitResult(
                    success=False,
                    reason=WaitReason.CRITICAL_FAILURE,
                    summary=summary,
                    retries_used=retries_used,
                    duration=elapsed,
                )

            if summary.pending == 0:
                if summary.overall_status == OverallStatus.SUCCESS:
                    self.state = PollState.COMPLETED
                    return WaitResult(
                        success=True,
                        reason=WaitReason.COMPLETED,
                        summary=summary,
                        retries_used=retries_used,
                        duration=elapsed,
                    )

                if retries_used < options.max_retries and self._is_retryable(summary, options.retry_patterns):
                    retries_used += 1
                    logger.warning(
                        f"PR #{pr_number}: retryable failure detected "
                        f"(attempt {retries_used}/{options.max_retries}), waiting {options.retry_delay}ms"
                    )
                    previous = summary
                    await self._pause(options.retry_delay, start, options.timeout)
                    continue

                self.state = PollState.FAILED
                return WaitResult(
                    success=False,
                    reason=WaitReason.COMPLETED,
                    summary=summary,
                    retries_used=retries_used,
                    duration=elapsed,
                )

            previous = summary
            interval = calculate_next_interval(interval, strategy, summary.duration)
            logger.debug(f"PR #{pr_number}: {summary.pending} pending, next poll in {interval}ms")
            await self._pause(interval, start, options.timeout)

    def _no_checks(
        self,
        pr_number: int,
        options: WaitOptions,
        summary: CheckSummary,
        retries_used: int,
        elapsed: int,
    ) -> WaitResult:
        self._report_progress(options, None, summary, elapsed, force=True)
        logger.info(f"PR #{pr_number}: no CI checks registered, nothing to wait for")
        self.state = PollState.COMPLETED
        return WaitResult(
            success=True,
            reason=WaitReason.NO_CHECKS,
            summary=summary,
            retries_used=retries_used,
            duration=elapsed,
        )

    def _report_progress(
        self,
        options: WaitOptions,
        previous: CheckSummary | None,
        summary: CheckSummary,
        elapsed: int,
        force: bool = False,
    ) -> None:
        if options.on_progress is None:
            return
        if not force and not has_status_changed(previous, summary):
            return

        options.on_progress(
            ProgressUpdate(
                timestamp=datetime.now(UTC),
                elapsed=elapsed,
                summary=summary,
                total=summary.total,
                passed=summary.passed,
                failed=summary.failed,
                pending=summary.pending,
                new_failures=new_failures(previous, summary),
                new_passes=new_passes(previous, summary),
            )
        )

    @staticmethod
    def _has_critical_failure(summary: CheckSummary) -> bool:
        return any(FailureClassifier.is_critical(d.error_type) for d in summary.failure_details)

    @staticmethod
    def _is_retryable(summary: CheckSummary, patterns: list[str]) -> bool:
        """Check whether any failure text matches a retry pattern (case-insensitive)."""
        lowered = [p.lower() for p in patterns if p]
        return any(pattern in detail.summary.lower() for detail in summary.failure_details for pattern in lowered)
