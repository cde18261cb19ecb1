"""
Retry executor for notification delivery.

Delivery never gives up: a failing operation is retried after each delay of a
finite backoff list, then every `steady_interval` seconds indefinitely. The only
way out without success is the stop signal firing during a wait.
"""

from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Generic, Iterator, Optional, Tuple, TypeVar

from streamwatch.monitor.signals import StopSignal
from streamwatch.utils.logging import get_logger

logger = get_logger(__name__, category="monitor")

T = TypeVar("T")

DEFAULT_BACKOFF_SECONDS: Tuple[float, ...] = (1, 3, 5, 10, 15, 30, 45, 60)
STEADY_RETRY_SECONDS: float = 60


@dataclass(frozen=True)
class BackoffSchedule:
    """Two-phase schedule: fixed backoff delays, then a steady retry interval."""

    delays: Tuple[float, ...] = DEFAULT_BACKOFF_SECONDS
    steady_interval: float = STEADY_RETRY_SECONDS

    def delay_for(self, failure_number: int) -> float:
        """Delay after the n-th consecutive failure (1-based)."""
        if failure_number < 1:
            raise ValueError("failure_number starts at 1")
        if failure_number <= len(self.delays):
            return self.delays[failure_number - 1]
        return self.steady_interval

    def in_backoff_phase(self, failure_number: int) -> bool:
        return failure_number <= len(self.delays)

    def __iter__(self) -> Iterator[float]:
        """Infinite sequence of delays."""
        return itertools.chain(self.delays, itertools.repeat(self.steady_interval))


class RetryOutcome(str, Enum):
    """How an execute() call ended: success, or shutdown while waiting to retry."""

    SUCCESS = "success"
    CANCELLED = "cancelled"


@dataclass
class RetryResult(Generic[T]):
    outcome: RetryOutcome
    value: Optional[T] = None
    attempts: int = 0

    @property
    def succeeded(self) -> bool:
        return self.outcome is RetryOutcome.SUCCESS


class RetryExecutor:
    """Runs an async operation until it succeeds or shutdown is requested."""

    def __init__(self, stop_signal: StopSignal, schedule: Optional[BackoffSchedule] = None):
        """
        Args:
            stop_signal: Process-wide stop signal consulted during every wait
            schedule: Backoff schedule (defaults to 1,3,5,10,15,30,45,60 then every 60s)
        """
        self.stop_signal = stop_signal
        self.schedule = schedule or BackoffSchedule()

    async def execute(
        self, operation: Callable[[], Awaitable[T]], label: str
    ) -> RetryResult[T]:
        """
        Run `operation` immediately, retrying on any exception.

        Args:
            operation: Zero-argument coroutine function; raising means failure
            label: Human-readable name used in log messages

        Returns:
            RetryResult with SUCCESS and the operation's return value, or
            CANCELLED if the stop signal fired while waiting to retry
        """
        attempts = 0
        for delay in self.schedule:
            attempts += 1
            try:
                value = await operation()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = e
            else:
                if attempts > 1:
                    logger.info(f"Operation recovered: {label} (attempt {attempts})")
                return RetryResult(RetryOutcome.SUCCESS, value, attempts)

            if self.schedule.in_backoff_phase(attempts):
                logger.warning(f"Retrying operation: {label} in {delay}s (attempt {attempts} failed: {error})")
            else:
                logger.warning(f"Operation still failing: {label}, next attempt in {delay}s ({error})")

            if await self.stop_signal.wait(delay):
                logger.info(f"Retry abandoned, shutdown requested: {label}")
                return RetryResult(RetryOutcome.CANCELLED, None, attempts)

        # The schedule is infinite
        raise AssertionError("unreachable")
