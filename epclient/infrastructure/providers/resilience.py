"""
Resilience patterns for the EP data-access layer.
Runs a network attempt under a per-attempt deadline and retries transient
failures with exponential backoff.
"""

import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import anyio

from ...constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_RETRY_DELAY_MS,
    METRIC_ATTEMPTS_TOTAL,
    METRIC_RETRIES_TOTAL,
    METRIC_TIMEOUTS_TOTAL,
)
from ...domain.exceptions import RequestTimeoutError
from ...enums import AttemptOutcome
from ...infrastructure.clock import Clock, DEFAULT_CLOCK
from ...logging import debug, warning, LogRecord, LogEvent
from .metrics import MetricsCollector

T = TypeVar("T")


class CancellationToken:
    """Signal handed to an attempt so it can stop work the caller abandoned."""

    def __init__(self) -> None:
        self._cancelled = False
        self._event: Optional[anyio.Event] = None
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self, reason: Optional[str] = None) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self.reason = reason
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = anyio.Event()
        await self._event.wait()


@dataclass
class Attempt:
    """One network attempt inside a retry session."""

    index: int
    started_at: float
    deadline_at: Optional[float] = None
    outcome: Optional[AttemptOutcome] = None


@dataclass
class RetrySession:
    """Bookkeeping for every attempt made on behalf of a single call."""

    max_retries: int
    base_delay_ms: float
    attempts: List[Attempt] = field(default_factory=list)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def can_retry(self) -> bool:
        return len(self.attempts) < self.max_attempts

    def delay_ms(self, attempt_index: int) -> float:
        """Backoff before the attempt following ``attempt_index`` (0-based)."""
        return self.base_delay_ms * (2**attempt_index)


@dataclass
class RetryPolicy:
    """How many times, how long and after which failures to try again."""

    max_retries: int = DEFAULT_MAX_RETRIES
    timeout_ms: Optional[float] = DEFAULT_REQUEST_TIMEOUT_MS
    retry_delay_ms: float = DEFAULT_RETRY_DELAY_MS
    should_retry: Optional[Callable[[BaseException], bool]] = None
    jitter_ms: float = 0

    def validate(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be non-negative, got {self.max_retries}")
        if self.timeout_ms is not None and self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.retry_delay_ms <= 0:
            raise ValueError(
                f"retry_delay_ms must be positive, got {self.retry_delay_ms}"
            )
        if self.jitter_ms < 0:
            raise ValueError(f"jitter_ms must be non-negative, got {self.jitter_ms}")

    def is_retryable(self, exc: BaseException) -> bool:
        if isinstance(exc, RequestTimeoutError):
            return False
        if self.should_retry is None:
            return True
        return self.should_retry(exc)


class RetryTimeoutOrchestrator:
    """
    Executes an async attempt with a deadline and exponential backoff.

    Each attempt receives a fresh :class:`CancellationToken`. When the
    deadline fires the attempt's cancel scope is cancelled, the token is
    tripped and :class:`RequestTimeoutError` is raised immediately; timeouts
    end the call without another attempt. Other failures are retried while
    ``policy.is_retryable`` allows and attempts remain, sleeping
    ``retry_delay_ms * 2**n`` between attempt ``n`` and ``n + 1``.
    """

    def __init__(
        self,
        metrics: Optional[MetricsCollector] = None,
        clock: Clock = DEFAULT_CLOCK,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            metrics: Collector receiving attempt, retry and timeout counters
            clock: Monotonic time source for attempt bookkeeping
            sleep: Awaitable taking seconds, used for backoff
            rng: Random source for jitter
        """
        self._metrics = metrics
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self.last_session: Optional[RetrySession] = None

    def _count(self, name: str, **labels: Any) -> None:
        if self._metrics is not None:
            self._metrics.increment_counter(name, labels=labels or None)

    async def _run_attempt(
        self,
        attempt_fn: Callable[[CancellationToken], Awaitable[T]],
        token: CancellationToken,
        timeout_ms: Optional[float],
    ) -> T:
        if timeout_ms is None:
            return await attempt_fn(token)

        with anyio.move_on_after(timeout_ms / 1000.0):
            return await attempt_fn(token)
        token.cancel("deadline exceeded")
        raise RequestTimeoutError(
            f"Request timed out after {timeout_ms:g}ms", timeout_ms=timeout_ms
        )

    async def run(
        self,
        attempt_fn: Callable[[CancellationToken], Awaitable[T]],
        policy: Optional[RetryPolicy] = None,
        request_id: Optional[str] = None,
    ) -> T:
        """
        Run ``attempt_fn`` until it succeeds or the policy gives up.

        Args:
            attempt_fn: Async callable receiving the attempt's cancellation token
            policy: Retry and timeout policy
            request_id: Optional correlator for logging

        Returns:
            The result of the first successful attempt

        Raises:
            ValueError: If the policy is invalid
            RequestTimeoutError: If an attempt exceeded its deadline
            Exception: The last failure once retries are exhausted or the
                failure is not retryable
        """
        policy = policy or RetryPolicy()
        policy.validate()

        session = RetrySession(
            max_retries=policy.max_retries, base_delay_ms=policy.retry_delay_ms
        )
        self.last_session = session

        while True:
            started = self._clock.monotonic_ms()
            attempt = Attempt(
                index=len(session.attempts),
                started_at=started,
                deadline_at=(
                    started + policy.timeout_ms if policy.timeout_ms is not None else None
                ),
            )
            session.attempts.append(attempt)
            token = CancellationToken()

            try:
                result = await self._run_attempt(attempt_fn, token, policy.timeout_ms)
            except RequestTimeoutError as e:
                attempt.outcome = AttemptOutcome.TimedOut
                token.cancel("deadline exceeded")
                self._count(METRIC_ATTEMPTS_TOTAL, outcome=attempt.outcome.value)
                self._count(METRIC_TIMEOUTS_TOTAL)
                warning(
                    LogRecord(
                        event=LogEvent.TIMEOUT_EVENT.value,
                        message="Attempt exceeded its deadline",
                        request_id=request_id,
                        data={
                            "attempt": attempt.index + 1,
                            "timeout_ms": policy.timeout_ms,
                        },
                    ),
                    exc=e,
                )
                raise
            except Exception as e:
                attempt.outcome = AttemptOutcome.Failure
                self._count(METRIC_ATTEMPTS_TOTAL, outcome=attempt.outcome.value)
                if not session.can_retry() or not policy.is_retryable(e):
                    raise

                delay_ms = session.delay_ms(attempt.index)
                if policy.jitter_ms:
                    delay_ms += self._rng.uniform(0, policy.jitter_ms)
                self._count(METRIC_RETRIES_TOTAL)
                debug(
                    LogRecord(
                        event=LogEvent.RETRY_EVENT.value,
                        message=f"Attempt failed, retrying in {delay_ms:.0f}ms",
                        request_id=request_id,
                        data={
                            "attempt": attempt.index + 1,
                            "max_attempts": session.max_attempts,
                            "error": type(e).__name__,
                        },
                    )
                )
                await self._sleep(delay_ms / 1000.0)
                continue

            attempt.outcome = AttemptOutcome.Success
            self._count(METRIC_ATTEMPTS_TOTAL, outcome=attempt.outcome.value)
            return result
