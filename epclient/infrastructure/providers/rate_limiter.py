"""Client-side token bucket rate limiter for the EP Open Data API."""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from ...constants import DEFAULT_RATE_LIMIT_TOKENS
from ...enums import RateLimitInterval
from ...infrastructure.clock import Clock, DEFAULT_CLOCK
from ...logging import debug, LogRecord, LogEvent


@dataclass
class RateLimitConfig:
    """Configuration for rate limiting."""

    tokens_per_interval: int = DEFAULT_RATE_LIMIT_TOKENS
    interval: RateLimitInterval = RateLimitInterval.Minute

    def __post_init__(self) -> None:
        if self.tokens_per_interval < 1:
            raise ValueError(
                f"tokens_per_interval must be positive, got {self.tokens_per_interval}"
            )
        self.interval = RateLimitInterval(self.interval)

    @property
    def interval_ms(self) -> int:
        return self.interval.milliseconds


@dataclass
class RateLimitMetrics:
    """Metrics for rate limit tracking."""

    granted_requests: int = 0
    rejected_requests: int = 0
    tokens_consumed: float = 0
    last_rejection_at: Optional[float] = None


class TokenBucketRateLimiter:
    """
    Token bucket shared by every sub-client of one client instance.

    The bucket holds at most ``tokens_per_interval`` tokens and refills
    continuously at ``tokens_per_interval`` per interval. Refill is lazy:
    it is computed from the elapsed time whenever the bucket is inspected,
    so no background task is needed. Admission never waits; a denied caller
    gets ``False`` and may consult :meth:`retry_after_ms`.
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Clock = DEFAULT_CLOCK,
    ) -> None:
        """
        Initialize the rate limiter with configuration.

        Args:
            config: Rate limit configuration
            clock: Monotonic time source
        """
        self.config = config or RateLimitConfig()
        self.metrics = RateLimitMetrics()
        self._clock = clock
        self._capacity = float(self.config.tokens_per_interval)
        self._tokens = self._capacity
        self._last_refill_at = clock.monotonic_ms()

    def _refill(self) -> None:
        now = self._clock.monotonic_ms()
        elapsed = now - self._last_refill_at
        if elapsed > 0:
            self._tokens = min(
                self._capacity,
                self._tokens + elapsed / self.config.interval_ms * self._capacity,
            )
        self._last_refill_at = now

    @property
    def max_tokens(self) -> int:
        return self.config.tokens_per_interval

    def available_tokens(self) -> float:
        """Tokens currently in the bucket after applying pending refill."""
        self._refill()
        return self._tokens

    def try_acquire(self, cost: float = 1) -> bool:
        """
        Take ``cost`` tokens if the bucket holds enough.

        Args:
            cost: Number of tokens to consume

        Returns:
            True when admitted, False otherwise

        Raises:
            ValueError: If cost is not positive
        """
        if cost <= 0:
            raise ValueError(f"cost must be positive, got {cost}")
        self._refill()

        if cost > self._capacity or self._tokens < cost:
            self.metrics.rejected_requests += 1
            self.metrics.last_rejection_at = self._last_refill_at
            debug(
                LogRecord(
                    event=LogEvent.RATE_LIMIT_EVENT.value,
                    message="Rate limit admission denied",
                    data={
                        "cost": cost,
                        "available_tokens": round(self._tokens, 3),
                        "capacity": self.max_tokens,
                    },
                )
            )
            return False

        self._tokens -= cost
        self.metrics.granted_requests += 1
        self.metrics.tokens_consumed += cost
        return True

    def retry_after_ms(self, cost: float = 1) -> Optional[float]:
        """Milliseconds until ``cost`` tokens are available, None if never."""
        if cost > self._capacity:
            return None
        self._refill()
        missing = cost - self._tokens
        if missing <= 0:
            return 0.0
        return missing / self._capacity * self.config.interval_ms

    def get_status(self) -> Dict[str, Any]:
        available = self.available_tokens()
        return {
            "available_tokens": round(available, 3),
            "max_tokens": self.max_tokens,
            "interval": self.config.interval.value,
            "utilization_percent": round(
                (1 - available / self._capacity) * 100, 1
            ),
        }

    def reset(self) -> None:
        """Refill the bucket to capacity and clear metrics."""
        self._tokens = self._capacity
        self._last_refill_at = self._clock.monotonic_ms()
        self.metrics = RateLimitMetrics()

    def get_metrics(self) -> Dict[str, Any]:
        """
        Get current rate limiter metrics.

        Returns:
            Dictionary of admission counters and bucket state
        """
        return {
            "granted_requests": self.metrics.granted_requests,
            "rejected_requests": self.metrics.rejected_requests,
            "tokens_consumed": self.metrics.tokens_consumed,
            "last_rejection_at": self.metrics.last_rejection_at,
            **self.get_status(),
        }
