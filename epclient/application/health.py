"""Health reporting derived from metrics and rate limiter state.

The check never touches the network: reachability is inferred from the
outcomes of requests already made.
"""

from datetime import datetime, timezone
from typing import Optional

from ..constants import (
    METRIC_CACHE_HITS,
    METRIC_CACHE_MISSES,
    METRIC_REQUESTS_TOTAL,
    RATE_LIMIT_DEGRADED_RATIO,
)
from ..domain.models import CacheHealthStatus, HealthStatus
from ..enums import HealthStatusLevel
from ..infrastructure.clock import Clock, DEFAULT_CLOCK
from ..infrastructure.providers.metrics import MetricsCollector
from ..infrastructure.providers.rate_limiter import TokenBucketRateLimiter
from ..logging import debug, LogRecord, LogEvent

# Outcomes that never reached the network
_NON_NETWORK_OUTCOMES = ("RateLimitDeniedError",)


class HealthService:
    def __init__(
        self,
        rate_limiter: TokenBucketRateLimiter,
        metrics: MetricsCollector,
        clock: Clock = DEFAULT_CLOCK,
    ):
        self._rate_limiter = rate_limiter
        self._metrics = metrics
        self._clock = clock
        self._started_at = clock.monotonic_ms()

    def _network_calls(self) -> tuple[float, float]:
        total = self._metrics.sum_counter(METRIC_REQUESTS_TOTAL)
        for outcome in _NON_NETWORK_OUTCOMES:
            total -= self._metrics.sum_counter(METRIC_REQUESTS_TOTAL, outcome=outcome)
        succeeded = self._metrics.sum_counter(METRIC_REQUESTS_TOTAL, outcome="success")
        return total, succeeded

    def is_ep_api_reachable(self) -> bool:
        """False only when network calls were made and none succeeded."""
        total, succeeded = self._network_calls()
        if total == 0:
            return True
        return succeeded > 0

    def _cache_status(self) -> CacheHealthStatus:
        hits = int(self._metrics.sum_counter(METRIC_CACHE_HITS))
        misses = int(self._metrics.sum_counter(METRIC_CACHE_MISSES))
        total = hits + misses
        if total == 0:
            return CacheHealthStatus(populated=False, description="No cache activity yet")
        return CacheHealthStatus(
            populated=True,
            description=f"{hits} hits / {misses} misses ({total} total)",
        )

    def check_health(self, now: Optional[datetime] = None) -> HealthStatus:
        limiter_status = self._rate_limiter.get_status()
        reachable = self.is_ep_api_reachable()

        if not reachable:
            level = HealthStatusLevel.Unhealthy
        elif (
            limiter_status["max_tokens"] > 0
            and limiter_status["available_tokens"] / limiter_status["max_tokens"]
            < RATE_LIMIT_DEGRADED_RATIO
        ):
            level = HealthStatusLevel.Degraded
        else:
            level = HealthStatusLevel.Healthy

        status = HealthStatus(
            status=level,
            ep_api_reachable=reachable,
            cache=self._cache_status(),
            rate_limiter=limiter_status,
            timestamp=(now or datetime.now(timezone.utc)).isoformat(),
            uptime_seconds=round(
                (self._clock.monotonic_ms() - self._started_at) / 1000.0, 3
            ),
        )
        debug(
            LogRecord(
                event=LogEvent.HEALTH_CHECK.value,
                message=f"Health check: {level.value}",
                data={"ep_api_reachable": reachable},
            )
        )
        return status
