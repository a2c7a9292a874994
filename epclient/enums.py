"""Enums module for epclient configuration.

Contains all enumeration classes used throughout the data-access layer.
"""

from enum import StrEnum


class RateLimitInterval(StrEnum):
    """Refill interval of the token bucket."""

    Second = "second"
    Minute = "minute"
    Hour = "hour"

    @property
    def milliseconds(self) -> int:
        if self is RateLimitInterval.Second:
            return 1_000
        if self is RateLimitInterval.Minute:
            return 60_000
        return 3_600_000


class AttemptOutcome(StrEnum):
    """Terminal state of one network attempt."""

    Success = "success"
    Failure = "failure"
    TimedOut = "timed_out"


class HealthStatusLevel(StrEnum):
    """Overall health verdict reported by the health service."""

    Healthy = "healthy"
    Degraded = "degraded"
    Unhealthy = "unhealthy"


class QuestionType(StrEnum):
    """Parliamentary question kinds accepted by the question client."""

    Written = "WRITTEN"
    Oral = "ORAL"
