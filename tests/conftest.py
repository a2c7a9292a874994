from typing import Any, Callable, Iterator, List

from unittest.mock import MagicMock, patch
import pytest

from epclient.application.cache import ResponseCache
from epclient.config import Settings
from epclient.infrastructure.providers.fetch_pipeline import ResilientFetchPipeline
from epclient.infrastructure.providers.metrics import MetricsCollector
from epclient.infrastructure.providers.rate_limiter import (
    RateLimitConfig,
    TokenBucketRateLimiter,
)

BASE_URL = "https://data.europarl.europa.eu/api/v2/"


# Configure anyio to only use asyncio backend
@pytest.fixture
def anyio_backend() -> str:
    """Force tests to use asyncio backend only."""
    return "asyncio"


@pytest.fixture(autouse=True, scope="session")
def mock_logger() -> Iterator[MagicMock]:
    with patch("epclient.logging._logger", MagicMock()) as mock_logger:
        mock_logger.log.return_value = None
        yield mock_logger


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self.now = start_ms

    def monotonic_ms(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingSleep:
    """Stand-in for anyio.sleep that records requested delays in seconds."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorded_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        base_url=BASE_URL,
        retry_delay_ms=1000,
        max_retries=2,
        request_timeout_ms=10_000,
        _env_file=None,
    )


@pytest.fixture
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(max_entries=100, ttl_ms=900_000, clock=clock)


@pytest.fixture
def rate_limiter(clock: FakeClock) -> TokenBucketRateLimiter:
    return TokenBucketRateLimiter(RateLimitConfig(tokens_per_interval=100), clock=clock)


@pytest.fixture
def make_pipeline(
    cache: ResponseCache,
    rate_limiter: TokenBucketRateLimiter,
    metrics: MetricsCollector,
    clock: FakeClock,
    recorded_sleep: RecordingSleep,
) -> Callable[..., ResilientFetchPipeline]:
    """Factory for a pipeline over the shared test fixtures."""

    def factory(http_client: Any, **overrides: Any) -> ResilientFetchPipeline:
        options = dict(
            base_url=BASE_URL,
            request_timeout_ms=10_000,
            retry_enabled=True,
            max_retries=2,
            retry_delay_ms=1000,
        )
        options.update(overrides)
        return ResilientFetchPipeline(
            client=http_client,
            cache=cache,
            rate_limiter=rate_limiter,
            metrics=metrics,
            clock=clock,
            sleep=recorded_sleep,
            **options,
        )

    return factory