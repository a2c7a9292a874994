import pytest

from epclient.enums import RateLimitInterval
from epclient.infrastructure.providers.rate_limiter import (
    RateLimitConfig,
    TokenBucketRateLimiter,
)


@pytest.fixture
def bucket(clock) -> TokenBucketRateLimiter:
    return TokenBucketRateLimiter(
        RateLimitConfig(tokens_per_interval=10, interval=RateLimitInterval.Second),
        clock=clock,
    )


class TestTokenBucketRateLimiter:
    def test_starts_full(self, bucket):
        assert bucket.available_tokens() == 10

    def test_acquire_consumes_tokens(self, bucket):
        assert bucket.try_acquire(3) is True
        assert bucket.available_tokens() == 7

    def test_denied_when_empty(self, bucket):
        for _ in range(10):
            assert bucket.try_acquire() is True
        assert bucket.try_acquire() is False
        assert bucket.get_metrics()["rejected_requests"] == 1

    def test_denial_does_not_consume(self, bucket):
        bucket.try_acquire(8)
        assert bucket.try_acquire(5) is False
        assert bucket.available_tokens() == 2

    def test_refills_proportionally_to_elapsed_time(self, clock, bucket):
        bucket.try_acquire(10)
        clock.advance(500)
        assert bucket.available_tokens() == pytest.approx(5)
        assert bucket.try_acquire(5) is True

    def test_refill_never_exceeds_capacity(self, clock, bucket):
        bucket.try_acquire(1)
        clock.advance(60_000)
        assert bucket.available_tokens() == 10

    def test_cost_above_capacity_always_denied(self, clock, bucket):
        clock.advance(10_000)
        assert bucket.try_acquire(11) is False
        assert bucket.retry_after_ms(11) is None

    @pytest.mark.parametrize("cost", [0, -1])
    def test_non_positive_cost_rejected(self, bucket, cost):
        with pytest.raises(ValueError):
            bucket.try_acquire(cost)

    def test_retry_after(self, bucket):
        assert bucket.retry_after_ms(1) == 0.0
        bucket.try_acquire(10)
        assert bucket.retry_after_ms(2) == pytest.approx(200)

    def test_status(self, bucket):
        bucket.try_acquire(5)
        status = bucket.get_status()
        assert status == {
            "available_tokens": 5,
            "max_tokens": 10,
            "interval": "second",
            "utilization_percent": 50.0,
        }

    def test_reset(self, bucket):
        bucket.try_acquire(10)
        bucket.try_acquire()
        bucket.reset()
        assert bucket.available_tokens() == 10
        assert bucket.get_metrics()["rejected_requests"] == 0


class TestRateLimitConfig:
    def test_interval_lengths(self):
        assert RateLimitConfig(interval=RateLimitInterval.Second).interval_ms == 1_000
        assert RateLimitConfig(interval=RateLimitInterval.Minute).interval_ms == 60_000
        assert RateLimitConfig(interval=RateLimitInterval.Hour).interval_ms == 3_600_000

    def test_interval_accepts_plain_string(self):
        assert RateLimitConfig(interval="minute").interval is RateLimitInterval.Minute

    def test_tokens_must_be_positive(self):
        with pytest.raises(ValueError):
            RateLimitConfig(tokens_per_interval=0)
