"""Tests for the retry/timeout orchestrator."""

import anyio
import pytest

from epclient.constants import (
    METRIC_ATTEMPTS_TOTAL,
    METRIC_RETRIES_TOTAL,
    METRIC_TIMEOUTS_TOTAL,
)
from epclient.domain.exceptions import RemoteRejectionError, RequestTimeoutError
from epclient.enums import AttemptOutcome
from epclient.infrastructure.providers.resilience import (
    CancellationToken,
    RetryPolicy,
    RetrySession,
    RetryTimeoutOrchestrator,
)


class FlakyAttempt:
    """Fails with the queued exceptions, then returns ``result``."""

    def __init__(self, failures, result="ok"):
        self.failures = list(failures)
        self.result = result
        self.calls = 0
        self.tokens = []

    async def __call__(self, token: CancellationToken):
        self.calls += 1
        self.tokens.append(token)
        if self.failures:
            raise self.failures.pop(0)
        return self.result


@pytest.fixture
def orchestrator(clock, recorded_sleep, metrics) -> RetryTimeoutOrchestrator:
    return RetryTimeoutOrchestrator(metrics=metrics, clock=clock, sleep=recorded_sleep)


class TestRetryTimeoutOrchestrator:
    @pytest.mark.anyio
    async def test_success_on_first_attempt(self, orchestrator, recorded_sleep, metrics):
        attempt = FlakyAttempt([])
        assert await orchestrator.run(attempt, RetryPolicy(max_retries=2)) == "ok"
        assert attempt.calls == 1
        assert recorded_sleep.calls == []
        assert metrics.get_counter(METRIC_ATTEMPTS_TOTAL, {"outcome": "success"}) == 1

    @pytest.mark.anyio
    async def test_exponential_backoff_between_attempts(
        self, orchestrator, recorded_sleep, metrics
    ):
        attempt = FlakyAttempt([RuntimeError("boom"), RuntimeError("boom")])
        policy = RetryPolicy(max_retries=2, retry_delay_ms=1000)

        assert await orchestrator.run(attempt, policy) == "ok"

        assert attempt.calls == 3
        assert recorded_sleep.calls == [1.0, 2.0]
        assert metrics.get_counter(METRIC_RETRIES_TOTAL) == 2
        outcomes = [a.outcome for a in orchestrator.last_session.attempts]
        assert outcomes == [
            AttemptOutcome.Failure,
            AttemptOutcome.Failure,
            AttemptOutcome.Success,
        ]

    @pytest.mark.anyio
    async def test_last_error_raised_after_exhaustion(self, orchestrator, recorded_sleep):
        errors = [RuntimeError("first"), RuntimeError("second"), RuntimeError("third")]
        attempt = FlakyAttempt(errors)

        with pytest.raises(RuntimeError, match="third"):
            await orchestrator.run(attempt, RetryPolicy(max_retries=2))

        assert attempt.calls == 3
        assert len(recorded_sleep.calls) == 2

    @pytest.mark.anyio
    async def test_zero_retries_makes_one_attempt(self, orchestrator, recorded_sleep):
        attempt = FlakyAttempt([RuntimeError("boom")])
        with pytest.raises(RuntimeError):
            await orchestrator.run(attempt, RetryPolicy(max_retries=0))
        assert attempt.calls == 1
        assert recorded_sleep.calls == []

    @pytest.mark.anyio
    async def test_non_retryable_error_stops_immediately(self, orchestrator):
        attempt = FlakyAttempt([RemoteRejectionError("Not Found", 404)])
        policy = RetryPolicy(
            max_retries=3,
            should_retry=lambda e: not isinstance(e, RemoteRejectionError),
        )
        with pytest.raises(RemoteRejectionError):
            await orchestrator.run(attempt, policy)
        assert attempt.calls == 1

    @pytest.mark.anyio
    async def test_timeout_is_not_retried(self, metrics, recorded_sleep):
        orchestrator = RetryTimeoutOrchestrator(metrics=metrics, sleep=recorded_sleep)
        calls = 0
        seen_tokens = []

        async def hang(token: CancellationToken):
            nonlocal calls
            calls += 1
            seen_tokens.append(token)
            await anyio.sleep(10)

        with pytest.raises(RequestTimeoutError) as exc_info:
            await orchestrator.run(hang, RetryPolicy(max_retries=3, timeout_ms=20))

        assert calls == 1
        assert seen_tokens[0].cancelled
        assert exc_info.value.status_code is None
        assert exc_info.value.timeout_ms == 20
        assert recorded_sleep.calls == []
        assert metrics.get_counter(METRIC_TIMEOUTS_TOTAL) == 1
        assert (
            orchestrator.last_session.attempts[0].outcome is AttemptOutcome.TimedOut
        )

    @pytest.mark.anyio
    async def test_timeout_raised_by_attempt_is_not_retried(self, orchestrator):
        attempt = FlakyAttempt([RequestTimeoutError("slow")])
        with pytest.raises(RequestTimeoutError):
            await orchestrator.run(attempt, RetryPolicy(max_retries=3))
        assert attempt.calls == 1

    @pytest.mark.anyio
    async def test_each_attempt_gets_fresh_token(self, orchestrator):
        attempt = FlakyAttempt([RuntimeError("boom")])
        await orchestrator.run(attempt, RetryPolicy(max_retries=1))
        assert attempt.tokens[0] is not attempt.tokens[1]

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "policy",
        [
            RetryPolicy(max_retries=-1),
            RetryPolicy(timeout_ms=0),
            RetryPolicy(retry_delay_ms=0),
            RetryPolicy(jitter_ms=-5),
        ],
    )
    async def test_invalid_policy_rejected_before_any_attempt(
        self, orchestrator, policy
    ):
        attempt = FlakyAttempt([])
        with pytest.raises(ValueError):
            await orchestrator.run(attempt, policy)
        assert attempt.calls == 0

    @pytest.mark.anyio
    async def test_runs_without_metrics(self, recorded_sleep):
        orchestrator = RetryTimeoutOrchestrator(sleep=recorded_sleep)
        assert await orchestrator.run(FlakyAttempt([RuntimeError()])) == "ok"


def test_retry_session_delays():
    session = RetrySession(max_retries=3, base_delay_ms=250)
    assert session.max_attempts == 4
    assert [session.delay_ms(i) for i in range(3)] == [250, 500, 1000]


class TestCancellationToken:
    def test_cancel_is_idempotent(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        assert token.cancelled
        assert token.reason == "first"

    @pytest.mark.anyio
    async def test_wait_returns_after_cancel(self):
        token = CancellationToken()

        async with anyio.create_task_group() as tg:
            tg.start_soon(token.wait)
            await anyio.sleep(0)
            token.cancel()

        assert token.cancelled