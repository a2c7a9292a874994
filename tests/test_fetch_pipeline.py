"""End-to-end tests for the resilient fetch pipeline against a mocked EP API."""

from unittest.mock import MagicMock

import httpx
import pytest
import respx
from httpx import Response

from epclient.application.cache import ResponseCache
from epclient.constants import (
    METRIC_CACHE_HITS,
    METRIC_CACHE_MISSES,
    METRIC_RATE_LIMIT_DENIED,
    METRIC_REQUEST_DURATION,
    METRIC_REQUESTS_TOTAL,
    METRIC_RETRIES_TOTAL,
)
from epclient.domain.exceptions import (
    APIError,
    RateLimitDeniedError,
    RemoteRejectionError,
    RequestTimeoutError,
    ResponseParseError,
    ResponseSizeLimitError,
    TransientNetworkError,
)
from epclient.infrastructure.providers.fetch_pipeline import (
    ResilientFetchPipeline,
    is_retryable_error,
)
from epclient.infrastructure.providers.rate_limiter import (
    RateLimitConfig,
    TokenBucketRateLimiter,
)

BASE_URL = "https://data.europarl.europa.eu/api/v2/"
MEPS_URL = BASE_URL + "meps"
MEPS_PAGE = {"data": [{"id": "person/1", "label": "Anna Andersson"}]}


class TestFetch:
    @pytest.mark.anyio
    @respx.mock
    async def test_second_identical_call_served_from_cache(
        self, make_pipeline, rate_limiter, metrics
    ):
        route = respx.get(MEPS_URL).mock(return_value=Response(200, json=MEPS_PAGE))

        async with httpx.AsyncClient() as client:
            pipeline = make_pipeline(client)
            first = await pipeline.fetch("meps", {"country": "SE", "limit": 5})
            tokens_after_first = rate_limiter.available_tokens()
            second = await pipeline.fetch("meps", {"limit": 5, "country": "SE"})

        assert first == second == MEPS_PAGE
        assert route.call_count == 1
        assert rate_limiter.available_tokens() == tokens_after_first
        assert metrics.get_counter(METRIC_CACHE_HITS, {"endpoint": "meps"}) == 1
        assert metrics.get_counter(METRIC_CACHE_MISSES, {"endpoint": "meps"}) == 1
        summary = metrics.get_histogram_summary(
            METRIC_REQUEST_DURATION, {"endpoint": "meps"}
        )
        assert summary["count"] == 1
        assert (
            metrics.get_counter(
                METRIC_REQUESTS_TOTAL, {"endpoint": "meps", "outcome": "success"}
            )
            == 1
        )

    @pytest.mark.anyio
    @respx.mock
    async def test_null_body_is_cached(self, make_pipeline, rate_limiter):
        route = respx.get(MEPS_URL).mock(return_value=Response(200, content=b"null"))

        async with httpx.AsyncClient() as client:
            pipeline = make_pipeline(client)
            assert await pipeline.fetch("meps") is None
            tokens_after_first = rate_limiter.available_tokens()
            assert await pipeline.fetch("meps") is None

        assert route.call_count == 1
        assert rate_limiter.available_tokens() == tokens_after_first

    @pytest.mark.anyio
    @respx.mock
    async def test_mutating_result_leaves_cache_intact(self, make_pipeline):
        respx.get(MEPS_URL).mock(return_value=Response(200, json=MEPS_PAGE))

        async with httpx.AsyncClient() as client:
            pipeline = make_pipeline(client)
            first = await pipeline.fetch("meps")
            first["data"][0]["label"] = "changed"
            second = await pipeline.fetch("meps")
            second["data"].clear()
            third = await pipeline.fetch("meps")

        assert third == MEPS_PAGE

    @pytest.mark.anyio
    @respx.mock
    async def test_query_params_and_accept_header_sent(self, make_pipeline):
        route = respx.get(MEPS_URL).mock(return_value=Response(200, json=MEPS_PAGE))

        async with httpx.AsyncClient() as client:
            await make_pipeline(client).fetch(
                "/meps", {"country-code": "SE", "limit": 5, "committee": None}
            )

        request = route.calls[0].request
        assert request.url.params["country-code"] == "SE"
        assert request.url.params["limit"] == "5"
        assert "committee" not in request.url.params
        assert request.headers["accept"] == "application/ld+json"

    @pytest.mark.anyio
    @respx.mock
    async def test_expired_entry_refetched(self, make_pipeline, clock, cache):
        route = respx.get(MEPS_URL).mock(return_value=Response(200, json=MEPS_PAGE))

        async with httpx.AsyncClient() as client:
            pipeline = make_pipeline(client)
            await pipeline.fetch("meps")
            clock.advance(cache.ttl_ms + 1)
            await pipeline.fetch("meps")

        assert route.call_count == 2

    @pytest.mark.anyio
    @respx.mock
    async def test_client_error_not_retried(self, make_pipeline, recorded_sleep, metrics):
        route = respx.get(MEPS_URL).mock(return_value=Response(404))

        async with httpx.AsyncClient() as client:
            with pytest.raises(RemoteRejectionError) as exc_info:
                await make_pipeline(client).fetch("meps")

        assert route.call_count == 1
        assert exc_info.value.status_code == 404
        assert exc_info.value.endpoint == "meps"
        assert recorded_sleep.calls == []
        assert (
            metrics.get_counter(
                METRIC_REQUESTS_TOTAL,
                {"endpoint": "meps", "outcome": "RemoteRejectionError"},
            )
            == 1
        )
        summary = metrics.get_histogram_summary(
            METRIC_REQUEST_DURATION, {"endpoint": "meps"}
        )
        assert summary["count"] == 1

    @pytest.mark.anyio
    @respx.mock
    async def test_server_error_retried_with_backoff(
        self, make_pipeline, recorded_sleep, metrics
    ):
        route = respx.get(MEPS_URL).mock(
            side_effect=[Response(503), Response(502), Response(200, json=MEPS_PAGE)]
        )

        async with httpx.AsyncClient() as client:
            result = await make_pipeline(client).fetch("meps")

        assert result == MEPS_PAGE
        assert route.call_count == 3
        assert recorded_sleep.calls == [1.0, 2.0]
        assert metrics.get_counter(METRIC_RETRIES_TOTAL) == 2

    @pytest.mark.anyio
    @respx.mock
    async def test_server_error_exhausts_retries(self, make_pipeline):
        route = respx.get(MEPS_URL).mock(return_value=Response(500))

        async with httpx.AsyncClient() as client:
            with pytest.raises(RemoteRejectionError) as exc_info:
                await make_pipeline(client).fetch("meps")

        assert route.call_count == 3
        assert exc_info.value.status_code == 500

    @pytest.mark.anyio
    @respx.mock
    async def test_retry_disabled_makes_single_attempt(self, make_pipeline):
        route = respx.get(MEPS_URL).mock(return_value=Response(503))

        async with httpx.AsyncClient() as client:
            with pytest.raises(RemoteRejectionError):
                await make_pipeline(client, retry_enabled=False).fetch("meps")

        assert route.call_count == 1

    @pytest.mark.anyio
    @respx.mock
    async def test_connection_failure_retried(self, make_pipeline):
        route = respx.get(MEPS_URL).mock(
            side_effect=[httpx.ConnectError("refused"), Response(200, json=MEPS_PAGE)]
        )

        async with httpx.AsyncClient() as client:
            assert await make_pipeline(client).fetch("meps") == MEPS_PAGE

        assert route.call_count == 2

    @pytest.mark.anyio
    @respx.mock
    async def test_connection_failure_surfaces_after_retries(self, make_pipeline):
        respx.get(MEPS_URL).mock(side_effect=httpx.ConnectError("refused"))

        async with httpx.AsyncClient() as client:
            with pytest.raises(TransientNetworkError) as exc_info:
                await make_pipeline(client).fetch("meps")

        assert exc_info.value.status_code is None

    @pytest.mark.anyio
    @respx.mock
    async def test_transport_timeout_not_retried(self, make_pipeline, recorded_sleep):
        route = respx.get(MEPS_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        async with httpx.AsyncClient() as client:
            with pytest.raises(RequestTimeoutError) as exc_info:
                await make_pipeline(client).fetch("meps")

        assert route.call_count == 1
        assert recorded_sleep.calls == []
        assert exc_info.value.status_code is None

    @pytest.mark.anyio
    @respx.mock
    async def test_invalid_json_raises_parse_error(self, make_pipeline, cache):
        route = respx.get(MEPS_URL).mock(
            return_value=Response(200, content=b"<html>not json</html>")
        )

        async with httpx.AsyncClient() as client:
            with pytest.raises(ResponseParseError):
                await make_pipeline(client).fetch("meps")

        assert route.call_count == 1
        assert len(cache) == 0

    @pytest.mark.anyio
    @respx.mock
    async def test_oversized_response_rejected(self, make_pipeline, cache):
        respx.get(MEPS_URL).mock(return_value=Response(200, content=b"x" * 2048))

        async with httpx.AsyncClient() as client:
            with pytest.raises(ResponseSizeLimitError) as exc_info:
                await make_pipeline(client, max_response_bytes=1024).fetch("meps")

        assert exc_info.value.max_bytes == 1024
        assert len(cache) == 0

    @pytest.mark.anyio
    @respx.mock
    async def test_failures_are_not_cached(self, make_pipeline):
        route = respx.get(MEPS_URL).mock(
            side_effect=[Response(404), Response(200, json=MEPS_PAGE)]
        )

        async with httpx.AsyncClient() as client:
            pipeline = make_pipeline(client)
            with pytest.raises(RemoteRejectionError):
                await pipeline.fetch("meps")
            assert await pipeline.fetch("meps") == MEPS_PAGE

        assert route.call_count == 2


class TestAdmission:
    @pytest.mark.anyio
    @respx.mock
    async def test_denied_request_never_reaches_network(
        self, make_pipeline, clock, metrics, cache
    ):
        route = respx.get(MEPS_URL).mock(return_value=Response(200, json=MEPS_PAGE))
        limiter = TokenBucketRateLimiter(
            RateLimitConfig(tokens_per_interval=1), clock=clock
        )

        async with httpx.AsyncClient() as client:
            pipeline = ResilientFetchPipeline(
                client=client,
                cache=cache,
                rate_limiter=limiter,
                metrics=metrics,
                base_url=BASE_URL,
                clock=clock,
            )
            await pipeline.fetch("meps", {"offset": 0})
            with pytest.raises(RateLimitDeniedError) as exc_info:
                await pipeline.fetch("meps", {"offset": 50})

        assert route.call_count == 1
        assert exc_info.value.status_code is None
        assert exc_info.value.retry_after_ms == pytest.approx(60_000)
        assert metrics.get_counter(METRIC_RATE_LIMIT_DENIED, {"endpoint": "meps"}) == 1

    @pytest.mark.anyio
    @respx.mock
    async def test_cache_hit_served_with_empty_bucket(self, make_pipeline, rate_limiter):
        respx.get(MEPS_URL).mock(return_value=Response(200, json=MEPS_PAGE))

        async with httpx.AsyncClient() as client:
            pipeline = make_pipeline(client)
            await pipeline.fetch("meps")
            rate_limiter.try_acquire(rate_limiter.available_tokens())
            assert await pipeline.fetch("meps") == MEPS_PAGE


class TestRetryClassifier:
    @pytest.mark.parametrize(
        "error,expected",
        [
            (RemoteRejectionError("Bad Gateway", 502), True),
            (RemoteRejectionError("Not Found", 404), False),
            (RemoteRejectionError("Too Many Requests", 429), False),
            (TransientNetworkError("reset"), True),
            (RequestTimeoutError("slow"), False),
            (ResponseParseError("bad json"), False),
            (ResponseSizeLimitError("too big"), False),
            (APIError("generic"), False),
            (RuntimeError("unexpected"), True),
        ],
    )
    def test_is_retryable_error(self, error, expected):
        assert is_retryable_error(error) is expected


def test_pipeline_rejects_invalid_retry_configuration(cache, rate_limiter, metrics):
    with pytest.raises(ValueError):
        ResilientFetchPipeline(
            client=MagicMock(spec=httpx.AsyncClient),
            cache=cache,
            rate_limiter=rate_limiter,
            metrics=metrics,
            max_retries=-1,
        )


def test_cache_key_shared_with_response_cache():
    assert ResponseCache.make_key("meps", {"limit": 5}) == ResponseCache.make_key(
        "/meps", {"limit": 5}
    )
