"""
Resilient fetch pipeline for EP Open Data API requests.
Handles caching, client-side rate limiting, retry/timeout orchestration,
response size enforcement and per-request metrics.
"""

import copy
import json
import uuid
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional

import anyio
import httpx

from ...application.cache import ResponseCache
from ...config import Settings
from ...constants import (
    DEFAULT_EP_API_BASE_URL,
    DEFAULT_MAX_RESPONSE_BYTES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_REQUEST_TIMEOUT_MS,
    DEFAULT_RETRY_DELAY_MS,
    JSON_LD_MEDIA_TYPE,
    METRIC_CACHE_HITS,
    METRIC_CACHE_MISSES,
    METRIC_CACHE_SIZE,
    METRIC_RATE_LIMIT_AVAILABLE,
    METRIC_RATE_LIMIT_DENIED,
    METRIC_REQUEST_DURATION,
    METRIC_REQUESTS_TOTAL,
    METRIC_RESPONSE_BYTES,
)
from ...domain.exceptions import (
    APIError,
    RateLimitDeniedError,
    RemoteRejectionError,
    RequestTimeoutError,
    ResponseParseError,
    TransientNetworkError,
)
from ...infrastructure.clock import Clock, DEFAULT_CLOCK
from ...logging import debug, info, error, LogRecord, LogEvent
from .metrics import MetricsCollector
from .rate_limiter import TokenBucketRateLimiter
from .resilience import CancellationToken, RetryPolicy, RetryTimeoutOrchestrator
from .size_guard import ResponseSizeGuard


_MISS = object()


def is_retryable_error(exc: BaseException) -> bool:
    """Retry classifier for EP API failures.

    Remote rejections are retried only for 5xx statuses; connection-level
    failures are always retried; timeouts, size and parse failures never are.
    """
    if isinstance(exc, RemoteRejectionError):
        return exc.is_transient
    if isinstance(exc, TransientNetworkError):
        return True
    if isinstance(exc, APIError):
        return False
    return True


def _query_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)):
        return value
    return json.dumps(value, separators=(",", ":"), default=str)


class ResilientFetchPipeline:
    """
    The single path every sub-client uses to reach the EP API.

    ``fetch`` resolves in this order:
    - Cache lookup: a hit returns at once without consuming a rate-limit token
    - Admission: one token from the shared bucket, or ``RateLimitDeniedError``
    - Network: one GET per attempt under the retry/timeout orchestrator, with
      the body read through the size guard and decoded as JSON
    - Cache fill and metrics
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        cache: ResponseCache,
        rate_limiter: TokenBucketRateLimiter,
        metrics: MetricsCollector,
        base_url: str = DEFAULT_EP_API_BASE_URL,
        request_timeout_ms: Optional[float] = DEFAULT_REQUEST_TIMEOUT_MS,
        retry_enabled: bool = True,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay_ms: float = DEFAULT_RETRY_DELAY_MS,
        max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
        clock: Clock = DEFAULT_CLOCK,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ):
        """
        Initialize the pipeline with its shared collaborators.

        Args:
            client: Pooled httpx client
            cache: Response cache shared by the client instance
            rate_limiter: Token bucket shared by the client instance
            metrics: Metrics collector shared by the client instance
            base_url: EP API base URL endpoints are resolved against
            request_timeout_ms: Per-attempt deadline, None to disable
            retry_enabled: When False a single attempt is made
            max_retries: Extra attempts after the first
            retry_delay_ms: Base backoff delay
            max_response_bytes: Upper bound for a response body
            clock: Monotonic time source
            sleep: Backoff sleep, injectable for tests
        """
        self._client = client
        self._cache = cache
        self._rate_limiter = rate_limiter
        self._metrics = metrics
        self._clock = clock
        self.base_url = base_url.rstrip("/") + "/"
        self.policy = RetryPolicy(
            max_retries=max_retries if retry_enabled else 0,
            timeout_ms=request_timeout_ms,
            retry_delay_ms=retry_delay_ms,
            should_retry=is_retryable_error,
        )
        self.policy.validate()
        self._orchestrator = RetryTimeoutOrchestrator(
            metrics=metrics, clock=clock, sleep=sleep
        )
        self._size_guard = ResponseSizeGuard(max_response_bytes)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        client: httpx.AsyncClient,
        cache: ResponseCache,
        rate_limiter: TokenBucketRateLimiter,
        metrics: MetricsCollector,
        clock: Clock = DEFAULT_CLOCK,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ) -> "ResilientFetchPipeline":
        return cls(
            client=client,
            cache=cache,
            rate_limiter=rate_limiter,
            metrics=metrics,
            base_url=settings.normalized_base_url,
            request_timeout_ms=settings.request_timeout_ms,
            retry_enabled=settings.retry_enabled,
            max_retries=settings.max_retries,
            retry_delay_ms=settings.retry_delay_ms,
            max_response_bytes=settings.max_response_bytes,
            clock=clock,
            sleep=sleep,
        )

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def rate_limiter(self) -> TokenBucketRateLimiter:
        return self._rate_limiter

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    async def fetch(
        self,
        endpoint: str,
        params: Optional[Mapping[str, Any]] = None,
        request_id: Optional[str] = None,
    ) -> Any:
        """
        Fetch parsed JSON for ``endpoint`` with ``params``.

        Args:
            endpoint: Endpoint path relative to the base URL
            params: Query parameters; None values are omitted
            request_id: Optional correlator for logging

        Returns:
            The decoded JSON document; a private copy, so callers may
            mutate it without touching the cached entry

        Raises:
            RateLimitDeniedError: If the bucket refused admission
            RemoteRejectionError: If the API answered with a non-2xx status
            RequestTimeoutError: If an attempt exceeded the deadline
            TransientNetworkError: If the connection failed on every attempt
            ResponseSizeLimitError: If the body exceeded max_response_bytes
            ResponseParseError: If the body was not valid JSON
        """
        endpoint_path = endpoint.lstrip("/")
        request_id = request_id or uuid.uuid4().hex
        labels = {"endpoint": endpoint_path}
        query = {
            str(k): _query_value(v) for k, v in (params or {}).items() if v is not None
        }

        cache_key = self._cache.make_key(endpoint_path, query)
        cached = self._cache.get(cache_key, _MISS)
        if cached is not _MISS:
            self._metrics.increment_counter(METRIC_CACHE_HITS, labels=labels)
            debug(
                LogRecord(
                    event=LogEvent.CACHE_EVENT.value,
                    message="Cache hit",
                    request_id=request_id,
                    data={"endpoint": endpoint_path},
                )
            )
            return copy.deepcopy(cached)
        self._metrics.increment_counter(METRIC_CACHE_MISSES, labels=labels)

        self._admit(endpoint_path, request_id)

        debug(
            LogRecord(
                event=LogEvent.FETCH_START.value,
                message=f"GET {endpoint_path}",
                request_id=request_id,
                data={"endpoint": endpoint_path, "params": query},
            )
        )

        started = self._clock.monotonic_ms()
        try:
            data = await self._orchestrator.run(
                lambda token: self._attempt(endpoint_path, query, token),
                self.policy,
                request_id=request_id,
            )
        except Exception as e:
            elapsed_ms = self._clock.monotonic_ms() - started
            api_error = self._to_api_error(e, endpoint_path, request_id)
            self._metrics.observe_histogram(
                METRIC_REQUEST_DURATION, elapsed_ms, labels=labels
            )
            self._metrics.increment_counter(
                METRIC_REQUESTS_TOTAL,
                labels={"endpoint": endpoint_path, "outcome": type(api_error).__name__},
            )
            error(
                LogRecord(
                    event=LogEvent.FETCH_FAILURE.value,
                    message=f"EP API request to {endpoint_path} failed",
                    request_id=request_id,
                    data={
                        "endpoint": endpoint_path,
                        "status_code": api_error.status_code,
                        "duration_ms": round(elapsed_ms, 2),
                    },
                ),
                exc=api_error,
            )
            if api_error is e:
                raise
            raise api_error from e

        elapsed_ms = self._clock.monotonic_ms() - started
        self._metrics.observe_histogram(METRIC_REQUEST_DURATION, elapsed_ms, labels=labels)
        self._metrics.increment_counter(
            METRIC_REQUESTS_TOTAL,
            labels={"endpoint": endpoint_path, "outcome": "success"},
        )
        self._cache.set(cache_key, copy.deepcopy(data))
        self._metrics.set_gauge(METRIC_CACHE_SIZE, len(self._cache))
        info(
            LogRecord(
                event=LogEvent.FETCH_COMPLETED.value,
                message=f"GET {endpoint_path} completed",
                request_id=request_id,
                data={"endpoint": endpoint_path, "duration_ms": round(elapsed_ms, 2)},
            )
        )
        return data

    def _admit(self, endpoint_path: str, request_id: str) -> None:
        admitted = self._rate_limiter.try_acquire(1)
        available = self._rate_limiter.available_tokens()
        self._metrics.set_gauge(METRIC_RATE_LIMIT_AVAILABLE, available)
        if admitted:
            return

        retry_after = self._rate_limiter.retry_after_ms(1)
        self._metrics.increment_counter(
            METRIC_RATE_LIMIT_DENIED, labels={"endpoint": endpoint_path}
        )
        self._metrics.increment_counter(
            METRIC_REQUESTS_TOTAL,
            labels={"endpoint": endpoint_path, "outcome": "RateLimitDeniedError"},
        )
        raise RateLimitDeniedError(
            f"Rate limit exceeded for {endpoint_path}; retry after "
            f"{retry_after or 0:.0f}ms",
            available_tokens=available,
            retry_after_ms=retry_after,
            endpoint=endpoint_path,
            request_id=request_id,
        )

    async def _attempt(
        self, endpoint_path: str, query: Dict[str, Any], token: CancellationToken
    ) -> Any:
        url = self.base_url + endpoint_path
        try:
            async with self._client.stream(
                "GET", url, params=query, headers={"Accept": JSON_LD_MEDIA_TYPE}
            ) as response:
                if not response.is_success:
                    raise RemoteRejectionError(
                        f"EP API request failed: {response.reason_phrase}",
                        response.status_code,
                        endpoint=endpoint_path,
                    )
                declared = response.headers.get("content-length")
                body = await self._size_guard.read(
                    response.aiter_bytes(),
                    declared_length=int(declared) if declared and declared.isdigit() else None,
                    token=token,
                    endpoint=endpoint_path,
                )
        except httpx.TimeoutException as e:
            raise RequestTimeoutError(
                f"EP API request to {endpoint_path} timed out: {e}",
                timeout_ms=self.policy.timeout_ms,
                endpoint=endpoint_path,
            ) from e
        except httpx.TransportError as e:
            raise TransientNetworkError(
                f"EP API request error: {e}", endpoint=endpoint_path
            ) from e

        self._metrics.observe_histogram(
            METRIC_RESPONSE_BYTES, len(body), labels={"endpoint": endpoint_path}
        )
        try:
            return json.loads(body)
        except ValueError as e:
            raise ResponseParseError(
                f"EP API returned invalid JSON for {endpoint_path}: {e}",
                endpoint=endpoint_path,
            ) from e

    @staticmethod
    def _to_api_error(
        exc: Exception, endpoint_path: str, request_id: str
    ) -> APIError:
        if isinstance(exc, APIError):
            if exc.endpoint is None:
                exc.endpoint = endpoint_path
            if exc.request_id is None:
                exc.request_id = request_id
            return exc
        return APIError(
            f"EP API request error: {exc}",
            details={"cause": type(exc).__name__},
            endpoint=endpoint_path,
            request_id=request_id,
        )
