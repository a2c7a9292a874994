"""Single entry point wiring the shared data-access layer to the sub-clients."""

from typing import Any, Awaitable, Callable, Dict, Optional

import anyio
import httpx

from ..application.audit import AuditSink, LoggingAuditSink
from ..application.cache import ResponseCache
from ..application.health import HealthService
from ..config import Settings
from ..domain.models import HealthStatus
from ..infrastructure.clock import Clock, DEFAULT_CLOCK
from ..infrastructure.providers.fetch_pipeline import ResilientFetchPipeline
from ..infrastructure.providers.http_client_factory import HttpClientFactory
from ..infrastructure.providers.metrics import MetricsCollector
from ..infrastructure.providers.rate_limiter import (
    RateLimitConfig,
    TokenBucketRateLimiter,
)
from .committee import CommitteeClient
from .document import DocumentClient
from .legislative import LegislativeClient
from .mep import MEPClient
from .plenary import PlenaryClient
from .question import QuestionClient
from .vocabulary import VocabularyClient


class EuropeanParliamentClient:
    """
    Facade over the seven EP sub-clients.

    One instance owns exactly one cache, one token bucket and one metrics
    collector, all handed to a single fetch pipeline that every sub-client
    uses. Pass any of them in to share state across instances or to control
    it in tests; whatever is omitted is built from ``settings``. Several
    instances with different settings can coexist in one process.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        cache: Optional[ResponseCache] = None,
        rate_limiter: Optional[TokenBucketRateLimiter] = None,
        metrics: Optional[MetricsCollector] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Clock = DEFAULT_CLOCK,
        sleep: Callable[[float], Awaitable[Any]] = anyio.sleep,
    ):
        """
        Initialize the client and its shared resources.

        Args:
            settings: Client settings; loaded from the environment when omitted
            http_client: httpx client; created (and later closed) when omitted
            cache: Response cache shared by the sub-clients
            rate_limiter: Token bucket shared by the sub-clients
            metrics: Metrics collector shared by the sub-clients
            audit_sink: Receiver of personal-data access events
            clock: Monotonic time source
            sleep: Backoff sleep, injectable for tests
        """
        self.settings = settings or Settings()
        self._owns_http_client = http_client is None
        self.http_client = http_client or HttpClientFactory.create_client(self.settings)
        self.cache = cache or ResponseCache(
            max_entries=self.settings.max_cache_entries,
            ttl_ms=self.settings.cache_ttl_ms,
            clock=clock,
        )
        self.rate_limiter = rate_limiter or TokenBucketRateLimiter(
            RateLimitConfig(
                tokens_per_interval=self.settings.rate_limit_tokens,
                interval=self.settings.rate_limit_interval,
            ),
            clock=clock,
        )
        self.metrics = metrics or MetricsCollector(
            max_samples=self.settings.metrics_max_samples
        )
        self.audit_sink = audit_sink or LoggingAuditSink()

        self.pipeline = ResilientFetchPipeline.from_settings(
            self.settings,
            client=self.http_client,
            cache=self.cache,
            rate_limiter=self.rate_limiter,
            metrics=self.metrics,
            clock=clock,
            sleep=sleep,
        )
        self.health = HealthService(self.rate_limiter, self.metrics, clock=clock)

        shared = {"pipeline": self.pipeline, "audit_sink": self.audit_sink, "clock": clock}
        self.meps = MEPClient(**shared)
        self.plenary = PlenaryClient(**shared)
        self.committees = CommitteeClient(**shared)
        self.documents = DocumentClient(**shared)
        self.legislative = LegislativeClient(**shared)
        self.questions = QuestionClient(**shared)
        self.vocabularies = VocabularyClient(**shared)

    def clear_cache(self) -> None:
        self.cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        return self.cache.get_stats()

    def check_health(self) -> HealthStatus:
        return self.health.check_health()

    async def aclose(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_http_client:
            await HttpClientFactory.close_client(self.http_client)

    async def __aenter__(self) -> "EuropeanParliamentClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
