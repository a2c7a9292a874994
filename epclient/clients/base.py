"""Shared plumbing for the EP API sub-clients."""

import re
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, TypeVar

from ..application.audit import AuditEvent, AuditSink, LoggingAuditSink
from ..constants import DEFAULT_PAGE_LIMIT, JSON_LD_MEDIA_TYPE
from ..domain.exceptions import APIError
from ..domain.models import PaginatedResponse
from ..infrastructure.clock import Clock, DEFAULT_CLOCK
from ..infrastructure.providers.fetch_pipeline import ResilientFetchPipeline
from .jsonld import items_of

T = TypeVar("T")

_INVALID_PATH_SEGMENT = re.compile(r"[.\\?#/]")


class BaseEPClient:
    """
    Base class for the domain sub-clients.

    Every sub-client of one facade shares the same pipeline, so they all
    draw from one cache, one rate-limit bucket and one metrics collector.
    """

    def __init__(
        self,
        pipeline: ResilientFetchPipeline,
        audit_sink: Optional[AuditSink] = None,
        clock: Clock = DEFAULT_CLOCK,
    ):
        self._pipeline = pipeline
        self._audit_sink: AuditSink = audit_sink or LoggingAuditSink()
        self._clock = clock

    async def _get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self._pipeline.fetch(endpoint, params)

    async def _get_page(
        self,
        endpoint: str,
        limit: int = DEFAULT_PAGE_LIMIT,
        offset: int = 0,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> PaginatedResponse:
        """GET a JSON-LD list endpoint with explicit paging."""
        params: Dict[str, Any] = {
            "format": JSON_LD_MEDIA_TYPE,
            "offset": offset,
            "limit": limit,
        }
        if extra:
            params.update(extra)
        items = items_of(await self._get(endpoint, params))
        return self._page(items, limit, offset)

    @staticmethod
    def _page(
        items: List[dict],
        limit: int,
        offset: int,
        total: Optional[int] = None,
        has_more: Optional[bool] = None,
    ) -> PaginatedResponse:
        return PaginatedResponse(
            data=items,
            total=offset + len(items) if total is None else total,
            limit=limit,
            offset=offset,
            has_more=len(items) >= limit if has_more is None else has_more,
        )

    @staticmethod
    def _require_id(value: Optional[str], label: str) -> str:
        """Reject an empty identifier with a 400 before any request is made."""
        if value is None or value.strip() == "":
            raise APIError(f"{label} is required", 400)
        return value.strip()

    @staticmethod
    def _require_path_segment(value: Optional[str], label: str) -> str:
        value = BaseEPClient._require_id(value, label)
        if _INVALID_PATH_SEGMENT.search(value):
            raise APIError(f"{label} contains invalid characters", 400)
        return value

    async def _audited(
        self,
        action: str,
        params: Dict[str, Any],
        operation: Callable[[], Awaitable[T]],
        count: Callable[[T], int],
    ) -> T:
        """Run ``operation`` and record a personal-data access audit event."""
        started = self._clock.monotonic_ms()
        audit_params = {k: v for k, v in params.items() if v is not None}
        try:
            result = await operation()
        except Exception as e:
            self._audit_sink.record(
                AuditEvent.failure(
                    action,
                    audit_params,
                    str(e) or type(e).__name__,
                    duration_ms=self._clock.monotonic_ms() - started,
                )
            )
            raise
        self._audit_sink.record(
            AuditEvent.data_access(
                action,
                audit_params,
                count(result),
                duration_ms=self._clock.monotonic_ms() - started,
            )
        )
        return result
