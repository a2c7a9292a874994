from typing import Any, Dict, List
from pydantic import BaseModel, Field

from ..enums import HealthStatusLevel


class PaginatedResponse(BaseModel):
    """One page of JSON-LD items returned by a list endpoint.

    Attributes:
        data (List[Dict[str, Any]]): Raw JSON-LD items of this page.
        total (int): Items seen so far, ``offset + len(data)`` before any
            client-side filtering.
        limit (int): Page size that was requested.
        offset (int): Offset of the first item.
        has_more (bool): Whether the API returned a full page.
    """

    data: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    limit: int
    offset: int = 0
    has_more: bool = False


class CacheHealthStatus(BaseModel):
    populated: bool
    description: str


class HealthStatus(BaseModel):
    """Snapshot of the client's ability to serve requests.

    Attributes:
        status (HealthStatusLevel): Overall verdict.
        ep_api_reachable (bool): False only when every network call so far failed.
        cache (CacheHealthStatus): Cache activity summary.
        rate_limiter (Dict[str, Any]): Token bucket status.
        timestamp (str): ISO 8601 time of the check.
        uptime_seconds (float): Seconds since the client was created.
    """

    status: HealthStatusLevel
    ep_api_reachable: bool
    cache: CacheHealthStatus
    rate_limiter: Dict[str, Any]
    timestamp: str
    uptime_seconds: float
