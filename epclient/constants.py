"""Constants module for epclient configuration.

Contains the default values used throughout the data-access layer: EP API
endpoint defaults, cache and rate limit sizing, retry/timeout tuning, response
size limits and metric names.
"""

from typing import Final

# ============================================================================
# European Parliament API
# ============================================================================

APP_NAME: Final[str] = "epclient"
APP_VERSION: Final[str] = "1.0.0"

# Open Data Portal API v2
DEFAULT_EP_API_BASE_URL: Final[str] = "https://data.europarl.europa.eu/api/v2/"
DEFAULT_ALLOWED_BASE_URL_HOSTS: Final[tuple[str, ...]] = ("data.europarl.europa.eu",)

USER_AGENT: Final[str] = f"{APP_NAME}/{APP_VERSION}"
JSON_LD_MEDIA_TYPE: Final[str] = "application/ld+json"

# Default page size used by every paginated sub-client call
DEFAULT_PAGE_LIMIT: Final[int] = 50

# ============================================================================
# Cache Configuration Constants
# ============================================================================

DEFAULT_CACHE_TTL_MS: Final[int] = 900_000  # 15 minutes
DEFAULT_MAX_CACHE_ENTRIES: Final[int] = 500

# ============================================================================
# Rate Limit Configuration Constants
# ============================================================================

DEFAULT_RATE_LIMIT_TOKENS: Final[int] = 100  # EP fair-use: 100 requests/minute
DEFAULT_RATE_LIMIT_INTERVAL: Final[str] = "minute"

# Health check reports "degraded" below this share of available tokens
RATE_LIMIT_DEGRADED_RATIO: Final[float] = 0.1

# ============================================================================
# Timeout / Retry Configuration Constants
# ============================================================================

DEFAULT_REQUEST_TIMEOUT_MS: Final[int] = 10_000
DEFAULT_RETRY_ENABLED: Final[bool] = True
DEFAULT_MAX_RETRIES: Final[int] = 2
DEFAULT_RETRY_DELAY_MS: Final[int] = 1_000

# ============================================================================
# HTTP/Network Configuration Constants
# ============================================================================

DEFAULT_MAX_RESPONSE_BYTES: Final[int] = 10 * 1024 * 1024  # 10 MiB

DEFAULT_POOL_MAX_KEEPALIVE_CONNECTIONS: Final[int] = 20
DEFAULT_POOL_MAX_CONNECTIONS: Final[int] = 50
DEFAULT_POOL_KEEPALIVE_EXPIRY_SECONDS: Final[float] = 30.0
DEFAULT_CONNECT_TIMEOUT_SECONDS: Final[float] = 5.0
DEFAULT_WRITE_TIMEOUT_SECONDS: Final[float] = 10.0
DEFAULT_POOL_TIMEOUT_SECONDS: Final[float] = 5.0

# ============================================================================
# Logging and Monitoring Constants
# ============================================================================

DEFAULT_HISTOGRAM_MAX_SAMPLES: Final[int] = 1000
DEFAULT_AUDIT_BUFFER_SIZE: Final[int] = 1000
LOG_TRUNCATE_LENGTH: Final[int] = 5000

# Metric names emitted by the fetch pipeline and orchestrator
METRIC_REQUEST_DURATION: Final[str] = "ep_api_request_duration_ms"
METRIC_REQUESTS_TOTAL: Final[str] = "ep_api_requests_total"
METRIC_CACHE_HITS: Final[str] = "ep_cache_hits_total"
METRIC_CACHE_MISSES: Final[str] = "ep_cache_misses_total"
METRIC_CACHE_SIZE: Final[str] = "ep_cache_entries"
METRIC_RATE_LIMIT_DENIED: Final[str] = "ep_rate_limit_denied_total"
METRIC_RATE_LIMIT_AVAILABLE: Final[str] = "ep_rate_limit_available_tokens"
METRIC_ATTEMPTS_TOTAL: Final[str] = "ep_api_attempts_total"
METRIC_RETRIES_TOTAL: Final[str] = "ep_api_retries_total"
METRIC_TIMEOUTS_TOTAL: Final[str] = "ep_api_timeouts_total"
METRIC_RESPONSE_BYTES: Final[str] = "ep_api_response_bytes"
