from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices, field_validator
from typing import Optional, List, Union, Any

from urllib.parse import urlparse

from epclient import constants
from epclient.domain.exceptions import ConfigurationError
from epclient.enums import RateLimitInterval


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", extra="ignore", env_prefix="", case_sensitive=False
    )

    base_url: str = Field(
        default=constants.DEFAULT_EP_API_BASE_URL,
        validation_alias=AliasChoices("EP_API_BASE_URL", "base_url"),
    )
    app_name: str = constants.APP_NAME
    app_version: str = constants.APP_VERSION
    user_agent: str = Field(
        default=constants.USER_AGENT,
        validation_alias=AliasChoices("EP_USER_AGENT", "user_agent"),
    )

    log_level: str = Field(
        default="INFO", validation_alias=AliasChoices("LOG_LEVEL", "log_level")
    )
    log_file_path: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("LOG_FILE_PATH", "log_file_path")
    )
    log_pretty_console: bool = Field(
        default=False,
        validation_alias=AliasChoices("LOG_PRETTY_CONSOLE", "log_pretty_console"),
    )
    redact_log_fields: Union[List[str], str] = Field(
        default_factory=lambda: ["authorization", "cookie"],
        validation_alias=AliasChoices("REDACT_LOG_FIELDS", "redact_log_fields"),
    )

    # Timeout / retry
    request_timeout_ms: int = Field(
        default=constants.DEFAULT_REQUEST_TIMEOUT_MS,
        validation_alias=AliasChoices("EP_REQUEST_TIMEOUT_MS", "request_timeout_ms"),
    )
    retry_enabled: bool = Field(
        default=constants.DEFAULT_RETRY_ENABLED,
        validation_alias=AliasChoices("EP_RETRY_ENABLED", "retry_enabled"),
    )
    max_retries: int = Field(
        default=constants.DEFAULT_MAX_RETRIES,
        validation_alias=AliasChoices("EP_MAX_RETRIES", "max_retries"),
    )
    retry_delay_ms: int = Field(
        default=constants.DEFAULT_RETRY_DELAY_MS,
        validation_alias=AliasChoices("EP_RETRY_DELAY_MS", "retry_delay_ms"),
    )

    # Cache
    cache_ttl_ms: int = Field(
        default=constants.DEFAULT_CACHE_TTL_MS,
        validation_alias=AliasChoices("EP_CACHE_TTL_MS", "cache_ttl_ms"),
    )
    max_cache_entries: int = Field(
        default=constants.DEFAULT_MAX_CACHE_ENTRIES,
        validation_alias=AliasChoices("EP_MAX_CACHE_ENTRIES", "max_cache_entries"),
    )

    # Client-side rate limiting
    rate_limit_tokens: int = Field(
        default=constants.DEFAULT_RATE_LIMIT_TOKENS,
        validation_alias=AliasChoices("EP_RATE_LIMIT_TOKENS", "rate_limit_tokens"),
    )
    rate_limit_interval: RateLimitInterval = Field(
        default=RateLimitInterval(constants.DEFAULT_RATE_LIMIT_INTERVAL),
        validation_alias=AliasChoices("EP_RATE_LIMIT_INTERVAL", "rate_limit_interval"),
    )

    # Response size guard
    max_response_bytes: int = Field(
        default=constants.DEFAULT_MAX_RESPONSE_BYTES,
        validation_alias=AliasChoices("EP_MAX_RESPONSE_BYTES", "max_response_bytes"),
    )

    metrics_max_samples: int = Field(
        default=constants.DEFAULT_HISTOGRAM_MAX_SAMPLES,
        validation_alias=AliasChoices("EP_METRICS_MAX_SAMPLES", "metrics_max_samples"),
    )

    # Connection pool configuration
    pool_max_keepalive_connections: int = Field(
        default=constants.DEFAULT_POOL_MAX_KEEPALIVE_CONNECTIONS,
        validation_alias=AliasChoices(
            "POOL_MAX_KEEPALIVE_CONNECTIONS", "pool_max_keepalive_connections"
        ),
    )
    pool_max_connections: int = Field(
        default=constants.DEFAULT_POOL_MAX_CONNECTIONS,
        validation_alias=AliasChoices("POOL_MAX_CONNECTIONS", "pool_max_connections"),
    )
    pool_keepalive_expiry: float = Field(
        default=constants.DEFAULT_POOL_KEEPALIVE_EXPIRY_SECONDS,
        validation_alias=AliasChoices("POOL_KEEPALIVE_EXPIRY", "pool_keepalive_expiry"),
    )

    # HTTP timeout configuration
    http_connect_timeout: float = Field(
        default=constants.DEFAULT_CONNECT_TIMEOUT_SECONDS,
        validation_alias=AliasChoices("HTTP_CONNECT_TIMEOUT", "http_connect_timeout"),
    )
    http_write_timeout: float = Field(
        default=constants.DEFAULT_WRITE_TIMEOUT_SECONDS,
        validation_alias=AliasChoices("HTTP_WRITE_TIMEOUT", "http_write_timeout"),
    )
    http_pool_timeout: float = Field(
        default=constants.DEFAULT_POOL_TIMEOUT_SECONDS,
        validation_alias=AliasChoices("HTTP_POOL_TIMEOUT", "http_pool_timeout"),
    )

    restrict_base_url: bool = Field(
        default=True,
        validation_alias=AliasChoices("RESTRICT_BASE_URL", "restrict_base_url"),
    )
    allowed_base_url_hosts: Union[List[str], str] = Field(
        default_factory=lambda: list(constants.DEFAULT_ALLOWED_BASE_URL_HOSTS),
        validation_alias=AliasChoices(
            "ALLOWED_BASE_URL_HOSTS", "allowed_base_url_hosts"
        ),
    )

    @field_validator("allowed_base_url_hosts", "redact_log_fields")
    @classmethod
    def parse_comma_separated(cls, v: Union[List[str], str]) -> List[str]:
        """Parse comma-separated string values into lists.

        Empty strings are converted to empty lists.
        """
        if isinstance(v, str):
            if v.strip() == "":
                return []
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator(
        "request_timeout_ms",
        "retry_delay_ms",
        "cache_ttl_ms",
        "max_cache_entries",
        "rate_limit_tokens",
        "max_response_bytes",
        "metrics_max_samples",
    )
    @classmethod
    def require_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError(f"must be a positive integer, got {v}")
        return v

    @field_validator("max_retries")
    @classmethod
    def require_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError(f"must be non-negative, got {v}")
        return v

    def __init__(self, **kwargs: Any) -> None:
        """Initialize settings and validate the base URL.

        Raises:
            ConfigurationError: If the base URL fails the security checks
        """
        super().__init__(**kwargs)
        self._validate_security()

    def _validate_security(self) -> None:
        """Validates EP_API_BASE_URL when RESTRICT_BASE_URL is enabled.

        The URL must use https and its host must be in ALLOWED_BASE_URL_HOSTS.
        """
        errors = []
        parsed = urlparse(self.base_url)
        if not parsed.scheme or not parsed.hostname:
            errors.append("EP_API_BASE_URL is invalid.")
        elif self.restrict_base_url:
            if parsed.scheme.lower() != "https":
                errors.append(
                    "EP_API_BASE_URL must use https when RESTRICT_BASE_URL is enabled."
                )
            if parsed.hostname not in set(self.allowed_base_url_hosts or []):
                errors.append("EP_API_BASE_URL host is not in ALLOWED_BASE_URL_HOSTS.")
        if errors:
            raise ConfigurationError(
                "\n".join(errors),
                config_key="base_url",
                details={"base_url": self.base_url},
            )

    @property
    def normalized_base_url(self) -> str:
        """Base URL with exactly one trailing slash, for relative joins."""
        return self.base_url.rstrip("/") + "/"
