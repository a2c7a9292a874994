"""
HTTP client factory for the EP Open Data API.
Handles configuration and initialization of the pooled httpx client.
"""

import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ...config import Settings
from ...constants import JSON_LD_MEDIA_TYPE
from ...logging import info, warning, LogRecord, LogEvent


@dataclass
class ConnectionLimits:
    """Connection pool configuration."""

    max_keepalive: int
    max_connections: int
    keepalive_expiry: float

    @classmethod
    def from_settings(cls, settings: Settings) -> "ConnectionLimits":
        return cls(
            max_keepalive=settings.pool_max_keepalive_connections,
            max_connections=settings.pool_max_connections,
            keepalive_expiry=settings.pool_keepalive_expiry,
        )


class HttpClientFactory:
    """Factory for creating configured httpx clients."""

    @staticmethod
    def create_client(settings: Settings) -> httpx.AsyncClient:
        """
        Create a pooled async client pointed at the EP API base URL.

        Args:
            settings: Client settings

        Returns:
            Configured httpx client
        """
        limits = ConnectionLimits.from_settings(settings)
        http_client_kwargs = HttpClientFactory._build_httpx_config(settings, limits)
        return HttpClientFactory._create_with_http2_fallback(http_client_kwargs)

    @staticmethod
    def _build_httpx_config(
        settings: Settings, limits: ConnectionLimits
    ) -> Dict[str, Any]:
        """Build httpx client configuration."""
        read_timeout = settings.request_timeout_ms / 1000.0

        return {
            "base_url": settings.normalized_base_url,
            "headers": HttpClientFactory.get_default_headers(settings),
            "limits": httpx.Limits(
                max_keepalive_connections=limits.max_keepalive,
                max_connections=limits.max_connections,
                keepalive_expiry=limits.keepalive_expiry,
            ),
            "timeout": httpx.Timeout(
                connect=settings.http_connect_timeout,
                read=read_timeout,
                write=settings.http_write_timeout,
                pool=settings.http_pool_timeout,
            ),
            "verify": os.getenv("SSL_CERT_FILE", True),
            "follow_redirects": True,
        }

    @staticmethod
    def _create_with_http2_fallback(
        http_client_kwargs: Dict[str, Any],
    ) -> httpx.AsyncClient:
        """
        Create httpx client with HTTP/2 support, falling back to HTTP/1.1.

        Args:
            http_client_kwargs: Base client configuration

        Returns:
            Configured httpx client
        """
        try:
            client = httpx.AsyncClient(**http_client_kwargs, http2=True)
            info(
                LogRecord(
                    event=LogEvent.HTTP_CLIENT_EVENT.value,
                    message="Using httpx AsyncClient with HTTP/2",
                )
            )
            return client
        except ImportError:
            info(
                LogRecord(
                    event=LogEvent.HTTP_CLIENT_EVENT.value,
                    message="Using httpx AsyncClient (HTTP/1.1). "
                    "Install h2 for HTTP/2: pip install 'httpx[http2]'",
                )
            )
            return httpx.AsyncClient(**http_client_kwargs)

    @staticmethod
    async def close_client(client: Optional[httpx.AsyncClient]) -> None:
        """
        Properly close an HTTP client to avoid resource leaks.

        Args:
            client: HTTP client to close
        """
        if not client:
            return

        try:
            await client.aclose()
        except (httpx.HTTPError, RuntimeError) as e:
            warning(
                LogRecord(
                    event=LogEvent.HTTP_CLIENT_EVENT.value,
                    message=f"Error closing HTTP client: {e}",
                ),
                exc=e,
            )

    @staticmethod
    def get_default_headers(settings: Settings) -> Dict[str, str]:
        """
        Get default headers for EP API requests.

        Args:
            settings: Client settings

        Returns:
            Dictionary of default headers
        """
        return {
            "Accept": JSON_LD_MEDIA_TYPE,
            "User-Agent": settings.user_agent,
            "Accept-Charset": "utf-8",
        }
