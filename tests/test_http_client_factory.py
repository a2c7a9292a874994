from unittest.mock import AsyncMock

import httpx
import pytest

from epclient.infrastructure.providers.http_client_factory import (
    ConnectionLimits,
    HttpClientFactory,
)


class TestHttpClientFactory:
    @pytest.mark.anyio
    async def test_client_configured_from_settings(self, settings):
        client = HttpClientFactory.create_client(settings)
        try:
            assert str(client.base_url) == settings.normalized_base_url
            assert client.headers["accept"] == "application/ld+json"
            assert client.headers["user-agent"] == settings.user_agent
            assert client.timeout.read == settings.request_timeout_ms / 1000.0
            assert client.timeout.connect == settings.http_connect_timeout
        finally:
            await HttpClientFactory.close_client(client)
        assert client.is_closed

    def test_connection_limits_from_settings(self, settings):
        limits = ConnectionLimits.from_settings(settings)
        assert limits.max_connections == settings.pool_max_connections
        assert limits.max_keepalive == settings.pool_max_keepalive_connections

    @pytest.mark.anyio
    async def test_close_tolerates_none(self):
        await HttpClientFactory.close_client(None)

    @pytest.mark.anyio
    async def test_close_logs_instead_of_raising(self):
        client = AsyncMock(spec=httpx.AsyncClient)
        client.aclose.side_effect = RuntimeError("loop closed")
        await HttpClientFactory.close_client(client)
        client.aclose.assert_awaited_once()
