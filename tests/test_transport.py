"""Tests for HttpxManager and ManagementApiClient over httpx.MockTransport."""

import httpx
import pytest

from conftest import API_BASE, MANAGEMENT_KEY, build_transport_stack
from session.utils import mask_secret, normalize_api_base
from utils.errors import ApiError


@pytest.mark.asyncio
class TestHttpxManager:

    async def test_non_2xx_is_returned_not_raised(self, logger_manager):
        def handler(request):
            return httpx.Response(404, json={"error": "missing"}, headers={"X-Server-Version": "1.0"})

        httpx_manager, _ = build_transport_stack(logger_manager, handler)
        response = await httpx_manager.http_get(f"{API_BASE}/anything")
        assert response.status_code == 404
        assert not response.ok
        assert response.body == {"error": "missing"}
        assert response.header("x-cpa-version", "X-Server-Version") == "1.0"

    async def test_text_body(self, logger_manager):
        httpx_manager, _ = build_transport_stack(logger_manager, lambda request: httpx.Response(200, text="pong"))
        response = await httpx_manager.http_get(f"{API_BASE}/ping")
        assert response.ok
        assert response.body == "pong"

    async def test_timeout_becomes_api_error(self, logger_manager):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        httpx_manager, _ = build_transport_stack(logger_manager, handler)
        with pytest.raises(ApiError) as exc_info:
            await httpx_manager.http_get(f"{API_BASE}/slow", timeout=10.0)
        assert exc_info.value.message == "timeout of 10000ms exceeded"
        assert exc_info.value.code == "ECONNABORTED"

    async def test_network_error_becomes_api_error(self, logger_manager):
        def handler(request):
            raise httpx.ConnectError("")

        httpx_manager, _ = build_transport_stack(logger_manager, handler)
        with pytest.raises(ApiError) as exc_info:
            await httpx_manager.http_get(f"{API_BASE}/down")
        assert exc_info.value.message == "Network Error"
        assert exc_info.value.code == "ERR_NETWORK"


@pytest.mark.asyncio
class TestManagementApiClient:

    async def test_requires_configuration(self, logger_manager):
        _, api_client = build_transport_stack(logger_manager, lambda request: httpx.Response(200, json={}))
        with pytest.raises(ApiError):
            await api_client.get_json("/config")

    async def test_get_json_with_bearer(self, logger_manager):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"api-keys": ["k1"]})

        _, api_client = build_transport_stack(logger_manager, handler)
        api_client.set_config(f"{API_BASE}/v0/management/", MANAGEMENT_KEY)

        assert await api_client.get_json("/api-keys") == {"api-keys": ["k1"]}
        assert str(seen[0].url) == f"{API_BASE}/v0/management/api-keys"
        assert seen[0].headers["authorization"] == f"Bearer {MANAGEMENT_KEY}"

    async def test_error_status_raises_with_message(self, logger_manager):
        _, api_client = build_transport_stack(
            logger_manager, lambda request: httpx.Response(500, json={"message": "database locked"}))
        api_client.set_config(API_BASE, MANAGEMENT_KEY)
        with pytest.raises(ApiError) as exc_info:
            await api_client.get_json("/usage")
        assert exc_info.value.message == "database locked"
        assert exc_info.value.status_code == 500

    async def test_unauthorized_listeners(self, logger_manager):
        _, api_client = build_transport_stack(logger_manager, lambda request: httpx.Response(401, json={}))
        api_client.set_config(API_BASE, MANAGEMENT_KEY)
        calls = []

        async def async_listener():
            calls.append("async")

        unsubscribe = api_client.on_unauthorized(async_listener)
        api_client.on_unauthorized(lambda: calls.append("sync"))

        with pytest.raises(ApiError):
            await api_client.get_json("/config")
        assert calls == ["async", "sync"]

        unsubscribe()
        with pytest.raises(ApiError):
            await api_client.get_json("/config")
        assert calls == ["async", "sync", "sync"]

    async def test_version_listener(self, logger_manager):
        _, api_client = build_transport_stack(
            logger_manager,
            lambda request: httpx.Response(200, json={}, headers={"X-CPA-Version": "6.3.0",
                                                                  "X-CPA-Build-Date": "2026-02-01"}))
        api_client.set_config(API_BASE, MANAGEMENT_KEY)
        seen = []
        api_client.on_server_version(lambda version, build_date: seen.append((version, build_date)))
        await api_client.get_json("/config")
        assert seen == [("6.3.0", "2026-02-01")]

    async def test_clear_config(self, logger_manager):
        _, api_client = build_transport_stack(logger_manager, lambda request: httpx.Response(200))
        api_client.set_config(API_BASE, MANAGEMENT_KEY)
        api_client.clear_config()
        assert not api_client.is_configured
        assert "Authorization" not in api_client.build_headers()


class TestSessionUtils:

    @pytest.mark.parametrize("value, expected", [
        (" example.com/v0/management/ ", "http://example.com"),
        ("https://cpa.example.com///", "https://cpa.example.com"),
        ("HTTP://Host:8317/V0/Management", "HTTP://Host:8317"),
        ("localhost:8317", "http://localhost:8317"),
        ("", ""),
        (None, ""),
    ])
    def test_normalize_api_base(self, value, expected):
        assert normalize_api_base(value) == expected

    def test_mask_secret(self):
        assert mask_secret(MANAGEMENT_KEY) == "mgmt...-123"
        assert mask_secret("short") == "*****"
        assert mask_secret("") == "<empty>"
