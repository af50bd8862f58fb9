"""End-to-end tests of the FastAPI surface: guard, error mapping and every router.

The app is driven through httpx.ASGITransport; the management API behind it is an
httpx.MockTransport.
"""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app import create_app
from conftest import API_BASE, MANAGEMENT_KEY
from utils.logger import Logger

RECENT = (datetime.now(timezone.utc) - timedelta(minutes=1)).isoformat()

USAGE = {
    "usage": {
        "apis": {
            "sk-1": {
                "models": {
                    "gemini-2.5-pro": {
                        "details": [
                            {"timestamp": RECENT, "source": "acct-a", "auth_index": 1, "failed": False,
                             "tokens": {"total_tokens": 300}},
                            {"timestamp": RECENT, "source": "acct-a", "auth_index": 1, "failed": True,
                             "tokens": {"total_tokens": 100}},
                            {"timestamp": RECENT, "source": "acct-b", "failed": False,
                             "tokens": {"total_tokens": 200}},
                        ]
                    }
                }
            }
        }
    }
}


class FakeManagementApi:
    """Answers the management endpoints the console reads; counts requests per path."""

    def __init__(self):
        self.config = {"debug": False, "api-keys": ["k1"]}
        self.config_status = 200
        self.hits = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v0/management")
        self.hits[path] = self.hits.get(path, 0) + 1
        headers = {"X-CPA-Version": "6.1.2"}
        if request.headers.get("authorization") != f"Bearer {MANAGEMENT_KEY}":
            return httpx.Response(401, json={"error": "invalid management key"}, headers=headers)
        if path == "/config":
            if self.config_status != 200:
                return httpx.Response(self.config_status, json={"error": "config unavailable"}, headers=headers)
            return httpx.Response(200, json=self.config, headers=headers)
        if path == "/usage":
            return httpx.Response(200, json=USAGE, headers=headers)
        if path == "/auth-files":
            return httpx.Response(200, json={"files": [{"name": "codex.json"}]}, headers=headers)
        if path == "/api-keys":
            return httpx.Response(200, json={"api-keys": ["k1"]}, headers=headers)
        return httpx.Response(404, json={"error": "not found"}, headers=headers)


@pytest.fixture
def management_api():
    return FakeManagementApi()


@pytest_asyncio.fixture
async def client(management_api, storage):
    logger_manager = Logger()
    app = create_app(storage=storage, transport=httpx.MockTransport(management_api),
                     logger_manager=logger_manager)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://console") as ac:
        ac.app = app
        yield ac
    logger_manager.close_all_loggers()


async def _login(client, key=MANAGEMENT_KEY):
    return await client.post("/session/login", json={"api_base": "cpa.local:8317", "management_key": key})


@pytest.mark.asyncio
class TestHealthAndErrors:

    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["connection_status"] == "disconnected"
        assert data["preload_state"] == "idle"

    async def test_unknown_route(self, client):
        resp = await client.get("/nope")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Not Found"

    async def test_method_not_allowed(self, client):
        resp = await client.delete("/health")
        assert resp.status_code == 405

    async def test_login_validation_error(self, client):
        resp = await client.post("/session/login", json={"api_base": API_BASE})
        assert resp.status_code == 422
        assert resp.json()["errors"]


@pytest.mark.asyncio
class TestSessionRoutes:

    async def test_login_and_session(self, client, storage):
        resp = await _login(client)
        assert resp.status_code == 200
        data = resp.json()
        assert data["is_authenticated"] is True
        assert data["api_base"] == API_BASE
        assert data["has_management_key"] is True
        assert data["server_version"] == "6.1.2"
        assert "management_key" not in data
        assert await storage.get("cli-proxy-logged-in") == "true"

        resp = await client.get("/session")
        assert resp.json()["connection_status"] == "connected"

    async def test_login_rejected(self, client):
        resp = await _login(client, key="wrong")
        assert resp.status_code == 401
        data = resp.json()
        assert data["error"] == "Authentication Failed"
        assert data["detail"] == "invalid management key"

    async def test_logout(self, client, storage):
        await _login(client)
        resp = await client.post("/session/logout")
        assert resp.status_code == 200
        assert await storage.get("cli-proxy-logged-in") is None
        session = (await client.get("/session")).json()
        assert session["is_authenticated"] is False
        assert session["api_base"] == API_BASE

    async def test_restore_without_prior_session(self, client):
        resp = await client.post("/session/restore")
        assert resp.status_code == 200
        assert resp.json()["restored"] is False

    async def test_preferences(self, client):
        resp = await client.put("/session/preferences", json={"use_custom_base": True})
        assert resp.status_code == 200
        assert resp.json()["use_custom_base"] is True


@pytest.mark.asyncio
class TestGuardedRoutes:

    async def test_guard_rejects_when_never_logged_in(self, client):
        resp = await client.get("/config")
        assert resp.status_code == 401
        assert resp.json()["error"] == "Unauthorized"

    async def test_guard_preloads_features(self, client, management_api):
        await _login(client)
        resp = await client.get("/config")
        assert resp.status_code == 200
        assert resp.json()["config"] == {"debug": False, "api-keys": ["k1"]}
        # login probe, then one fetch shared by the config and providers preloads and the route
        assert management_api.hits["/config"] == 2

        state = (await client.get("/preload/state")).json()
        assert state["state"] == "ready"
        assert state["features"]["api_keys"]["initialized"] is True
        assert state["features"]["pool"]["initialized"] is True
        assert state["features"]["pool"]["error"] is None

    async def test_guard_restores_persisted_session(self, client, storage, management_api):
        await _login(client)
        store = client.app.state.session_store
        store.update_connection_status("disconnected")

        resp = await client.get("/stats/load-rates")
        assert resp.status_code == 200
        assert store.connection_status.value == "connected"

    async def test_patch_and_clear_config(self, client):
        await _login(client)
        resp = await client.patch("/config/debug", json={"value": True})
        assert resp.status_code == 200
        assert resp.json()["config"]["debug"] is True

        resp = await client.delete("/config/cache")
        assert resp.status_code == 200
        assert resp.json()["cached"] is False

    async def test_upstream_failure_maps_to_502(self, client, management_api):
        await _login(client)
        management_api.config_status = 500
        resp = await client.get("/config", params={"force_refresh": True})
        assert resp.status_code == 502
        assert resp.json()["detail"] == "config unavailable"

    async def test_logout_closes_guard(self, client):
        await _login(client)
        assert (await client.get("/config")).status_code == 200
        await client.post("/session/logout")
        assert (await client.get("/config")).status_code == 401
        assert client.app.state.config_cache.config_value is None


@pytest.mark.asyncio
class TestStatsRoutes:

    async def test_load_rates(self, client):
        await _login(client)
        data = (await client.get("/stats/load-rates")).json()
        assert data["total_requests"] == 3
        assert data["by_source"]["acct-a"]["success_rate"] == 50
        assert data["by_auth_index"]["1"]["total_requests"] == 2

    async def test_rates(self, client):
        await _login(client)
        data = (await client.get("/stats/rates", params={"window_minutes": 10})).json()
        assert data["request_count"] == 3
        assert data["token_count"] == 600
        assert data["rpm"] == pytest.approx(0.3)
        assert data["tpm"] == pytest.approx(60)

    async def test_stats_by_source_and_auth_index(self, client):
        await _login(client)
        resp = await client.get("/stats/sources/acct-b")
        assert resp.status_code == 200
        assert resp.json()["load_rate"] == pytest.approx(100 / 3)

        resp = await client.get("/stats/auth-indexes/1")
        assert resp.json()["failure_count"] == 1

        resp = await client.get("/stats/sources/ghost")
        assert resp.status_code == 404
        assert "ghost" in resp.json()["detail"]
