"""Tests for the HTTP API."""

import dataclasses

from aiohttp.test_utils import TestClient, TestServer
import pytest
from yarl import URL

from conftest import OAUTH_CODE, PASSWORD, RAW_DEVICES, USERNAME
from haunted_lights.client import TuyaClient
from haunted_lights.models import Credentials
from haunted_lights.server import STORE_KEY, create_app


async def login(api):
    resp = await api.post("/api/login", json={"username": USERNAME, "password": PASSWORD})
    assert resp.status == 200
    return await resp.json()


def only_session(api):
    sessions = list(api.app[STORE_KEY]._sessions.values())
    assert len(sessions) == 1
    return sessions[0]


@pytest.mark.asyncio
async def test_health(api):
    resp = await api.get("/api/health")
    assert resp.status == 200
    assert await resp.json() == {"status": "ok", "sessions": 0, "environment": "test"}


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [{}, {"username": USERNAME}, {"password": PASSWORD}])
async def test_login_requires_both_fields(api, cloud, body):
    resp = await api.post("/api/login", json=body)

    assert resp.status == 400
    assert await resp.json() == {"success": False, "error": "username and password required"}
    assert cloud.requests == []


@pytest.mark.asyncio
async def test_login_wrong_password(api):
    resp = await api.post("/api/login", json={"username": USERNAME, "password": "nope"})

    assert resp.status == 400
    data = await resp.json()
    assert data["success"] is False
    assert "password or username is wrong" in data["error"]
    assert len(api.app[STORE_KEY]) == 0


@pytest.mark.asyncio
async def test_login_creates_session(api):
    data = await login(api)

    assert data == {"success": True, "uid": "uid-1", "message": "Login successful"}
    session = only_session(api)
    assert session.tokens.access_token == "access-1"
    assert session.username == USERNAME


@pytest.mark.asyncio
async def test_second_login_replaces_session(api):
    await login(api)
    first = only_session(api).session_id
    await login(api)

    assert only_session(api).session_id != first


@pytest.mark.asyncio
async def test_discover_requires_login(api, cloud):
    resp = await api.post("/api/discover")

    assert resp.status == 401
    assert (await resp.json())["error"] == "Not authenticated. Please login first."
    assert cloud.requests == []


@pytest.mark.asyncio
async def test_discover_returns_lighting_devices(api):
    await login(api)
    resp = await api.post("/api/discover")

    assert resp.status == 200
    data = await resp.json()
    assert data["success"] is True
    assert data["total"] == 3
    assert [d["id"] for d in data["devices"]] == ["bulb-1", "plug-1", "odd-1"]
    assert data["devices"][1] == {
        "id": "plug-1",
        "name": "Wifi Plug",
        "type": "cz",
        "online": False,
    }
    assert [d.id for d in only_session(api).devices] == ["bulb-1", "plug-1", "odd-1"]


@pytest.mark.asyncio
async def test_discover_vendor_failure(api, cloud):
    await login(api)
    cloud.discovery_fails = True
    resp = await api.post("/api/discover")

    assert resp.status == 500
    assert "permission deny" in (await resp.json())["error"]


@pytest.mark.asyncio
async def test_discover_malformed_listing_is_json_error(api, cloud):
    await login(api)
    cloud.devices = [None]
    resp = await api.post("/api/discover")

    assert resp.status == 500
    data = await resp.json()
    assert data["success"] is False
    assert "Unexpected device list" in data["error"]


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_before_discovery(api, cloud):
    await login(api)
    session = only_session(api)
    session.tokens = dataclasses.replace(session.tokens, expires_at=0)

    resp = await api.post("/api/discover")

    assert resp.status == 200
    assert cloud.requests_to("/v1.0/token/refresh-1")
    assert only_session(api).tokens.access_token == "access-2"
    assert cloud.requests_to("/v1.0/users/")[-1].headers["access_token"] == "access-2"


@pytest.mark.asyncio
async def test_trigger_requires_login(api, cloud):
    resp = await api.post("/api/trigger", json={"effect": "blackout"})

    assert resp.status == 401
    assert (await resp.json())["error"] == "Not authenticated"
    assert cloud.command_requests() == []


@pytest.mark.asyncio
async def test_trigger_unknown_effect(api, cloud):
    await login(api)
    await api.post("/api/discover")
    session = only_session(api)
    session.tokens = dataclasses.replace(session.tokens, expires_at=0)
    cloud.requests.clear()

    resp = await api.post("/api/trigger", json={"effect": "strobe"})

    assert resp.status == 400
    assert await resp.json() == {"success": False, "error": "Unknown effect: strobe"}
    assert cloud.requests == []
    assert only_session(api).tokens.expires_at == 0


@pytest.mark.asyncio
async def test_trigger_blackout_skips_offline(api, cloud):
    cloud.devices = [RAW_DEVICES[0], RAW_DEVICES[2]]
    await login(api)
    await api.post("/api/discover")

    resp = await api.post("/api/trigger", json={"effect": "blackout"})

    assert resp.status == 200
    assert await resp.json() == {
        "success": True,
        "effect": "blackout",
        "devicesTriggered": 1,
        "totalDevices": 2,
    }
    assert len(cloud.command_requests("bulb-1")) == 1
    assert cloud.command_requests("plug-1") == []
    assert cloud.command_requests("bulb-1")[0].json() == {
        "commands": [
            {"code": "switch_led", "value": False},
            {"code": "switch", "value": False},
        ]
    }


@pytest.mark.asyncio
async def test_trigger_partial_failure(api, cloud):
    await login(api)
    await api.post("/api/discover")
    cloud.failing_devices.add("odd-1")

    data = await (await api.post("/api/trigger", json={"effect": "dim"})).json()

    assert data["success"] is True
    assert data["devicesTriggered"] == 1
    assert data["totalDevices"] == 3


@pytest.mark.asyncio
async def test_trigger_flicker(api, cloud):
    await login(api)
    await api.post("/api/discover")

    data = await (await api.post("/api/trigger", json={"effect": "flicker"})).json()

    assert data == {
        "success": True,
        "effect": "flicker",
        "devicesTriggered": 2,
        "totalDevices": 3,
    }
    values = [r.json()["commands"][0]["value"] for r in cloud.command_requests("bulb-1")]
    assert values == [False, True] * 5


@pytest.mark.asyncio
async def test_trigger_before_discovery_fails(api, cloud):
    await login(api)

    data = await (await api.post("/api/trigger", json={"effect": "reset"})).json()

    assert data["success"] is False
    assert data["totalDevices"] == 0
    assert cloud.command_requests() == []


@pytest.mark.asyncio
async def test_logout(api):
    await login(api)
    resp = await api.post("/api/logout")

    assert await resp.json() == {"success": True}
    assert len(api.app[STORE_KEY]) == 0
    assert (await api.post("/api/discover")).status == 401


@pytest.mark.asyncio
async def test_oauth_flow(api, cloud, settings):
    resp = await api.get("/api/smart-life-auth", allow_redirects=False)

    assert resp.status == 302
    location = URL(resp.headers["Location"])
    assert str(location.with_query(None)) == settings.authorize_url
    assert location.query["client_id"] == "app-id"
    assert location.query["redirect_uri"] == settings.redirect_uri
    assert location.query["response_type"] == "code"
    state = location.query["state"]

    resp = await api.get(
        "/api/auth-callback",
        params={"code": OAUTH_CODE, "state": state},
        allow_redirects=False,
    )

    assert resp.status == 302
    assert resp.headers["Location"] == "/?auth=success"
    assert only_session(api).tokens.access_token == "access-oauth"
    discovered = await (await api.post("/api/discover")).json()
    assert discovered["total"] == 3


@pytest.mark.asyncio
async def test_oauth_state_mismatch(api, cloud):
    await api.get("/api/smart-life-auth", allow_redirects=False)
    resp = await api.get(
        "/api/auth-callback",
        params={"code": OAUTH_CODE, "state": "forged"},
        allow_redirects=False,
    )

    assert resp.headers["Location"] == "/?auth=failed"
    assert cloud.requests_to("/v1.0/token") == []
    assert len(api.app[STORE_KEY]) == 0


@pytest.mark.asyncio
async def test_oauth_state_is_single_use(api, cloud):
    resp = await api.get("/api/smart-life-auth", allow_redirects=False)
    state = URL(resp.headers["Location"]).query["state"]
    params = {"code": "stale", "state": state}

    first = await api.get("/api/auth-callback", params=params, allow_redirects=False)
    second = await api.get("/api/auth-callback", params=params, allow_redirects=False)

    assert first.headers["Location"] == "/?auth=failed"
    assert second.headers["Location"] == "/?auth=failed"
    assert len(cloud.requests_to("/v1.0/token")) == 1


@pytest.mark.asyncio
async def test_token_test(api):
    data = await (await api.get("/api/token-test")).json()

    assert data["success"] is True
    assert data["result"]["access_token"] == "project"


@pytest.mark.asyncio
async def test_token_test_bad_credentials(settings, cloud):
    client = TuyaClient(Credentials("nobody", "nothing"), base_url=cloud.url)
    app = create_app(settings, client=client)

    async with TestClient(TestServer(app)) as api:
        resp = await api.get("/api/token-test")

        assert resp.status == 500
        assert await resp.json() == {"ok": False, "err": "sign invalid"}


@pytest.mark.asyncio
async def test_production_serves_static_index(settings, tuya_client, tmp_path):
    (tmp_path / "index.html").write_text("<h1>boo</h1>")
    settings = dataclasses.replace(
        settings, environment="production", static_dir=str(tmp_path)
    )

    async with TestClient(TestServer(create_app(settings, client=tuya_client))) as api:
        resp = await api.get("/")

        assert resp.status == 200
        assert await resp.text() == "<h1>boo</h1>"
