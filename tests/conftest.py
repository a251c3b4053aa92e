"""Shared fixtures: a fake Tuya cloud served by aiohttp's test server."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
from typing import Any

from aiohttp import web
from aiohttp.test_utils import TestClient, TestServer
import pytest
import pytest_asyncio

from haunted_lights.client import TuyaClient
from haunted_lights.config import Settings
from haunted_lights.dispatcher import EffectDispatcher
from haunted_lights.models import Credentials
from haunted_lights.server import create_app
from haunted_lights.signing import hash_password, sign_request

CLOUD = Credentials("cloud-id", "cloud-secret")
APP = Credentials("app-id", "app-secret")

USERNAME = "ghost@example.com"
PASSWORD = "boo"
OAUTH_CODE = "good-code"

RAW_DEVICES = [
    {"id": "bulb-1", "name": "Porch", "category": "dj", "online": True, "product_name": "Smart Bulb"},
    {"id": "cam-1", "name": "Door Cam", "category": "sp", "online": True, "product_name": "Camera"},
    {"id": "plug-1", "name": "", "category": "cz", "online": False, "product_name": "Wifi Plug"},
    {"id": "odd-1", "name": "Fog", "category": "qt", "online": True, "product_name": "Desk LAMP"},
]


@dataclass
class RecordedRequest:
    method: str
    path: str
    headers: dict[str, str]
    body: str

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


class FakeTuyaCloud:
    """Minimal stand-in for the Tuya OpenAPI.

    Rejects requests whose signature does not match one of the known
    credential pairs, the way the real service does.
    """

    def __init__(self) -> None:
        self.requests: list[RecordedRequest] = []
        self.devices: list[dict[str, Any]] = list(RAW_DEVICES)
        self.failing_devices: set[str] = set()
        self.hanging_devices: set[str] = set()
        self.discovery_fails = False
        self.access_token = "access-1"
        self.server: TestServer | None = None

    @property
    def url(self) -> str:
        return f"http://{self.server.host}:{self.server.port}"

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app

    def requests_to(self, prefix: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.path.startswith(prefix)]

    def command_requests(self, device_id: str | None = None) -> list[RecordedRequest]:
        prefix = f"/v1.0/devices/{device_id}/" if device_id else "/v1.0/devices/"
        return [r for r in self.requests_to(prefix) if r.path.endswith("/commands")]

    def _tokens(self, access_token: str) -> dict[str, Any]:
        self.access_token = access_token
        return {
            "success": True,
            "result": {
                "access_token": access_token,
                "refresh_token": "refresh-1",
                "uid": "uid-1",
                "expire_time": 7200,
            },
        }

    def _signature_ok(self, method: str, path: str, headers, body: str) -> bool:
        creds = {CLOUD.client_id: CLOUD, APP.client_id: APP}.get(headers.get("client_id"))
        if creds is None:
            return False
        expected = sign_request(
            method,
            path,
            body,
            creds,
            access_token=headers.get("access_token", ""),
            timestamp=headers.get("t"),
            nonce=headers.get("nonce"),
        )
        return expected["sign"] == headers.get("sign")

    async def handle(self, request: web.Request) -> web.Response:
        body = await request.text()
        path = request.raw_path
        self.requests.append(
            RecordedRequest(request.method, path, dict(request.headers), body)
        )
        if not self._signature_ok(request.method, path, request.headers, body):
            return web.json_response({"success": False, "code": 1004, "msg": "sign invalid"})

        route = request.path
        if route == "/v1.0/iot-03/users/login":
            payload = json.loads(body)
            if payload["username"] == USERNAME and payload["password"] == hash_password(PASSWORD):
                return web.json_response(self._tokens("access-1"))
            return web.json_response(
                {"success": False, "code": 2406, "msg": "password or username is wrong"}
            )

        if route == "/v1.0/token":
            grant_type = request.query.get("grant_type")
            if grant_type == "1":
                return web.json_response(
                    {"success": True, "result": {"access_token": "project", "expire_time": 7200}}
                )
            if request.headers["client_id"] != APP.client_id:
                return web.json_response({"success": False, "code": 1010, "msg": "token invalid"})
            if grant_type == "2" and request.query.get("code") == OAUTH_CODE:
                return web.json_response(self._tokens("access-oauth"))
            return web.json_response({"success": False, "code": 1012, "msg": "code invalid"})

        if route.startswith("/v1.0/token/"):
            return web.json_response(self._tokens("access-2"))

        if route.startswith("/v1.0/users/"):
            if request.headers.get("access_token") != self.access_token:
                return web.json_response({"success": False, "code": 1010, "msg": "token invalid"})
            if self.discovery_fails:
                return web.json_response({"success": False, "code": 1106, "msg": "permission deny"})
            return web.json_response({"success": True, "result": self.devices})

        if route.startswith("/v1.0/devices/"):
            device_id = route.split("/")[3]
            if device_id in self.hanging_devices:
                await asyncio.sleep(0.5)
            if device_id in self.failing_devices:
                return web.json_response({"success": False, "code": 2001, "msg": "device is offline"})
            return web.json_response({"success": True, "result": True})

        return web.json_response({"success": False, "msg": "not found"}, status=404)


@pytest_asyncio.fixture
async def cloud():
    fake = FakeTuyaCloud()
    async with TestServer(fake.build_app()) as server:
        fake.server = server
        yield fake


@pytest_asyncio.fixture
async def tuya_client(cloud):
    client = TuyaClient(CLOUD, APP, base_url=cloud.url)
    yield client
    await client.close_session()


@pytest.fixture
def settings(cloud) -> Settings:
    return Settings(
        base_url=cloud.url,
        cloud_credentials=CLOUD,
        app_credentials=APP,
        authorize_url="https://auth.example.com/authorize",
        redirect_uri="http://localhost:3001/api/auth-callback",
        session_secret="test-secret",
        environment="test",
    )


@pytest.fixture
def app(settings, tuya_client) -> web.Application:
    return create_app(
        settings,
        client=tuya_client,
        dispatcher=EffectDispatcher(tuya_client, pulse_delay=0),
    )


@pytest_asyncio.fixture
async def api(app):
    async with TestClient(TestServer(app)) as client:
        yield client
