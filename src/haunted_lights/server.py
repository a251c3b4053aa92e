"""HTTP API for haunted_lights, built on aiohttp.web."""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path
import secrets
from typing import Any

from aiohttp import web
from aiohttp_session import get_session, new_session
from aiohttp_session import setup as setup_session
from aiohttp_session.cookie_storage import EncryptedCookieStorage

from .auth import async_ensure_fresh_tokens, build_authorize_url, new_state, states_match
from .client import TuyaClient
from .config import Settings
from .const import OAUTH_STATE_KEY, SESSION_COOKIE_NAME, SESSION_ID_KEY, SESSION_MAX_AGE
from .dispatcher import EffectDispatcher
from .effects import is_known_effect
from .exceptions import ApiError, AuthError, DiscoveryError, UnknownEffectError
from .models import Session, TokenInfo
from .session_store import InMemorySessionStore, SessionStore

_LOGGER = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)
CLIENT_KEY = web.AppKey("client", TuyaClient)
STORE_KEY = web.AppKey("store", SessionStore)
DISPATCHER_KEY = web.AppKey("dispatcher", EffectDispatcher)

routes = web.RouteTableDef()


def _failure(error: str, status: int) -> web.Response:
    return web.json_response({"success": False, "error": error}, status=status)


async def _read_json(request: web.Request) -> dict[str, Any]:
    """Return the JSON object body of a request, or an empty dict."""
    if not request.can_read_body:
        return {}
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


async def _current_session(request: web.Request) -> Session | None:
    """Look up the stored session bound to the caller's cookie."""
    cookie_session = await get_session(request)
    session_id = cookie_session.get(SESSION_ID_KEY)
    if not session_id:
        return None
    return request.app[STORE_KEY].get(session_id)


async def _start_session(
    request: web.Request, tokens: TokenInfo, username: str | None = None
) -> Session:
    """Store freshly obtained tokens under a new session id.

    The cookie session is rotated on every login; any previous stored
    session for this browser is dropped.
    """
    store = request.app[STORE_KEY]
    old_cookie = await get_session(request)
    old_id = old_cookie.get(SESSION_ID_KEY)
    if old_id:
        store.delete(old_id)

    cookie_session = await new_session(request)
    session = Session(
        session_id=secrets.token_urlsafe(24), tokens=tokens, username=username
    )
    cookie_session[SESSION_ID_KEY] = session.session_id
    store.put(session)
    return session


@routes.post("/api/login")
async def login(request: web.Request) -> web.Response:
    """Legacy username/password login."""
    body = await _read_json(request)
    username = body.get("username")
    password = body.get("password")
    if not username or not password:
        return _failure("username and password required", 400)

    settings = request.app[SETTINGS_KEY]
    try:
        tokens = await request.app[CLIENT_KEY].authenticate(
            str(username),
            str(password),
            country_code=body.get("countryCode") or settings.country_code,
            schema=body.get("schema") or settings.schema,
        )
    except AuthError as err:
        _LOGGER.error("Login error: %s", err)
        return _failure(str(err) or "Login failed", 400)

    await _start_session(request, tokens, str(username))
    return web.json_response(
        {"success": True, "uid": tokens.uid, "message": "Login successful"}
    )


@routes.get("/api/smart-life-auth")
async def smart_life_auth(request: web.Request) -> web.Response:
    """Redirect to the vendor authorize page with a session-bound state."""
    settings = request.app[SETTINGS_KEY]
    state = new_state()
    cookie_session = await get_session(request)
    cookie_session[OAUTH_STATE_KEY] = state
    location = build_authorize_url(
        settings.authorize_url,
        settings.app_credentials.client_id,
        settings.redirect_uri,
        state,
    )
    raise web.HTTPFound(location)


@routes.get("/api/auth-callback")
async def auth_callback(request: web.Request) -> web.Response:
    """Finish the OAuth flow and redirect back to the UI."""
    cookie_session = await get_session(request)
    expected_state = cookie_session.pop(OAUTH_STATE_KEY, None)
    code = request.query.get("code")

    if not states_match(expected_state, request.query.get("state")):
        _LOGGER.warning("OAuth callback rejected: state mismatch.")
        raise web.HTTPFound("/?auth=failed")
    if not code:
        _LOGGER.warning("OAuth callback rejected: no authorization code.")
        raise web.HTTPFound("/?auth=failed")

    try:
        tokens = await request.app[CLIENT_KEY].exchange_code(code)
    except AuthError as err:
        _LOGGER.error("OAuth code exchange failed: %s", err)
        raise web.HTTPFound("/?auth=failed") from err

    await _start_session(request, tokens)
    raise web.HTTPFound("/?auth=success")


@routes.post("/api/discover")
async def discover(request: web.Request) -> web.Response:
    """List and cache the session's lighting devices."""
    session = await _current_session(request)
    if session is None:
        return _failure("Not authenticated. Please login first.", 401)

    client = request.app[CLIENT_KEY]
    try:
        await async_ensure_fresh_tokens(client, session)
        devices = await client.list_devices(session.tokens)
    except AuthError as err:
        return _failure(str(err), 401)
    except DiscoveryError as err:
        _LOGGER.error("Discovery error: %s", err)
        return _failure(str(err), 500)

    session.devices = devices
    request.app[STORE_KEY].put(session)
    return web.json_response(
        {
            "success": True,
            "devices": [device.to_dict() for device in devices],
            "total": len(devices),
        }
    )


@routes.post("/api/trigger")
async def trigger(request: web.Request) -> web.Response:
    """Play one effect on every cached device of the session."""
    body = await _read_json(request)
    effect = body.get("effect")
    if not isinstance(effect, str):
        effect = ""

    session = await _current_session(request)
    if session is None:
        return _failure("Not authenticated", 401)
    # Rejected before any vendor call, token refresh included
    if not is_known_effect(effect):
        return _failure(str(UnknownEffectError(effect)), 400)

    try:
        await async_ensure_fresh_tokens(request.app[CLIENT_KEY], session)
        result = await request.app[DISPATCHER_KEY].trigger(session, effect)
    except UnknownEffectError as err:
        return _failure(str(err), 400)
    except AuthError as err:
        return _failure(str(err), 401)

    return web.json_response(result.to_dict())


@routes.post("/api/logout")
async def logout(request: web.Request) -> web.Response:
    cookie_session = await get_session(request)
    session_id = cookie_session.get(SESSION_ID_KEY)
    if session_id:
        request.app[STORE_KEY].delete(session_id)
    cookie_session.invalidate()
    return web.json_response({"success": True})


@routes.get("/api/health")
async def health(request: web.Request) -> web.Response:
    return web.json_response(
        {
            "status": "ok",
            "sessions": len(request.app[STORE_KEY]),
            "environment": request.app[SETTINGS_KEY].environment,
        }
    )


@routes.get("/api/token-test")
async def token_test(request: web.Request) -> web.Response:
    """Request a project token to check the signing setup."""
    try:
        data = await request.app[CLIENT_KEY].get_project_token()
    except ApiError as err:
        return web.json_response({"ok": False, "err": err.error_message}, status=500)
    return web.json_response(data)


def _add_static_routes(app: web.Application, static_dir: str) -> None:
    index = Path(static_dir) / "index.html"

    async def serve_index(_request: web.Request) -> web.FileResponse:
        return web.FileResponse(index)

    app.router.add_get("/", serve_index)
    app.router.add_static("/", static_dir)


async def _close_client(app: web.Application) -> None:
    await app[CLIENT_KEY].close_session()


def create_app(
    settings: Settings,
    client: TuyaClient | None = None,
    store: SessionStore | None = None,
    dispatcher: EffectDispatcher | None = None,
) -> web.Application:
    """Build the web application.

    Args:
        settings (Settings): Runtime settings.
        client (TuyaClient | None): Vendor client; built from `settings`
            when omitted.
        store (SessionStore | None): Session store; in-memory by default.
        dispatcher (EffectDispatcher | None): Effect dispatcher; built on
            `client` when omitted.

    """
    if client is None:
        client = TuyaClient(
            settings.cloud_credentials,
            settings.app_credentials,
            base_url=settings.base_url,
        )

    app = web.Application()
    # The cookie only carries an opaque session id; tokens stay server-side.
    setup_session(
        app,
        EncryptedCookieStorage(
            hashlib.sha256(settings.session_secret.encode("utf-8")).digest(),
            cookie_name=SESSION_COOKIE_NAME,
            max_age=SESSION_MAX_AGE,
            httponly=True,
            secure=settings.is_production,
            samesite="Lax",
        ),
    )
    app[SETTINGS_KEY] = settings
    app[CLIENT_KEY] = client
    app[STORE_KEY] = store if store is not None else InMemorySessionStore()
    app[DISPATCHER_KEY] = dispatcher or EffectDispatcher(client)
    app.add_routes(routes)
    if settings.is_production and settings.static_dir:
        _add_static_routes(app, settings.static_dir)
    app.on_cleanup.append(_close_client)
    return app


def run(settings: Settings) -> None:
    """Serve the application until interrupted."""
    _LOGGER.info(
        "Haunted Lights running on port %d (%s)", settings.port, settings.environment
    )
    web.run_app(create_app(settings), host=settings.host, port=settings.port)
