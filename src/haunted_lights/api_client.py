"""Client for the haunted_lights HTTP API, used by the command-line player."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from .const import AUTH_TIMEOUT, DEFAULT_APP_URL
from .exceptions import ApiError, AuthError, DiscoveryError, NetworkTimeoutError

_LOGGER = logging.getLogger(__name__)


class HauntedLightsApi:
    """Talks to a running haunted_lights server.

    The session cookie set by `login` is kept in the client's cookie jar, so
    later `discover` and `trigger` calls act on the same server session.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_APP_URL,
        session: aiohttp.ClientSession | None = None,
        timeout: float = AUTH_TIMEOUT,
    ) -> None:
        """Initialize the API client."""
        self._base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._managed_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            # unsafe=True keeps cookies set by hosts given as IP addresses
            self._session = aiohttp.ClientSession(
                cookie_jar=aiohttp.CookieJar(unsafe=True)
            )
            self._managed_session = True
        return self._session

    async def close_session(self) -> None:
        """Close the aiohttp session if it's managed by this instance."""
        if self._session and not self._session.closed and self._managed_session:
            await self._session.close()
            self._session = None

    async def _request(
        self, method: str, path: str, json_data: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Call the server and return its JSON body, whatever the status."""
        session = await self._get_session()
        url = self._base_url + path
        try:
            async with session.request(
                method, url, json=json_data, timeout=self._timeout
            ) as response:
                try:
                    return await response.json()
                except (aiohttp.ContentTypeError, ValueError) as parse_err:
                    error_text = await response.text()
                    raise ApiError(response.status, error_text) from parse_err
        except TimeoutError as timeout_err:
            raise NetworkTimeoutError from timeout_err
        except aiohttp.ClientError as req_err:
            err_msg = f"Request error: {req_err}"
            raise ApiError(0, err_msg) from req_err

    async def login(
        self,
        username: str,
        password: str,
        country_code: str | None = None,
        schema: str | None = None,
    ) -> str:
        """Log in through the server; returns the vendor uid."""
        payload: dict[str, Any] = {"username": username, "password": password}
        if country_code:
            payload["countryCode"] = country_code
        if schema:
            payload["schema"] = schema
        data = await self._request("POST", "/api/login", payload)
        if not data.get("success"):
            raise AuthError(data.get("error") or "Login failed")
        return data.get("uid", "")

    async def discover(self) -> list[dict[str, Any]]:
        """Discover the session's devices."""
        data = await self._request("POST", "/api/discover")
        if not data.get("success"):
            raise DiscoveryError(data.get("error") or "Discovery failed")
        return data.get("devices", [])

    async def trigger(self, effect: str) -> dict[str, Any]:
        """Trigger an effect; the server response is returned as is."""
        return await self._request("POST", "/api/trigger", {"effect": effect})

    async def health(self) -> dict[str, Any]:
        return await self._request("GET", "/api/health")
