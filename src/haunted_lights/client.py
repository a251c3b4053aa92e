"""Async client for the Tuya OpenAPI."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp
from yarl import URL

from .const import (
    AUTH_TIMEOUT,
    COMMAND_TIMEOUT,
    DEFAULT_BASE_URL,
    DEFAULT_COUNTRY_CODE,
    DEFAULT_SCHEMA,
    DEVICE_COMMANDS_ENDPOINT,
    DISCOVERY_TIMEOUT,
    GRANT_TYPE_AUTHORIZATION_CODE,
    GRANT_TYPE_SIMPLE,
    LIGHTING_CATEGORIES,
    LIGHTING_NAME_KEYWORDS,
    REFRESH_TOKEN_ENDPOINT,
    TOKEN_ENDPOINT,
    USER_DEVICES_ENDPOINT,
    USER_LOGIN_ENDPOINT,
)
from .exceptions import (
    ApiError,
    AuthError,
    DeviceCommandError,
    DiscoveryError,
    NetworkTimeoutError,
)
from .models import Command, Credentials, Device, TokenInfo
from .signing import encode_body, hash_password, path_with_query, sign_request

_LOGGER = logging.getLogger(__name__)


def is_lighting_device(data: dict[str, Any]) -> bool:
    """Return True if a raw vendor device looks like a light or a plug."""
    if data.get("category") in LIGHTING_CATEGORIES:
        return True
    product_name = (data.get("product_name") or "").lower()
    return any(keyword in product_name for keyword in LIGHTING_NAME_KEYWORDS)


def filter_lighting_devices(raw_devices: list[dict[str, Any]]) -> list[Device]:
    """Keep lighting-capable devices, preserving the vendor order.

    Entries without a device id cannot be addressed and are dropped.
    """
    return [
        Device.from_vendor(data)
        for data in raw_devices
        if data.get("id") and is_lighting_device(data)
    ]


class TuyaClient:
    """Signed async access to the Tuya cloud using aiohttp.

    Two credential pairs are held: the cloud project pair signs user login,
    device and token-refresh calls; the app pair signs the OAuth
    authorization-code exchange only.
    """

    def __init__(
        self,
        cloud_credentials: Credentials,
        app_credentials: Credentials | None = None,
        base_url: str = DEFAULT_BASE_URL,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the client."""
        self._cloud_credentials = cloud_credentials
        self._app_credentials = app_credentials or cloud_credentials
        self._base_url = base_url.rstrip("/")
        # Use provided session or create a new one
        self._session = session
        self._managed_session = session is None

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def app_credentials(self) -> Credentials:
        return self._app_credentials

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            _LOGGER.debug("Creating new aiohttp ClientSession for TuyaClient.")
            self._session = aiohttp.ClientSession()
            self._managed_session = True
        return self._session

    async def close_session(self) -> None:
        """Close the aiohttp session if it's managed by this instance."""
        if self._session and not self._session.closed and self._managed_session:
            await self._session.close()
            self._session = None
            _LOGGER.debug("Managed aiohttp session closed by TuyaClient.")
        elif self._session and not self._managed_session:
            _LOGGER.debug("Session provided externally, not closing.")

    async def _async_request(
        self,
        method: str,
        endpoint: str,
        credentials: Credentials,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        access_token: str = "",
        timeout: float = AUTH_TIMEOUT,
    ) -> dict[str, Any]:
        """Make a signed request and return the decoded vendor envelope.

        Raises:
            NetworkTimeoutError: If the request times out.
            ApiError: On HTTP errors, transport errors or a vendor response
                      with `success: false`.

        """
        target = path_with_query(endpoint, params)
        body = encode_body(json_data)
        headers = sign_request(method, target, body, credentials, access_token)
        url = URL(self._base_url + target, encoded=True)
        session = await self._get_session()

        _LOGGER.debug("Making %s request to %s", method, target)
        try:
            async with session.request(
                method,
                url,
                headers=headers,
                data=body or None,
                timeout=aiohttp.ClientTimeout(total=timeout),
            ) as response:
                _LOGGER.debug("Response status code: %s", response.status)
                if response.status >= 400:
                    error_text = await response.text()
                    _LOGGER.error(
                        "API Error Response (%s): %s", response.status, error_text
                    )
                    raise ApiError(response.status, error_text)
                data = await response.json(content_type=None)
        except TimeoutError as timeout_err:
            _LOGGER.warning("Request timed out: %s %s", method, target)
            raise NetworkTimeoutError from timeout_err
        except aiohttp.ClientError as req_err:
            _LOGGER.warning("Request error during API request: %s", req_err)
            err_msg = f"Request error: {req_err}"
            raise ApiError(0, err_msg) from req_err
        except ValueError as parse_err:
            err_msg = "Invalid JSON in vendor response"
            raise ApiError(0, err_msg) from parse_err

        if not isinstance(data, dict):
            raise ApiError(0, f"Unexpected response: {data!r}")
        if not data.get("success"):
            err_msg = data.get("msg") or "Request failed"
            raise ApiError(int(data.get("code") or 0), err_msg)
        return data

    async def authenticate(
        self,
        username: str,
        password: str,
        country_code: str | None = None,
        schema: str | None = None,
    ) -> TokenInfo:
        """Log in with a Smart Life / Tuya Smart username and password.

        The password is sent SHA-256 hashed. Phone-number logins carry the
        country code; e-mail logins must not.
        """
        payload: dict[str, Any] = {
            "username": username,
            "password": hash_password(password),
            "schema": schema or DEFAULT_SCHEMA,
        }
        is_email = "@" in username
        if not is_email:
            payload["country_code"] = str(country_code or DEFAULT_COUNTRY_CODE)
        _LOGGER.info(
            "Password login for %s*** (schema=%s, email=%s)",
            username[:3],
            payload["schema"],
            is_email,
        )

        try:
            data = await self._async_request(
                "POST",
                USER_LOGIN_ENDPOINT,
                self._cloud_credentials,
                json_data=payload,
                timeout=AUTH_TIMEOUT,
            )
            tokens = TokenInfo.from_result(data["result"])
        except ApiError as api_err:
            _LOGGER.error("Login failed: %s", api_err.error_message)
            raise AuthError(api_err.error_message) from api_err
        except (KeyError, TypeError) as parse_err:
            err_msg = "Authentication failed: Missing tokens in response"
            raise AuthError(err_msg) from parse_err

        _LOGGER.info("Authentication successful for uid %s.", tokens.uid)
        return tokens

    async def exchange_code(self, code: str) -> TokenInfo:
        """Exchange an OAuth authorization code for tokens (app-signed)."""
        try:
            data = await self._async_request(
                "GET",
                TOKEN_ENDPOINT,
                self._app_credentials,
                params={"code": code, "grant_type": GRANT_TYPE_AUTHORIZATION_CODE},
                timeout=AUTH_TIMEOUT,
            )
            tokens = TokenInfo.from_result(data["result"])
        except ApiError as api_err:
            _LOGGER.error("Authorization code exchange failed: %s", api_err)
            raise AuthError(api_err.error_message) from api_err
        except (KeyError, TypeError) as parse_err:
            err_msg = "Token exchange failed: Missing tokens in response"
            raise AuthError(err_msg) from parse_err

        _LOGGER.info("Authorization code exchanged for uid %s.", tokens.uid)
        return tokens

    async def refresh(self, tokens: TokenInfo) -> TokenInfo:
        """Refresh an access token using its refresh token."""
        if not tokens.refresh_token:
            err_msg = "Cannot refresh token: No refresh token available."
            raise AuthError(err_msg)

        _LOGGER.info("Refreshing access token...")
        try:
            data = await self._async_request(
                "GET",
                REFRESH_TOKEN_ENDPOINT.format(refresh_token=tokens.refresh_token),
                self._cloud_credentials,
                timeout=AUTH_TIMEOUT,
            )
            refreshed = TokenInfo.from_result(data["result"], uid=tokens.uid)
        except ApiError as api_err:
            _LOGGER.error("Token refresh failed: %s", api_err)
            raise AuthError(api_err.error_message) from api_err
        except (KeyError, TypeError) as parse_err:
            err_msg = "Token refresh failed: Missing access token in response"
            raise AuthError(err_msg) from parse_err

        _LOGGER.info("Access token refreshed successfully.")
        return refreshed

    async def get_project_token(self) -> dict[str, Any]:
        """Request a project token with the cloud keys (signer self-check)."""
        return await self._async_request(
            "GET",
            TOKEN_ENDPOINT,
            self._cloud_credentials,
            params={"grant_type": GRANT_TYPE_SIMPLE},
            timeout=AUTH_TIMEOUT,
        )

    async def list_devices(self, tokens: TokenInfo | None) -> list[Device]:
        """List the user's lighting devices in vendor order."""
        if tokens is None or not tokens.access_token:
            err_msg = "Not authenticated. Please login first."
            raise DiscoveryError(err_msg)

        try:
            data = await self._async_request(
                "GET",
                USER_DEVICES_ENDPOINT.format(uid=tokens.uid),
                self._cloud_credentials,
                access_token=tokens.access_token,
                timeout=DISCOVERY_TIMEOUT,
            )
        except ApiError as api_err:
            _LOGGER.error("Device discovery failed: %s", api_err)
            raise DiscoveryError(api_err.error_message) from api_err

        raw_devices = data.get("result") or []
        try:
            devices = filter_lighting_devices(raw_devices)
        except (AttributeError, TypeError) as parse_err:
            err_msg = "Device discovery failed: Unexpected device list"
            raise DiscoveryError(err_msg) from parse_err
        _LOGGER.info(
            "Discovered %d lighting devices out of %d.", len(devices), len(raw_devices)
        )
        return devices

    async def async_send_commands(
        self, tokens: TokenInfo, device_id: str, commands: list[Command]
    ) -> None:
        """Send a command batch to one device, raising on failure.

        Raises:
            DeviceCommandError: If the vendor rejects the batch or the call
                                fails or times out.

        """
        try:
            await self._async_request(
                "POST",
                DEVICE_COMMANDS_ENDPOINT.format(device_id=device_id),
                self._cloud_credentials,
                json_data={"commands": [command.to_dict() for command in commands]},
                access_token=tokens.access_token,
                timeout=COMMAND_TIMEOUT,
            )
        except ApiError as api_err:
            raise DeviceCommandError(device_id, api_err.error_message) from api_err

    async def send_commands(
        self, tokens: TokenInfo, device_id: str, commands: list[Command]
    ) -> bool:
        """Send a command batch to one device.

        Failures are logged and reported as False so that one unreachable
        device never blocks the others.
        """
        try:
            await self.async_send_commands(tokens, device_id, commands)
        except DeviceCommandError as cmd_err:
            _LOGGER.warning("Command batch failed: %s", cmd_err)
            return False
        return True
