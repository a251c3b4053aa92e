"""Environment configuration for haunted_lights."""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
import os
import secrets

from dotenv import load_dotenv

from .const import (
    DEFAULT_APP_URL,
    DEFAULT_BASE_URL,
    DEFAULT_COUNTRY_CODE,
    DEFAULT_ENVIRONMENT,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_SCHEMA,
    OAUTH_AUTHORIZE_PATH,
)
from .models import Credentials

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Runtime settings, normally read from the environment."""

    base_url: str = DEFAULT_BASE_URL
    cloud_credentials: Credentials = Credentials("", "")
    app_credentials: Credentials = Credentials("", "")
    country_code: str = DEFAULT_COUNTRY_CODE
    schema: str = DEFAULT_SCHEMA
    app_url: str = DEFAULT_APP_URL
    redirect_uri: str = ""
    authorize_url: str = ""
    session_secret: str = field(default="", repr=False)
    environment: str = DEFAULT_ENVIRONMENT
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    static_dir: str | None = None

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls, dotenv: bool = True) -> Settings:
        """Build settings from environment variables (and a `.env` file).

        The app credential pair falls back to the cloud pair, the redirect
        URI to `{APP_URL}/api/auth-callback` and the session secret to a
        random value that only lives as long as the process.
        """
        if dotenv:
            load_dotenv()

        base_url = os.getenv("TUYA_BASE_URL", DEFAULT_BASE_URL).rstrip("/")
        cloud = Credentials(
            os.getenv("TUYA_CLIENT_ID", ""), os.getenv("TUYA_CLIENT_SECRET", "")
        )
        app = Credentials(
            os.getenv("TUYA_APP_CLIENT_ID") or cloud.client_id,
            os.getenv("TUYA_APP_CLIENT_SECRET") or cloud.client_secret,
        )
        if not cloud.client_id or not cloud.client_secret:
            _LOGGER.warning(
                "TUYA_CLIENT_ID / TUYA_CLIENT_SECRET are not set; vendor calls will fail."
            )

        app_url = os.getenv("APP_URL", DEFAULT_APP_URL).rstrip("/")
        session_secret = os.getenv("SESSION_SECRET")
        if not session_secret:
            _LOGGER.warning("SESSION_SECRET not set, sessions end on restart.")
            session_secret = secrets.token_hex(32)

        return cls(
            base_url=base_url,
            cloud_credentials=cloud,
            app_credentials=app,
            country_code=os.getenv("TUYA_COUNTRY_CODE", DEFAULT_COUNTRY_CODE),
            schema=os.getenv("TUYA_SCHEMA", DEFAULT_SCHEMA),
            app_url=app_url,
            redirect_uri=os.getenv("TUYA_REDIRECT_URI")
            or f"{app_url}/api/auth-callback",
            authorize_url=os.getenv("TUYA_OAUTH_AUTHORIZE_URL")
            or base_url + OAUTH_AUTHORIZE_PATH,
            session_secret=session_secret,
            environment=os.getenv("APP_ENV", DEFAULT_ENVIRONMENT),
            host=os.getenv("HOST", DEFAULT_HOST),
            port=int(os.getenv("PORT", str(DEFAULT_PORT))),
            static_dir=os.getenv("STATIC_DIR") or None,
        )
