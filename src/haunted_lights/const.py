"""Constants for haunted_lights."""

# Base URL for the Tuya OpenAPI (Western America data center)
DEFAULT_BASE_URL = "https://openapi.tuyaus.com"

# Token endpoints
TOKEN_ENDPOINT = "/v1.0/token"
REFRESH_TOKEN_ENDPOINT = "/v1.0/token/{refresh_token}"
GRANT_TYPE_SIMPLE = "1"
GRANT_TYPE_AUTHORIZATION_CODE = "2"

# Legacy username/password login
USER_LOGIN_ENDPOINT = "/v1.0/iot-03/users/login"

# Device endpoints
USER_DEVICES_ENDPOINT = "/v1.0/users/{uid}/devices"
DEVICE_COMMANDS_ENDPOINT = "/v1.0/devices/{device_id}/commands"

# OAuth authorize page, relative to the base URL unless overridden
OAUTH_AUTHORIZE_PATH = "/login/oauth/authorize"

SIGN_METHOD = "HMAC-SHA256"

# Timeouts (seconds)
AUTH_TIMEOUT = 10
DISCOVERY_TIMEOUT = 10
COMMAND_TIMEOUT = 3

# Refresh tokens this many seconds before they expire
TOKEN_EXPIRY_MARGIN = 60

DEFAULT_COUNTRY_CODE = "1"
DEFAULT_SCHEMA = "smartlife"
DEFAULT_APP_URL = "http://localhost:3001"
DEFAULT_ENVIRONMENT = "development"
DEFAULT_HOST = "0.0.0.0"  # noqa: S104
DEFAULT_PORT = 3001

# Lighting-capable categories: dj (light), dd (strip), dg (string lights),
# cz (socket), pc (power strip)
LIGHTING_CATEGORIES = frozenset({"dj", "dd", "dg", "cz", "pc"})
LIGHTING_NAME_KEYWORDS = ("light", "bulb", "lamp", "plug")

# Timeline playback
TICK_SECONDS = 0.1
FLICKER_PULSES = 5
FLICKER_PULSE_DELAY = 0.1

# Session cookie keys
SESSION_ID_KEY = "session_id"
OAUTH_STATE_KEY = "oauth_state"
SESSION_COOKIE_NAME = "haunted_lights_session"
SESSION_MAX_AGE = 24 * 60 * 60
