"""OAuth and token helpers for haunted_lights."""

from __future__ import annotations

import hmac
import logging
import secrets
from urllib.parse import urlencode

from .client import TuyaClient
from .exceptions import AuthError
from .models import Session

_LOGGER = logging.getLogger(__name__)


def new_state() -> str:
    """Return a random CSRF token for the OAuth `state` parameter."""
    return secrets.token_urlsafe(24)


def states_match(expected: str | None, received: str | None) -> bool:
    """Compare the stored and returned OAuth states in constant time."""
    if not expected or not received:
        return False
    return hmac.compare_digest(expected, received)


def build_authorize_url(
    authorize_url: str, client_id: str, redirect_uri: str, state: str
) -> str:
    """Build the vendor authorize URL the browser is redirected to."""
    query = urlencode(
        {
            "client_id": client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "state": state,
        }
    )
    separator = "&" if "?" in authorize_url else "?"
    return f"{authorize_url}{separator}{query}"


async def async_ensure_fresh_tokens(client: TuyaClient, session: Session) -> bool:
    """Refresh the session's access token if it is expired or about to be.

    Returns True if the tokens were replaced. A failed refresh leaves the
    session untouched and raises `AuthError`; the caller must log in again.
    """
    if not session.tokens.is_expired():
        return False

    _LOGGER.debug(
        "Token for session %s is expired or nearing expiration.",
        session.session_id[:8],
    )
    if not session.tokens.refresh_token:
        err_msg = "Session expired. Please login again."
        raise AuthError(err_msg)

    session.tokens = await client.refresh(session.tokens)
    return True
