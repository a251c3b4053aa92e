"""Request signing for the Tuya OpenAPI.

Every call to the vendor carries an HMAC-SHA256 signature computed over the
client id, the optional access token, a millisecond timestamp, a nonce and a
canonical string built from the request itself::

    METHOD
    sha256(body)
    <signed headers, always empty here>
    /path?query

The body hash must be computed over the exact string sent on the wire, so
callers serialize bodies with `encode_body` and send that string unchanged.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from typing import Any
from urllib.parse import urlencode
import uuid

from .const import SIGN_METHOD
from .models import Credentials


def sha256_hex(data: str = "") -> str:
    """Return the lowercase SHA-256 hex digest of a UTF-8 string."""
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def hash_password(password: str) -> str:
    """Hash a password the way the vendor's password login expects."""
    return sha256_hex(password)


def encode_body(body: dict[str, Any] | None) -> str:
    """Serialize a JSON request body; empty bodies encode to an empty string."""
    if not body:
        return ""
    return json.dumps(body, separators=(",", ":"))


def path_with_query(path: str, params: dict[str, Any] | None = None) -> str:
    """Build the path + query string that is both signed and requested."""
    if not params:
        return path
    return f"{path}?{urlencode(params)}"


def build_string_to_sign(method: str, path_and_query: str, body: str = "") -> str:
    """Build the canonical request string (with a blank signed-headers line)."""
    return "\n".join([method.upper(), sha256_hex(body), "", path_and_query])


def compute_sign(
    credentials: Credentials,
    string_to_sign: str,
    timestamp: str,
    nonce: str,
    access_token: str = "",
) -> str:
    """Compute the uppercase HMAC-SHA256 signature."""
    pre_sign = credentials.client_id + access_token + timestamp + nonce + string_to_sign
    return (
        hmac.new(
            credentials.client_secret.encode("utf-8"),
            pre_sign.encode("utf-8"),
            hashlib.sha256,
        )
        .hexdigest()
        .upper()
    )


def sign_request(
    method: str,
    path_and_query: str,
    body: str,
    credentials: Credentials,
    access_token: str = "",
    timestamp: str | None = None,
    nonce: str | None = None,
) -> dict[str, str]:
    """Return the signed header set for one vendor request.

    Args:
        method (str): HTTP method.
        path_and_query (str): Request path including the query string, no host.
        body (str): Serialized JSON body exactly as sent, or an empty string.
        credentials (Credentials): The cloud or app key pair to sign with.
        access_token (str): Bearer token for user-scoped calls.
        timestamp (str | None): Millisecond timestamp. Generated per call
            when omitted.
        nonce (str | None): Unique request token. Generated per call when
            omitted.

    Returns:
        dict[str, str]: Headers to send with the request.

    """
    if timestamp is None:
        timestamp = str(int(time.time() * 1000))
    if nonce is None:
        nonce = str(uuid.uuid4())

    string_to_sign = build_string_to_sign(method, path_and_query, body)
    headers = {
        "client_id": credentials.client_id,
        "sign": compute_sign(
            credentials, string_to_sign, timestamp, nonce, access_token
        ),
        "t": timestamp,
        "nonce": nonce,
        "sign_method": SIGN_METHOD,
        "Content-Type": "application/json",
    }
    if access_token:
        headers["access_token"] = access_token
    return headers
