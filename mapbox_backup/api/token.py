"""Access token helpers."""

from __future__ import annotations

import base64
import binascii
import json


def username_from_token(access_token: str | None) -> str | None:
    """Extract the account username from a Mapbox access token.

    Tokens look like ``pk.<payload>.<signature>`` where the payload is
    base64url-encoded JSON whose ``u`` claim is the username.

    Returns:
        Username, or None if the token can't be decoded
    """
    if not access_token:
        return None

    parts = access_token.split(".")
    if len(parts) < 3:
        return None

    payload = parts[1]
    payload += "=" * (-len(payload) % 4)

    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except (binascii.Error, ValueError):
        return None

    if not isinstance(claims, dict):
        return None

    username = claims.get("u")
    return username if isinstance(username, str) and username else None


def redact_token(access_token: str | None) -> str:
    """Shorten a token for log output."""
    if not access_token:
        return "<none>"
    return f"{access_token[:6]}…"
