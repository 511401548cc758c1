"""Mapbox HTTP API access."""

from .client import MapboxClient
from .token import redact_token, username_from_token

__all__ = [
    "MapboxClient",
    "redact_token",
    "username_from_token",
]
