"""Configuration module for the backup run."""

from .settings import Settings, get_settings
from .constants import (
    BACKUP_SCOPES,
    DEFAULT_OUTPUT_DIR,
    JSON_INDENT,
    SCOPE_REQUIRES,
)

__all__ = [
    "Settings",
    "get_settings",
    "BACKUP_SCOPES",
    "DEFAULT_OUTPUT_DIR",
    "JSON_INDENT",
    "SCOPE_REQUIRES",
]
