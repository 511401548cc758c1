"""Local persistence for backup output."""

from .local import LocalStore, dump_json

__all__ = [
    "LocalStore",
    "dump_json",
]
