"""Local directory storage for backup documents and images."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mapbox_backup.config.constants import JSON_INDENT
from mapbox_backup.observability.logger import get_logger

logger = get_logger(__name__)


def dump_json(data: Any) -> str:
    """Serialize with stable 2-space indentation for diffable backups."""
    return json.dumps(data, indent=JSON_INDENT, ensure_ascii=False) + "\n"


@dataclass
class LocalStore:
    """Writes backup files under one output root.

    Writes are atomic: content goes to a temporary sibling that is then
    renamed over the target.
    """

    root: Path

    def __post_init__(self) -> None:
        self.root = Path(self.root)

    def path(self, *parts: str) -> Path:
        return self.root.joinpath(*parts)

    def ensure_dir(self, *parts: str) -> Path:
        directory = self.path(*parts)
        directory.mkdir(parents=True, exist_ok=True)
        return directory

    def write_json(self, target: Path, data: Any) -> Path:
        return self._write(target, dump_json(data).encode("utf-8"))

    def write_bytes(self, target: Path, data: bytes) -> Path:
        return self._write(target, data)

    def _write(self, target: Path, payload: bytes) -> Path:
        target = Path(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        tmp_file = target.with_name(target.name + ".tmp")

        try:
            tmp_file.write_bytes(payload)
            tmp_file.replace(target)
        except OSError as e:
            logger.error(f"Failed to write {target}: {e}")
            if tmp_file.exists():
                tmp_file.unlink()
            raise

        logger.debug(f"Wrote {target}", extra={"bytes": len(payload)})
        return target
