"""Logging for the backup run.

Every module logs through `get_logger(__name__)`. Fields set with
`log_context` (category, phase, item, artifact) are attached to every
record emitted inside the block, across awaits.

Usage:
    from mapbox_backup.observability import get_logger, log_context

    logger = get_logger(__name__)

    with log_context(category="styles", phase="style-documents"):
        logger.info("Fetching style documents", extra={"jobs": 12})
        # JSON:    {"timestamp": "...", "category": "styles", ..., "jobs": 12}
        # Console: [styles] [style-documents] Fetching style documents | jobs=12
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from contextlib import contextmanager
from dataclasses import asdict, dataclass, replace
from datetime import datetime, timezone
from typing import Any, Iterator

ROOT_LOGGER = "mapbox_backup"

# Attributes every LogRecord has; anything else came in through `extra`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
    "taskName",
}


@dataclass(frozen=True)
class LogContext:
    """Fields attached to every record logged inside a `log_context` block."""

    category: str | None = None
    phase: str | None = None
    item: str | None = None
    artifact: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {key: value for key, value in asdict(self).items() if value is not None}

    def prefix(self) -> str:
        """``[styles] [listing] `` style prefix for console output."""
        parts = [f"[{value}]" for value in (self.category, self.phase, self.item) if value]
        return " ".join(parts) + " " if parts else ""


_current: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "mapbox_backup_log_context", default=LogContext()
)


@contextmanager
def log_context(**fields: Any) -> Iterator[LogContext]:
    """Add fields to the log context for the enclosed block.

    Fields not given are inherited from the enclosing context.

    Example:
        with log_context(category="datasets", item="cjx1"):
            logger.info("Draining features")
    """
    context = replace(_current.get(), **fields)
    token = _current.set(context)
    try:
        yield context
    finally:
        _current.reset(token)


def current_context() -> LogContext:
    return _current.get()


def _extras(record: logging.LogRecord) -> dict[str, Any]:
    return {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
            **current_context().to_dict(),
            **_extras(record),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class ContextFormatter(logging.Formatter):
    """Message with the context prefix and ``| key=value`` extras.

    Meant to sit behind a handler that adds its own time and level
    columns (RichHandler).
    """

    def format(self, record: logging.LogRecord) -> str:
        text = current_context().prefix() + record.getMessage()

        extras = _extras(record)
        if extras:
            text += " | " + ", ".join(f"{key}={value}" for key, value in extras.items())
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


_configured = False


def setup_logging(
    level: int = logging.INFO,
    json_format: bool = False,
    handler: logging.Handler | None = None,
    force: bool = False,
) -> None:
    """Attach a handler to the package logger.

    Args:
        level: Logging level
        json_format: JSON lines instead of the context format
        handler: Handler to install (default: stream to stderr)
        force: Replace an earlier configuration
    """
    global _configured

    if _configured and not force:
        return

    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if json_format else ContextFormatter())

    package_logger = logging.getLogger(ROOT_LOGGER)
    package_logger.setLevel(level)
    package_logger.handlers[:] = [handler]
    package_logger.propagate = False

    # aiohttp logs every connection problem we already report
    for noisy in ("aiohttp", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger under the ``mapbox_backup`` namespace.

    Args:
        name: Module name (usually __name__)
    """
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
