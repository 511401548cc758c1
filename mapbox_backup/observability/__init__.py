"""Observability infrastructure for the backup run.

Provides structured logging and console progress marks.
"""

from .logger import LogContext, get_logger, log_context, setup_logging
from .progress import ProgressLine, ProgressReporter

__all__ = [
    "LogContext",
    "get_logger",
    "log_context",
    "setup_logging",
    "ProgressLine",
    "ProgressReporter",
]
