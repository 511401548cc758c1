"""Error hierarchy for the backup run.

All backup errors inherit from BackupError.
Use `is_retryable` property to determine if an error can be retried.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from .types import AggregatedError


class BackupError(Exception):
    """Base error for all backup errors.

    Attributes:
        message: Error description
        category: Resource category (if applicable)
        item_id: Related item id (if applicable)
    """

    def __init__(
        self,
        message: str,
        *,
        category: str | None = None,
        item_id: str | None = None,
    ) -> None:
        self.category = category
        self.item_id = item_id
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        """Whether this error can be retried."""
        return False

    def to_dict(self) -> dict[str, Any]:
        """Serialize for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": str(self),
            "category": self.category,
            "item_id": self.item_id,
            "is_retryable": self.is_retryable,
        }


class TransportError(BackupError):
    """Network or API failure.

    Terminal unless it is a ThrottleError.
    """

    def __init__(
        self,
        message: str = "Request failed",
        *,
        status: int | None = None,
        url: str | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.status = status
        self.url = url

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["status"] = self.status
        d["url"] = self.url
        return d


class ThrottleError(TransportError):
    """API reported too many requests (HTTP 429).

    This is retryable after waiting. `retry_after` carries the server hint
    in seconds when one was sent.
    """

    def __init__(
        self,
        message: str = "Too many requests",
        *,
        retry_after: float | None = None,
        **kwargs: Any,
    ) -> None:
        kwargs.setdefault("status", 429)
        super().__init__(message, **kwargs)
        self.retry_after = retry_after

    @property
    def is_retryable(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["retry_after"] = self.retry_after
        return d


class LocalStateError(BackupError):
    """A previously persisted artifact could not be read.

    Never fatal: the incremental policy treats the artifact as absent.
    """

    def __init__(
        self,
        message: str = "Unreadable local artifact",
        *,
        path: Path | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.path = path

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["path"] = str(self.path) if self.path else None
        return d


class ListingError(BackupError):
    """Draining a category's item list failed.

    Fatal to that category's sub-artifact phase only.
    """

    def __init__(
        self,
        message: str = "Listing failed",
        *,
        errors: AggregatedError | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["errors"] = [str(e) for e in self.errors.errors] if self.errors else []
        return d


class PartialArtifactError(BackupError):
    """One or more sub-artifact fetches failed after exhausting retries.

    Non-fatal to the category; reported as a tally.
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        failed: Mapping[str, Exception] | None = None,
        total: int = 0,
        **kwargs: Any,
    ) -> None:
        self.failed = dict(failed or {})
        self.total = total
        if message is None:
            message = f"{len(self.failed)} of {total} artifacts failed"
        super().__init__(message, **kwargs)

    @property
    def done(self) -> int:
        return self.total - len(self.failed)

    def to_dict(self) -> dict[str, Any]:
        d = super().to_dict()
        d["failed"] = {job_id: str(e) for job_id, e in self.failed.items()}
        d["total"] = self.total
        return d


THROTTLE_INDICATORS = ("429", "rate limit", "too many requests", "throttl")


def is_throttling(error: BaseException) -> bool:
    """Check whether an exception is an API throttling signal.

    BackupError subclasses answer through `is_retryable`; anything else is
    judged by a `status` attribute or its message.
    """
    if isinstance(error, BackupError):
        return error.is_retryable

    status = getattr(error, "status", None)
    if status == 429:
        return True

    error_str = str(error).lower()
    return any(indicator in error_str for indicator in THROTTLE_INDICATORS)


def classify_status(
    status: int,
    message: str,
    *,
    url: str | None = None,
    retry_after: float | None = None,
) -> TransportError:
    """Map an HTTP error status onto the transport error taxonomy."""
    if status == 429:
        return ThrottleError(message, url=url, retry_after=retry_after)
    return TransportError(message, status=status, url=url)
