"""Core types and errors for the backup run."""

from .errors import (
    BackupError,
    ListingError,
    LocalStateError,
    PartialArtifactError,
    ThrottleError,
    TransportError,
    is_throttling,
)
from .types import (
    AggregatedError,
    ArtifactJob,
    BackupResult,
    CategoryResult,
    CategoryState,
    DrainResult,
    FetchDecision,
    GroupResult,
    Item,
    JobOutcome,
    Page,
    ScheduleResult,
)

__all__ = [
    # Errors
    "BackupError",
    "TransportError",
    "ThrottleError",
    "LocalStateError",
    "ListingError",
    "PartialArtifactError",
    "is_throttling",
    # Types
    "Item",
    "Page",
    "AggregatedError",
    "DrainResult",
    "FetchDecision",
    "ArtifactJob",
    "JobOutcome",
    "ScheduleResult",
    "GroupResult",
    "CategoryState",
    "CategoryResult",
    "BackupResult",
]
