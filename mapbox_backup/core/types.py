"""Shared types for the backup run.

These types are used by the drainer, the scheduler and the category jobs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Iterator

from .errors import BackupError, ListingError, PartialArtifactError

Item = dict[str, Any]


class CategoryState(str, Enum):
    """Lifecycle of one resource category."""

    LISTING = "listing"
    FETCHING = "fetching"
    DONE = "done"
    FAILED = "failed"


class FetchDecision(str, Enum):
    """Outcome of the incremental check for one artifact."""

    FETCH = "fetch"
    SKIP = "skip"


def parse_timestamp(value: Any) -> datetime:
    """Parse an API timestamp such as ``2024-01-02T00:00:00.000Z``.

    Naive timestamps are taken as UTC.

    Raises:
        ValueError: If the value is not an ISO-8601 string
    """
    if not isinstance(value, str) or not value:
        raise ValueError(f"Not a timestamp: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def item_id(item: Item) -> str:
    """Unique id of an item record."""
    return str(item["id"])


def item_modified(item: Item, field_name: str = "modified") -> datetime | None:
    """Remote modification timestamp of an item, if it has a usable one."""
    try:
        return parse_timestamp(item.get(field_name))
    except ValueError:
        return None


@dataclass
class Page:
    """One unit of a paginated API response."""

    items: list[Item] = field(default_factory=list)
    next_page: Any = None  # Opaque continuation reference
    error: Exception | None = None

    @property
    def has_next(self) -> bool:
        return self.next_page is not None


# Called with None for the first page, then with the previous page's next_page
FetchPage = Callable[[Any], Awaitable[Page]]


@dataclass(frozen=True)
class AggregatedError:
    """One or more errors collected during a drain or a fan-out.

    Never empty: use `from_errors`, which returns None when nothing failed.
    """

    errors: tuple[Exception, ...]

    def __post_init__(self) -> None:
        if not self.errors:
            raise ValueError("AggregatedError needs at least one error")

    @classmethod
    def from_errors(cls, errors: list[Exception] | tuple[Exception, ...]) -> AggregatedError | None:
        if not errors:
            return None
        return cls(tuple(errors))

    @property
    def is_single(self) -> bool:
        return len(self.errors) == 1

    @property
    def is_multiple(self) -> bool:
        return len(self.errors) > 1

    @property
    def value(self) -> Exception | list[Exception]:
        """The single error itself, or the list of all errors."""
        if self.is_single:
            return self.errors[0]
        return list(self.errors)

    @property
    def first(self) -> Exception:
        return self.errors[0]

    def __len__(self) -> int:
        return len(self.errors)

    def __iter__(self) -> Iterator[Exception]:
        return iter(self.errors)

    def __str__(self) -> str:
        if self.is_single:
            return str(self.errors[0])
        lines = [f"{len(self.errors)} errors:"]
        lines.extend(f"  - {type(e).__name__}: {e}" for e in self.errors)
        return "\n".join(lines)


@dataclass
class DrainResult:
    """A fully drained collection plus whatever went wrong on the way."""

    items: list[Item] = field(default_factory=list)
    error: AggregatedError | None = None
    pages: int = 0
    truncated: bool = False  # Walk ended at a failed page with no continuation

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ArtifactJob:
    """A unit of sub-resource work (e.g. the draft document of one style)."""

    id: str
    operation: Callable[[], Awaitable[Any]]
    path: Path | None = None
    check: Callable[[], FetchDecision] | None = None


@dataclass
class JobOutcome:
    """Terminal state of one ArtifactJob."""

    id: str
    attempts: int = 1
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ScheduleResult:
    """Result of running a batch of ArtifactJobs."""

    outcomes: list[JobOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [o.id for o in self.outcomes if o.ok]

    @property
    def failed(self) -> dict[str, Exception]:
        return {o.id: o.error for o in self.outcomes if o.error is not None}

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def done(self) -> int:
        return len(self.succeeded)

    @property
    def error(self) -> AggregatedError | None:
        return AggregatedError.from_errors([o.error for o in self.outcomes if o.error is not None])

    def summary(self) -> str:
        return f"{self.done}/{self.total}"


@dataclass
class GroupResult:
    """Outcome of one artifact group (e.g. style sprites) of a category."""

    label: str
    schedule: ScheduleResult = field(default_factory=ScheduleResult)
    skipped: int = 0

    @property
    def total(self) -> int:
        return self.schedule.total + self.skipped

    @property
    def done(self) -> int:
        return self.schedule.done + self.skipped


@dataclass
class CategoryResult:
    """Outcome of one ResourceBackupJob."""

    category: str
    state: CategoryState = CategoryState.LISTING
    item_count: int = 0
    listing_error: AggregatedError | None = None
    fatal_error: Exception | None = None  # Set when the artifact phase could not start
    groups: list[GroupResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == CategoryState.DONE

    @property
    def skipped(self) -> int:
        return sum(g.skipped for g in self.groups)

    @property
    def failure(self) -> BackupError | None:
        """Why the category failed, if it did."""
        if self.state != CategoryState.FAILED:
            return None
        if self.fatal_error is not None:
            return BackupError(
                f"Category {self.category} failed: {self.fatal_error}", category=self.category
            )
        return ListingError(
            f"Listing {self.category} failed: {self.listing_error}",
            errors=self.listing_error,
            category=self.category,
        )

    @property
    def partial_error(self) -> PartialArtifactError | None:
        failed: dict[str, Exception] = {}
        total = 0
        for group in self.groups:
            failed.update(group.schedule.failed)
            total += group.total
        if not failed:
            return None
        return PartialArtifactError(failed=failed, total=total, category=self.category)

    @property
    def error(self) -> AggregatedError | None:
        """Every terminal error of the category, listing first."""
        errors: list[Exception] = list(self.listing_error or ())
        if self.fatal_error is not None:
            errors.append(self.fatal_error)
        for group in self.groups:
            errors.extend(group.schedule.failed.values())
        return AggregatedError.from_errors(errors)


@dataclass
class BackupResult:
    """Overall result of a backup run."""

    categories: list[CategoryResult] = field(default_factory=list)
    aborted: bool = False

    @property
    def success(self) -> bool:
        return not self.aborted and all(c.ok for c in self.categories)

    @property
    def has_partial_failures(self) -> bool:
        return any(c.partial_error is not None for c in self.categories)

    @property
    def errors(self) -> dict[str, AggregatedError]:
        return {c.category: c.error for c in self.categories if c.error is not None}

    def exit_code(self, strict: bool = False) -> int:
        """0 on success; 1 when a category failed (or, if strict, any artifact)."""
        if not self.success:
            return 1
        if strict and self.has_partial_failures:
            return 1
        return 0
