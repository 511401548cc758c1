"""Per-category backup job.

A job lists its category, saves the list, then fans out the selected
artifact groups through a rate-limited scheduler:

    LISTING -> FETCHING -> DONE
            \\-> FAILED   (listing or artifact setup could not be completed)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any, Callable

from mapbox_backup.core.errors import BackupError
from mapbox_backup.core.types import (
    AggregatedError,
    ArtifactJob,
    CategoryResult,
    CategoryState,
    DrainResult,
    FetchDecision,
    FetchPage,
    GroupResult,
    Item,
    item_id,
    item_modified,
)
from mapbox_backup.observability.logger import get_logger, log_context
from mapbox_backup.observability.progress import ProgressReporter
from mapbox_backup.rate_limit.scheduler import RateLimitedScheduler
from mapbox_backup.storage.local import LocalStore

from .artifacts import ArtifactGroup, ArtifactKind
from .incremental import IncrementalFetchPolicy
from .pagination import PageDrainer

logger = get_logger(__name__)


@dataclass(frozen=True)
class Category:
    """A resource category of the account.

    Attributes:
        name: Category name ("styles")
        label: Progress line label for the listing
        scope: Scope flag that enables the listing
        list_file: File the drained list is saved to
        list_pages: ``client -> fetch_page`` for the list endpoint
        groups: Artifact groups the category can fetch per item
    """

    name: str
    label: str
    scope: str
    list_file: str
    list_pages: Callable[[Any], FetchPage]
    groups: tuple[ArtifactGroup, ...] = ()


@dataclass
class GroupPlan:
    """Artifact jobs of one group, decided before any download starts."""

    group: ArtifactGroup
    jobs: list[ArtifactJob] = field(default_factory=list)
    skipped: int = 0


def _quiet_reporter() -> ProgressReporter:
    return ProgressReporter(enabled=False)


@dataclass
class ResourceBackupJob:
    """Back up one category: list, persist, fetch sub-artifacts."""

    category: Category
    client: Any
    store: LocalStore
    groups: tuple[ArtifactGroup, ...] = ()
    policy: IncrementalFetchPolicy = field(default_factory=IncrementalFetchPolicy)
    scheduler_factory: Callable[[], RateLimitedScheduler] = RateLimitedScheduler
    reporter: ProgressReporter = field(default_factory=_quiet_reporter)

    async def run(self) -> CategoryResult:
        result = CategoryResult(category=self.category.name)

        with log_context(category=self.category.name, phase="listing"):
            drained = await self._list(result)

        if result.state == CategoryState.FAILED:
            # Sub-artifacts can't be addressed without the list
            return result

        result.state = CategoryState.FETCHING

        # Sprite decisions read styles/<id>.json, which the documents group
        # rewrites, so every group is decided before the first download
        with log_context(category=self.category.name, phase="planning"):
            try:
                plans = [self._plan_group(group, drained.items) for group in self.groups]
            except Exception as e:
                result.state = CategoryState.FAILED
                result.fatal_error = e
                logger.error(f"Could not prepare {self.category.name} artifacts: {e}")
                return result

        for plan in plans:
            with log_context(category=self.category.name, phase=plan.group.scope):
                result.groups.append(await self._fetch_group(plan))

        result.state = CategoryState.DONE
        return result

    async def _list(self, result: CategoryResult) -> DrainResult:
        line = self.reporter.line(self.category.label)

        try:
            fetch_page = self.category.list_pages(self.client)
        except BackupError as e:
            drained = DrainResult(error=AggregatedError.from_errors([e]), truncated=True)
        else:
            drained = await PageDrainer(fetch_page, on_page=lambda _page: line.page()).drain()

        result.listing_error = drained.error

        if not drained.truncated:
            try:
                self.store.write_json(self.store.path(self.category.list_file), drained.items)
            except OSError as e:
                result.listing_error = AggregatedError.from_errors([*(drained.error or ()), e])
                drained.truncated = True

        if drained.truncated:
            # Keep whatever list an earlier run saved
            line.abort()
            result.state = CategoryState.FAILED
            logger.error(f"{self.category.label} failed: {result.listing_error}")
            return drained

        if drained.error is not None:
            logger.warning(f"{self.category.label} completed with page errors: {drained.error}")

        result.item_count = len(drained.items)
        line.finish_listing(result.item_count, with_errors=drained.error is not None)
        logger.info(
            f"Saved {result.item_count} {self.category.name}",
            extra={"pages": drained.pages},
        )
        return drained

    def _plan_group(self, group: ArtifactGroup, items: list[Item]) -> GroupPlan:
        """Run the incremental check for every (item, kind) of a group."""
        for directory in {kind.directory for kind in group.kinds}:
            self.store.ensure_dir(directory)

        plan = GroupPlan(group)
        for item in items:
            for kind in group.kinds:
                job = self._artifact_job(kind, item)
                if job.check is not None and job.check() == FetchDecision.SKIP:
                    plan.skipped += 1
                else:
                    plan.jobs.append(job)

        logger.info(
            f"{group.label}: {len(plan.jobs)} to fetch, {plan.skipped} unchanged",
            extra={"items": len(items)},
        )
        return plan

    async def _fetch_group(self, plan: GroupPlan) -> GroupResult:
        line = self.reporter.line(plan.group.label)
        for _ in range(plan.skipped):
            line.skip()

        scheduler = self.scheduler_factory()
        scheduler.on_settled = lambda _job_id, error: line.fail() if error else line.success()
        schedule = await scheduler.run(plan.jobs)
        line.finish()

        return GroupResult(label=plan.group.label, schedule=schedule, skipped=plan.skipped)

    def _artifact_job(self, kind: ArtifactKind, item: Item) -> ArtifactJob:
        root = self.store.root
        path = kind.path_for(root, item)
        return ArtifactJob(
            id=kind.job_id(item),
            operation=partial(self._download, kind, item, path),
            path=path,
            check=partial(
                self.policy.decide,
                item_modified(item, self.policy.timestamp_field),
                path,
                kind.stamp_path_for(root, item),
            ),
        )

    async def _download(self, kind: ArtifactKind, item: Item, path: Path) -> None:
        with log_context(item=item_id(item), artifact=kind.name):
            payload = await kind.fetch(self.client, item)
            if kind.binary:
                self.store.write_bytes(path, payload)
            else:
                self.store.write_json(path, payload)
            logger.debug(f"Saved {path.name}")
