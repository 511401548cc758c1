"""Category registry and job planning.

Categories run in a fixed order (styles, tilesets, datasets, tokens).
Each one owns its concurrency and rate budget; artifact groups of the
same category share one token bucket.
"""

from __future__ import annotations

from functools import partial
from operator import methodcaller
from typing import Any, Callable, Iterable

from mapbox_backup.config.constants import BACKUP_SCOPES, SCOPE_REQUIRES
from mapbox_backup.config.settings import Settings
from mapbox_backup.observability.progress import ProgressReporter
from mapbox_backup.rate_limit.backoff import FixedBackoff
from mapbox_backup.rate_limit.bucket import TokenBucket
from mapbox_backup.rate_limit.scheduler import RateLimitedScheduler
from mapbox_backup.storage.local import LocalStore

from .artifacts import DATASET_DOCUMENTS, STYLE_DOCUMENTS, STYLE_SPRITES
from .incremental import IncrementalFetchPolicy
from .jobs import Category, ResourceBackupJob

STYLES = Category(
    name="styles",
    label="Styles List",
    scope="styles-list",
    list_file="styles.json",
    list_pages=methodcaller("list_styles"),
    groups=(STYLE_DOCUMENTS, STYLE_SPRITES),
)

TILESETS = Category(
    name="tilesets",
    label="Tilesets List",
    scope="tilesets-list",
    list_file="tilesets.json",
    list_pages=methodcaller("list_tilesets"),
)

DATASETS = Category(
    name="datasets",
    label="Datasets List",
    scope="datasets-list",
    list_file="datasets.json",
    list_pages=methodcaller("list_datasets"),
    groups=(DATASET_DOCUMENTS,),
)

TOKENS = Category(
    name="tokens",
    label="Tokens List",
    scope="tokens-list",
    list_file="tokens.json",
    list_pages=methodcaller("list_tokens"),
)

CATEGORIES: tuple[Category, ...] = (STYLES, TILESETS, DATASETS, TOKENS)


def resolve_scopes(requested: Iterable[str] | None = None) -> set[str]:
    """Expand requested scopes with the listings they depend on.

    No scopes at all means everything.

    Raises:
        ValueError: On an unknown scope
    """
    scopes = set(requested or ())
    if not scopes:
        return set(BACKUP_SCOPES)

    unknown = scopes - set(BACKUP_SCOPES)
    if unknown:
        raise ValueError(f"Unknown scope(s): {', '.join(sorted(unknown))}")

    for scope in list(scopes):
        required = SCOPE_REQUIRES.get(scope)
        if required:
            scopes.add(required)
    return scopes


def _budget(category: Category, settings: Settings) -> tuple[int, int | None, float]:
    """(concurrency, reservoir, interval) of a category."""
    if category is STYLES:
        return (
            settings.style_concurrency,
            settings.styles_rate_reservoir,
            settings.styles_rate_interval,
        )
    if category is DATASETS:
        return (
            settings.dataset_concurrency,
            settings.datasets_rate_reservoir,
            settings.datasets_rate_interval,
        )
    return settings.listing_concurrency, None, 0.0


def scheduler_factory(
    category: Category, settings: Settings
) -> Callable[[], RateLimitedScheduler]:
    """Build the scheduler factory for a category's artifact groups.

    Every scheduler it returns draws from the same token bucket, so the
    category's rate budget covers all of its groups together.
    """
    concurrency, reservoir, interval = _budget(category, settings)
    bucket = TokenBucket(reservoir=reservoir, refill_interval=interval) if reservoir else None

    return partial(
        RateLimitedScheduler,
        concurrency=concurrency,
        bucket=bucket,
        backoff=FixedBackoff(settings.retry_delay, settings.max_retries),
    )


def plan_jobs(
    scopes: Iterable[str],
    client: Any,
    store: LocalStore,
    settings: Settings,
    policy: IncrementalFetchPolicy | None = None,
    reporter: ProgressReporter | None = None,
) -> list[ResourceBackupJob]:
    """Build the jobs for the selected scopes, in run order."""
    scopes = set(scopes)
    policy = policy or IncrementalFetchPolicy()
    reporter = reporter or ProgressReporter(enabled=False)

    jobs = []
    for category in CATEGORIES:
        if category.scope not in scopes:
            continue
        jobs.append(
            ResourceBackupJob(
                category=category,
                client=client,
                store=store,
                groups=tuple(g for g in category.groups if g.scope in scopes),
                policy=policy,
                scheduler_factory=scheduler_factory(category, settings),
                reporter=reporter,
            )
        )
    return jobs
