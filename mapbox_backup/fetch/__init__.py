"""Listing, incremental skip and artifact fan-out per resource category."""

from .artifacts import ArtifactGroup, ArtifactKind
from .categories import CATEGORIES, plan_jobs, resolve_scopes, scheduler_factory
from .incremental import IncrementalFetchPolicy
from .jobs import Category, ResourceBackupJob
from .orchestrator import BackupOrchestrator
from .pagination import PageDrainer, drain_feature_collection, drain_pages

__all__ = [
    # Pagination
    "PageDrainer",
    "drain_pages",
    "drain_feature_collection",
    # Incremental
    "IncrementalFetchPolicy",
    # Categories
    "ArtifactKind",
    "ArtifactGroup",
    "Category",
    "CATEGORIES",
    "resolve_scopes",
    "scheduler_factory",
    "plan_jobs",
    # Jobs
    "ResourceBackupJob",
    "BackupOrchestrator",
]
