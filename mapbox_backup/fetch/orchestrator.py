"""Backup orchestrator.

Runs the planned category jobs one after another in category order and
collects their results. Category failures are reported, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from mapbox_backup.core.types import BackupResult, CategoryResult, CategoryState
from mapbox_backup.observability.logger import get_logger

from .jobs import ResourceBackupJob

logger = get_logger(__name__)


@dataclass
class BackupOrchestrator:
    """Run category jobs in order.

    Args:
        jobs: Planned jobs (see `plan_jobs`)
        abort_on_failure: Stop after the first category that failed
    """

    jobs: Sequence[ResourceBackupJob] = field(default_factory=list)
    abort_on_failure: bool = False

    async def run(self) -> BackupResult:
        result = BackupResult()

        for index, job in enumerate(self.jobs):
            category = await self._run_job(job)
            result.categories.append(category)

            if category.ok:
                partial = category.partial_error
                if partial is not None:
                    logger.warning(str(partial), extra={"category": category.category})
                continue

            failure = category.failure
            logger.error(
                str(failure),
                extra={"category": category.category, "error_type": type(failure).__name__},
            )
            if self.abort_on_failure:
                remaining = [j.category.name for j in self.jobs[index + 1 :]]
                if remaining:
                    logger.warning(f"Aborting; not started: {', '.join(remaining)}")
                result.aborted = True
                break

        return result

    async def _run_job(self, job: ResourceBackupJob) -> CategoryResult:
        try:
            return await job.run()
        except Exception as e:
            logger.exception(f"Category {job.category.name} stopped unexpectedly")
            return CategoryResult(
                category=job.category.name, state=CategoryState.FAILED, fatal_error=e
            )
