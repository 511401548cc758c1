"""Bounded-concurrency, rate-limited scheduler for artifact downloads.

Each job attempt needs a concurrency slot and then a token from the
bucket before its operation runs. Throttled attempts give the slot back,
wait out the backoff and queue again; everything else settles the job.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Sequence

from mapbox_backup.core.errors import is_throttling
from mapbox_backup.core.types import ArtifactJob, JobOutcome, ScheduleResult
from mapbox_backup.observability.logger import get_logger

from .backoff import BackoffPolicy, FixedBackoff
from .bucket import TokenBucket

logger = get_logger(__name__)

SettledCallback = Callable[[str, "Exception | None"], None]


@dataclass
class RateLimitedScheduler:
    """Run ArtifactJobs with at most `concurrency` in flight.

    Usage:
        scheduler = RateLimitedScheduler(concurrency=64, bucket=TokenBucket(2000))
        result = await scheduler.run(jobs)
        print(result.summary())  # "61/64"
    """

    concurrency: int = 64
    bucket: TokenBucket | None = field(default_factory=TokenBucket)  # None: unbudgeted
    backoff: BackoffPolicy = field(default_factory=FixedBackoff)
    is_retryable: Callable[[Exception], bool] = is_throttling
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    on_settled: SettledCallback | None = None

    # State
    _active: int = field(default=0, init=False)
    _peak_active: int = field(default=0, init=False)

    def __post_init__(self) -> None:
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {self.concurrency}")

    @property
    def active(self) -> int:
        """Attempts currently in flight."""
        return self._active

    @property
    def peak_active(self) -> int:
        """Highest number of attempts that were in flight at once."""
        return self._peak_active

    async def run(self, jobs: Sequence[ArtifactJob]) -> ScheduleResult:
        """Run every job to a terminal state.

        Outcomes are returned in submission order; completion order is
        whatever the network makes it.
        """
        if not jobs:
            return ScheduleResult()

        slots = asyncio.Semaphore(self.concurrency)
        outcomes = await asyncio.gather(*(self._run_job(job, slots) for job in jobs))

        result = ScheduleResult(outcomes=list(outcomes))
        if result.failed:
            logger.warning(
                f"{len(result.failed)} of {result.total} jobs failed",
                extra={"done": result.done, "total": result.total},
            )
        return result

    async def _run_job(self, job: ArtifactJob, slots: asyncio.Semaphore) -> JobOutcome:
        retry = 0

        while True:
            error = await self._attempt(job, slots)

            if error is None:
                return self._settle(JobOutcome(job.id, attempts=retry + 1))

            if not self.is_retryable(error):
                logger.debug(f"Job {job.id} failed: {type(error).__name__}: {error}")
                return self._settle(JobOutcome(job.id, attempts=retry + 1, error=error))

            if not self.backoff.allows(retry):
                logger.warning(
                    f"Job {job.id} still throttled after {retry} retries",
                    extra={"error": str(error)},
                )
                return self._settle(JobOutcome(job.id, attempts=retry + 1, error=error))

            delay = self.backoff.delay_for(retry, error)
            retry += 1
            logger.info(f"Throttled on {job.id}, retry {retry} in {delay:.1f}s")
            await self.sleep(delay)

    async def _attempt(self, job: ArtifactJob, slots: asyncio.Semaphore) -> Exception | None:
        """Run one attempt inside a slot. Returns the failure, if any."""
        async with slots:
            if self.bucket is not None:
                await self.bucket.acquire()
            self._active += 1
            self._peak_active = max(self._peak_active, self._active)
            try:
                await job.operation()
            except Exception as e:
                return e
            finally:
                self._active -= 1
        return None

    def _settle(self, outcome: JobOutcome) -> JobOutcome:
        if self.on_settled is not None:
            self.on_settled(outcome.id, outcome.error)
        return outcome
