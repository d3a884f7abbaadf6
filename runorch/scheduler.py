"""Concurrency-bounded job scheduler."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from runorch.executors.base import JobExecutor
from runorch.models import Job, JobResult, utc_now

logger = logging.getLogger(__name__)


def effective_concurrency(concurrency: int | None, job_count: int) -> int:
    """Batch width for ``job_count`` jobs; missing or non-positive means unbounded."""
    if concurrency and concurrency > 0:
        return concurrency
    return job_count


async def run_all(jobs: Sequence[Job], executor: JobExecutor, concurrency: int | None = None) -> list[JobResult]:
    """Execute ``jobs`` in batches of at most ``concurrency`` and return results in input order.

    Each batch is gathered fully before the next one starts.
    """
    if not jobs:
        return []
    width = effective_concurrency(concurrency, len(jobs))
    if width >= len(jobs):
        return list(await asyncio.gather(*(_execute_contained(executor, job) for job in jobs)))

    results: list[JobResult] = []
    for offset in range(0, len(jobs), width):
        batch = jobs[offset : offset + width]
        logger.debug("batch_started run_id=%s offset=%d size=%d", batch[0].run_id, offset, len(batch))
        results.extend(await asyncio.gather(*(_execute_contained(executor, job) for job in batch)))
    return results


async def _execute_contained(executor: JobExecutor, job: Job) -> JobResult:
    started_at = utc_now()
    try:
        return await executor.execute(job)
    except Exception as exc:
        logger.exception("executor_raised job_id=%s run_id=%s", job.job_id, job.run_id)
        return JobResult.for_job(
            job,
            state="failed",
            error=str(exc) or type(exc).__name__,
            started_at=started_at,
            completed_at=utc_now(),
        )
