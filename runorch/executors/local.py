"""In-process job execution against the task registry."""

from __future__ import annotations

import logging

from runorch.errors import TaskNotFoundError
from runorch.executors.base import JobExecutor
from runorch.models import Job, JobResult, RunMode, utc_now
from runorch.tasks.provider import InProcessTaskProvider, TaskInvocation, TaskProvider
from runorch.tasks.registry import TaskRegistry, default_registry

logger = logging.getLogger(__name__)


class LocalExecutor(JobExecutor):
    """Resolve a job's runners by name and run them through a task provider."""

    def __init__(self, registry: TaskRegistry | None = None, provider: TaskProvider | None = None) -> None:
        self._registry = registry if registry is not None else default_registry
        self._provider = provider if provider is not None else InProcessTaskProvider()

    @property
    def mode(self) -> RunMode:
        return "local"

    async def execute(self, job: Job) -> JobResult:
        started_at = utc_now()
        logger.info("job_started job_id=%s run_id=%s mode=local runners=%d", job.job_id, job.run_id, len(job.runners))
        try:
            tasks = self._registry.resolve(job.runner_names)
        except TaskNotFoundError as exc:
            logger.warning("job_failed job_id=%s run_id=%s error=%s", job.job_id, job.run_id, exc.message)
            return JobResult.for_job(job, state="failed", error=exc.message, started_at=started_at, completed_at=utc_now())

        invocations = [
            TaskInvocation(task=task, input=dict(runner.input or {}))
            for task, runner in zip(tasks, job.runners)
        ]
        try:
            results = await self._provider.execute(
                invocations,
                url=job.url,
                region=job.region,
                run_id=job.run_id,
                timeout_ms=job.timeout,
            )
        except Exception as exc:
            logger.warning("job_failed job_id=%s run_id=%s error=%s", job.job_id, job.run_id, exc)
            return JobResult.for_job(
                job,
                state="failed",
                error=str(exc) or type(exc).__name__,
                started_at=started_at,
                completed_at=utc_now(),
            )

        result = JobResult.for_job(job, state="completed", results=results, started_at=started_at, completed_at=utc_now())
        logger.info("job_finished job_id=%s run_id=%s state=%s duration_ms=%s", job.job_id, job.run_id, result.state, result.duration_ms)
        return result
