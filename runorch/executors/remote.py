"""Remote job execution through a region's peer endpoint."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping

from runorch.errors import RegionNotConfiguredError
from runorch.executors.base import JobExecutor
from runorch.executors.classify import is_timeout_error
from runorch.models import Job, JobResult, RunMode, RunnerCall, TaskExecutionRequest, utc_now
from runorch.tasks.http import HTTPTaskClient

logger = logging.getLogger(__name__)

RegionSource = Mapping[str, str] | Callable[[], Mapping[str, str]]


class RemoteExecutor(JobExecutor):
    """Dispatch each job to the peer serving its region.

    ``regions`` is either a region→endpoint mapping or a zero-argument callable
    returning one, so hot-reloaded configuration is picked up per job.
    """

    def __init__(self, regions: RegionSource, client: HTTPTaskClient | None = None) -> None:
        self._regions = regions
        self._client = client if client is not None else HTTPTaskClient()

    @property
    def mode(self) -> RunMode:
        return "remote"

    def regions(self) -> dict[str, str]:
        source = self._regions() if callable(self._regions) else self._regions
        return dict(source)

    def resolve_endpoint(self, region: str) -> str:
        regions = self.regions()
        endpoint = regions.get(region)
        if not endpoint:
            raise RegionNotConfiguredError(region, list(regions.keys()))
        return endpoint

    async def execute(self, job: Job) -> JobResult:
        started_at = utc_now()
        logger.info("job_started job_id=%s run_id=%s mode=remote region=%s", job.job_id, job.run_id, job.region)

        def _failed(message: str) -> JobResult:
            logger.warning("job_failed job_id=%s run_id=%s error=%s", job.job_id, job.run_id, message)
            return JobResult.for_job(job, state="failed", error=message, started_at=started_at, completed_at=utc_now())

        if not job.region:
            return _failed(f"Job {job.job_id} has no region; remote execution requires one")
        try:
            endpoint = self.resolve_endpoint(job.region)
        except RegionNotConfiguredError as exc:
            return _failed(exc.message)

        urls = {runner.url for runner in job.runners}
        if None in urls:
            return _failed(f"Job {job.job_id} has a runner without a url; remote execution requires one")
        if len(urls) != 1:
            listed = ", ".join(sorted(str(url) for url in urls))
            return _failed(f"Job {job.job_id} runners must share one url; found: {listed}")

        request = TaskExecutionRequest(
            url=job.url,
            runners=[RunnerCall(name=runner.name, input=dict(runner.input or {})) for runner in job.runners],
            run_id=job.run_id,
            region=job.region,
            timeout=job.timeout,
        )
        try:
            response = await self._client.execute(endpoint, request, timeout_ms=job.timeout)
        except Exception as exc:
            state = "timed_out" if is_timeout_error(exc) else "failed"
            message = str(exc) or type(exc).__name__
            logger.warning("job_%s job_id=%s run_id=%s error=%s", state, job.job_id, job.run_id, message)
            return JobResult.for_job(job, state=state, error=message, started_at=started_at, completed_at=utc_now())

        result = JobResult.for_job(
            job,
            state="completed",
            results=response.results,
            started_at=started_at,
            completed_at=utc_now(),
        )
        logger.info("job_finished job_id=%s run_id=%s state=%s duration_ms=%s", job.job_id, job.run_id, result.state, result.duration_ms)
        return result
