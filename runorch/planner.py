"""Fan-out planner: turn a run request into independent jobs."""

from __future__ import annotations

import logging
from uuid import uuid4

from runorch.errors import PlanningError
from runorch.models import Job, RunnerConfig, RunRequest

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 30_000


def generate_run_id() -> str:
    """Generate a unique run id."""
    return f"run_{uuid4().hex}"


def generate_job_id() -> str:
    """Generate a unique job id."""
    return f"job_{uuid4().hex}"


def plan(request: RunRequest, run_id: str, *, default_timeout_ms: int = DEFAULT_TIMEOUT_MS) -> list[Job]:
    """Fan ``request`` out into jobs.

    Local mode groups runners by ``input.url``. Remote mode groups by
    ``(input.url, region)`` and stamps the region on each job. Groups keep the
    order in which their first runner appears in the request.

    Raises:
        PlanningError: a runner lacks the URL (or region, in remote mode) its
            mode requires, or remote mode produced no groups.
    """
    timeout = request.timeout if request.timeout is not None else default_timeout_ms
    if request.mode == "local":
        jobs = _plan_local(request.runners, run_id, timeout)
    else:
        jobs = _plan_remote(request.runners, run_id, timeout)
    logger.debug("fanout run_id=%s mode=%s runners=%d jobs=%d", run_id, request.mode, len(request.runners), len(jobs))
    return jobs


def _plan_local(runners: list[RunnerConfig], run_id: str, timeout: int) -> list[Job]:
    groups: dict[str, list[RunnerConfig]] = {}
    for runner in runners:
        url = runner.url
        if url is None:
            raise PlanningError(
                f'Runner "{runner.name}" must have a url in its input when mode is \'local\'',
                runner_name=runner.name,
            )
        groups.setdefault(url, []).append(runner)

    return [
        Job(job_id=generate_job_id(), run_id=run_id, runners=tuple(members), timeout=timeout)
        for members in groups.values()
    ]


def _plan_remote(runners: list[RunnerConfig], run_id: str, timeout: int) -> list[Job]:
    groups: dict[tuple[str, str], list[RunnerConfig]] = {}
    for runner in runners:
        if not runner.region:
            raise PlanningError(
                f'Runner "{runner.name}" must specify a region when mode is \'remote\'',
                runner_name=runner.name,
            )
        url = runner.url
        if url is None:
            raise PlanningError(
                f'Runner "{runner.name}" must have a url in its input when mode is \'remote\'',
                runner_name=runner.name,
            )
        groups.setdefault((url, runner.region), []).append(runner)

    if not groups:
        raise PlanningError("At least one runner with URL and region is required when mode is 'remote'")

    return [
        Job(job_id=generate_job_id(), run_id=run_id, region=region, runners=tuple(members), timeout=timeout)
        for (_url, region), members in groups.items()
    ]
