"""Fan-in: fold job results into a run summary and derive polling status."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from runorch.models import Job, JobResult, JobState, RunCounters, RunStatus, RunSummary, elapsed_ms


def overall_state(job_results: Sequence[JobResult]) -> JobState:
    """Collapse job states into one run state.

    Precedence: all queued, then any running, any timed_out, any failed, all
    completed. An empty or otherwise mixed set is ``failed``.
    """
    states = [result.state for result in job_results]
    if states and all(state == "queued" for state in states):
        return "queued"
    if "running" in states:
        return "running"
    if "timed_out" in states:
        return "timed_out"
    if "failed" in states:
        return "failed"
    if states and all(state == "completed" for state in states):
        return "completed"
    return "failed"


def count_results(job_results: Sequence[JobResult]) -> RunCounters:
    passed = failed = errored = 0
    for job_result in job_results:
        for result in job_result.results:
            if result.status == "pass":
                passed += 1
            elif result.status == "fail":
                failed += 1
            else:
                errored += 1
    return RunCounters(total=passed + failed + errored, passed=passed, failed=failed, errored=errored)


def aggregate(
    run_id: str,
    jobs: Sequence[Job],
    job_results: Sequence[JobResult],
    created_at: datetime,
    completed_at: datetime | None = None,
) -> RunSummary:
    """Build the run summary; pure and deterministic for equal inputs."""
    return RunSummary(
        run_id=run_id,
        state=overall_state(job_results),
        jobs=list(job_results),
        summary=count_results(job_results),
        created_at=created_at,
        completed_at=completed_at,
        duration_ms=elapsed_ms(created_at, completed_at),
    )


def derive_status(summary: RunSummary) -> RunStatus:
    """Polling view of a finished run."""
    completed = sum(1 for job in summary.jobs if job.state == "completed")
    failed = sum(1 for job in summary.jobs if job.state in ("failed", "timed_out"))
    return RunStatus(
        run_id=summary.run_id,
        state=summary.state,
        total_jobs=len(summary.jobs),
        completed_jobs=completed,
        failed_jobs=failed,
        created_at=summary.created_at,
        updated_at=summary.completed_at or summary.created_at,
    )
