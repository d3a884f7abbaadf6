"""Data models for run orchestration.

All models serialize to camelCase on the wire (``runId``, ``jobId``,
``durationMs``) and accept either camelCase or snake_case on input.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

RunMode = Literal["local", "remote"]
JobState = Literal["queued", "running", "completed", "failed", "timed_out"]
RunnerStatus = Literal["pass", "fail", "error"]
RecordStatus = Literal["running", "completed", "failed"]

JOB_STATES: tuple[str, ...] = ("queued", "running", "completed", "failed", "timed_out")
TERMINAL_RECORD_STATUSES: frozenset[str] = frozenset({"completed", "failed"})


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def elapsed_ms(start: datetime | None, end: datetime | None) -> int | None:
    """Milliseconds between two timestamps, or None when either is missing."""
    if start is None or end is None:
        return None
    return int((end - start).total_seconds() * 1000)


class WireModel(BaseModel):
    """Immutable base model with camelCase aliases."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Dump to a JSON-ready dict using wire names, omitting unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class RunnerConfig(WireModel):
    """One requested task: its name, optional region and opaque input."""

    model_config = ConfigDict(extra="forbid")

    name: str
    region: str | None = None
    input: dict[str, Any] | None = None

    @field_validator("name")
    @classmethod
    def _non_empty_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Runner name is required")
        return normalized

    @field_validator("region")
    @classmethod
    def _blank_region_is_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        return normalized or None

    @property
    def url(self) -> str | None:
        """Target URL carried in ``input.url``, if it is a non-empty string."""
        if not self.input:
            return None
        value = self.input.get("url")
        if isinstance(value, str) and value.strip():
            return value
        return None


class RunRequest(WireModel):
    """Inbound request to execute a set of runners."""

    model_config = ConfigDict(extra="forbid")

    runners: list[RunnerConfig] = Field(min_length=1)
    mode: RunMode
    concurrency: int | None = None
    timeout: int | None = Field(default=None, gt=0)
    tags: list[str] | None = None
    run_id: str | None = None

    @field_validator("run_id")
    @classmethod
    def _non_empty_run_id(cls, value: str | None) -> str | None:
        if value is None:
            return None
        normalized = value.strip()
        if not normalized:
            raise ValueError("runId must be non-empty when provided")
        return normalized


class Job(WireModel):
    """A group of runners executed together as one unit of work."""

    job_id: str
    run_id: str
    runners: tuple[RunnerConfig, ...]
    timeout: int
    region: str | None = None

    @property
    def url(self) -> str | None:
        """URL shared by the job's runners (taken from the first runner)."""
        return self.runners[0].url if self.runners else None

    @property
    def runner_names(self) -> list[str]:
        return [runner.name for runner in self.runners]


class RunnerResult(WireModel):
    """Outcome of one runner inside a job."""

    name: str = ""
    status: RunnerStatus
    details: dict[str, Any] | None = None
    error_message: str | None = None
    duration_ms: float | None = None


class JobResult(WireModel):
    """Outcome of executing one job."""

    job_id: str
    state: JobState
    results: list[RunnerResult] = Field(default_factory=list)
    region: str | None = None
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None

    @classmethod
    def for_job(
        cls,
        job: Job,
        *,
        state: JobState,
        results: Sequence[RunnerResult | dict[str, Any]] = (),
        error: str | None = None,
        started_at: datetime | None = None,
        completed_at: datetime | None = None,
    ) -> JobResult:
        """Build a result for ``job``, filling missing runner names by position."""
        normalized: list[RunnerResult] = []
        for index, raw in enumerate(results):
            item = raw if isinstance(raw, RunnerResult) else RunnerResult.model_validate(raw)
            if not item.name:
                fallback = job.runners[index].name if index < len(job.runners) else f"runner_{index}"
                item = item.model_copy(update={"name": fallback})
            normalized.append(item)
        return cls(
            job_id=job.job_id,
            region=job.region,
            state=state,
            results=normalized,
            error=error,
            started_at=started_at,
            completed_at=completed_at,
            duration_ms=elapsed_ms(started_at, completed_at),
        )


class RunCounters(WireModel):
    """Per-runner outcome tallies across a whole run."""

    total: int = 0
    passed: int = 0
    failed: int = 0
    errored: int = 0


class RunSummary(WireModel):
    """Terminal artifact of a run."""

    run_id: str
    state: JobState
    jobs: list[JobResult]
    summary: RunCounters
    created_at: datetime
    completed_at: datetime | None = None
    duration_ms: int | None = None


class RunStatus(WireModel):
    """Polling view of a run."""

    run_id: str
    state: JobState
    total_jobs: int = 0
    completed_jobs: int = 0
    failed_jobs: int = 0
    created_at: datetime
    updated_at: datetime


class RunRecord(WireModel):
    """Store record tracking one run through its lifecycle."""

    run_id: str
    status: RecordStatus
    created_at: datetime
    updated_at: datetime
    summary: RunSummary | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_RECORD_STATUSES


class SubmitResponse(WireModel):
    """Response returned by submit: only the run id."""

    run_id: str


class RunnerCall(WireModel):
    """One runner invocation inside a task execution request."""

    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class TaskExecutionRequest(WireModel):
    """Payload of the task execution contract (local or remote)."""

    runners: list[RunnerCall] = Field(min_length=1)
    url: str | None = None
    run_id: str | None = None
    region: str | None = None
    timeout: int | None = Field(default=None, gt=0)

    @field_validator("runners", mode="before")
    @classmethod
    def _accept_bare_names(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [{"name": item} if isinstance(item, str) else item for item in value]
        return value


class TaskExecutionResponse(WireModel):
    """Result of the task execution contract."""

    results: list[RunnerResult]
    region: str | None = None
    run_id: str | None = None
