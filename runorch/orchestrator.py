"""Run orchestration service: submit, status and result.

``submit`` validates and plans synchronously, stores a ``running`` record and
launches the schedule/aggregate pipeline as a background task. Pipelines post a
``RunFinished`` message to a queue; a single completion handler consumes it and
performs every terminal store write.
"""

from __future__ import annotations

import asyncio
import contextlib
import functools
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import httpx
from pydantic import ValidationError

from runorch.aggregator import aggregate, derive_status
from runorch.config.manager import ConfigManager
from runorch.config.models import OrchestratorSettings
from runorch.errors import RegionNotConfiguredError, RunFailedError, RunNotFoundError, RunRequestError, RunStillRunningError
from runorch.executors.base import ExecutorRegistry, JobExecutor
from runorch.executors.local import LocalExecutor
from runorch.executors.remote import RemoteExecutor
from runorch.models import Job, RunMode, RunRecord, RunRequest, RunStatus, RunSummary, SubmitResponse, utc_now
from runorch.planner import generate_run_id, plan
from runorch.scheduler import run_all
from runorch.store import RunStateStore, create_store
from runorch.tasks.http import HTTPTaskClient
from runorch.tasks.registry import TaskRegistry, default_registry

logger = logging.getLogger(__name__)

ExecutorFactory = Callable[[RunMode], JobExecutor]


@dataclass(frozen=True, slots=True)
class RunFinished:
    """Pipeline outcome handed to the completion handler."""

    run_id: str
    summary: RunSummary | None = None
    error: str | None = None


class Orchestrator:
    """Accept runs, execute them in the background and answer polling queries."""

    def __init__(
        self,
        store: RunStateStore,
        executor_factory: ExecutorFactory | None = None,
        settings: OrchestratorSettings | None = None,
        *,
        registry: TaskRegistry | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._store = store
        self._settings = settings if settings is not None else OrchestratorSettings.model_validate({})
        self._executor_factory = executor_factory or self._default_executors(registry, transport)
        self._completions: asyncio.Queue[RunFinished] = asyncio.Queue()
        self._handler_task: asyncio.Task[None] | None = None
        self._inflight: dict[str, asyncio.Task[None]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: OrchestratorSettings,
        *,
        registry: TaskRegistry | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> Orchestrator:
        """Build an orchestrator with the configured store backend and task modules."""
        task_registry = registry if registry is not None else default_registry
        task_registry.load_modules(settings.tasks.modules)
        store = create_store(settings.store.backend, settings.store.database_url)
        return cls(store, settings=settings, registry=task_registry, transport=transport)

    def _default_executors(
        self,
        registry: TaskRegistry | None,
        transport: httpx.AsyncBaseTransport | None,
    ) -> ExecutorRegistry:
        client = HTTPTaskClient(transport=transport, grace_ms=self._settings.execution.rpc_timeout_grace_ms)
        return ExecutorRegistry(
            LocalExecutor(registry=registry),
            RemoteExecutor(lambda: self._settings.regions, client),
        )

    @property
    def settings(self) -> OrchestratorSettings:
        return self._settings

    @property
    def store(self) -> RunStateStore:
        return self._store

    def apply_settings(self, settings: OrchestratorSettings) -> None:
        """Swap in new settings; affects runs submitted afterwards and region lookups."""
        self._settings = settings

    def bind_config(self, manager: ConfigManager) -> None:
        """Follow hot reloads published by ``manager``."""

        def _on_change(_old: OrchestratorSettings, new: OrchestratorSettings) -> None:
            self.apply_settings(new)

        manager.on_change(_on_change)

    def regions(self) -> list[str]:
        return sorted(self._settings.regions.keys())

    def in_flight(self) -> list[str]:
        return list(self._inflight.keys())

    async def start(self) -> None:
        """Initialize the store and start the completion handler."""
        await self._store.initialize()
        self._ensure_handler()

    async def stop(self, *, cancel_inflight: bool = False) -> None:
        """Wait for in-flight runs (or cancel them), drain completions and stop the handler."""
        if cancel_inflight:
            for task in list(self._inflight.values()):
                task.cancel()
        await self.join()
        if self._handler_task is not None:
            self._handler_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._handler_task
            self._handler_task = None

    async def close(self) -> None:
        await self.stop()
        await self._store.close()

    async def join(self) -> None:
        """Wait until every in-flight run has reached its terminal store write."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight.values()), return_exceptions=True)
        if not self._completions.empty():
            self._ensure_handler()
        await self._completions.join()

    async def submit(self, request: RunRequest | Mapping[str, Any]) -> SubmitResponse:
        """Validate, plan and launch a run; return its id without waiting.

        Raises:
            RunRequestError: the request fails validation.
            PlanningError: runners lack the URL or region their mode requires.
            RegionNotConfiguredError: a remote job targets an unmapped region.
            RunAlreadyExistsError: the caller-supplied run id is taken.
        """
        run_request = self._validate(request)
        settings = self._settings
        run_id = run_request.run_id or generate_run_id()
        jobs = plan(run_request, run_id, default_timeout_ms=settings.execution.default_timeout_ms)
        if run_request.mode == "remote":
            self._check_regions(jobs, settings.regions)
        executor = self._executor_factory(run_request.mode)

        created_at = utc_now()
        await self._store.create(RunRecord(run_id=run_id, status="running", created_at=created_at, updated_at=created_at))
        self._ensure_handler()

        concurrency = run_request.concurrency
        if concurrency is None:
            concurrency = settings.execution.default_concurrency
        task = asyncio.create_task(
            self._pipeline(run_id, jobs, executor, concurrency, created_at),
            name=f"runorch-run:{run_id}",
        )
        self._inflight[run_id] = task
        task.add_done_callback(functools.partial(self._pipeline_done, run_id))
        logger.info("run_submitted run_id=%s mode=%s jobs=%d", run_id, run_request.mode, len(jobs))
        return SubmitResponse(run_id=run_id)

    async def get_status(self, run_id: str) -> RunStatus:
        record = await self._require(run_id)
        if record.status == "completed" and record.summary is not None:
            return derive_status(record.summary)
        state = "failed" if record.status == "failed" else "running"
        return RunStatus(run_id=run_id, state=state, created_at=record.created_at, updated_at=record.updated_at)

    async def get_results(self, run_id: str) -> RunSummary:
        record = await self._require(run_id)
        if record.status == "running":
            raise RunStillRunningError(run_id, f"{self._settings.api.prefix}/orchestrator/{run_id}/status")
        if record.status == "failed" or record.summary is None:
            raise RunFailedError(run_id, record.error)
        return record.summary

    async def _require(self, run_id: str) -> RunRecord:
        record = await self._store.get(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return record

    @staticmethod
    def _validate(request: RunRequest | Mapping[str, Any]) -> RunRequest:
        if isinstance(request, RunRequest):
            return request
        try:
            return RunRequest.model_validate(request)
        except ValidationError as exc:
            errors = exc.errors(include_url=False, include_context=False, include_input=False)
            first = errors[0]
            location = ".".join(str(part) for part in first["loc"]) or "request"
            raise RunRequestError(f"Invalid run request: {location}: {first['msg']}", details={"errors": errors}) from exc

    @staticmethod
    def _check_regions(jobs: list[Job], regions: Mapping[str, str]) -> None:
        for job in jobs:
            if job.region not in regions:
                raise RegionNotConfiguredError(str(job.region), list(regions.keys()))

    async def _pipeline(
        self,
        run_id: str,
        jobs: list[Job],
        executor: JobExecutor,
        concurrency: int,
        created_at: datetime,
    ) -> None:
        try:
            job_results = await run_all(jobs, executor, concurrency)
            summary = aggregate(run_id, jobs, job_results, created_at, utc_now())
            message = RunFinished(run_id=run_id, summary=summary)
        except Exception as exc:
            logger.exception("run_pipeline_failed run_id=%s", run_id)
            message = RunFinished(run_id=run_id, error=str(exc) or type(exc).__name__)
        await self._completions.put(message)

    def _pipeline_done(self, run_id: str, task: asyncio.Task[None]) -> None:
        self._inflight.pop(run_id, None)
        # Cancelled pipelines never post their own message, even before their first step.
        if task.cancelled():
            self._completions.put_nowait(RunFinished(run_id=run_id, error="Run cancelled"))

    def _ensure_handler(self) -> None:
        if self._handler_task is None or self._handler_task.done():
            self._handler_task = asyncio.create_task(self._completion_handler(), name="runorch-completions")

    async def _completion_handler(self) -> None:
        while True:
            message = await self._completions.get()
            try:
                await self._finalize(message)
            except Exception:
                logger.exception("run_finalize_failed run_id=%s", message.run_id)
            finally:
                self._completions.task_done()

    async def _finalize(self, message: RunFinished) -> None:
        if message.summary is not None:
            await self._store.update(message.run_id, status="completed", summary=message.summary)
            logger.info(
                "run_completed run_id=%s state=%s jobs=%d duration_ms=%s",
                message.run_id,
                message.summary.state,
                len(message.summary.jobs),
                message.summary.duration_ms,
            )
        else:
            await self._store.update(message.run_id, status="failed", error=message.error)
            logger.warning("run_failed run_id=%s error=%s", message.run_id, message.error)
