"""Task execution provider contract and the in-process implementation."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from pydantic import ValidationError

from runorch.models import RunnerResult
from runorch.tasks.registry import Task, TaskContext

logger = logging.getLogger(__name__)

DEFAULT_TASK_TIMEOUT_MS = 30_000


@dataclass(frozen=True, slots=True)
class TaskInvocation:
    """A resolved task paired with the input it should receive."""

    task: Task
    input: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.task.name


class TaskProvider(Protocol):
    """Executes resolved tasks and returns one result per invocation."""

    async def execute(
        self,
        invocations: Sequence[TaskInvocation],
        *,
        url: str | None = None,
        region: str | None = None,
        run_id: str | None = None,
        timeout_ms: int | None = None,
    ) -> list[RunnerResult]: ...


class InProcessTaskProvider:
    """Run task handlers sequentially in the current event loop.

    Each handler runs under its own timeout. A handler that times out or raises
    yields an ``error`` result; it never aborts the remaining handlers.
    """

    def __init__(self, *, default_timeout_ms: int = DEFAULT_TASK_TIMEOUT_MS) -> None:
        self._default_timeout_ms = default_timeout_ms

    async def execute(
        self,
        invocations: Sequence[TaskInvocation],
        *,
        url: str | None = None,
        region: str | None = None,
        run_id: str | None = None,
        timeout_ms: int | None = None,
    ) -> list[RunnerResult]:
        effective_timeout = timeout_ms if timeout_ms and timeout_ms > 0 else self._default_timeout_ms
        results: list[RunnerResult] = []
        for invocation in invocations:
            results.append(await self._run_one(invocation, url, region, run_id, effective_timeout))
        return results

    async def _run_one(
        self,
        invocation: TaskInvocation,
        url: str | None,
        region: str | None,
        run_id: str | None,
        timeout_ms: int,
    ) -> RunnerResult:
        own_url = invocation.input.get("url")
        ctx = TaskContext(
            name=invocation.name,
            url=own_url if isinstance(own_url, str) else url,
            region=region,
            run_id=run_id,
            timeout_ms=timeout_ms,
            input=dict(invocation.input),
        )
        started = time.monotonic()
        try:
            outcome = await asyncio.wait_for(
                invocation.task.handler(ctx, dict(invocation.input)),
                timeout=timeout_ms / 1000.0,
            )
            result = _coerce_outcome(invocation.name, outcome)
        except asyncio.TimeoutError:
            logger.warning("task_timeout name=%s run_id=%s timeout_ms=%d", invocation.name, run_id, timeout_ms)
            result = RunnerResult(
                name=invocation.name,
                status="error",
                error_message=f"Runner exceeded timeout of {timeout_ms}ms",
            )
        except Exception as exc:
            logger.warning("task_error name=%s run_id=%s error=%s", invocation.name, run_id, exc)
            result = RunnerResult(
                name=invocation.name,
                status="error",
                error_message=str(exc) or type(exc).__name__,
            )
        duration_ms = round((time.monotonic() - started) * 1000, 3)
        return result.model_copy(update={"duration_ms": duration_ms})


def _coerce_outcome(name: str, outcome: Any) -> RunnerResult:
    """Normalize a handler's return value into a RunnerResult."""
    if isinstance(outcome, RunnerResult):
        return outcome if outcome.name else outcome.model_copy(update={"name": name})
    if outcome is None or outcome is True:
        return RunnerResult(name=name, status="pass")
    if outcome is False:
        return RunnerResult(name=name, status="fail")
    if isinstance(outcome, Mapping):
        payload = {"name": name, **dict(outcome)}
        try:
            return RunnerResult.model_validate(payload)
        except ValidationError as exc:
            return RunnerResult(name=name, status="error", error_message=f"Invalid runner result: {exc.errors()[0]['msg']}")
    return RunnerResult(
        name=name,
        status="error",
        error_message=f"Unsupported runner result type: {type(outcome).__name__}",
    )
