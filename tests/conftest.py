"""Shared test fixtures for runorch."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable
from typing import Any

import pytest

from runorch.config.manager import ConfigManager
from runorch.config.models import OrchestratorSettings
from runorch.models import Job, RunnerConfig
from runorch.tasks.registry import TaskContext, TaskRegistry


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep RUNORCH_* variables from the developer shell out of tests."""
    for key in list(os.environ):
        if key.startswith("RUNORCH_"):
            monkeypatch.delenv(key, raising=False)
    ConfigManager._reset_for_tests()


@pytest.fixture
def registry() -> TaskRegistry:
    """Registry with a small set of well-behaved and misbehaving tasks."""
    reg = TaskRegistry()

    @reg.register("ok")
    async def ok(ctx: TaskContext, payload: dict[str, Any]) -> dict[str, Any]:
        return {"status": "pass", "details": {"url": ctx.url, "region": ctx.region}}

    @reg.register("fails")
    async def fails(ctx: TaskContext, payload: dict[str, Any]) -> bool:
        return False

    @reg.register("boom")
    async def boom(ctx: TaskContext, payload: dict[str, Any]) -> None:
        raise RuntimeError("boom exploded")

    @reg.register("slow")
    async def slow(ctx: TaskContext, payload: dict[str, Any]) -> bool:
        await asyncio.sleep(float(payload.get("sleep", 1.0)))
        return True

    return reg


def _make_job(
    *names: str,
    url: str = "https://target.example",
    region: str | None = None,
    run_id: str = "run_test",
    job_id: str = "job_test",
    timeout: int = 30_000,
) -> Job:
    runners = tuple(RunnerConfig(name=name, region=region, input={"url": url}) for name in names)
    return Job(job_id=job_id, run_id=run_id, runners=runners, region=region, timeout=timeout)


@pytest.fixture
def make_job() -> Callable[..., Job]:
    """Factory for jobs whose runners share one target URL."""
    return _make_job


@pytest.fixture
def make_settings() -> Callable[..., OrchestratorSettings]:
    """Build settings from keyword sections without reading the environment."""

    def _factory(**data: Any) -> OrchestratorSettings:
        return OrchestratorSettings.model_validate(data)

    return _factory
