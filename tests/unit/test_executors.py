from __future__ import annotations

import httpx
import pytest

from runorch.errors import ConfigurationError
from runorch.executors import ExecutorRegistry, LocalExecutor, RemoteExecutor
from runorch.models import Job, RunnerConfig
from runorch.tasks.http import HTTPTaskClient
from runorch.tasks.peer import create_peer_app
from runorch.tasks.registry import TaskRegistry


class _UpstreamError(Exception):
    code = "ETIMEDOUT"


class _NestedTimeoutClient:
    async def execute(self, endpoint: str, request: object, *, timeout_ms: int | None = None) -> object:
        try:
            raise _UpstreamError("upstream ETIMEDOUT")
        except _UpstreamError as exc:
            raise RuntimeError("peer call failed") from exc


class _DeepMessageTimeoutClient:
    """Timeout visible only in the message of an error two causes down."""

    async def execute(self, endpoint: str, request: object, *, timeout_ms: int | None = None) -> object:
        try:
            try:
                raise ConnectionError("upstream ETIMEDOUT")
            except ConnectionError as exc:
                raise RuntimeError("gateway failed") from exc
        except RuntimeError as exc:
            raise RuntimeError("peer call failed") from exc


class _BrokenProvider:
    async def execute(self, invocations: object, **kwargs: object) -> object:
        raise RuntimeError("provider unavailable")


def _peer_client(registry: TaskRegistry, region: str = "eu") -> HTTPTaskClient:
    return HTTPTaskClient(transport=httpx.ASGITransport(app=create_peer_app(registry, region=region)))


@pytest.mark.asyncio
async def test_local_executor_completes_with_task_results(registry: TaskRegistry, make_job) -> None:
    result = await LocalExecutor(registry).execute(make_job("ok", "fails", "boom"))
    assert result.state == "completed"
    assert [(item.name, item.status) for item in result.results] == [("ok", "pass"), ("fails", "fail"), ("boom", "error")]
    assert result.results[0].details == {"url": "https://target.example", "region": None}
    assert result.started_at is not None and result.completed_at is not None
    assert result.duration_ms is not None and result.duration_ms >= 0


@pytest.mark.asyncio
async def test_local_executor_fails_job_on_unknown_runner_without_running_others(registry: TaskRegistry, make_job) -> None:
    calls: list[str] = []

    @registry.register("tracked")
    async def tracked(ctx, payload):  # type: ignore[no-untyped-def]
        calls.append(ctx.name)
        return True

    result = await LocalExecutor(registry).execute(make_job("tracked", "ghost"))
    assert result.state == "failed"
    assert result.results == []
    assert "Runners not found: ghost" in (result.error or "")
    assert "tracked" in (result.error or "")
    assert calls == []


@pytest.mark.asyncio
async def test_local_executor_contains_provider_failure(registry: TaskRegistry, make_job) -> None:
    result = await LocalExecutor(registry, _BrokenProvider()).execute(make_job("ok"))
    assert result.state == "failed"
    assert result.error == "provider unavailable"


@pytest.mark.asyncio
async def test_local_executor_applies_job_timeout(registry: TaskRegistry) -> None:
    job = Job(
        job_id="job_t",
        run_id="run_t",
        runners=(RunnerConfig(name="slow", input={"url": "https://x", "sleep": 1.0}),),
        timeout=30,
    )
    result = await LocalExecutor(registry).execute(job)
    assert result.state == "completed"
    assert result.results[0].status == "error"
    assert result.results[0].error_message == "Runner exceeded timeout of 30ms"


@pytest.mark.asyncio
async def test_remote_executor_round_trips_through_peer(registry: TaskRegistry, make_job) -> None:
    executor = RemoteExecutor({"eu": "http://peer-eu"}, _peer_client(registry))
    result = await executor.execute(make_job("ok", "fails", region="eu"))
    assert result.state == "completed"
    assert result.region == "eu"
    assert [(item.name, item.status) for item in result.results] == [("ok", "pass"), ("fails", "fail")]
    assert result.results[0].details == {"url": "https://target.example", "region": "eu"}


@pytest.mark.asyncio
async def test_remote_executor_unknown_peer_runner_fails_job(registry: TaskRegistry, make_job) -> None:
    executor = RemoteExecutor({"eu": "http://peer-eu"}, _peer_client(registry))
    result = await executor.execute(make_job("ok", "ghost", region="eu"))
    assert result.state == "failed"
    assert "RUNNER_NOT_FOUND" in (result.error or "")


@pytest.mark.asyncio
async def test_remote_executor_unmapped_or_missing_region_fails(make_job) -> None:
    executor = RemoteExecutor({"eu": "http://peer-eu", "us": "http://peer-us"})
    unmapped = await executor.execute(make_job("ok", region="ap"))
    assert unmapped.state == "failed"
    assert unmapped.error == 'No runner URL found for region "ap". Available regions: eu, us'

    no_region = await executor.execute(make_job("ok"))
    assert no_region.state == "failed"
    assert "region" in (no_region.error or "")


@pytest.mark.asyncio
async def test_remote_executor_rejects_mixed_urls() -> None:
    job = Job(
        job_id="job_mixed",
        run_id="run_1",
        region="eu",
        timeout=1000,
        runners=(
            RunnerConfig(name="a", region="eu", input={"url": "https://one"}),
            RunnerConfig(name="b", region="eu", input={"url": "https://two"}),
        ),
    )
    result = await RemoteExecutor({"eu": "http://peer-eu"}).execute(job)
    assert result.state == "failed"
    assert "share one url" in (result.error or "")


@pytest.mark.asyncio
async def test_remote_executor_rejects_runners_without_url() -> None:
    class _UnreachableClient:
        async def execute(self, *args: object, **kwargs: object) -> object:
            raise AssertionError("no request expected")

    job = Job(
        job_id="job_no_url",
        run_id="run_1",
        region="eu",
        timeout=1000,
        runners=(RunnerConfig(name="a", region="eu", input={}), RunnerConfig(name="b", region="eu")),
    )
    result = await RemoteExecutor({"eu": "http://peer-eu"}, _UnreachableClient()).execute(job)  # type: ignore[arg-type]
    assert result.state == "failed"
    assert "without a url" in (result.error or "")


@pytest.mark.asyncio
async def test_remote_executor_classifies_timeouts(make_job) -> None:
    async def slow_peer(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("connect timed out", request=request)

    async def gateway_timeout(request: httpx.Request) -> httpx.Response:
        return httpx.Response(504, json={"message": "gateway"})

    async def server_error(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"code": "EXECUTION_FAILED", "message": "crashed"})

    job = make_job("ok", region="eu")
    regions = {"eu": "http://peer-eu"}
    for handler, expected in ((slow_peer, "timed_out"), (gateway_timeout, "timed_out"), (server_error, "failed")):
        client = HTTPTaskClient(transport=httpx.MockTransport(handler))
        result = await RemoteExecutor(regions, client).execute(job)
        assert result.state == expected, handler.__name__
        assert result.error


@pytest.mark.asyncio
async def test_remote_executor_nested_timeout_cause_is_timed_out(make_job) -> None:
    executor = RemoteExecutor({"eu": "http://peer-eu"}, _NestedTimeoutClient())  # type: ignore[arg-type]
    result = await executor.execute(make_job("ok", region="eu"))
    assert result.state == "timed_out"
    assert result.error == "peer call failed"


@pytest.mark.asyncio
async def test_remote_executor_deep_message_timeout_is_timed_out(make_job) -> None:
    executor = RemoteExecutor({"eu": "http://peer-eu"}, _DeepMessageTimeoutClient())  # type: ignore[arg-type]
    result = await executor.execute(make_job("ok", region="eu"))
    assert result.state == "timed_out"
    assert result.error == "peer call failed"


@pytest.mark.asyncio
async def test_remote_executor_reads_regions_lazily(make_job) -> None:
    regions: dict[str, str] = {}
    executor = RemoteExecutor(lambda: regions)
    first = await executor.execute(make_job("ok", region="eu"))
    assert first.state == "failed"
    regions["eu"] = "http://peer-eu"
    assert executor.resolve_endpoint("eu") == "http://peer-eu"


def test_executor_registry_selects_by_mode(registry: TaskRegistry) -> None:
    local = LocalExecutor(registry)
    executors = ExecutorRegistry(local)
    assert executors("local") is local
    assert executors.modes() == ["local"]
    with pytest.raises(ConfigurationError):
        executors("remote")
