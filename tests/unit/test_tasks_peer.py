from __future__ import annotations

from collections.abc import Sequence

from starlette.testclient import TestClient

from runorch.models import RunnerResult
from runorch.tasks.peer import create_peer_app
from runorch.tasks.provider import TaskInvocation
from runorch.tasks.registry import TaskRegistry


class _FailingProvider:
    async def execute(self, invocations: Sequence[TaskInvocation], **kwargs: object) -> list[RunnerResult]:
        raise RuntimeError("provider crashed")


def test_execute_runs_named_tasks_with_shared_url(registry: TaskRegistry) -> None:
    client = TestClient(create_peer_app(registry, region="eu"))
    response = client.post(
        "/execute",
        json={"url": "https://target.example", "runners": ["ok", {"name": "fails"}], "runId": "run_1"},
    )
    assert response.status_code == 200
    body = response.json()
    assert body["runId"] == "run_1"
    assert body["region"] == "eu"
    assert [(item["name"], item["status"]) for item in body["results"]] == [("ok", "pass"), ("fails", "fail")]
    assert body["results"][0]["details"] == {"url": "https://target.example", "region": "eu"}


def test_unknown_runners_return_not_found_envelope(registry: TaskRegistry) -> None:
    client = TestClient(create_peer_app(registry))
    response = client.post("/execute", json={"runners": ["ok", "missing"]})
    assert response.status_code == 404
    body = response.json()
    assert body["code"] == "RUNNER_NOT_FOUND"
    assert body["data"] == {"missingRunners": ["missing"], "availableRunners": ["boom", "fails", "ok", "slow"]}


def test_invalid_payload_is_bad_request(registry: TaskRegistry) -> None:
    client = TestClient(create_peer_app(registry))
    assert client.post("/execute", content=b"not json", headers={"content-type": "application/json"}).status_code == 400
    response = client.post("/execute", json={"runners": []})
    assert response.status_code == 400
    assert response.json()["code"] == "BAD_REQUEST"


def test_provider_failure_is_execution_failed(registry: TaskRegistry) -> None:
    client = TestClient(create_peer_app(registry, provider=_FailingProvider()))
    response = client.post("/execute", json={"runners": ["ok"]})
    assert response.status_code == 500
    assert response.json()["code"] == "EXECUTION_FAILED"
    assert response.json()["message"] == "provider crashed"


def test_info_lists_registered_runners(registry: TaskRegistry) -> None:
    client = TestClient(create_peer_app(registry, region="us"))
    assert client.get("/info").json() == {"runners": ["boom", "fails", "ok", "slow"], "region": "us"}
