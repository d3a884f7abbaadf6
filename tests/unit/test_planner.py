from __future__ import annotations

import pytest

from runorch.errors import PlanningError
from runorch.models import RunRequest
from runorch.planner import DEFAULT_TIMEOUT_MS, generate_job_id, generate_run_id, plan


def _request(runners: list[dict], mode: str = "local", **extra) -> RunRequest:
    return RunRequest.model_validate({"runners": runners, "mode": mode, **extra})


def test_local_groups_by_url_in_first_appearance_order() -> None:
    request = _request(
        [
            {"name": "a", "input": {"url": "https://one"}},
            {"name": "b", "input": {"url": "https://two"}},
            {"name": "c", "input": {"url": "https://one", "depth": 3}},
        ]
    )
    jobs = plan(request, "run_1")
    assert [job.url for job in jobs] == ["https://one", "https://two"]
    assert [job.runner_names for job in jobs] == [["a", "c"], ["b"]]
    assert all(job.region is None for job in jobs)
    assert all(job.run_id == "run_1" for job in jobs)


def test_local_fanout_covers_every_runner_exactly_once() -> None:
    runners = [{"name": f"r{i}", "input": {"url": f"https://t{i % 3}"}} for i in range(10)]
    jobs = plan(_request(runners), "run_1")
    planned = [name for job in jobs for name in job.runner_names]
    assert sorted(planned) == sorted(runner["name"] for runner in runners)
    for job in jobs:
        assert len({runner.url for runner in job.runners}) == 1


def test_remote_splits_same_url_by_region() -> None:
    request = _request(
        [
            {"name": "a", "region": "eu", "input": {"url": "https://x"}},
            {"name": "b", "region": "us", "input": {"url": "https://x"}},
        ],
        mode="remote",
    )
    jobs = plan(request, "run_1")
    assert [(job.region, job.runner_names) for job in jobs] == [("eu", ["a"]), ("us", ["b"])]


def test_remote_groups_same_url_and_region_together() -> None:
    request = _request(
        [
            {"name": "a", "region": "eu", "input": {"url": "https://x"}},
            {"name": "b", "region": "eu", "input": {"url": "https://x"}},
            {"name": "c", "region": "eu", "input": {"url": "https://y"}},
        ],
        mode="remote",
    )
    jobs = plan(request, "run_1")
    assert [job.runner_names for job in jobs] == [["a", "b"], ["c"]]


def test_local_runner_without_url_is_a_planning_error() -> None:
    request = _request([{"name": "ok", "input": {"url": "https://x"}}, {"name": "broken", "input": {}}])
    with pytest.raises(PlanningError) as exc_info:
        plan(request, "run_1")
    assert exc_info.value.runner_name == "broken"
    assert '"broken"' in str(exc_info.value)


def test_remote_runner_without_region_is_a_planning_error() -> None:
    request = _request([{"name": "a", "input": {"url": "https://x"}}], mode="remote")
    with pytest.raises(PlanningError) as exc_info:
        plan(request, "run_1")
    assert "region" in str(exc_info.value)


def test_remote_runner_without_url_is_a_planning_error() -> None:
    request = _request([{"name": "a", "region": "eu"}], mode="remote")
    with pytest.raises(PlanningError, match="url"):
        plan(request, "run_1")


def test_timeout_defaults_and_request_override() -> None:
    runners = [{"name": "a", "input": {"url": "https://x"}}]
    assert plan(_request(runners), "run_1")[0].timeout == DEFAULT_TIMEOUT_MS
    assert plan(_request(runners), "run_1", default_timeout_ms=1000)[0].timeout == 1000
    assert plan(_request(runners, timeout=250), "run_1", default_timeout_ms=1000)[0].timeout == 250


def test_generated_ids_are_prefixed_and_unique() -> None:
    run_ids = {generate_run_id() for _ in range(50)}
    job_ids = {generate_job_id() for _ in range(50)}
    assert len(run_ids) == 50 and all(run_id.startswith("run_") for run_id in run_ids)
    assert len(job_ids) == 50 and all(job_id.startswith("job_") for job_id in job_ids)
