"""Unit tests for the runorch command line."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import httpx
import pytest
from typer.testing import CliRunner

from runorch.cli import app
from runorch.config.loader import YAMLConfigLoader
from runorch.config.models import OrchestratorSettings

runner = CliRunner()

SUMMARY = {
    "runId": "run_cli",
    "state": "completed",
    "jobs": [
        {
            "jobId": "job_1",
            "runId": "run_cli",
            "state": "completed",
            "results": [{"name": "ok", "status": "pass"}],
        }
    ],
    "summary": {"total": 1, "passed": 1, "failed": 0, "errored": 0},
    "createdAt": "2026-01-01T00:00:00Z",
    "completedAt": "2026-01-01T00:00:01Z",
    "durationMs": 1000,
}


def _patch_client(monkeypatch: pytest.MonkeyPatch, routes: dict[tuple[str, str], tuple[int, dict[str, Any]]]) -> list[httpx.Request]:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        status, body = routes[(request.method, request.url.path)]
        return httpx.Response(status, json=body)

    def _build(base_url: str, api_key: str = "", timeout_seconds: float = 30.0) -> httpx.Client:
        headers = {"X-API-Key": api_key} if api_key else {}
        return httpx.Client(base_url=base_url, headers=headers, transport=httpx.MockTransport(handler))

    monkeypatch.setattr("runorch.cli.runs.build_client", _build)
    return seen


def _request_file(tmp_path: Path) -> Path:
    path = tmp_path / "run.json"
    path.write_text(json.dumps({"runners": [{"name": "ok", "input": {"url": "https://x"}}]}), encoding="utf-8")
    return path


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.output.startswith("runorch ")


def test_init_writes_template_and_refuses_overwrite(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", "--path", str(tmp_path)])
    assert result.exit_code == 0
    written = tmp_path / "runorch.yaml"
    assert "execution:" in written.read_text(encoding="utf-8")

    again = runner.invoke(app, ["init", "--path", str(tmp_path)])
    assert again.exit_code == 1

    written.write_text("stale", encoding="utf-8")
    forced = runner.invoke(app, ["init", "--path", str(tmp_path), "--force"])
    assert forced.exit_code == 0
    assert "regions:" in written.read_text(encoding="utf-8")


def test_init_prefills_regions(tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["init", "--path", str(tmp_path), "--region", "eu=http://peer-eu:8090/", "-r", "us=http://peer-us:8090"]
    )
    assert result.exit_code == 0
    settings = OrchestratorSettings.model_validate(YAMLConfigLoader.load_dict(tmp_path / "runorch.yaml"))
    assert settings.regions == {"eu": "http://peer-eu:8090", "us": "http://peer-us:8090"}
    assert settings.execution.default_timeout_ms == 30_000


def test_init_rejects_malformed_region(tmp_path: Path) -> None:
    result = runner.invoke(app, ["init", "--path", str(tmp_path), "--region", "eu"])
    assert result.exit_code == 1
    assert not (tmp_path / "runorch.yaml").exists()


def test_submit_prints_run_id_and_sends_api_key(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    seen = _patch_client(monkeypatch, {("POST", "/orchestrator"): (202, {"runId": "run_cli"})})
    result = runner.invoke(app, ["submit", str(_request_file(tmp_path)), "--api-key", "secret"])
    assert result.exit_code == 0
    assert "Submitted run_cli" in result.output
    assert seen[0].headers["X-API-Key"] == "secret"
    assert json.loads(seen[0].content)["runners"][0]["name"] == "ok"


def test_submit_wait_polls_then_prints_result(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_client(
        monkeypatch,
        {
            ("POST", "/api/orchestrator"): (202, {"runId": "run_cli"}),
            ("GET", "/api/orchestrator/run_cli/status"): (200, {"runId": "run_cli", "state": "completed"}),
            ("GET", "/api/orchestrator/run_cli"): (200, SUMMARY),
        },
    )
    result = runner.invoke(
        app, ["submit", str(_request_file(tmp_path)), "--prefix", "/api", "--wait", "--interval", "0", "--json"]
    )
    assert result.exit_code == 0
    assert '"passed": 1' in result.output


def test_submit_rejected_request_exits_non_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_client(
        monkeypatch,
        {("POST", "/orchestrator"): (400, {"error": "planning_error", "message": "Runner \"ok\" must have a url"})},
    )
    result = runner.invoke(app, ["submit", str(_request_file(tmp_path))])
    assert result.exit_code == 1
    assert "400 planning_error" in result.output


def test_status_command(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_client(
        monkeypatch,
        {
            ("GET", "/orchestrator/run_cli/status"): (
                200,
                {"runId": "run_cli", "state": "running", "totalJobs": 0, "completedJobs": 0, "failedJobs": 0},
            )
        },
    )
    result = runner.invoke(app, ["status", "run_cli"])
    assert result.exit_code == 0
    assert "run_cli" in result.output
    assert "running" in result.output


def test_result_command_renders_table(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_client(monkeypatch, {("GET", "/orchestrator/run_cli"): (200, SUMMARY)})
    result = runner.invoke(app, ["result", "run_cli"])
    assert result.exit_code == 0
    assert "job_1" in result.output
    assert "total=1 passed=1 failed=0 errored=0" in result.output


def test_result_of_running_run_exits_non_zero(monkeypatch: pytest.MonkeyPatch) -> None:
    _patch_client(
        monkeypatch,
        {("GET", "/orchestrator/run_cli"): (409, {"error": "run_running", "message": "Run run_cli is still running."})},
    )
    result = runner.invoke(app, ["result", "run_cli"])
    assert result.exit_code == 1
    assert "409 run_running" in result.output


def test_sighup_reloads_hot_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    import signal

    from runorch.cli.serve import _install_reload_signal
    from runorch.config.manager import ConfigManager

    if not hasattr(signal, "SIGHUP"):
        pytest.skip("platform has no SIGHUP")
    cfg_path = tmp_path / "runorch.yaml"
    cfg_path.write_text("regions:\n  eu: http://peer-eu\n", encoding="utf-8")
    manager = ConfigManager.load(config_path=str(cfg_path))

    installed: dict[int, Any] = {}
    monkeypatch.setattr(signal, "signal", lambda signum, handler: installed.__setitem__(signum, handler))
    _install_reload_signal(manager)

    cfg_path.write_text("regions:\n  us: http://peer-us\n", encoding="utf-8")
    installed[signal.SIGHUP](signal.SIGHUP, None)
    assert manager.get().regions == {"us": "http://peer-us"}

    cfg_path.write_text("regions: [broken\n", encoding="utf-8")
    installed[signal.SIGHUP](signal.SIGHUP, None)
    assert manager.get().regions == {"us": "http://peer-us"}
