"""Client commands against a running orchestrator: submit, status, result."""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

import httpx
import typer
from rich.console import Console
from rich.table import Table

from runorch.api.auth import API_KEY_HEADER

console = Console()

DEFAULT_BASE_URL = "http://127.0.0.1:8080"


def build_client(base_url: str, api_key: str = "", timeout_seconds: float = 30.0) -> httpx.Client:
    headers = {API_KEY_HEADER: api_key} if api_key else {}
    return httpx.Client(base_url=base_url.rstrip("/"), headers=headers, timeout=timeout_seconds)


def _payload(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        data = {"message": response.text}
    return data if isinstance(data, dict) else {"value": data}


def _fail(response: httpx.Response) -> None:
    data = _payload(response)
    code = data.get("error", f"http_{response.status_code}")
    message = data.get("message", "")
    console.print(f"[red]Error[/red] {response.status_code} {code}: {message}")
    raise typer.Exit(1)


def _print_summary(summary: dict[str, Any]) -> None:
    counters = summary.get("summary", {})
    table = Table(title=f"Run {summary.get('runId')} ({summary.get('state')})")
    table.add_column("Job")
    table.add_column("Region")
    table.add_column("State")
    table.add_column("Runners")
    table.add_column("Error")
    for job in summary.get("jobs", []):
        runners = ", ".join(f"{item.get('name')}={item.get('status')}" for item in job.get("results", []))
        table.add_row(job.get("jobId", ""), job.get("region") or "-", job.get("state", ""), runners or "-", job.get("error") or "")
    console.print(table)
    console.print(
        f"total={counters.get('total', 0)} passed={counters.get('passed', 0)} "
        f"failed={counters.get('failed', 0)} errored={counters.get('errored', 0)}"
    )


def submit_command(
    file: Path,
    *,
    base_url: str = DEFAULT_BASE_URL,
    api_key: str = "",
    prefix: str = "",
    wait: bool = False,
    interval: float = 1.0,
    as_json: bool = False,
) -> str:
    """Submit the run request in ``file`` and return the run id."""
    try:
        body = json.loads(file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        console.print(f"[red]Error[/red] cannot read {file}: {exc}")
        raise typer.Exit(2) from exc

    with build_client(base_url, api_key) as client:
        response = client.post(f"{prefix}/orchestrator", json=body)
        if response.status_code != 202:
            _fail(response)
        run_id = str(_payload(response)["runId"])
        console.print(f"[green]Submitted[/green] {run_id}")
        if not wait:
            return run_id
        while True:
            status = client.get(f"{prefix}/orchestrator/{run_id}/status")
            if status.status_code != 200:
                _fail(status)
            if _payload(status).get("state") != "running":
                break
            time.sleep(interval)
        _show_result(client, run_id, prefix=prefix, as_json=as_json)
    return run_id


def status_command(run_id: str, *, base_url: str = DEFAULT_BASE_URL, api_key: str = "", prefix: str = "") -> dict[str, Any]:
    with build_client(base_url, api_key) as client:
        response = client.get(f"{prefix}/orchestrator/{run_id}/status")
    if response.status_code != 200:
        _fail(response)
    data = _payload(response)
    console.print(
        f"{data.get('runId')} [bold]{data.get('state')}[/bold] "
        f"jobs={data.get('totalJobs', 0)} completed={data.get('completedJobs', 0)} failed={data.get('failedJobs', 0)}"
    )
    return data


def result_command(
    run_id: str,
    *,
    base_url: str = DEFAULT_BASE_URL,
    api_key: str = "",
    prefix: str = "",
    as_json: bool = False,
) -> dict[str, Any]:
    with build_client(base_url, api_key) as client:
        return _show_result(client, run_id, prefix=prefix, as_json=as_json)


def _show_result(client: httpx.Client, run_id: str, *, prefix: str, as_json: bool) -> dict[str, Any]:
    response = client.get(f"{prefix}/orchestrator/{run_id}")
    if response.status_code != 200:
        _fail(response)
    data = _payload(response)
    if as_json:
        console.print_json(data=data)
    else:
        _print_summary(data)
    return data
