"""CLI tools: runorch init, serve, peer, submit, status, result."""

from __future__ import annotations

import sys
from importlib import metadata
from pathlib import Path

import typer

from runorch.cli.init_config import init_config_command
from runorch.cli.runs import DEFAULT_BASE_URL, result_command, status_command, submit_command
from runorch.cli.serve import peer_command, serve_command

app = typer.Typer(
    name="runorch",
    help="runorch: fan runner tasks out into jobs and run them locally or on regional peers.",
    no_args_is_help=True,
)

BASE_URL_OPTION = typer.Option(DEFAULT_BASE_URL, "--base-url", envvar="RUNORCH_BASE_URL", help="Orchestrator base URL")
API_KEY_OPTION = typer.Option("", "--api-key", envvar="RUNORCH_API_KEY", help="Value for the X-API-Key header")
PREFIX_OPTION = typer.Option("", "--prefix", help="API path prefix configured on the server")


def _version_callback(value: bool) -> None:
    if not value:
        return
    try:
        version = metadata.version("runorch")
    except metadata.PackageNotFoundError:
        version = "unknown"
    typer.echo(f"runorch {version}")
    raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(False, "--version", "-V", callback=_version_callback, is_eager=True, help="Show version"),
) -> None:
    """runorch command line."""


@app.command("init")
def init_command(
    path: str = typer.Option(".", "--path", help="Output directory"),
    force: bool = typer.Option(False, "--force", help="Overwrite existing runorch.yaml"),
    region: list[str] = typer.Option([], "--region", "-r", help="Peer region as NAME=URL (repeatable)"),
) -> None:
    """Generate a default runorch.yaml in the target directory."""
    try:
        init_config_command(path=path, force=force, regions=region)
    except (FileExistsError, ValueError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc


@app.command("serve")
def serve(
    config: str = typer.Option("", "--config", "-c", help="Config file path"),
    host: str = typer.Option("", "--host", help="Bind host (overrides api.host)"),
    port: int = typer.Option(0, "--port", help="Bind port (overrides api.port)"),
) -> None:
    """Run the orchestrator HTTP API."""
    serve_command(config=config or None, host=host or None, port=port or None)


@app.command("peer")
def peer(
    config: str = typer.Option("", "--config", "-c", help="Config file path"),
    host: str = typer.Option("", "--host", help="Bind host (overrides peer.host)"),
    port: int = typer.Option(0, "--port", help="Bind port (overrides peer.port)"),
    region: str = typer.Option("", "--region", help="Region this peer serves"),
    module: list[str] = typer.Option([], "--module", "-m", help="Task module to import (repeatable)"),
) -> None:
    """Run a peer serving registered tasks over POST /execute."""
    peer_command(config=config or None, host=host or None, port=port or None, region=region or None, modules=module)


@app.command("submit")
def submit(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="JSON run request"),
    base_url: str = BASE_URL_OPTION,
    api_key: str = API_KEY_OPTION,
    prefix: str = PREFIX_OPTION,
    wait: bool = typer.Option(False, "--wait", help="Poll until the run finishes and print its result"),
    interval: float = typer.Option(1.0, "--interval", help="Polling interval in seconds"),
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Submit a run request and print its run id."""
    submit_command(file, base_url=base_url, api_key=api_key, prefix=prefix, wait=wait, interval=interval, as_json=as_json)


@app.command("status")
def status(
    run_id: str = typer.Argument(..., help="Run id"),
    base_url: str = BASE_URL_OPTION,
    api_key: str = API_KEY_OPTION,
    prefix: str = PREFIX_OPTION,
) -> None:
    """Show the status of a run."""
    status_command(run_id, base_url=base_url, api_key=api_key, prefix=prefix)


@app.command("result")
def result(
    run_id: str = typer.Argument(..., help="Run id"),
    base_url: str = BASE_URL_OPTION,
    api_key: str = API_KEY_OPTION,
    prefix: str = PREFIX_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Print the result as JSON"),
) -> None:
    """Show the final summary of a finished run."""
    result_command(run_id, base_url=base_url, api_key=api_key, prefix=prefix, as_json=as_json)


def main() -> None:
    """CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        sys.exit(130)
