"""Server commands: the orchestrator API and a peer runner."""

from __future__ import annotations

import logging
import signal
from types import FrameType

import uvicorn
from pydantic import ValidationError
from rich.console import Console

from runorch.api.server import create_app
from runorch.config.loader import ConfigLoadError
from runorch.config.manager import ConfigManager
from runorch.config.models import OrchestratorSettings
from runorch.orchestrator import Orchestrator
from runorch.tasks.peer import create_peer_app
from runorch.tasks.provider import InProcessTaskProvider
from runorch.tasks.registry import default_registry

console = Console()
logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def _load(config: str | None, overrides: dict[str, object]) -> tuple[ConfigManager, OrchestratorSettings]:
    manager = ConfigManager.load(config_path=config, overrides=overrides)
    settings = manager.get()
    configure_logging(settings.log_level)
    return manager, settings


def _install_reload_signal(manager: ConfigManager) -> None:
    """Re-read configuration on SIGHUP where the platform has it."""
    if not hasattr(signal, "SIGHUP"):
        return

    def _reload(_signum: int, _frame: FrameType | None) -> None:
        try:
            result = manager.reload()
        except (ConfigLoadError, ValidationError):
            logger.exception("config_reload_failed")
            return
        if result.skipped:
            logger.warning("config_reload_needs_restart keys=%s", ",".join(sorted(result.skipped)))

    signal.signal(signal.SIGHUP, _reload)


def serve_command(config: str | None = None, host: str | None = None, port: int | None = None) -> None:
    """Run the orchestrator HTTP API until interrupted."""
    api_overrides: dict[str, object] = {}
    if host:
        api_overrides["host"] = host
    if port:
        api_overrides["port"] = port
    manager, settings = _load(config, {"api": api_overrides} if api_overrides else {})

    orchestrator = Orchestrator.from_settings(settings)
    orchestrator.bind_config(manager)

    def _on_level_change(_old: OrchestratorSettings, new: OrchestratorSettings) -> None:
        logging.getLogger().setLevel(new.log_level)

    manager.on_change(_on_level_change)
    _install_reload_signal(manager)
    app = create_app(settings, orchestrator)
    regions = ", ".join(orchestrator.regions()) or "<none>"
    console.print(
        f"[bold]runorch[/bold] orchestrator on {settings.api.host}:{settings.api.port} "
        f"(store={settings.store.backend}, regions={regions})"
    )
    uvicorn.run(app, host=settings.api.host, port=settings.api.port, log_level=settings.log_level.lower())


def peer_command(
    config: str | None = None,
    host: str | None = None,
    port: int | None = None,
    region: str | None = None,
    modules: list[str] | None = None,
) -> None:
    """Run a peer exposing registered tasks over the execute contract."""
    peer_overrides: dict[str, object] = {}
    if host:
        peer_overrides["host"] = host
    if port:
        peer_overrides["port"] = port
    if region:
        peer_overrides["region"] = region
    overrides: dict[str, object] = {"peer": peer_overrides} if peer_overrides else {}
    _manager, settings = _load(config, overrides)

    default_registry.load_modules([*settings.tasks.modules, *(modules or [])])
    provider = InProcessTaskProvider(default_timeout_ms=settings.execution.default_timeout_ms)
    app = create_peer_app(default_registry, provider=provider, region=settings.peer.region)
    console.print(
        f"[bold]runorch[/bold] peer on {settings.peer.host}:{settings.peer.port} "
        f"(region={settings.peer.region or '-'}, tasks={len(default_registry)})"
    )
    uvicorn.run(app, host=settings.peer.host, port=settings.peer.port, log_level=settings.log_level.lower())
