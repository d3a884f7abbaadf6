"""Layered configuration manager for runorch."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, ClassVar

from runorch.config.loader import YAMLConfigLoader
from runorch.config.models import OrchestratorSettings

logger = logging.getLogger(__name__)

ConfigListener = Callable[[OrchestratorSettings, OrchestratorSettings], None]

# Sections that running servers pick up without a restart.
HOT_RELOAD_SECTIONS = ("execution", "regions", "log_level")


def deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = dict(base)
    for key, value in updates.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def env_overrides() -> dict[str, Any]:
    """Settings supplied through ``RUNORCH_*`` variables only.

    pydantic-settings parses and validates the environment
    (``RUNORCH_EXECUTION__DEFAULT_TIMEOUT_MS=60000``,
    ``RUNORCH_REGIONS__EU=http://peer-eu``); fields the environment leaves
    unset are dropped so they cannot mask the YAML layer.
    """
    return OrchestratorSettings().model_dump(exclude_unset=True)


def changed_sections(old: OrchestratorSettings, new: OrchestratorSettings) -> dict[str, Any]:
    """Top-level sections whose value differs, mapped to the new value."""
    old_dump = old.model_dump()
    new_dump = new.model_dump()
    return {name: value for name, value in new_dump.items() if old_dump.get(name) != value}


@dataclass(frozen=True)
class ReloadResult:
    """Sections applied live and sections that need a restart."""

    applied: dict[str, Any]
    skipped: dict[str, Any]


class ConfigManager:
    """Thread-safe singleton holding the active OrchestratorSettings.

    Layers, lowest to highest: model defaults, YAML file, ``RUNORCH_*``
    environment, runtime overrides.
    """

    _instance: ClassVar[ConfigManager | None] = None
    _class_lock: ClassVar[Lock] = Lock()

    def __init__(self) -> None:
        self._lock = Lock()
        self._settings = OrchestratorSettings.model_validate({})
        self._listeners: list[ConfigListener] = []
        self._config_path: str | None = None
        self._runtime_overrides: dict[str, Any] = {}

    @classmethod
    def instance(cls) -> ConfigManager:
        if cls._instance is not None:
            return cls._instance
        with cls._class_lock:
            if cls._instance is None:
                cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset_for_tests(cls) -> None:
        with cls._class_lock:
            cls._instance = None

    @staticmethod
    def _build(config_path: str | None, runtime_overrides: dict[str, Any]) -> OrchestratorSettings:
        merged = deep_merge(YAMLConfigLoader.load_dict(config_path), env_overrides())
        return OrchestratorSettings.model_validate(deep_merge(merged, runtime_overrides))

    @classmethod
    def load(cls, config_path: str | None = None, overrides: dict[str, Any] | None = None) -> ConfigManager:
        """Load settings from every layer and notify listeners."""
        manager = cls.instance()
        runtime_overrides = overrides or {}
        new_settings = cls._build(config_path, runtime_overrides)
        with manager._lock:
            old = manager._settings
            manager._settings = new_settings
            manager._config_path = config_path
            manager._runtime_overrides = runtime_overrides
            listeners = list(manager._listeners)
        logger.debug("config_loaded path=%s regions=%d", config_path, len(new_settings.regions))
        for callback in listeners:
            callback(old, new_settings)
        return manager

    def get(self) -> OrchestratorSettings:
        with self._lock:
            return self._settings

    def on_change(self, callback: ConfigListener) -> None:
        with self._lock:
            self._listeners.append(callback)

    def reload(self, config_path: str | None = None) -> ReloadResult:
        """Re-read every layer and swap in the hot-reloadable sections.

        Region maps are replaced whole, so a region removed from the file
        disappears. Changes to ``api``, ``store``, ``tasks`` and ``peer`` are
        reported as skipped.
        """
        with self._lock:
            old_settings = self._settings
            target_path = config_path if config_path is not None else self._config_path
            runtime_overrides = dict(self._runtime_overrides)

        candidate = self._build(target_path, runtime_overrides)
        changes = changed_sections(old_settings, candidate)
        applied = {name: value for name, value in changes.items() if name in HOT_RELOAD_SECTIONS}
        skipped = {name: value for name, value in changes.items() if name not in HOT_RELOAD_SECTIONS}

        with self._lock:
            self._config_path = target_path
            if not applied:
                return ReloadResult(applied=applied, skipped=skipped)
            next_settings = old_settings.model_copy(update={name: getattr(candidate, name) for name in applied})
            self._settings = next_settings
            listeners = list(self._listeners)

        logger.info("config_reloaded applied=%s skipped=%s", ",".join(sorted(applied)), ",".join(sorted(skipped)))
        for callback in listeners:
            callback(old_settings, next_settings)
        return ReloadResult(applied=applied, skipped=skipped)
