"""Layered configuration for runorch."""

from runorch.config.loader import ConfigLoadError, YAMLConfigLoader
from runorch.config.manager import ConfigManager, ReloadResult
from runorch.config.models import (
    APIConfig,
    ExecutionConfig,
    OrchestratorSettings,
    PeerConfig,
    StoreConfig,
    TasksConfig,
)

__all__ = [
    "APIConfig",
    "ConfigLoadError",
    "ConfigManager",
    "ExecutionConfig",
    "OrchestratorSettings",
    "PeerConfig",
    "ReloadResult",
    "StoreConfig",
    "TasksConfig",
    "YAMLConfigLoader",
]
