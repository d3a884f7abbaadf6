"""Configuration models for runorch."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Levels understood by both logging and uvicorn.
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
LOG_LEVEL_ALIASES = {"WARN": "WARNING", "FATAL": "CRITICAL"}


class APIConfig(BaseModel):
    """Orchestrator HTTP API configuration."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    prefix: str = Field(default="", description="Path prefix mounted before /orchestrator.")
    api_keys: list[str] = Field(default_factory=list, description="Accepted X-API-Key values; empty disables auth.")
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @field_validator("prefix")
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if value and not value.startswith("/"):
            value = "/" + value
        return value


class ExecutionConfig(BaseModel):
    """Job execution defaults."""

    default_timeout_ms: int = Field(default=30_000, ge=1)
    default_concurrency: int = Field(default=0, ge=0, description="0 runs every job of a run at once.")
    rpc_timeout_grace_ms: int = Field(default=5_000, ge=0)


class StoreConfig(BaseModel):
    """Run state store configuration."""

    backend: Literal["memory", "sql"] = Field(default="memory")
    database_url: str = Field(default="")


class TasksConfig(BaseModel):
    """Task registration configuration."""

    modules: list[str] = Field(default_factory=list, description="Modules imported at startup to register tasks.")


class PeerConfig(BaseModel):
    """Peer runner server configuration."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8090, ge=1, le=65535)
    region: str | None = Field(default=None)


class OrchestratorSettings(BaseSettings):
    """Root configuration model for runorch."""

    api: APIConfig = Field(default_factory=APIConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    regions: dict[str, str] = Field(default_factory=dict, description="Region name to peer endpoint base URL.")
    store: StoreConfig = Field(default_factory=StoreConfig)
    tasks: TasksConfig = Field(default_factory=TasksConfig)
    peer: PeerConfig = Field(default_factory=PeerConfig)
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="RUNORCH_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @field_validator("regions")
    @classmethod
    def _validate_regions(cls, value: dict[str, str]) -> dict[str, str]:
        normalized: dict[str, str] = {}
        for region, endpoint in value.items():
            endpoint = str(endpoint).strip().rstrip("/")
            if not endpoint:
                raise ValueError(f"region '{region}' must map to a non-empty endpoint")
            normalized[str(region).strip()] = endpoint
        return normalized

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        level = LOG_LEVEL_ALIASES.get(level, level)
        if level not in LOG_LEVELS:
            raise ValueError(f"unknown log level '{value}'; expected one of {', '.join(LOG_LEVELS)}")
        return level
