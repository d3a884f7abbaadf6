"""YAML configuration loading with ``${VAR}`` substitution."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml  # type: ignore[import-untyped]

ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


class ConfigLoadError(ValueError):
    """Raised when configuration YAML cannot be parsed."""


def substitute_env(value: Any) -> Any:
    """Recursively replace ``${VAR}`` and ``${VAR:-default}`` in string values.

    Raises:
        ConfigLoadError: a referenced variable is unset and has no default.
    """
    if isinstance(value, str):

        def _replace(match: re.Match[str]) -> str:
            name, default = match.group(1), match.group(2)
            if name in os.environ:
                return os.environ[name]
            if default is not None:
                return default
            raise ConfigLoadError(f"Environment variable {name} referenced in config is not set")

        return ENV_VAR_PATTERN.sub(_replace, value)
    if isinstance(value, dict):
        return {key: substitute_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [substitute_env(item) for item in value]
    return value


class YAMLConfigLoader:
    """Locate and parse runorch.yaml."""

    DEFAULT_FILENAME = "runorch.yaml"
    ENV_VAR = "RUNORCH_CONFIG"

    @classmethod
    def resolve_path(cls, cli_path: str | None = None) -> Path:
        """Resolve config path by priority: RUNORCH_CONFIG, then CLI path, then ./runorch.yaml."""
        env_path = os.environ.get(cls.ENV_VAR, "").strip()
        if env_path:
            return Path(env_path)
        if cli_path and cli_path.strip():
            return Path(cli_path.strip())
        return Path.cwd() / cls.DEFAULT_FILENAME

    @classmethod
    def load_dict(cls, path: str | Path | None = None) -> dict[str, Any]:
        """Parse YAML into a dict; a missing or empty file yields ``{}``."""
        target = cls.resolve_path(str(path) if path is not None else None)
        if not target.is_file():
            return {}
        text = target.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            mark = getattr(exc, "problem_mark", None)
            location = f"{target}:{mark.line + 1}:{mark.column + 1}" if mark is not None else str(target)
            raise ConfigLoadError(f"Invalid YAML at {location}") from exc
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigLoadError(f"Config root must be a mapping: {target}")
        return substitute_env(data)

    @staticmethod
    def template_path() -> Path:
        """Bundled starter configuration written by ``runorch init``."""
        return Path(__file__).resolve().parents[1] / "templates" / "runorch.yaml"
