"""Run state store backends."""

from __future__ import annotations

from runorch.errors import ConfigurationError
from runorch.store.base import RunStateStore
from runorch.store.memory import InMemoryRunStateStore
from runorch.store.sql import SQLRunStateStore


def create_store(backend: str, database_url: str | None = None) -> RunStateStore:
    """Build a store for ``backend`` (``memory`` or ``sql``)."""
    if backend == "memory":
        return InMemoryRunStateStore()
    if backend == "sql":
        if not database_url:
            raise ConfigurationError("store.database_url is required when store.backend is 'sql'")
        return SQLRunStateStore.from_url(database_url)
    raise ConfigurationError(f"Unknown store backend '{backend}'. Available backends: memory, sql")


__all__ = ["InMemoryRunStateStore", "RunStateStore", "SQLRunStateStore", "create_store"]
