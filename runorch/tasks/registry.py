"""Named task registry consumed by the local executor and the peer server."""

from __future__ import annotations

import importlib
import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

from runorch.errors import TaskNotFoundError

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskContext:
    """Per-invocation context handed to a task handler."""

    name: str
    url: str | None
    region: str | None
    run_id: str | None
    timeout_ms: int
    input: dict[str, Any] = field(default_factory=dict)


TaskHandler = Callable[[TaskContext, dict[str, Any]], Awaitable[Any]]


@dataclass(frozen=True, slots=True)
class Task:
    """A registered task: a name bound to an async handler."""

    name: str
    handler: TaskHandler
    description: str | None = None


class TaskRegistry:
    """Name-based registry of async task handlers."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def add(self, name: str, handler: TaskHandler, *, description: str | None = None) -> Task:
        normalized = name.strip()
        if not normalized:
            raise ValueError("task name must be non-empty")
        if not inspect.iscoroutinefunction(handler):
            raise TypeError(f"Task '{normalized}' must be an async function")
        if normalized in self._tasks:
            raise ValueError(f"Task already registered: {normalized}")
        task = Task(name=normalized, handler=handler, description=description or inspect.getdoc(handler))
        self._tasks[normalized] = task
        logger.debug("task_registered name=%s", normalized)
        return task

    def register(
        self,
        name: str | None = None,
        *,
        description: str | None = None,
    ) -> Callable[[TaskHandler], TaskHandler]:
        """Decorator registering an async handler under ``name`` (defaults to the function name)."""

        def _decorator(handler: TaskHandler) -> TaskHandler:
            self.add(name or handler.__name__, handler, description=description)
            return handler

        return _decorator

    def get(self, name: str) -> Task | None:
        return self._tasks.get(name)

    def names(self) -> list[str]:
        return sorted(self._tasks.keys())

    def resolve(self, names: Iterable[str]) -> list[Task]:
        """Return tasks for ``names`` in order.

        Raises:
            TaskNotFoundError: listing every missing name, when any is unknown.
        """
        found: list[Task] = []
        missing: list[str] = []
        for name in names:
            task = self._tasks.get(name)
            if task is None:
                missing.append(name)
            else:
                found.append(task)
        if missing:
            raise TaskNotFoundError(missing, self.names())
        return found

    def load_modules(self, modules: Iterable[str]) -> list[str]:
        """Import modules whose import side effect registers tasks."""
        loaded: list[str] = []
        for module_name in modules:
            module_name = module_name.strip()
            if not module_name:
                continue
            importlib.import_module(module_name)
            loaded.append(module_name)
        if loaded:
            logger.info("task_modules_loaded modules=%s tasks=%d", ",".join(loaded), len(self._tasks))
        return loaded

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)


default_registry = TaskRegistry()
task = default_registry.register
