"""Job executor interface and mode-based executor registry."""

from __future__ import annotations

from abc import ABC, abstractmethod

from runorch.errors import ConfigurationError
from runorch.models import Job, JobResult, RunMode


class JobExecutor(ABC):
    """Interface for job execution strategies.

    ``execute`` never raises: every failure is folded into the returned
    ``JobResult`` as a ``failed`` or ``timed_out`` state.
    """

    @abstractmethod
    async def execute(self, job: Job) -> JobResult:
        """Execute one job and return its outcome."""

    @property
    @abstractmethod
    def mode(self) -> RunMode:
        """Run mode served by this executor."""


class ExecutorRegistry:
    """Mode-based executor registry; callable as an executor factory."""

    def __init__(self, *executors: JobExecutor) -> None:
        self._executors: dict[str, JobExecutor] = {}
        for executor in executors:
            self.register(executor)

    def register(self, executor: JobExecutor, mode: RunMode | None = None) -> None:
        self._executors[mode or executor.mode] = executor

    def get(self, mode: RunMode) -> JobExecutor:
        executor = self._executors.get(mode)
        if executor is None:
            supported = ", ".join(sorted(self._executors.keys())) or "<none>"
            raise ConfigurationError(f"No executor configured for mode '{mode}'. Available modes: {supported}")
        return executor

    def modes(self) -> list[str]:
        return sorted(self._executors.keys())

    def __call__(self, mode: RunMode) -> JobExecutor:
        return self.get(mode)
