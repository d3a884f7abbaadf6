"""Run state store contract."""

from __future__ import annotations

from abc import ABC, abstractmethod

from runorch.models import RecordStatus, RunRecord, RunSummary


class RunStateStore(ABC):
    """Keyed store of run records.

    Each run is written exactly twice: ``create`` at submit and one terminal
    ``update`` when the pipeline finishes.
    """

    @abstractmethod
    async def create(self, record: RunRecord) -> RunRecord:
        """Insert a new record; raise RunAlreadyExistsError on a duplicate id."""

    @abstractmethod
    async def get(self, run_id: str) -> RunRecord | None:
        """Return the record for ``run_id`` or None."""

    @abstractmethod
    async def update(
        self,
        run_id: str,
        *,
        status: RecordStatus,
        summary: RunSummary | None = None,
        error: str | None = None,
    ) -> RunRecord:
        """Move a running record to ``status`` and refresh ``updatedAt``.

        Raises:
            RunNotFoundError: unknown ``run_id``.
            InvalidRunTransitionError: the record is already terminal.
        """

    async def initialize(self) -> None:
        """Prepare backend storage before first use."""

    async def close(self) -> None:
        """Release backend resources."""
