"""In-memory run state store for tests and single-process deployments."""

from __future__ import annotations

import asyncio

from runorch.errors import InvalidRunTransitionError, RunAlreadyExistsError, RunNotFoundError
from runorch.models import RecordStatus, RunRecord, RunSummary, utc_now
from runorch.store.base import RunStateStore


class InMemoryRunStateStore(RunStateStore):
    """Dict-backed store guarded by an asyncio lock."""

    def __init__(self) -> None:
        self._records: dict[str, RunRecord] = {}
        self._lock = asyncio.Lock()

    async def create(self, record: RunRecord) -> RunRecord:
        async with self._lock:
            if record.run_id in self._records:
                raise RunAlreadyExistsError(record.run_id)
            self._records[record.run_id] = record
        return record

    async def get(self, run_id: str) -> RunRecord | None:
        return self._records.get(run_id)

    async def update(
        self,
        run_id: str,
        *,
        status: RecordStatus,
        summary: RunSummary | None = None,
        error: str | None = None,
    ) -> RunRecord:
        async with self._lock:
            current = self._records.get(run_id)
            if current is None:
                raise RunNotFoundError(run_id)
            if current.is_terminal:
                raise InvalidRunTransitionError(run_id, current.status, status)
            updated = current.model_copy(
                update={"status": status, "summary": summary, "error": error, "updated_at": utc_now()}
            )
            self._records[run_id] = updated
        return updated
