"""SQLAlchemy-backed run state store.

Works with ``sqlite+aiosqlite`` for development and tests and with
``postgresql+asyncpg`` in production.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Index, String, Text, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from runorch.errors import ConfigurationError, InvalidRunTransitionError, RunAlreadyExistsError, RunNotFoundError
from runorch.models import TERMINAL_RECORD_STATUSES, RecordStatus, RunRecord, RunSummary, utc_now
from runorch.store.base import RunStateStore

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Declarative base for orchestrator tables."""


class RunRow(Base):
    """One orchestration run."""

    __tablename__ = "orchestrator_runs"
    __table_args__ = (Index("idx_orchestrator_runs_status_created", "status", "created_at"),)

    run_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    summary: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def normalize_url(url: str) -> str:
    """Map plain driver URLs onto their async drivers."""
    u = url.strip()
    if not u:
        raise ConfigurationError("Database URL not set. Set RUNORCH_STORE__DATABASE_URL or store.database_url.")
    if u.startswith("postgresql://"):
        return "postgresql+asyncpg://" + u[len("postgresql://") :]
    if u.startswith("sqlite:///"):
        return "sqlite+aiosqlite:///" + u[len("sqlite:///") :]
    if u.startswith(("postgresql+asyncpg://", "sqlite+aiosqlite://")):
        return u
    raise ConfigurationError("Database URL must be PostgreSQL (postgresql+asyncpg://) or SQLite (sqlite+aiosqlite://).")


def create_engine(database_url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine; pool sizing applies to PostgreSQL only."""
    url = normalize_url(database_url)
    if url.startswith("postgresql"):
        return create_async_engine(url, pool_size=20, max_overflow=10, pool_pre_ping=True, echo=echo)
    return create_async_engine(url, echo=echo)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on round-trip.
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _to_record(row: RunRow) -> RunRecord:
    return RunRecord(
        run_id=row.run_id,
        status=row.status,  # type: ignore[arg-type]
        summary=RunSummary.model_validate(row.summary) if row.summary is not None else None,
        error=row.error,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


class SQLRunStateStore(RunStateStore):
    """Run records persisted in the ``orchestrator_runs`` table."""

    def __init__(self, engine: AsyncEngine, *, owns_engine: bool = False) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._owns_engine = owns_engine

    @classmethod
    def from_url(cls, database_url: str, *, echo: bool = False) -> SQLRunStateStore:
        return cls(create_engine(database_url, echo=echo), owns_engine=True)

    async def initialize(self) -> None:
        """Create the runs table if it does not exist."""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create(self, record: RunRecord) -> RunRecord:
        row = RunRow(
            run_id=record.run_id,
            status=record.status,
            summary=record.summary.model_dump(mode="json", by_alias=True) if record.summary else None,
            error=record.error,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        try:
            async with self._session() as session:
                session.add(row)
        except IntegrityError as exc:
            raise RunAlreadyExistsError(record.run_id) from exc
        return record

    async def get(self, run_id: str) -> RunRecord | None:
        async with self._session() as session:
            row = await session.get(RunRow, run_id)
            return _to_record(row) if row is not None else None

    async def update(
        self,
        run_id: str,
        *,
        status: RecordStatus,
        summary: RunSummary | None = None,
        error: str | None = None,
    ) -> RunRecord:
        async with self._session() as session:
            result = await session.execute(select(RunRow).where(RunRow.run_id == run_id).with_for_update())
            row = result.scalar_one_or_none()
            if row is None:
                raise RunNotFoundError(run_id)
            if row.status in TERMINAL_RECORD_STATUSES:
                raise InvalidRunTransitionError(run_id, row.status, status)
            row.status = status
            row.summary = summary.model_dump(mode="json", by_alias=True) if summary is not None else None
            row.error = error
            row.updated_at = utc_now()
            record = _to_record(row)
        logger.debug("run_record_updated run_id=%s status=%s", run_id, status)
        return record

    async def close(self) -> None:
        if self._owns_engine:
            await self._engine.dispose()
