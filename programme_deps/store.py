"""
Persistence collaborators.

The repository only needs ``get(project_id)`` and ``set(project_id, deps)``.
``set`` replaces the project's whole edge set and raises on failure.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone
from typing import Protocol, Sequence

import structlog
from sqlalchemy import delete
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel, select

from .models import DependencyRow
from .schemas import Dependency, DependencyType

log = structlog.get_logger()


class DependencyStore(Protocol):
    async def get(self, project_id: str) -> list[Dependency]: ...

    async def set(self, project_id: str, dependencies: Sequence[Dependency]) -> None: ...


class InMemoryStore:
    """Process-local store, mainly for tests and embedding."""

    def __init__(self) -> None:
        self._data: dict[str, list[Dependency]] = {}

    async def get(self, project_id: str) -> list[Dependency]:
        return list(self._data.get(project_id, []))

    async def set(self, project_id: str, dependencies: Sequence[Dependency]) -> None:
        if dependencies:
            self._data[project_id] = list(dependencies)
        else:
            self._data.pop(project_id, None)


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlDependencyStore:
    """SQLModel-backed store on an async SQLAlchemy engine."""

    def __init__(self, database_url: str = "sqlite+aiosqlite:///./data/dependencies.db", echo: bool = False):
        self._url = make_url(database_url)
        self._engine = create_async_engine(database_url, echo=echo, future=True)
        self._session_factory = sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def init(self) -> None:
        """Create tables (development only; use migrations in production)."""
        if self._url.get_backend_name() == "sqlite" and self._url.database not in (None, "", ":memory:"):
            os.makedirs(os.path.dirname(self._url.database) or ".", exist_ok=True)
        async with self._engine.begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()

    async def get(self, project_id: str) -> list[Dependency]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DependencyRow)
                .where(DependencyRow.project_id == project_id)
                .order_by(DependencyRow.position)
            )
            rows = result.scalars().all()
        return [
            Dependency(
                id=row.id,
                project_id=row.project_id,
                source_task_id=row.source_task_id,
                target_task_id=row.target_task_id,
                type=DependencyType(row.type),
                lag=row.lag,
                created_at=_as_utc(row.created_at),
                updated_at=_as_utc(row.updated_at),
            )
            for row in rows
        ]

    async def set(self, project_id: str, dependencies: Sequence[Dependency]) -> None:
        async with self._session_factory() as session:
            try:
                await session.execute(
                    delete(DependencyRow).where(DependencyRow.project_id == project_id)
                )
                for position, dep in enumerate(dependencies):
                    session.add(
                        DependencyRow(
                            id=dep.id,
                            project_id=project_id,
                            position=position,
                            source_task_id=dep.source_task_id,
                            target_task_id=dep.target_task_id,
                            type=dep.type.value,
                            lag=dep.lag,
                            created_at=dep.created_at,
                            updated_at=dep.updated_at,
                        )
                    )
                await session.commit()
            except Exception:
                await session.rollback()
                raise
        log.debug("store.saved", project=project_id, count=len(dependencies))
