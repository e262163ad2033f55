"""
Engine wiring.

Builds the store, repository and lag calendar from an ``EngineConfig`` and
offers a project-level constraint check on top of them.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional, Sequence

import structlog

from .config import EngineConfig
from .evaluator import ConstraintReport, check_constraints
from .logging_setup import configure_logging
from .repository import DependencyRepository
from .resolution import ResolutionPolicy, Resolver
from .schemas import TaskSchedule
from .store import SqlDependencyStore
from .workdays import LagCalendar

log = structlog.get_logger()


@dataclass
class Engine:
    repository: DependencyRepository
    calendar: LagCalendar

    async def check(
        self,
        project_id: str,
        tasks: Sequence[TaskSchedule],
        *,
        enforce: bool = False,
        resolver: Optional[Resolver] = None,
        policy: Optional[ResolutionPolicy] = None,
    ) -> ConstraintReport:
        """Evaluate a schedule against the project's committed edges."""
        edges = await self.repository.list_by_project(project_id)
        report = check_constraints(
            list(tasks),
            edges,
            enforce=enforce,
            resolver=resolver,
            policy=policy,
            calendar=self.calendar,
        )
        log.info(
            "engine.checked",
            project=project_id,
            edges=len(edges),
            violations=len(report.violations),
            enforced=report.enforced,
        )
        return report


@asynccontextmanager
async def open_engine(config: EngineConfig, *, setup_logging: bool = True) -> AsyncIterator[Engine]:
    """Configure logging, open the SQL store and yield a ready engine."""
    if setup_logging:
        configure_logging(config.logging.level, config.logging.format)

    store = SqlDependencyStore(config.store.database_url, echo=config.store.echo)
    await store.init()
    log.info("engine.started", database=config.store.database_url)
    try:
        yield Engine(
            repository=DependencyRepository(store, policy=config.policy),
            calendar=config.build_calendar(),
        )
    finally:
        await store.close()
        log.info("engine.stopped")
