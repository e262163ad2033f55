"""
Dependency repository: the only writer of a project's precedence edges.

Handles:
- Create with self-dependency, policy, duplicate and cycle checks
- Type/lag updates, single deletes and administrative project clears
- Per-project write serialization and the committed-snapshot read cache

Mutations never raise for domain failures; they return a ``MutationResult``
carrying the error code so a UI can render a message per case.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from .errors import (
    CycleDetected,
    DependencyError,
    DuplicateEdge,
    NotFound,
    PersistenceFailed,
    SelfDependency,
)
from .graph import SuccessorIndex, find_path, would_create_cycle
from .metrics import MetricsCollector
from .policy import DependencyPolicy
from .schemas import (
    Dependency,
    DependencyCreate,
    DependencyUpdate,
    MutationResult,
    TaskDependencies,
)
from .store import DependencyStore

log = structlog.get_logger()


@dataclass(frozen=True)
class _Snapshot:
    """Last committed edge set of a project, with its successor index."""
    edges: tuple[Dependency, ...] = ()
    index: SuccessorIndex = field(default_factory=SuccessorIndex)

    @classmethod
    def of(cls, edges) -> "_Snapshot":
        edges = tuple(edges)
        return cls(edges=edges, index=SuccessorIndex.from_edges(edges))


# A mutation maps the current snapshot to (new edge list, dependency to return)
_Mutation = Callable[[_Snapshot], "tuple[list[Dependency], Optional[Dependency]]"]


class DependencyRepository:
    def __init__(
        self,
        store: DependencyStore,
        policy: Optional[DependencyPolicy] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self._store = store
        self._policy = policy or DependencyPolicy()
        self._metrics = metrics or MetricsCollector()
        self._cache: dict[str, _Snapshot] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------

    async def list_by_project(self, project_id: str) -> list[Dependency]:
        snapshot = await self._snapshot(project_id)
        return list(snapshot.edges)

    async def list_by_task(self, project_id: str, task_id: str) -> TaskDependencies:
        snapshot = await self._snapshot(project_id)
        return TaskDependencies(
            predecessors=[d for d in snapshot.edges if d.target_task_id == task_id],
            successors=[d for d in snapshot.edges if d.source_task_id == task_id],
        )

    async def get(self, project_id: str, dependency_id: str) -> Optional[Dependency]:
        snapshot = await self._snapshot(project_id)
        return next((d for d in snapshot.edges if d.id == dependency_id), None)

    def restrictions(self, policy: Optional[DependencyPolicy] = None) -> list[str]:
        return (policy or self._policy).describe()

    # -----------------------------------------------------------------------
    # Mutations
    # -----------------------------------------------------------------------

    async def create(
        self, data: DependencyCreate, policy: Optional[DependencyPolicy] = None
    ) -> MutationResult:
        policy = policy or self._policy

        if data.source_task_id == data.target_task_id:
            return self._reject(
                "create",
                data.project_id,
                SelfDependency("A task cannot depend on itself"),
            )

        def mutation(snapshot: _Snapshot):
            policy.check_create(len(snapshot.edges), data.type, data.lag)

            for dep in snapshot.edges:
                if (dep.source_task_id, dep.target_task_id) == (
                    data.source_task_id,
                    data.target_task_id,
                ):
                    raise DuplicateEdge("Dependency already exists between these tasks")

            if would_create_cycle(snapshot.index, data.source_task_id, data.target_task_id):
                path = find_path(snapshot.index, data.target_task_id, data.source_task_id)
                cycle = " -> ".join(path + [data.target_task_id]) if path else ""
                raise CycleDetected(
                    "This dependency would create a circular reference"
                    + (f" ({cycle})" if cycle else "")
                )

            now = datetime.now(timezone.utc)
            dep = Dependency(
                project_id=data.project_id,
                source_task_id=data.source_task_id,
                target_task_id=data.target_task_id,
                type=data.type,
                lag=data.lag,
                created_at=now,
                updated_at=now,
            )
            return [*snapshot.edges, dep], dep

        result = await self._mutate("create", data.project_id, mutation)
        if result.success:
            self._metrics.inc("dependencies_created_total")
            log.info(
                "dependency.created",
                project=data.project_id,
                dependency=result.dependency.id,
                source=data.source_task_id,
                target=data.target_task_id,
                type=data.type.value,
                lag=data.lag,
            )
        return result

    async def update(
        self,
        project_id: str,
        dependency_id: str,
        changes: DependencyUpdate,
        policy: Optional[DependencyPolicy] = None,
    ) -> MutationResult:
        policy = policy or self._policy

        def mutation(snapshot: _Snapshot):
            edges = list(snapshot.edges)
            pos = next((i for i, d in enumerate(edges) if d.id == dependency_id), None)
            if pos is None:
                raise NotFound("Dependency not found")

            data = changes.model_dump(exclude_unset=True, exclude_none=True)
            if "type" in data:
                policy.check_type(data["type"])
            if "lag" in data:
                policy.check_lag(data["lag"])

            updated = edges[pos].model_copy(
                update={**data, "updated_at": datetime.now(timezone.utc)}
            )
            edges[pos] = updated
            return edges, updated

        result = await self._mutate("update", project_id, mutation)
        if result.success:
            self._metrics.inc("dependencies_updated_total")
            log.info(
                "dependency.updated",
                project=project_id,
                dependency=dependency_id,
                type=result.dependency.type.value,
                lag=result.dependency.lag,
            )
        return result

    async def delete(self, project_id: str, dependency_id: str) -> MutationResult:
        def mutation(snapshot: _Snapshot):
            remaining = [d for d in snapshot.edges if d.id != dependency_id]
            if len(remaining) == len(snapshot.edges):
                raise NotFound("Dependency not found")
            return remaining, None

        result = await self._mutate("delete", project_id, mutation)
        if result.success:
            self._metrics.inc("dependencies_deleted_total")
            log.info("dependency.deleted", project=project_id, dependency=dependency_id)
        return result

    async def clear_project(self, project_id: str) -> MutationResult:
        """Administrative reset: drop every dependency of the project."""
        result = await self._mutate("clear", project_id, lambda snapshot: ([], None))
        if result.success:
            log.info("dependency.project_cleared", project=project_id)
        return result

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _lock(self, project_id: str) -> asyncio.Lock:
        return self._locks.setdefault(project_id, asyncio.Lock())

    async def _load(self, project_id: str) -> _Snapshot:
        try:
            edges = await self._store.get(project_id)
        except Exception as exc:
            log.error("dependency.load_failed", project=project_id, error=str(exc))
            raise PersistenceFailed(f"Failed to load dependencies: {exc}") from exc
        return _Snapshot.of(edges)

    async def _snapshot(self, project_id: str) -> _Snapshot:
        cached = self._cache.get(project_id)
        if cached is not None:
            return cached
        loaded = await self._load(project_id)
        # a commit that landed while loading wins
        snapshot = self._cache.setdefault(project_id, loaded)
        self._metrics.record_project_edges(project_id, len(snapshot.edges))
        return snapshot

    async def _mutate(self, op: str, project_id: str, mutation: _Mutation) -> MutationResult:
        async with self._lock(project_id):
            try:
                snapshot = await self._snapshot(project_id)
                edges, dep = mutation(snapshot)
                await self._persist(project_id, edges)
            except DependencyError as exc:
                return self._reject(op, project_id, exc)
            self._cache[project_id] = _Snapshot.of(edges)
            self._metrics.record_project_edges(project_id, len(edges))
            return MutationResult.ok(dep)

    async def _persist(self, project_id: str, edges: list[Dependency]) -> None:
        try:
            await self._store.set(project_id, edges)
        except Exception as exc:
            log.error("dependency.persist_failed", project=project_id, error=str(exc))
            raise PersistenceFailed(f"Failed to save dependencies: {exc}") from exc

    def _reject(self, op: str, project_id: str, exc: DependencyError) -> MutationResult:
        self._metrics.inc(f"rejected_{exc.code.value}_total")
        log.warning(
            f"dependency.{op}_rejected",
            project=project_id,
            code=exc.code.value,
            detail=exc.detail,
        )
        return MutationResult.failed(exc.code.value, exc.detail)
