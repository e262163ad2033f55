"""
Tests for the dependency repository.

Tests cover:
- create validation order: self-dependency, policy, duplicate, cycle
- update/delete/clear semantics and NOT_FOUND handling
- persistence failures leaving the committed edge set untouched
- concurrent creates serialized per project
"""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from programme_deps import repository as repository_module
from programme_deps.errors import ErrorCode
from programme_deps.evaluator import evaluate
from programme_deps.policy import DependencyPolicy
from programme_deps.repository import DependencyRepository
from programme_deps.schemas import DependencyCreate, DependencyType, DependencyUpdate

from .helpers import make_task


def _create(source: str, target: str, project: str = "p1", **kwargs) -> DependencyCreate:
    return DependencyCreate(
        project_id=project, source_task_id=source, target_task_id=target, **kwargs
    )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


class TestCreate:
    async def test_defaults_and_persistence(self, repo, store):
        result = await repo.create(_create("A", "B"))

        assert result.success
        assert result.error is None
        dep = result.dependency
        assert dep.type == DependencyType.FS
        assert dep.lag == 0
        assert dep.id.startswith("dep_")
        assert dep.created_at == dep.updated_at
        assert await store.get("p1") == [dep]

    async def test_self_dependency_rejected_before_cycle_guard(self, repo, monkeypatch):
        calls = []

        def guard(*args):
            calls.append(args)
            return False

        monkeypatch.setattr(repository_module, "would_create_cycle", guard)
        result = await repo.create(_create("t1", "t1"))

        assert not result.success
        assert result.error.code == ErrorCode.SELF_DEPENDENCY
        assert calls == []
        assert await repo.list_by_project("p1") == []

    async def test_duplicate_pair_rejected(self, repo):
        await repo.create(_create("A", "B"))
        result = await repo.create(_create("A", "B", type=DependencyType.SS))
        assert result.error.code == ErrorCode.DUPLICATE_EDGE
        assert len(await repo.list_by_project("p1")) == 1

    async def test_same_pair_in_other_project_allowed(self, repo):
        await repo.create(_create("A", "B"))
        result = await repo.create(_create("A", "B", project="p2"))
        assert result.success

    async def test_cycle_rejected_and_edges_unchanged(self, repo):
        first = await repo.create(_create("A", "B"))

        result = await repo.create(_create("B", "A"))

        assert not result.success
        assert result.error.code == ErrorCode.CYCLE_DETECTED
        assert "A -> B" in result.error.message
        assert await repo.list_by_project("p1") == [first.dependency]

    async def test_indirect_cycle_rejected(self, repo):
        await repo.create(_create("A", "B"))
        await repo.create(_create("B", "C"))
        result = await repo.create(_create("C", "A"))
        assert result.error.code == ErrorCode.CYCLE_DETECTED
        assert len(await repo.list_by_project("p1")) == 2

    async def test_acyclic_candidates_accepted(self, repo):
        for source, target in [("A", "B"), ("B", "C"), ("A", "C"), ("D", "A")]:
            result = await repo.create(_create(source, target))
            assert result.success, result.error

    async def test_cycles_are_per_project(self, repo):
        await repo.create(_create("A", "B", project="p1"))
        result = await repo.create(_create("B", "A", project="p2"))
        assert result.success


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


class TestPolicy:
    async def test_edge_quota(self, repo):
        policy = DependencyPolicy(max_edges_per_project=1)
        assert (await repo.create(_create("A", "B"), policy=policy)).success
        result = await repo.create(_create("B", "C"), policy=policy)
        assert result.error.code == ErrorCode.POLICY_VIOLATION
        assert "Maximum 1" in result.error.message

    async def test_restricted_types_and_lag(self, repo):
        policy = DependencyPolicy.restricted()
        ff = await repo.create(_create("A", "B", type=DependencyType.FF), policy=policy)
        assert ff.error.code == ErrorCode.POLICY_VIOLATION
        lag = await repo.create(_create("A", "B", lag=5), policy=policy)
        assert lag.error.code == ErrorCode.POLICY_VIOLATION
        ok = await repo.create(_create("A", "B", type=DependencyType.SS, lag=2), policy=policy)
        assert ok.success

    async def test_repository_default_policy(self, store):
        repo = DependencyRepository(store, policy=DependencyPolicy(allowed_types={DependencyType.FS}))
        result = await repo.create(_create("A", "B", type=DependencyType.SF))
        assert result.error.code == ErrorCode.POLICY_VIOLATION
        assert repo.restrictions() == ["Only FS dependency types available"]

    async def test_update_checks_policy(self, repo):
        created = await repo.create(_create("A", "B"))
        result = await repo.update(
            "p1",
            created.dependency.id,
            DependencyUpdate(lag=9),
            policy=DependencyPolicy.restricted(),
        )
        assert result.error.code == ErrorCode.POLICY_VIOLATION
        assert (await repo.get("p1", created.dependency.id)).lag == 0


# ---------------------------------------------------------------------------
# Update / delete / clear
# ---------------------------------------------------------------------------


class TestUpdate:
    async def test_type_and_lag_mutable(self, repo):
        created = (await repo.create(_create("A", "B"))).dependency

        result = await repo.update(
            "p1", created.id, DependencyUpdate(type=DependencyType.SS, lag=-1)
        )

        dep = result.dependency
        assert dep.id == created.id
        assert dep.type == DependencyType.SS
        assert dep.lag == -1
        assert dep.source_task_id == "A"
        assert dep.created_at == created.created_at
        assert dep.updated_at >= created.updated_at
        assert await repo.list_by_project("p1") == [dep]

    async def test_partial_update_keeps_other_field(self, repo):
        created = (await repo.create(_create("A", "B", lag=3))).dependency
        result = await repo.update("p1", created.id, DependencyUpdate(type=DependencyType.FF))
        assert result.dependency.lag == 3

    async def test_unknown_id(self, repo):
        result = await repo.update("p1", "dep_missing", DependencyUpdate(lag=1))
        assert result.error.code == ErrorCode.NOT_FOUND

    def test_endpoints_not_accepted(self):
        with pytest.raises(ValidationError):
            DependencyUpdate(target_task_id="C")


class TestDelete:
    async def test_delete(self, repo, store):
        created = (await repo.create(_create("A", "B"))).dependency
        result = await repo.delete("p1", created.id)
        assert result.success
        assert await repo.list_by_project("p1") == []
        assert await store.get("p1") == []

    async def test_delete_unknown(self, repo):
        result = await repo.delete("p1", "dep_missing")
        assert result.error.code == ErrorCode.NOT_FOUND

    async def test_delete_then_evaluate(self, repo):
        tasks = [
            make_task("A", "2024-01-01", "2024-01-10"),
            make_task("B", "2024-01-05", "2024-01-12"),
        ]
        created = (await repo.create(_create("A", "B"))).dependency
        assert len(evaluate(tasks, await repo.list_by_project("p1"))) == 1

        await repo.delete("p1", created.id)

        assert evaluate(tasks, await repo.list_by_project("p1")) == []

    async def test_reversed_edge_allowed_after_delete(self, repo):
        created = (await repo.create(_create("A", "B"))).dependency
        await repo.delete("p1", created.id)
        assert (await repo.create(_create("B", "A"))).success

    async def test_clear_project(self, repo):
        await repo.create(_create("A", "B"))
        await repo.create(_create("B", "C"))
        await repo.create(_create("X", "Y", project="p2"))

        result = await repo.clear_project("p1")

        assert result.success
        assert await repo.list_by_project("p1") == []
        assert len(await repo.list_by_project("p2")) == 1


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


class TestReads:
    async def test_list_by_task(self, repo):
        ab = (await repo.create(_create("A", "B"))).dependency
        bc = (await repo.create(_create("B", "C"))).dependency
        db = (await repo.create(_create("D", "B"))).dependency

        deps = await repo.list_by_task("p1", "B")

        assert deps.predecessors == [ab, db]
        assert deps.successors == [bc]

    async def test_reads_loaded_from_store(self, store):
        writer = DependencyRepository(store)
        created = (await writer.create(_create("A", "B"))).dependency

        reader = DependencyRepository(store)
        assert await reader.list_by_project("p1") == [created]
        assert (await reader.create(_create("B", "A"))).error.code == ErrorCode.CYCLE_DETECTED

    async def test_returned_list_is_a_copy(self, repo):
        await repo.create(_create("A", "B"))
        edges = await repo.list_by_project("p1")
        edges.clear()
        assert len(await repo.list_by_project("p1")) == 1


# ---------------------------------------------------------------------------
# Persistence failures and concurrency
# ---------------------------------------------------------------------------


class TestPersistence:
    async def test_failed_write_rolls_back(self, repo, store):
        kept = (await repo.create(_create("A", "B"))).dependency
        store.fail_writes = True

        created = await repo.create(_create("B", "C"))
        updated = await repo.update("p1", kept.id, DependencyUpdate(lag=4))
        deleted = await repo.delete("p1", kept.id)

        for result in (created, updated, deleted):
            assert not result.success
            assert result.error.code == ErrorCode.PERSISTENCE_FAILED
        assert await repo.list_by_project("p1") == [kept]

        store.fail_writes = False
        assert (await repo.create(_create("B", "C"))).success

    async def test_failed_load_reported(self, repo, store):
        store.fail_reads = True
        result = await repo.create(_create("A", "B"))
        assert result.error.code == ErrorCode.PERSISTENCE_FAILED

    async def test_concurrent_opposite_edges_only_one_wins(self, repo):
        results = await asyncio.gather(
            repo.create(_create("A", "B")),
            repo.create(_create("B", "A")),
        )
        assert sorted(r.success for r in results) == [False, True]
        assert len(await repo.list_by_project("p1")) == 1

    async def test_concurrent_duplicates_only_one_wins(self, repo):
        results = await asyncio.gather(*[repo.create(_create("A", "B")) for _ in range(5)])
        assert sum(r.success for r in results) == 1
        assert len(await repo.list_by_project("p1")) == 1

    async def test_metrics_counted(self, repo):
        await repo.create(_create("A", "B"))
        await repo.create(_create("B", "A"))
        await repo.create(_create("X", "Y", project="p2"))
        await repo.create(_create("Y", "Z", project="p2"))
        assert repo.metrics.get("dependencies_created_total") == 3
        assert repo.metrics.get("rejected_cycle_detected_total") == 1
        assert repo.metrics.get("project_edges", project="p1") == 1
        assert repo.metrics.get("project_edges", project="p2") == 2
        assert repo.metrics.get("edges_total") == 3

        text = repo.metrics.to_prometheus()
        assert 'deps_project_edges{project="p1"} 1' in text
        assert 'deps_project_edges{project="p2"} 2' in text

    async def test_edge_gauge_follows_delete_and_clear(self, repo):
        first = (await repo.create(_create("A", "B"))).dependency
        await repo.create(_create("B", "C"))
        await repo.delete("p1", first.id)
        assert repo.metrics.get("project_edges", project="p1") == 1
        await repo.clear_project("p1")
        assert repo.metrics.get("project_edges", project="p1") == 0

    async def test_edge_gauge_set_on_first_load(self, store):
        await DependencyRepository(store).create(_create("A", "B"))
        reader = DependencyRepository(store)
        await reader.list_by_project("p1")
        assert reader.metrics.project_edges() == {"p1": 1}
