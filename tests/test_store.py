"""Tests for the SQL dependency store."""

import pytest

from programme_deps.errors import ErrorCode
from programme_deps.repository import DependencyRepository
from programme_deps.schemas import Dependency, DependencyCreate, DependencyType
from programme_deps.store import InMemoryStore, SqlDependencyStore


@pytest.fixture
async def sql_store(tmp_path):
    s = SqlDependencyStore(f"sqlite+aiosqlite:///{tmp_path / 'deps.db'}")
    await s.init()
    yield s
    await s.close()


async def test_set_and_get_roundtrip_keeps_order(sql_store: SqlDependencyStore):
    deps = [
        Dependency(project_id="p1", source_task_id="B", target_task_id="C", type=DependencyType.SS, lag=-2),
        Dependency(project_id="p1", source_task_id="A", target_task_id="B"),
    ]
    await sql_store.set("p1", deps)

    loaded = await sql_store.get("p1")
    assert [d.id for d in loaded] == [d.id for d in deps]
    assert loaded[0].type == DependencyType.SS
    assert loaded[0].lag == -2
    assert loaded[0].created_at.tzinfo is not None


async def test_set_replaces_project_only(sql_store: SqlDependencyStore):
    p1 = Dependency(project_id="p1", source_task_id="A", target_task_id="B")
    p2 = Dependency(project_id="p2", source_task_id="A", target_task_id="B")
    await sql_store.set("p1", [p1])
    await sql_store.set("p2", [p2])

    await sql_store.set("p1", [])

    assert await sql_store.get("p1") == []
    assert [d.id for d in await sql_store.get("p2")] == [p2.id]


async def test_unknown_project_is_empty(sql_store: SqlDependencyStore):
    assert await sql_store.get("nope") == []


async def test_repository_on_sql_store(sql_store: SqlDependencyStore):
    repo = DependencyRepository(sql_store)
    created = await repo.create(
        DependencyCreate(project_id="p1", source_task_id="A", target_task_id="B")
    )
    assert created.success

    fresh = DependencyRepository(sql_store)
    result = await fresh.create(
        DependencyCreate(project_id="p1", source_task_id="B", target_task_id="A")
    )
    assert result.error.code == ErrorCode.CYCLE_DETECTED
    assert [d.id for d in await fresh.list_by_project("p1")] == [created.dependency.id]


async def test_in_memory_store_copies():
    store = InMemoryStore()
    dep = Dependency(project_id="p1", source_task_id="A", target_task_id="B")
    await store.set("p1", [dep])
    got = await store.get("p1")
    got.clear()
    assert await store.get("p1") == [dep]
