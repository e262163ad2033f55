"""Test helpers."""

from datetime import datetime, timezone

from programme_deps.schemas import TaskSchedule
from programme_deps.store import InMemoryStore


class FailingStore(InMemoryStore):
    """In-memory store whose writes or reads can be switched to fail."""

    def __init__(self):
        super().__init__()
        self.fail_writes = False
        self.fail_reads = False

    async def get(self, project_id):
        if self.fail_reads:
            raise OSError("store unavailable")
        return await super().get(project_id)

    async def set(self, project_id, dependencies):
        if self.fail_writes:
            raise OSError("disk full")
        await super().set(project_id, dependencies)


def make_task(task_id: str, start: str, end: str) -> TaskSchedule:
    return TaskSchedule(
        id=task_id,
        start_date=datetime.fromisoformat(start),
        end_date=datetime.fromisoformat(end),
    )


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
