"""
Violation resolution hook.

The engine only defines the contract: a resolution policy chosen by the host,
the schedule deltas a resolver may propose, and the resolver protocol. The
shipped ``IgnoringResolver`` records violations without moving any dates.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Optional, Protocol, Sequence, Union

import structlog
from pydantic import BaseModel, ConfigDict, Field

from .schemas import Dependency, TaskSchedule, Violation

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------

class PushSuccessor(BaseModel):
    """Move the target task later until the bound holds."""
    kind: Literal["push-successor"] = "push-successor"


class ShrinkPredecessor(BaseModel):
    """Pull the source task earlier. Not generally valid, so off by default."""
    kind: Literal["shrink-predecessor"] = "shrink-predecessor"
    allowed: bool = False


class Ignore(BaseModel):
    """Record the violation, leave dates alone."""
    kind: Literal["ignore"] = "ignore"


ResolutionPolicy = Annotated[
    Union[PushSuccessor, ShrinkPredecessor, Ignore],
    Field(discriminator="kind"),
]


class ResolutionNotAllowed(ValueError):
    pass


def ensure_allowed(policy: ResolutionPolicy) -> None:
    if isinstance(policy, ShrinkPredecessor) and not policy.allowed:
        raise ResolutionNotAllowed(
            "shrink-predecessor resolution is disabled; set allowed=True to opt in"
        )


# ---------------------------------------------------------------------------
# Deltas
# ---------------------------------------------------------------------------

class ScheduleDelta(BaseModel):
    """New dates proposed for one task. Unset fields keep the current value."""
    model_config = ConfigDict(frozen=True)

    task_id: str
    dependency_id: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


def apply_deltas(
    tasks: Sequence[TaskSchedule], deltas: Sequence[ScheduleDelta]
) -> list[TaskSchedule]:
    """Return new schedules with deltas applied in order; inputs are untouched."""
    by_id = {t.id: t for t in tasks}
    for delta in deltas:
        task = by_id.get(delta.task_id)
        if task is None:
            continue
        changes = {}
        if delta.start_date is not None:
            changes["start_date"] = delta.start_date
        if delta.end_date is not None:
            changes["end_date"] = delta.end_date
        by_id[delta.task_id] = TaskSchedule.model_validate(
            {**task.model_dump(), **changes}
        )
    return [by_id[t.id] for t in tasks]


# ---------------------------------------------------------------------------
# Resolver contract
# ---------------------------------------------------------------------------

class Resolver(Protocol):
    """
    Pluggable correction strategy.

    Implementations must be idempotent: resolving a violation whose deltas
    were already applied yields no further change.
    """

    def resolve(
        self,
        violation: Violation,
        tasks: Sequence[TaskSchedule],
        edges: Sequence[Dependency],
        policy: ResolutionPolicy,
    ) -> list[ScheduleDelta]: ...


class IgnoringResolver:
    """Records each violation it is handed and proposes nothing."""

    def __init__(self) -> None:
        self.recorded: list[Violation] = []

    def resolve(
        self,
        violation: Violation,
        tasks: Sequence[TaskSchedule],
        edges: Sequence[Dependency],
        policy: ResolutionPolicy,
    ) -> list[ScheduleDelta]:
        if violation not in self.recorded:
            self.recorded.append(violation)
        log.info(
            "resolution.ignored",
            dependency=violation.dependency_id,
            type=violation.type.value,
            policy=policy.kind,
        )
        return []
