"""Pydantic schemas for dependencies, task schedules and constraint violations."""

from __future__ import annotations

import uuid
from datetime import date, datetime, time, timezone
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_dependency_id() -> str:
    return f"dep_{uuid.uuid4().hex}"


class DependencyType(str, Enum):
    FS = "FS"  # finish -> start
    SS = "SS"  # start -> start
    FF = "FF"  # finish -> finish
    SF = "SF"  # start -> finish


# ---------------------------------------------------------------------------
# Tasks (read-only input from the scheduler)
# ---------------------------------------------------------------------------

class TaskSchedule(BaseModel):
    """Current schedule of a task as supplied by the external scheduler."""
    model_config = ConfigDict(frozen=True)

    id: str
    start_date: datetime
    end_date: datetime
    duration: Optional[int] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _date_to_midnight(cls, value):
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime.combine(value, time.min, tzinfo=timezone.utc)
        return value

    @field_validator("start_date", "end_date")
    @classmethod
    def _naive_as_utc(cls, value: datetime) -> datetime:
        # naive input is read as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "TaskSchedule":
        if self.end_date < self.start_date:
            raise ValueError(f"Task {self.id} ends before it starts")
        return self


# ---------------------------------------------------------------------------
# Dependencies
# ---------------------------------------------------------------------------

class Dependency(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_dependency_id)
    project_id: str
    source_task_id: str
    target_task_id: str
    type: DependencyType = DependencyType.FS
    lag: int = 0  # working days; negative = lead
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class DependencyCreate(BaseModel):
    """Input for DependencyRepository.create."""
    project_id: str
    source_task_id: str
    target_task_id: str
    type: DependencyType = DependencyType.FS
    lag: int = 0


class DependencyUpdate(BaseModel):
    """Only type and lag are mutable; endpoints change via delete + create."""
    model_config = ConfigDict(extra="forbid")

    type: Optional[DependencyType] = None
    lag: Optional[int] = None


class TaskDependencies(BaseModel):
    predecessors: List[Dependency] = Field(default_factory=list)
    successors: List[Dependency] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Mutation results
# ---------------------------------------------------------------------------

class DependencyErrorRead(BaseModel):
    code: str
    message: str


class MutationResult(BaseModel):
    success: bool
    dependency: Optional[Dependency] = None
    error: Optional[DependencyErrorRead] = None

    @classmethod
    def ok(cls, dependency: Optional[Dependency] = None) -> "MutationResult":
        return cls(success=True, dependency=dependency)

    @classmethod
    def failed(cls, code: str, message: str) -> "MutationResult":
        return cls(success=False, error=DependencyErrorRead(code=code, message=message))


# ---------------------------------------------------------------------------
# Violations
# ---------------------------------------------------------------------------

class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    dependency_id: str
    source_task_id: str
    target_task_id: str
    type: DependencyType
    lag: int
    message: str
    required_date: datetime
    actual_date: datetime
    severity: Literal["error"] = "error"
