"""Dependency table for the SQL store."""

from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, UniqueConstraint
from sqlmodel import Field, SQLModel


class DependencyRow(SQLModel, table=True):
    __tablename__ = "task_dependencies"
    __table_args__ = (
        CheckConstraint("source_task_id != target_task_id", name="no_self_dependency"),
        UniqueConstraint("project_id", "source_task_id", "target_task_id", name="uq_dependency_pair"),
    )

    id: str = Field(primary_key=True)
    project_id: str = Field(nullable=False, index=True)
    position: int = Field(nullable=False, default=0)  # insertion order within the project
    source_task_id: str = Field(nullable=False)
    target_task_id: str = Field(nullable=False)
    type: str = Field(nullable=False, default="FS")  # FS | SS | FF | SF
    lag: int = Field(nullable=False, default=0)
    created_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
    updated_at: datetime = Field(nullable=False, sa_type=sa.DateTime(timezone=True))
