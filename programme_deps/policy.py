"""
Host-supplied dependency policy.

Product rules such as a restricted trial plan (edge quotas, allowed types,
lag limits) are passed to the repository explicitly instead of being read
from ambient service state.
"""

from __future__ import annotations

from typing import Optional, Set

from pydantic import BaseModel, Field, model_validator

from .errors import PolicyViolation
from .schemas import DependencyType


class DependencyPolicy(BaseModel):
    max_edges_per_project: Optional[int] = Field(default=None, ge=0)
    allowed_types: Set[DependencyType] = Field(default_factory=lambda: set(DependencyType))
    min_lag: Optional[int] = None
    max_lag: Optional[int] = None

    @model_validator(mode="after")
    def _lag_range(self) -> "DependencyPolicy":
        if self.min_lag is not None and self.max_lag is not None and self.min_lag > self.max_lag:
            raise ValueError("min_lag must not exceed max_lag")
        return self

    @classmethod
    def restricted(cls) -> "DependencyPolicy":
        """Limits of the restricted (demo) plan: 3 edges, FS/SS only, lag 0-2."""
        return cls(
            max_edges_per_project=3,
            allowed_types={DependencyType.FS, DependencyType.SS},
            min_lag=0,
            max_lag=2,
        )

    # --- Checks ---

    def check_type(self, dep_type: DependencyType) -> None:
        if dep_type not in self.allowed_types:
            allowed = ", ".join(sorted(t.value for t in self.allowed_types))
            raise PolicyViolation(
                f"Dependency type {dep_type.value} not allowed (allowed: {allowed})"
            )

    def check_lag(self, lag: int) -> None:
        too_low = self.min_lag is not None and lag < self.min_lag
        too_high = self.max_lag is not None and lag > self.max_lag
        if too_low or too_high:
            low = self.min_lag if self.min_lag is not None else "-inf"
            high = self.max_lag if self.max_lag is not None else "+inf"
            raise PolicyViolation(f"Lag must be between {low} and {high} days")

    def check_create(self, existing_count: int, dep_type: DependencyType, lag: int) -> None:
        if self.max_edges_per_project is not None and existing_count >= self.max_edges_per_project:
            raise PolicyViolation(
                f"Maximum {self.max_edges_per_project} dependencies allowed per project"
            )
        self.check_type(dep_type)
        self.check_lag(lag)

    def describe(self) -> list[str]:
        lines = []
        if self.max_edges_per_project is not None:
            lines.append(f"Maximum {self.max_edges_per_project} dependencies per project")
        if set(self.allowed_types) != set(DependencyType):
            types = ", ".join(sorted(t.value for t in self.allowed_types))
            lines.append(f"Only {types} dependency types available")
        if self.min_lag is not None or self.max_lag is not None:
            low = self.min_lag if self.min_lag is not None else "any"
            high = self.max_lag if self.max_lag is not None else "any"
            lines.append(f"Lag limited to {low}..{high} days")
        return lines
