"""
Constraint evaluation.

``evaluate`` is a pure function of the supplied schedules and edges: no hidden
state, edge order preserved, and edges whose endpoints are not in the supplied
schedule are skipped (partial or filtered programmes are normal input).
"""

from __future__ import annotations

from typing import Optional, Sequence

import structlog
from pydantic import BaseModel, Field

from .resolution import (
    Ignore,
    ResolutionPolicy,
    Resolver,
    ScheduleDelta,
    apply_deltas,
    ensure_allowed,
)
from .schemas import Dependency, DependencyType, TaskSchedule, Violation
from .workdays import CalendarDays, LagCalendar

log = structlog.get_logger()

# type -> (source field, target field, source verb, target verb)
_BOUNDS = {
    DependencyType.FS: ("end_date", "start_date", "finishes", "starts"),
    DependencyType.SS: ("start_date", "start_date", "starts", "starts"),
    DependencyType.FF: ("end_date", "end_date", "finishes", "finishes"),
    DependencyType.SF: ("start_date", "end_date", "starts", "finishes"),
}

_DESCRIPTIONS = {
    DependencyType.FS: "Finish to Start - Target task starts after source task finishes",
    DependencyType.SS: "Start to Start - Target task starts after source task starts",
    DependencyType.FF: "Finish to Finish - Target task finishes after source task finishes",
    DependencyType.SF: "Start to Finish - Target task finishes after source task starts",
}

_DEFAULT_CALENDAR = CalendarDays()


def describe_type(dep_type: DependencyType) -> str:
    return _DESCRIPTIONS[DependencyType(dep_type)]


def check_edge(
    dep: Dependency,
    source: TaskSchedule,
    target: TaskSchedule,
    calendar: Optional[LagCalendar] = None,
) -> Optional[Violation]:
    """Check one edge against its endpoint schedules."""
    calendar = calendar or _DEFAULT_CALENDAR
    source_field, target_field, source_verb, target_verb = _BOUNDS[dep.type]

    required = calendar.shift(getattr(source, source_field), dep.lag)
    actual = getattr(target, target_field)
    if actual >= required:
        return None

    return Violation(
        dependency_id=dep.id,
        source_task_id=dep.source_task_id,
        target_task_id=dep.target_task_id,
        type=dep.type,
        lag=dep.lag,
        message=(
            f"Target task {target_verb} before source task {source_verb} "
            f"+ lag ({dep.lag} days)"
        ),
        required_date=required,
        actual_date=actual,
    )


def evaluate(
    tasks: Sequence[TaskSchedule],
    edges: Sequence[Dependency],
    calendar: Optional[LagCalendar] = None,
) -> list[Violation]:
    """Return every violated precedence constraint, in edge order."""
    by_id = {t.id: t for t in tasks}
    violations: list[Violation] = []
    for dep in edges:
        source = by_id.get(dep.source_task_id)
        target = by_id.get(dep.target_task_id)
        if source is None or target is None:
            continue
        violation = check_edge(dep, source, target, calendar)
        if violation is not None:
            violations.append(violation)
    return violations


# ---------------------------------------------------------------------------
# Enforcement
# ---------------------------------------------------------------------------

class ConstraintReport(BaseModel):
    violations: list[Violation] = Field(default_factory=list)
    deltas: list[ScheduleDelta] = Field(default_factory=list)
    enforced: bool = False


def check_constraints(
    tasks: Sequence[TaskSchedule],
    edges: Sequence[Dependency],
    *,
    enforce: bool = False,
    resolver: Optional[Resolver] = None,
    policy: Optional[ResolutionPolicy] = None,
    calendar: Optional[LagCalendar] = None,
) -> ConstraintReport:
    """
    Evaluate the schedule and, when ``enforce`` is set, hand each violation
    to the resolver. Deltas are returned, not applied.
    """
    violations = evaluate(tasks, edges, calendar)
    if not enforce:
        return ConstraintReport(violations=violations)

    if resolver is None:
        raise ValueError("enforce=True requires a resolver")
    policy = policy or Ignore()
    ensure_allowed(policy)

    deltas: list[ScheduleDelta] = []
    for violation in violations:
        deltas.extend(resolver.resolve(violation, tasks, edges, policy))
    return ConstraintReport(violations=violations, deltas=deltas, enforced=True)


class SettleResult(BaseModel):
    tasks: list[TaskSchedule]
    violations: list[Violation] = Field(default_factory=list)
    deltas: list[ScheduleDelta] = Field(default_factory=list)
    rounds: int = 0
    converged: bool = False


def settle(
    tasks: Sequence[TaskSchedule],
    edges: Sequence[Dependency],
    resolver: Resolver,
    policy: ResolutionPolicy,
    *,
    calendar: Optional[LagCalendar] = None,
    max_rounds: Optional[int] = None,
) -> SettleResult:
    """
    Alternate evaluate and resolve until the schedule is clean, the resolver
    proposes nothing, or the round cap is hit. The cap defaults to the edge
    count so conflicting constraints cannot oscillate forever.
    """
    cap = max_rounds if max_rounds is not None else max(1, len(edges))
    schedule = list(tasks)
    applied: list[ScheduleDelta] = []

    for rounds in range(cap):
        report = check_constraints(
            schedule, edges, enforce=True, resolver=resolver, policy=policy, calendar=calendar
        )
        if not report.violations:
            return SettleResult(tasks=schedule, deltas=applied, rounds=rounds, converged=True)
        if not report.deltas:
            return SettleResult(
                tasks=schedule, violations=report.violations, deltas=applied, rounds=rounds
            )
        schedule = apply_deltas(schedule, report.deltas)
        applied.extend(report.deltas)

    remaining = evaluate(schedule, edges, calendar)
    if remaining:
        log.warning("resolution.round_cap_reached", rounds=cap, violations=len(remaining))
    return SettleResult(
        tasks=schedule,
        violations=remaining,
        deltas=applied,
        rounds=cap,
        converged=not remaining,
    )
