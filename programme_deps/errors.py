"""
Error taxonomy for dependency mutations.

Repository internals raise these; the public repository methods turn them
into ``MutationResult`` failures so callers can render a message per code.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    DUPLICATE_EDGE = "duplicate_edge"
    SELF_DEPENDENCY = "self_dependency"
    CYCLE_DETECTED = "cycle_detected"
    NOT_FOUND = "not_found"
    PERSISTENCE_FAILED = "persistence_failed"
    POLICY_VIOLATION = "policy_violation"


class DependencyError(Exception):
    code: ErrorCode

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class DuplicateEdge(DependencyError):
    code = ErrorCode.DUPLICATE_EDGE


class SelfDependency(DependencyError):
    code = ErrorCode.SELF_DEPENDENCY


class CycleDetected(DependencyError):
    code = ErrorCode.CYCLE_DETECTED


class NotFound(DependencyError):
    code = ErrorCode.NOT_FOUND


class PersistenceFailed(DependencyError):
    code = ErrorCode.PERSISTENCE_FAILED


class PolicyViolation(DependencyError):
    code = ErrorCode.POLICY_VIOLATION
