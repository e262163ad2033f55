"""
Cycle guard for the per-project precedence graph.

The successor index is built once per committed edge set and reused for every
candidate check until the next mutation replaces it.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Iterable, Iterator, Optional

from .schemas import Dependency


class SuccessorIndex:
    """Adjacency list: task id -> ids of tasks it precedes."""

    def __init__(self, adjacency: dict[str, list[str]] | None = None):
        self._adj: dict[str, list[str]] = adjacency or {}

    @classmethod
    def from_edges(cls, edges: Iterable[Dependency]) -> "SuccessorIndex":
        adj: dict[str, list[str]] = defaultdict(list)
        for dep in edges:
            adj[dep.source_task_id].append(dep.target_task_id)
        return cls(dict(adj))

    def successors(self, task_id: str) -> list[str]:
        return self._adj.get(task_id, [])

    def __len__(self) -> int:
        return sum(len(targets) for targets in self._adj.values())


def would_create_cycle(index: SuccessorIndex, source: str, target: str) -> bool:
    """
    True if committing ``source -> target`` would make the graph cyclic.

    Walks successors depth-first from ``target``; reaching ``source`` means a
    path ``target -> ... -> source`` already exists. A self-loop is rejected
    before any traversal.
    """
    if source == target:
        return True

    visited: set[str] = {target}
    recursion_stack: set[str] = {target}
    stack: list[tuple[str, Iterator[str]]] = [(target, iter(index.successors(target)))]

    while stack:
        node, children = stack[-1]
        for child in children:
            if child == source or child in recursion_stack:
                return True
            if child not in visited:
                visited.add(child)
                recursion_stack.add(child)
                stack.append((child, iter(index.successors(child))))
                break
        else:
            stack.pop()
            recursion_stack.discard(node)
    return False


def find_path(index: SuccessorIndex, start: str, goal: str) -> Optional[list[str]]:
    """BFS for a successor path from start to goal, inclusive of both ends."""
    parents: dict[str, Optional[str]] = {start: None}
    queue = deque([start])
    while queue:
        current = queue.popleft()
        if current == goal:
            path = [current]
            while parents[path[-1]] is not None:
                path.append(parents[path[-1]])
            return list(reversed(path))
        for nxt in index.successors(current):
            if nxt not in parents:
                parents[nxt] = current
                queue.append(nxt)
    return None
