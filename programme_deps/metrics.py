"""
Metrics for the dependency repository, exported in Prometheus text format.

Series are keyed by name plus an optional label set, so one gauge can carry
a value per project::

    deps_project_edges{project="p1"} 4
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

Labels = tuple[tuple[str, str], ...]
_Key = tuple[str, Labels]


def _labels(labels: dict[str, Any]) -> Labels:
    return tuple(sorted((k, str(v)) for k, v in labels.items()))


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def _series(name: str, labels: Labels) -> str:
    if not labels:
        return name
    body = ",".join(f'{k}="{_escape(v)}"' for k, v in labels)
    return f"{name}{{{body}}}"


class MetricsCollector:
    """Labelled counters and gauges."""

    def __init__(self, prefix: str = "deps") -> None:
        self.prefix = prefix
        self._counters: dict[_Key, int] = defaultdict(int)
        self._gauges: dict[_Key, float] = {}
        self._started = time.time()

    def _key(self, name: str, labels: dict[str, Any]) -> _Key:
        return f"{self.prefix}_{name}", _labels(labels)

    def inc(self, name: str, value: int = 1, **labels: Any) -> None:
        self._counters[self._key(name, labels)] += value

    def set_gauge(self, name: str, value: float, **labels: Any) -> None:
        self._gauges[self._key(name, labels)] = value

    def get(self, name: str, **labels: Any) -> int | float:
        key = self._key(name, labels)
        if key in self._gauges:
            return self._gauges[key]
        return self._counters.get(key, 0)

    # -- per-project edge gauges ------------------------------------------

    def record_project_edges(self, project_id: str, count: int) -> None:
        """Publish a project's committed edge count and the cross-project total."""
        self.set_gauge("project_edges", count, project=project_id)
        self.set_gauge("edges_total", sum(self.project_edges().values()))

    def project_edges(self) -> dict[str, float]:
        """Committed edge count per project id."""
        name = f"{self.prefix}_project_edges"
        return {
            dict(labels)["project"]: value
            for (series, labels), value in self._gauges.items()
            if series == name
        }

    # -- export ------------------------------------------------------------

    def to_prometheus(self) -> str:
        lines: list[str] = []
        for kind, values in (("counter", self._counters), ("gauge", self._gauges)):
            typed: set[str] = set()
            for (name, labels), value in sorted(values.items()):
                if name not in typed:
                    lines.append(f"# TYPE {name} {kind}")
                    typed.add(name)
                lines.append(f"{_series(name, labels)} {value}")
        lines.append(f"# TYPE {self.prefix}_uptime_seconds gauge")
        lines.append(f"{self.prefix}_uptime_seconds {time.time() - self._started:.1f}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "counters": {_series(*key): v for key, v in self._counters.items()},
            "gauges": {_series(*key): v for key, v in self._gauges.items()},
            "uptime_seconds": time.time() - self._started,
        }
