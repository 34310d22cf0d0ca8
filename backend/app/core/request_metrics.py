"""In-process request counters served at /metrics.

Counters are keyed by route template (``/items/{item_id}/claims``), not by
the raw URL, so ids do not multiply the series. Domain errors are counted per
kind, which makes claim races visible as a ``conflict`` count.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any


@dataclass
class _PathStats:
    count: int = 0
    errors: int = 0
    latency_total_ms: float = 0.0

    def snapshot(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "errors": self.errors,
            "avg_latency_ms": self.latency_total_ms / self.count if self.count else 0.0,
        }


@dataclass
class RequestMetrics:
    requests_total: int = 0
    errors_total: int = 0
    latency_total_ms: float = 0.0
    by_path: defaultdict[str, _PathStats] = field(default_factory=lambda: defaultdict(_PathStats))
    domain_errors: Counter = field(default_factory=Counter)

    def record(self, path: str, duration_ms: float, failed: bool) -> None:
        self.requests_total += 1
        self.latency_total_ms += duration_ms
        stats = self.by_path[path]
        stats.count += 1
        stats.latency_total_ms += duration_ms
        if failed:
            self.errors_total += 1
            stats.errors += 1

    def record_domain_error(self, kind: str) -> None:
        self.domain_errors[kind] += 1

    def snapshot(self) -> dict[str, Any]:
        return {
            "requests_total": self.requests_total,
            "errors_total": self.errors_total,
            "avg_latency_ms": self.latency_total_ms / self.requests_total if self.requests_total else 0.0,
            "domain_errors": dict(self.domain_errors),
            "by_path": {path: stats.snapshot() for path, stats in self.by_path.items()},
        }


def route_template(scope: dict[str, Any]) -> str:
    route = scope.get("route")
    return getattr(route, "path", None) or scope.get("path", "")


metrics = RequestMetrics()
