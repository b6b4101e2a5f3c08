"""In-process counters exported in Prometheus text format at /metrics."""

from __future__ import annotations

import re
import threading
from typing import Dict, Iterable, List, Optional, Tuple

LabelValues = Tuple[str, ...]


def _escape(value: str) -> str:
    return value.replace("\\", "\\\\").replace("\"", "\\\"").replace("\n", "\\n")


def _render_labels(names: List[str], values: LabelValues) -> str:
    if not names:
        return ""
    pairs = ",".join(f'{name}="{_escape(value)}"' for name, value in zip(names, values))
    return "{" + pairs + "}"


class Counter:
    """Monotonic counter keyed by a fixed, ordered set of label names."""

    def __init__(self, name: str, label_names: Optional[Iterable[str]] = None, help_text: str = ""):
        self.name = name
        self.help_text = help_text
        self.label_names = list(label_names or [])
        self._values: Dict[LabelValues, float] = {}
        self._lock = threading.Lock()

    def _key(self, labels: Optional[Dict[str, str]]) -> LabelValues:
        labels = labels or {}
        unknown = set(labels) - set(self.label_names)
        if unknown:
            raise ValueError(f"{self.name}: unknown labels {sorted(unknown)}")
        return tuple(str(labels.get(name, "")) for name in self.label_names)

    def inc(self, labels: Optional[Dict[str, str]] = None, amount: float = 1.0):
        if amount < 0:
            raise ValueError(f"{self.name}: counters only go up")
        key = self._key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0.0) + float(amount)

    def value(self, labels: Optional[Dict[str, str]] = None) -> float:
        key = self._key(labels)
        with self._lock:
            return self._values.get(key, 0.0)

    def total(self) -> float:
        with self._lock:
            return sum(self._values.values())

    def export(self) -> List[str]:
        lines = []
        if self.help_text:
            lines.append(f"# HELP {self.name} {self.help_text}")
        lines.append(f"# TYPE {self.name} counter")
        with self._lock:
            for key in sorted(self._values):
                lines.append(f"{self.name}{_render_labels(self.label_names, key)} {self._values[key]}")
        return lines

    def reset(self):
        with self._lock:
            self._values.clear()


class MetricsRegistry:
    def __init__(self):
        self.counters: Dict[str, Counter] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, label_names: Optional[Iterable[str]] = None, help_text: str = "") -> Counter:
        with self._lock:
            if name not in self.counters:
                self.counters[name] = Counter(name, label_names, help_text)
            return self.counters[name]

    def export_prometheus(self) -> str:
        lines: List[str] = []
        for name in sorted(self.counters):
            lines.extend(self.counters[name].export())
        return "\n".join(lines) + "\n"

    def reset(self):
        for counter in self.counters.values():
            counter.reset()


METRICS = MetricsRegistry()

http_requests_total = METRICS.counter(
    "http_requests_total", ["method", "path", "status"], "HTTP requests by route and status"
)
entitlement_checks_total = METRICS.counter(
    "entitlement_checks_total", ["check", "result"], "Entitlement decisions by check and allow/deny"
)
usage_tracked_total = METRICS.counter(
    "usage_tracked_total", ["agent_type"], "AI agent invocations recorded"
)
usage_tracking_failures_total = METRICS.counter(
    "usage_tracking_failures_total", ["agent_type", "reason"], "AI usage writes that were dropped"
)
backend_failures_total = METRICS.counter(
    "backend_failures_total", ["operation", "reason"], "Entitlement backend calls that failed"
)


_ID_SEGMENT = re.compile(r"^(\d+|[0-9a-fA-F]{8}-[0-9a-fA-F-]{27,})$")


def normalize_path(path: str) -> str:
    """Collapse numeric and UUID path segments to :id to bound label cardinality."""
    segments = [segment for segment in path.split("/") if segment]
    return "/" + "/".join(":id" if _ID_SEGMENT.match(segment) else segment for segment in segments)
