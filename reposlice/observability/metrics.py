"""
Metrics — In-process counters, gauges and histograms for mirror runs.

Values are kept per label set and can be exported in Prometheus text
format or as JSON.

## Usage

    from reposlice.observability.metrics import MetricsRegistry

    metrics = MetricsRegistry()
    metrics.increment("mirror_runs_total")
    metrics.set_gauge("closure_components", 42)
    metrics.timing("mirror_duration_seconds", 1.7)

    print(metrics.export_prometheus())
"""

from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, Iterator, List, Optional, Tuple

Labels = Optional[Dict[str, str]]


@dataclass
class MetricPoint:
    """A single exported sample."""

    name: str
    value: float
    timestamp: float
    labels: Dict[str, str] = field(default_factory=dict)


def _labels_key(labels: Labels) -> Tuple[Tuple[str, str], ...]:
    return tuple(sorted((labels or {}).items()))


class _Metric:
    kind = "untyped"

    def __init__(self, name: str, help_text: str = ""):
        self.name = name
        self.help_text = help_text
        self._lock = Lock()

    def export(self) -> List[MetricPoint]:
        raise NotImplementedError


class Counter(_Metric):
    """Monotonically increasing value."""

    kind = "counter"

    def __init__(self, name: str, help_text: str = ""):
        super().__init__(name, help_text)
        self._values: Dict[Tuple[Tuple[str, str], ...], float] = defaultdict(float)

    def inc(self, value: float = 1, labels: Labels = None) -> None:
        if value < 0:
            raise ValueError(f"Counter {self.name} cannot decrease")
        with self._lock:
            self._values[_labels_key(labels)] += value

    def get(self, labels: Labels = None) -> float:
        return self._values.get(_labels_key(labels), 0)

    def export(self) -> List[MetricPoint]:
        now = time.time()
        return [MetricPoint(self.name, v, now, dict(k)) for k, v in self._values.items()]


class Gauge(_Metric):
    """Value that can go up and down."""

    kind = "gauge"

    def __init__(self, name: str, help_text: str = ""):
        super().__init__(name, help_text)
        self._values: Dict[Tuple[Tuple[str, str], ...], float] = {}

    def set(self, value: float, labels: Labels = None) -> None:
        with self._lock:
            self._values[_labels_key(labels)] = value

    def inc(self, value: float = 1, labels: Labels = None) -> None:
        key = _labels_key(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def dec(self, value: float = 1, labels: Labels = None) -> None:
        self.inc(-value, labels)

    def get(self, labels: Labels = None) -> float:
        return self._values.get(_labels_key(labels), 0)

    def export(self) -> List[MetricPoint]:
        now = time.time()
        return [MetricPoint(self.name, v, now, dict(k)) for k, v in self._values.items()]


class Histogram(_Metric):
    """Distribution of observed values over fixed buckets."""

    kind = "histogram"
    DEFAULT_BUCKETS = (0.01, 0.05, 0.1, 0.5, 1, 2.5, 5, 10, 30, 60, 120, float("inf"))

    def __init__(self, name: str, help_text: str = "", buckets: Optional[tuple] = None):
        super().__init__(name, help_text)
        self.buckets = tuple(buckets or self.DEFAULT_BUCKETS)
        self._counts: Dict[Tuple[Tuple[str, str], ...], List[int]] = {}
        self._sums: Dict[Tuple[Tuple[str, str], ...], float] = defaultdict(float)
        self._totals: Dict[Tuple[Tuple[str, str], ...], int] = defaultdict(int)

    def observe(self, value: float, labels: Labels = None) -> None:
        key = _labels_key(labels)
        with self._lock:
            counts = self._counts.setdefault(key, [0] * len(self.buckets))
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    counts[i] += 1
            self._sums[key] += value
            self._totals[key] += 1

    def sum(self, labels: Labels = None) -> float:
        return self._sums.get(_labels_key(labels), 0.0)

    def count(self, labels: Labels = None) -> int:
        return self._totals.get(_labels_key(labels), 0)

    def export(self) -> List[MetricPoint]:
        now = time.time()
        points: List[MetricPoint] = []
        for key, counts in self._counts.items():
            labels = dict(key)
            # Bucket counts are already cumulative: each bucket counts value <= bound
            for bound, count in zip(self.buckets, counts):
                le = "+Inf" if bound == float("inf") else str(bound)
                points.append(MetricPoint(f"{self.name}_bucket", count, now, {**labels, "le": le}))
            points.append(MetricPoint(f"{self.name}_sum", self._sums[key], now, labels))
            points.append(MetricPoint(f"{self.name}_count", self._totals[key], now, labels))
        return points


class MetricsRegistry:
    """Named metrics under a common prefix."""

    def __init__(self, prefix: str = "reposlice"):
        self.prefix = prefix
        self._metrics: Dict[str, _Metric] = {}
        self._lock = Lock()
        self._register_defaults()

    def _register_defaults(self) -> None:
        self.counter("mirror_runs_total", "Mirror runs started")
        self.counter("mirror_errors_total", "Mirror runs that failed")
        self.histogram("mirror_duration_seconds", "Mirror run duration")

        self.gauge("closure_components", "Components in the last computed closure")
        self.gauge("unresolved_requirements", "Unresolved mandatory requirements in the last closure")
        self.gauge("components_written", "Components written by the last run")
        self.gauge("artifacts_written", "Artifact keys written by the last run")

        self.counter("provided_components_total", "Components skipped because a reference provides them")
        self.counter("provided_artifacts_total", "Artifact keys skipped because a reference provides them")
        self.counter("references_pruned_total", "References dropped for providing nothing")

    def _get_or_create(self, cls: type, name: str, help_text: str) -> Any:
        full_name = f"{self.prefix}_{name}"
        with self._lock:
            metric = self._metrics.get(full_name)
            if metric is None:
                metric = cls(full_name, help_text)
                self._metrics[full_name] = metric
            elif not isinstance(metric, cls):
                raise TypeError(f"{full_name} is already registered as a {metric.kind}")
            return metric

    def counter(self, name: str, help_text: str = "") -> Counter:
        return self._get_or_create(Counter, name, help_text)

    def gauge(self, name: str, help_text: str = "") -> Gauge:
        return self._get_or_create(Gauge, name, help_text)

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        return self._get_or_create(Histogram, name, help_text)

    def __iter__(self) -> Iterator[_Metric]:
        return iter(list(self._metrics.values()))

    # Convenience methods
    def increment(self, name: str, value: float = 1, labels: Labels = None) -> None:
        self.counter(name).inc(value, labels)

    def set_gauge(self, name: str, value: float, labels: Labels = None) -> None:
        self.gauge(name).set(value, labels)

    def timing(self, name: str, seconds: float, labels: Labels = None) -> None:
        self.histogram(name).observe(seconds, labels)

    def export_prometheus(self) -> str:
        """Prometheus text exposition format."""
        lines: List[str] = []
        for metric in self:
            lines.append(f"# HELP {metric.name} {metric.help_text}")
            lines.append(f"# TYPE {metric.name} {metric.kind}")
            for point in metric.export():
                lines.append(f"{point.name}{self._format_labels(point.labels)} {point.value}")
        return "\n".join(lines)

    def export_json(self) -> Dict[str, Any]:
        """Unlabelled values grouped by metric type."""
        result: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "counters": {},
            "gauges": {},
            "histograms": {},
        }
        for metric in self:
            if isinstance(metric, Counter):
                result["counters"][metric.name] = metric.get()
            elif isinstance(metric, Gauge):
                result["gauges"][metric.name] = metric.get()
            elif isinstance(metric, Histogram):
                result["histograms"][metric.name] = {"sum": metric.sum(), "count": metric.count()}
        return result

    @staticmethod
    def _format_labels(labels: Dict[str, str]) -> str:
        if not labels:
            return ""
        pairs = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(pairs) + "}"

