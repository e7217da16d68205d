"""
Metrics: counters and gauges for alert machines and their resources.

Everything lives in process memory. The CLI prints ``export_json()`` after
a simulation; ``export_prometheus()`` renders the text exposition format
for anything that wants to scrape it.

## Usage

    from glyph_alerts.observability.metrics import metrics

    metrics.increment("stage_transitions_total", labels={"stage": "active"})
    metrics.set_gauge("machines_active", 1)
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class MetricPoint:
    """A single metric data point."""

    name: str
    value: float
    timestamp: float
    labels: Dict[str, str] = field(default_factory=dict)


class _Metric:
    """Shared label handling for counters and gauges."""

    kind = "untyped"

    def __init__(self, name: str, help_text: str = ""):
        self.name = name
        self.help_text = help_text
        self._values: Dict[str, float] = defaultdict(float)
        self._lock = Lock()

    @staticmethod
    def _labels_key(labels: Optional[Dict[str, str]]) -> str:
        if not labels:
            return ""
        return ",".join(f"{k}={v}" for k, v in sorted(labels.items()))

    @staticmethod
    def _parse_key(key: str) -> Dict[str, str]:
        if not key:
            return {}
        return dict(pair.split("=", 1) for pair in key.split(","))

    def get(self, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value for one label set."""
        return self._values.get(self._labels_key(labels), 0)

    def total(self) -> float:
        """Sum across every label set."""
        return sum(self._values.values())

    def export(self) -> List[MetricPoint]:
        now = time.time()
        return [
            MetricPoint(self.name, value, now, self._parse_key(key))
            for key, value in self._values.items()
        ]

    def reset(self) -> None:
        with self._lock:
            self._values.clear()


class Counter(_Metric):
    """A monotonically increasing counter."""

    kind = "counter"

    def inc(self, value: float = 1, labels: Optional[Dict[str, str]] = None) -> None:
        if value < 0:
            raise ValueError("Counters can only increase")
        key = self._labels_key(labels)
        with self._lock:
            self._values[key] += value


class Gauge(_Metric):
    """A gauge that can go up and down."""

    kind = "gauge"

    def set(self, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        key = self._labels_key(labels)
        with self._lock:
            self._values[key] = value

    def inc(self, value: float = 1, labels: Optional[Dict[str, str]] = None) -> None:
        key = self._labels_key(labels)
        with self._lock:
            self._values[key] += value

    def dec(self, value: float = 1, labels: Optional[Dict[str, str]] = None) -> None:
        self.inc(-value, labels)


class MetricsRegistry:
    """
    Central registry for all metrics.

    Names are stored with the registry prefix; callers use the short name.
    """

    def __init__(self, prefix: str = "glyph_alerts"):
        self.prefix = prefix
        self._counters: Dict[str, Counter] = {}
        self._gauges: Dict[str, Gauge] = {}
        self._lock = Lock()

        self._register_common_metrics()

    def _register_common_metrics(self) -> None:
        # Stage machine
        self.counter("stage_transitions_total", "Stage transitions by target stage")
        self.counter("confirm_action_failures_total", "Confirm-actions that raised")
        self.gauge("machines_active", "Machines in a non-terminal stage")

        # Resources
        self.counter("wake_lock_acquired_total", "Wake-lock acquisitions")
        self.counter("wake_lock_released_total", "Wake-lock releases")
        self.counter("wake_lock_failures_total", "Wake-lock acquire or release failures")
        self.counter("driver_failures_total", "Animation driver failures by operation")

    def _full_name(self, name: str) -> str:
        return f"{self.prefix}_{name}"

    def counter(self, name: str, help_text: str = "") -> Counter:
        """Get or create a counter."""
        full_name = self._full_name(name)
        with self._lock:
            if full_name not in self._counters:
                self._counters[full_name] = Counter(full_name, help_text)
            return self._counters[full_name]

    def gauge(self, name: str, help_text: str = "") -> Gauge:
        """Get or create a gauge."""
        full_name = self._full_name(name)
        with self._lock:
            if full_name not in self._gauges:
                self._gauges[full_name] = Gauge(full_name, help_text)
            return self._gauges[full_name]

    def increment(self, name: str, value: float = 1, labels: Optional[Dict[str, str]] = None) -> None:
        self.counter(name).inc(value, labels)

    def set_gauge(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        self.gauge(name).set(value, labels)

    def reset(self) -> None:
        """Zero every registered metric, keeping registrations."""
        for metric in [*self._counters.values(), *self._gauges.values()]:
            metric.reset()

    def export_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines = []
        for metric in [*self._counters.values(), *self._gauges.values()]:
            lines.append(f"# HELP {metric.name} {metric.help_text}")
            lines.append(f"# TYPE {metric.name} {metric.kind}")
            for point in metric.export():
                lines.append(f"{point.name}{self._format_labels(point.labels)} {point.value}")
        return "\n".join(lines)

    def export_json(self) -> Dict[str, Any]:
        """Export totals per metric, summed across label sets."""
        return {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "counters": {name: c.total() for name, c in self._counters.items()},
            "gauges": {name: g.total() for name, g in self._gauges.items()},
        }

    @staticmethod
    def _format_labels(labels: Dict[str, str]) -> str:
        if not labels:
            return ""
        pairs = [f'{k}="{v}"' for k, v in sorted(labels.items())]
        return "{" + ",".join(pairs) + "}"


# Global metrics instance
metrics = MetricsRegistry()
