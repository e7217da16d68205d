"""
Observability Module: in-process metrics for alert machines.
"""

from .metrics import Counter, Gauge, MetricsRegistry, metrics

__all__ = [
    "metrics",
    "MetricsRegistry",
    "Counter",
    "Gauge",
]
