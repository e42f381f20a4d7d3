"""
Observability Module — Metrics for mirror runs.
"""

from .metrics import Counter, Gauge, Histogram, MetricsRegistry

__all__ = [
    "MetricsRegistry",
    "Counter",
    "Gauge",
    "Histogram",
]
