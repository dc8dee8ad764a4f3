"""Monitoring and metrics collection for resource pools."""

from .metrics import metrics, MetricsCollector

__all__ = [
    "metrics",
    "MetricsCollector",
]
