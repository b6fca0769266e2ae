"""Process-wide metrics for the valet service."""
from __future__ import annotations

from .definitions import DEFAULT_METRIC_DEFINITIONS, MetricDefinition
from .exporters import PROMETHEUS_CONTENT_TYPE, PrometheusExporter
from .registry import MetricsRegistry

metrics_registry = MetricsRegistry()


def register_default_metrics(registry: MetricsRegistry | None = None) -> MetricsRegistry:
    """Create every default metric so it is exported before its first update."""
    target = registry or metrics_registry
    for definition in DEFAULT_METRIC_DEFINITIONS:
        target.register(definition)
    return target


register_default_metrics()

__all__ = [
    "MetricDefinition",
    "MetricsRegistry",
    "PROMETHEUS_CONTENT_TYPE",
    "PrometheusExporter",
    "metrics_registry",
    "register_default_metrics",
]
