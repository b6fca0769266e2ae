"""Names and descriptions of the metrics the valet service emits."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

INFERENCE_RUNS_TOTAL = "valet_inference_runs_total"
INFERENCE_BELOW_THRESHOLD_TOTAL = "valet_inference_below_threshold_total"
DISPATCHES_COMMITTED_TOTAL = "valet_dispatches_committed_total"
INFERENCE_DURATION_SECONDS = "valet_inference_duration_seconds"


@dataclass(frozen=True)
class MetricDefinition:
    """Describe a metric that should exist in the registry."""

    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=INFERENCE_RUNS_TOTAL,
        metric_type="counter",
        description="Total number of gate inference runs.",
    ),
    MetricDefinition(
        name=INFERENCE_BELOW_THRESHOLD_TOTAL,
        metric_type="counter",
        description="Inference runs whose best score did not clear the threshold.",
    ),
    MetricDefinition(
        name=DISPATCHES_COMMITTED_TOTAL,
        metric_type="counter",
        description="Dispatches committed by the engine.",
        label_names=("gate",),
    ),
    MetricDefinition(
        name=INFERENCE_DURATION_SECONDS,
        metric_type="distribution",
        description="Duration of gate inference runs in seconds.",
    ),
)
