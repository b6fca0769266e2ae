"""Thread-safe in-memory metrics registry."""
from __future__ import annotations

from contextlib import contextmanager
from threading import Lock
from typing import Callable, Dict, Iterable, Iterator, Mapping, MutableMapping, Tuple, TypeVar

from .base import CounterMetric, DistributionMetric, LabelValues, Metric, track_duration
from .definitions import MetricDefinition

MetricT = TypeVar("MetricT", bound=Metric)


class MetricsRegistry:
    """Metric instances keyed by name.

    Asking for an existing name returns the same instance; asking for it with a
    different metric kind raises ``TypeError``.
    """

    def __init__(self) -> None:
        self._metrics: MutableMapping[str, Metric] = {}
        self._lock = Lock()

    def _get_or_create(self, name: str, kind: type[MetricT], factory: Callable[[], MetricT]) -> MetricT:
        with self._lock:
            metric = self._metrics.get(name)
            if metric is None:
                metric = self._metrics[name] = factory()
        if not isinstance(metric, kind):
            raise TypeError(f"Metric '{name}' already exists with a different type")
        return metric

    def counter(
        self,
        name: str,
        *,
        description: str = "",
        label_names: Iterable[str] | None = None,
    ) -> CounterMetric:
        return self._get_or_create(
            name,
            CounterMetric,
            lambda: CounterMetric(name, description=description, label_names=label_names),
        )

    def distribution(
        self,
        name: str,
        *,
        description: str = "",
        label_names: Iterable[str] | None = None,
    ) -> DistributionMetric:
        return self._get_or_create(
            name,
            DistributionMetric,
            lambda: DistributionMetric(name, description=description, label_names=label_names),
        )

    def register(self, definition: MetricDefinition) -> Metric:
        """Create the metric described by ``definition`` if it is not present yet."""

        if definition.metric_type == "counter":
            factory = self.counter
        elif definition.metric_type == "distribution":
            factory = self.distribution
        else:
            raise ValueError(f"Unsupported metric type: {definition.metric_type}")
        return factory(definition.name, description=definition.description, label_names=definition.label_names)

    def metrics(self) -> Tuple[Metric, ...]:
        with self._lock:
            return tuple(self._metrics.values())

    def snapshot(self) -> Dict[str, Mapping[LabelValues, Mapping[str, float]]]:
        with self._lock:
            return {name: metric.snapshot() for name, metric in self._metrics.items()}

    @contextmanager
    def time_distribution(
        self,
        name: str,
        *,
        labels: Mapping[str, str] | None = None,
    ) -> Iterator[None]:
        """Observe the duration of the ``with`` block into distribution ``name``."""

        with track_duration(self.distribution(name), labels=labels):
            yield
