"""
Request metrics for the European Parliament data-access layer.
Tracks counters, gauges and latency histograms keyed by labelled series.
"""

import math
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ...constants import DEFAULT_HISTOGRAM_MAX_SAMPLES


Labels = Optional[Mapping[str, Any]]


def _escape_label_value(value: object) -> str:
    return str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")


def series_key(name: str, labels: Labels = None) -> str:
    """Build the canonical series key ``name{k1="v1",k2="v2"}``.

    Labels are sorted by key so two calls with the same labels in a different
    order address the same series. Values are escaped as in the Prometheus
    text exposition format.
    """
    if not labels:
        return name
    parts = ",".join(f'{k}="{_escape_label_value(labels[k])}"' for k in sorted(labels))
    return f"{name}{{{parts}}}"


def _partition(values: List[float], lo: int, hi: int) -> int:
    mid = (lo + hi) // 2
    values[mid], values[hi] = values[hi], values[mid]
    pivot = values[hi]
    store = lo
    for i in range(lo, hi):
        if values[i] < pivot:
            values[i], values[store] = values[store], values[i]
            store += 1
    values[store], values[hi] = values[hi], values[store]
    return store


def quickselect(values: List[float], k: int) -> float:
    """Return the k-th smallest element (0-based) of ``values``.

    Works on a copy; the caller's list is left untouched.
    """
    if not values:
        raise ValueError("quickselect on an empty sequence")
    if k < 0 or k >= len(values):
        raise IndexError(f"k={k} out of range for {len(values)} values")
    work = list(values)
    lo, hi = 0, len(work) - 1
    while lo < hi:
        p = _partition(work, lo, hi)
        if p == k:
            return work[p]
        if p < k:
            lo = p + 1
        else:
            hi = p - 1
    return work[lo]


def percentile(values: List[float], p: float) -> float:
    """Nearest-rank percentile: index ``ceil(p/100 * n) - 1`` clamped to range."""
    n = len(values)
    if n == 0:
        raise ValueError("percentile of an empty sequence")
    index = math.ceil(p / 100.0 * n) - 1
    index = max(0, min(n - 1, index))
    return quickselect(values, index)


@dataclass
class HistogramSample:
    """Bounded reservoir of observations plus exact running aggregates."""

    max_samples: int = DEFAULT_HISTOGRAM_MAX_SAMPLES
    samples: List[float] = field(default_factory=list)
    count: int = 0
    total: float = 0.0
    minimum: float = math.inf
    maximum: float = -math.inf
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def observe(self, value: float) -> None:
        self.count += 1
        self.total += value
        self.minimum = min(self.minimum, value)
        self.maximum = max(self.maximum, value)

        if len(self.samples) < self.max_samples:
            self.samples.append(value)
            return
        # Algorithm R: keep observation n with probability max_samples / n
        slot = self.rng.randrange(self.count)
        if slot < self.max_samples:
            self.samples[slot] = value

    def summary(self) -> Optional[Dict[str, float]]:
        if self.count == 0:
            return None
        return {
            "count": self.count,
            "sum": self.total,
            "avg": self.total / self.count,
            "min": self.minimum,
            "max": self.maximum,
            "p50": percentile(self.samples, 50),
            "p95": percentile(self.samples, 95),
            "p99": percentile(self.samples, 99),
        }


@dataclass
class MetricsCollector:
    """Collects counters, gauges and histograms for the fetch pipeline.

    Calls are synchronous and never suspend, so a collector can be shared by
    every sub-client of a client instance without a lock.
    """

    max_samples: int = DEFAULT_HISTOGRAM_MAX_SAMPLES
    counters: Dict[str, float] = field(default_factory=dict)
    gauges: Dict[str, float] = field(default_factory=dict)
    histograms: Dict[str, HistogramSample] = field(default_factory=dict)
    _labels: Dict[str, Dict[str, str]] = field(default_factory=dict, repr=False)
    rng: Optional[random.Random] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        if self.max_samples < 1:
            raise ValueError(f"max_samples must be positive, got {self.max_samples}")

    def _remember(self, key: str, name: str, labels: Labels) -> None:
        if key not in self._labels:
            stored = {k: str(v) for k, v in (labels or {}).items()}
            stored["__name__"] = name
            self._labels[key] = stored

    def increment_counter(
        self, name: str, amount: float = 1, labels: Labels = None
    ) -> None:
        key = series_key(name, labels)
        self._remember(key, name, labels)
        self.counters[key] = self.counters.get(key, 0) + amount

    def set_gauge(self, name: str, value: float, labels: Labels = None) -> None:
        key = series_key(name, labels)
        self._remember(key, name, labels)
        self.gauges[key] = value

    def observe_histogram(self, name: str, value: float, labels: Labels = None) -> None:
        key = series_key(name, labels)
        histogram = self.histograms.get(key)
        if histogram is None:
            self._remember(key, name, labels)
            histogram = HistogramSample(max_samples=self.max_samples)
            if self.rng is not None:
                histogram.rng = self.rng
            self.histograms[key] = histogram
        histogram.observe(value)

    def get_counter(self, name: str, labels: Labels = None) -> float:
        return self.counters.get(series_key(name, labels), 0)

    def get_gauge(self, name: str, labels: Labels = None) -> Optional[float]:
        return self.gauges.get(series_key(name, labels))

    def sum_counter(self, name: str, **label_filter: Any) -> float:
        """Sum every series of counter ``name`` whose labels match the filter."""
        wanted = {k: str(v) for k, v in label_filter.items()}
        total: float = 0
        for key, value in self.counters.items():
            labels = self._labels.get(key, {})
            if labels.get("__name__") != name:
                continue
            if all(labels.get(k) == v for k, v in wanted.items()):
                total += value
        return total

    def get_histogram_summary(
        self, name: str, labels: Labels = None
    ) -> Optional[Dict[str, float]]:
        """
        Summarize a histogram series.

        Args:
            name: Metric name
            labels: Label set identifying the series

        Returns:
            ``{count, sum, avg, min, max, p50, p95, p99}`` or ``None`` when
            nothing was observed
        """
        histogram = self.histograms.get(series_key(name, labels))
        if histogram is None:
            return None
        return histogram.summary()

    def snapshot(self) -> Dict[str, Any]:
        """Get current metrics snapshot."""
        return {
            "counters": dict(self.counters),
            "gauges": dict(self.gauges),
            "histograms": {
                key: histogram.summary() for key, histogram in self.histograms.items()
            },
        }

    def reset(self) -> None:
        """Reset all metrics."""
        self.counters.clear()
        self.gauges.clear()
        self.histograms.clear()
        self._labels.clear()
