"""jwkfetch metrics collection.

In-process counters and histograms describing cache behavior and outbound
HTTP traffic, exportable in Prometheus text format.

Example:
    >>> from jwkfetch.observability.metrics import get_metrics
    >>> metrics = get_metrics()
    >>> metrics.increment_counter("jwkfetch_cache_hits_total", {"tier": "issuer"})
    >>> print(metrics.export_prometheus())
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import ClassVar

LabelKey = tuple[tuple[str, str], ...]


def _label_key(labels: dict[str, str] | None) -> LabelKey:
    return tuple(sorted((labels or {}).items()))


@dataclass
class Counter:
    """A monotonically increasing counter metric.

    Attributes:
        name: Metric name
        help_text: Human-readable description
        values: Dictionary mapping label combinations to counts
    """

    name: str
    help_text: str
    values: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def increment(self, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
        key = _label_key(labels)
        with self._lock:
            self.values[key] = self.values.get(key, 0.0) + value

    def get(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            return self.values.get(_label_key(labels), 0.0)


DEFAULT_LATENCY_BUCKETS = (0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0)


@dataclass
class Histogram:
    """A histogram metric (cumulative buckets, sum and count per label set)."""

    name: str
    help_text: str
    buckets: tuple[float, ...] = DEFAULT_LATENCY_BUCKETS
    counts: dict[LabelKey, list[float]] = field(default_factory=dict)
    sums: dict[LabelKey, float] = field(default_factory=dict)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def observe(self, value: float, labels: dict[str, str] | None = None) -> None:
        key = _label_key(labels)
        with self._lock:
            bucket_counts = self.counts.setdefault(key, [0.0] * (len(self.buckets) + 1))
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    bucket_counts[i] += 1
            bucket_counts[-1] += 1
            self.sums[key] = self.sums.get(key, 0.0) + value

    def get_count(self, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            bucket_counts = self.counts.get(_label_key(labels))
            return bucket_counts[-1] if bucket_counts else 0.0


def _escape_label_value(value: str) -> str:
    """Escape label value per Prometheus specification."""
    value = value.replace("\\", "\\\\")
    return value.replace('"', '\\"')


def _format_labels(labels: LabelKey, extra: str = "") -> str:
    parts = [f'{k}="{_escape_label_value(v)}"' for k, v in labels]
    if extra:
        parts.append(extra)
    return "{" + ",".join(parts) + "}" if parts else ""


class MetricsCollector:
    """Collects and exports jwkfetch metrics in Prometheus format.

    Unknown metric names are ignored on update and read back as zero.
    """

    DEFAULT_COUNTERS: ClassVar[dict[str, str]] = {
        "jwkfetch_http_requests_total": "Outbound HTTP GETs by kind (discovery, jwks)",
        "jwkfetch_http_errors_total": "Outbound HTTP GETs that failed, by kind",
        "jwkfetch_cache_hits_total": "Cache lookups served from memory, by tier",
        "jwkfetch_cache_misses_total": "Cache lookups that had to populate, by tier",
        "jwkfetch_cache_invalidations_total": "Entries dropped after a key id miss, by tier",
        "jwkfetch_refresh_total": "Entries recomputed by the bulk refresh, by tier",
        "jwkfetch_refresh_failures_total": "Entries the bulk refresh could not recompute, by tier",
    }

    DEFAULT_HISTOGRAMS: ClassVar[dict[str, str]] = {
        "jwkfetch_http_duration_seconds": "Outbound HTTP GET duration in seconds, by kind",
    }

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters = {
            name: Counter(name=name, help_text=help_text)
            for name, help_text in self.DEFAULT_COUNTERS.items()
        }
        self._histograms = {
            name: Histogram(name=name, help_text=help_text)
            for name, help_text in self.DEFAULT_HISTOGRAMS.items()
        }

    def increment_counter(
        self, name: str, labels: dict[str, str] | None = None, value: float = 1.0
    ) -> None:
        with self._lock:
            counter = self._counters.get(name)
        if counter is not None:
            counter.increment(labels, value)

    def observe_histogram(
        self, name: str, value: float, labels: dict[str, str] | None = None
    ) -> None:
        with self._lock:
            histogram = self._histograms.get(name)
        if histogram is not None:
            histogram.observe(value, labels)

    def get_counter(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            counter = self._counters.get(name)
        return counter.get(labels) if counter is not None else 0.0

    def get_histogram_count(self, name: str, labels: dict[str, str] | None = None) -> float:
        with self._lock:
            histogram = self._histograms.get(name)
        return histogram.get_count(labels) if histogram is not None else 0.0

    def export_prometheus(self) -> str:
        """Export all metrics in Prometheus text exposition format."""
        lines: list[str] = []
        with self._lock:
            for counter in self._counters.values():
                lines.append(f"# HELP {counter.name} {counter.help_text}")
                lines.append(f"# TYPE {counter.name} counter")
                with counter._lock:
                    if not counter.values:
                        lines.append(f"{counter.name} 0")
                    for key, value in counter.values.items():
                        lines.append(f"{counter.name}{_format_labels(key)} {value}")

            for histogram in self._histograms.values():
                lines.append(f"# HELP {histogram.name} {histogram.help_text}")
                lines.append(f"# TYPE {histogram.name} histogram")
                with histogram._lock:
                    for key, bucket_counts in histogram.counts.items():
                        total = bucket_counts[-1]
                        for bound, count in zip(histogram.buckets, bucket_counts):
                            le = _format_labels(key, f'le="{bound}"')
                            lines.append(f"{histogram.name}_bucket{le} {count}")
                        le = _format_labels(key, 'le="+Inf"')
                        lines.append(f"{histogram.name}_bucket{le} {total}")
                        labels = _format_labels(key)
                        lines.append(f"{histogram.name}_sum{labels} {histogram.sums[key]}")
                        lines.append(f"{histogram.name}_count{labels} {total}")

        return "\n".join(lines) + "\n"

    def reset(self) -> None:
        """Reset all metrics to zero. Useful for testing."""
        with self._lock:
            for counter in self._counters.values():
                with counter._lock:
                    counter.values.clear()
            for histogram in self._histograms.values():
                with histogram._lock:
                    histogram.counts.clear()
                    histogram.sums.clear()


_metrics_collector: MetricsCollector | None = None
_collector_lock = threading.Lock()


def get_metrics() -> MetricsCollector:
    """Get the global metrics collector instance."""
    global _metrics_collector
    with _collector_lock:
        if _metrics_collector is None:
            _metrics_collector = MetricsCollector()
        return _metrics_collector


def reset_metrics() -> None:
    """Reset the global metrics collector. Useful for testing."""
    with _collector_lock:
        if _metrics_collector is not None:
            _metrics_collector.reset()
