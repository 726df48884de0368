"""
Metrics: in-process counters, gauges and histograms.

Served as Prometheus text on ``GET /metrics`` and as JSON by the
``metrics`` CLI command. Every name gets the ``pdfshrink_`` prefix.

Series recorded by the service:

    requests_total{result}            compressed, original, failed, invalid, ...
    candidates_total{preset,status}   ok, failed, skipped
    bytes_in_total / bytes_out_total / bytes_saved_total
    compress_duration_seconds         whole orchestration
    codec_duration_seconds{codec}     one codec call
    scratch_live_handles              files not yet released

## Usage

    from pdfshrink.observability.metrics import metrics

    metrics.increment("requests_total", labels={"result": "compressed"})
    metrics.timing("compress_duration_seconds", 1.8)
    print(metrics.export_prometheus())
"""

from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, NamedTuple, Optional, Tuple, Type

Labels = Optional[Dict[str, str]]
SeriesKey = Tuple[Tuple[str, str], ...]

# Codec calls run from tens of milliseconds to the two-minute Ghostscript limit
DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120, float("inf"))

SERVICE_METRICS = (
    ("counter", "requests_total", "Compression requests by result"),
    ("counter", "candidates_total", "Preset attempts by preset and status"),
    ("counter", "bytes_in_total", "Bytes received for compression"),
    ("counter", "bytes_out_total", "Bytes returned to clients"),
    ("counter", "bytes_saved_total", "Bytes saved by compression"),
    ("histogram", "compress_duration_seconds", "End-to-end orchestration duration"),
    ("histogram", "codec_duration_seconds", "Single codec invocation duration"),
    ("gauge", "scratch_live_handles", "Scratch files not yet released"),
)


def _series(labels: Labels) -> SeriesKey:
    return tuple(sorted((k, str(v)) for k, v in (labels or {}).items()))


def _number(value: float) -> str:
    if value == float("inf"):
        return "+Inf"
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


class Sample(NamedTuple):
    """One exported line: name, labels, value."""

    name: str
    labels: Dict[str, str]
    value: float


class Counter:
    """Monotonic per-series total."""

    kind = "counter"

    def __init__(self, name: str, help_text: str = ""):
        self.name = name
        self.help_text = help_text
        self._lock = threading.Lock()
        self._values: Dict[SeriesKey, float] = {}

    def _add(self, value: float, labels: Labels) -> None:
        key = _series(labels)
        with self._lock:
            self._values[key] = self._values.get(key, 0) + value

    def inc(self, value: float = 1, labels: Labels = None) -> None:
        if value < 0:
            raise ValueError(f"{self.name}: counters only go up")
        self._add(value, labels)

    def get(self, labels: Labels = None) -> float:
        return self._values.get(_series(labels), 0)

    def total(self) -> float:
        with self._lock:
            return sum(self._values.values())

    def export(self) -> List[Sample]:
        with self._lock:
            return [Sample(self.name, dict(k), v) for k, v in self._values.items()]


class Gauge(Counter):
    """Per-series value that is set directly."""

    kind = "gauge"

    def set(self, value: float, labels: Labels = None) -> None:
        with self._lock:
            self._values[_series(labels)] = value

    def inc(self, value: float = 1, labels: Labels = None) -> None:
        self._add(value, labels)

    def dec(self, value: float = 1, labels: Labels = None) -> None:
        self._add(-value, labels)


class Histogram:
    """Bucketed observations; exported cumulatively as Prometheus expects."""

    kind = "histogram"

    def __init__(self, name: str, help_text: str = "", buckets: Optional[tuple] = None):
        self.name = name
        self.help_text = help_text
        self.buckets = tuple(buckets or DURATION_BUCKETS)
        self._lock = threading.Lock()
        # series → [per-bucket counts..., sum, count]
        self._series: Dict[SeriesKey, List[float]] = {}

    def observe(self, value: float, labels: Labels = None) -> None:
        key = _series(labels)
        with self._lock:
            row = self._series.setdefault(key, [0] * (len(self.buckets) + 2))
            for i, bound in enumerate(self.buckets):
                if value <= bound:
                    row[i] += 1
                    break
            row[-2] += value
            row[-1] += 1

    def count(self, labels: Labels = None) -> int:
        row = self._series.get(_series(labels))
        return int(row[-1]) if row else 0

    def sum(self, labels: Labels = None) -> float:
        row = self._series.get(_series(labels))
        return row[-2] if row else 0.0

    def totals(self) -> Tuple[float, int]:
        with self._lock:
            rows = list(self._series.values())
        return sum(r[-2] for r in rows), int(sum(r[-1] for r in rows))

    def export(self) -> List[Sample]:
        samples: List[Sample] = []
        with self._lock:
            rows = [(dict(k), list(v)) for k, v in self._series.items()]
        for labels, row in rows:
            running = 0
            for i, bound in enumerate(self.buckets):
                running += row[i]
                samples.append(Sample(f"{self.name}_bucket", {**labels, "le": _number(bound)}, running))
            samples.append(Sample(f"{self.name}_sum", labels, row[-2]))
            samples.append(Sample(f"{self.name}_count", labels, row[-1]))
        return samples


METRIC_TYPES: Dict[str, Type] = {"counter": Counter, "gauge": Gauge, "histogram": Histogram}


class MetricsRegistry:
    """Named metrics with the service's series pre-registered."""

    def __init__(self, prefix: str = "pdfshrink"):
        self.prefix = prefix
        self._lock = threading.Lock()
        self._metrics: Dict[str, Any] = {}
        for kind, name, help_text in SERVICE_METRICS:
            self._metric(METRIC_TYPES[kind], name, help_text)

    def _metric(self, cls: Type, name: str, help_text: str = ""):
        full_name = f"{self.prefix}_{name}"
        with self._lock:
            existing = self._metrics.get(full_name)
            if existing is None:
                existing = self._metrics[full_name] = cls(full_name, help_text)
            elif type(existing) is not cls:
                raise TypeError(f"{full_name} is a {existing.kind}, not a {cls.kind}")
        return existing

    def counter(self, name: str, help_text: str = "") -> Counter:
        return self._metric(Counter, name, help_text)

    def gauge(self, name: str, help_text: str = "") -> Gauge:
        return self._metric(Gauge, name, help_text)

    def histogram(self, name: str, help_text: str = "") -> Histogram:
        return self._metric(Histogram, name, help_text)

    def increment(self, name: str, value: float = 1, labels: Labels = None) -> None:
        self.counter(name).inc(value, labels)

    def set_gauge(self, name: str, value: float, labels: Labels = None) -> None:
        self.gauge(name).set(value, labels)

    def timing(self, name: str, seconds: float, labels: Labels = None) -> None:
        self.histogram(name).observe(seconds, labels)

    def _registered(self) -> List[Any]:
        with self._lock:
            return list(self._metrics.values())

    def export_prometheus(self) -> str:
        """Prometheus text exposition format 0.0.4."""
        lines: List[str] = []
        for metric in self._registered():
            lines.append(f"# HELP {metric.name} {metric.help_text}")
            lines.append(f"# TYPE {metric.name} {metric.kind}")
            for sample in metric.export():
                label_text = ",".join(f'{k}="{v}"' for k, v in sorted(sample.labels.items()))
                series = f"{sample.name}{{{label_text}}}" if label_text else sample.name
                lines.append(f"{series} {_number(sample.value)}")
        return "\n".join(lines) + "\n"

    def export_json(self) -> Dict[str, Any]:
        """Totals per metric, summed across label sets."""
        data: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "counters": {},
            "gauges": {},
            "histograms": {},
        }
        for metric in self._registered():
            if isinstance(metric, Histogram):
                total, count = metric.totals()
                data["histograms"][metric.name] = {"sum": total, "count": count}
            elif isinstance(metric, Gauge):
                data["gauges"][metric.name] = metric.total()
            else:
                data["counters"][metric.name] = metric.total()
        return data


# Process-wide registry used by the server and CLI
metrics = MetricsRegistry()
