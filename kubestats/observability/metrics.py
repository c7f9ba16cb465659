"""Metrics sinks for kubestats.

MetricsSink      -- ABC every backend implements; emissions are fire-and-forget.
StatsdSink       -- pushes gauges and counters to a statsd agent over UDP.
PrometheusSink   -- exposes the same series as prometheus-client families,
                    labelled by the dotted metric name.
MemorySink       -- records every emission in memory.

Metric names are dotted paths such as ``rc.default.web`` or
``event.kubelet.Pod.failed``. A sink never raises into the caller: delivery
failures are logged and dropped.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod

import structlog
from prometheus_client import CollectorRegistry, Counter, Gauge, start_http_server
from statsd import StatsClient

from kubestats.config import split_address
from kubestats.models.config import SinkConfig

_log = structlog.get_logger(component="observability.metrics")

ERRORS_COUNTER = "kubestats.errors"


class MetricsSink(ABC):
    """Abstract base class for metric backends."""

    @abstractmethod
    def gauge(self, name: str, value: int) -> None:
        """Set gauge *name* to *value*."""

    @abstractmethod
    def counter(self, name: str, delta: int = 1) -> None:
        """Increment counter *name* by *delta*."""

    def close(self) -> None:  # noqa: B027
        """Release any resources held by the sink."""


class StatsdSink(MetricsSink):
    """statsd backend.

    Args:
        host:   statsd agent host.
        port:   statsd agent UDP port.
        prefix: prepended to every metric name (``<prefix>.<name>``).
    """

    def __init__(self, host: str, port: int, prefix: str = "") -> None:
        self._client = StatsClient(host=host, port=port, prefix=prefix or None)

    def gauge(self, name: str, value: int) -> None:
        try:
            self._client.gauge(name, value)
        except OSError as exc:
            _log.debug("statsd_send_failed", metric=name, error=str(exc))

    def counter(self, name: str, delta: int = 1) -> None:
        try:
            self._client.incr(name, delta)
        except OSError as exc:
            _log.debug("statsd_send_failed", metric=name, error=str(exc))

    def close(self) -> None:
        self._client.close()


class PrometheusSink(MetricsSink):
    """prometheus-client backend.

    Dotted names are not valid Prometheus metric names, so every gauge lands
    in one ``<prefix>_gauge`` family and every counter in one
    ``<prefix>_count_total`` family, each labelled ``name=<dotted name>``.
    """

    def __init__(self, prefix: str = "kubernetes", registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()
        family = (prefix or "kubestats").replace(".", "_").replace("-", "_")
        self._gauges = Gauge(
            f"{family}_gauge",
            "Point-in-time cluster state reported by kubestats.",
            ("name",),
            registry=self.registry,
        )
        self._counters = Counter(
            f"{family}_count",
            "Cluster event and error counts reported by kubestats.",
            ("name",),
            registry=self.registry,
        )

    def gauge(self, name: str, value: int) -> None:
        self._gauges.labels(name=name).set(value)

    def counter(self, name: str, delta: int = 1) -> None:
        self._counters.labels(name=name).inc(delta)

    def serve(self, port: int) -> None:
        """Expose the registry over HTTP on *port* from a daemon thread."""
        start_http_server(port, registry=self.registry)
        _log.info("prometheus_endpoint_started", port=port)


class MemorySink(MetricsSink):
    """In-memory backend that records every emission in order.

    ``gauges`` keeps the last value per name (gauge semantics), ``counters``
    keeps the accumulated total per name, and ``emissions`` keeps the raw
    ``(kind, name, value)`` log.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.gauges: dict[str, int] = {}
        self.counters: dict[str, int] = {}
        self.emissions: list[tuple[str, str, int]] = []

    def gauge(self, name: str, value: int) -> None:
        with self._lock:
            self.gauges[name] = value
            self.emissions.append(("gauge", name, value))

    def counter(self, name: str, delta: int = 1) -> None:
        with self._lock:
            self.counters[name] = self.counters.get(name, 0) + delta
            self.emissions.append(("counter", name, delta))

    def gauge_names(self, prefix: str = "") -> set[str]:
        return {name for name in self.gauges if name.startswith(prefix)}


def build_sink(config: SinkConfig) -> MetricsSink:
    """Create the sink selected by *config*."""
    if config.kind == "prometheus":
        sink = PrometheusSink(prefix=config.prefix)
        sink.serve(config.prometheus_port)
        return sink
    host, port = split_address(config.address)
    _log.info("statsd_sink_configured", address=config.address, prefix=config.prefix)
    return StatsdSink(host, port, prefix=config.prefix)
