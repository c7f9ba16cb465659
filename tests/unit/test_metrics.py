"""Tests for the metrics sinks."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from prometheus_client import CollectorRegistry

from kubestats.models.config import SinkConfig
from kubestats.observability.metrics import MemorySink, PrometheusSink, StatsdSink, build_sink


class TestMemorySink:
    def test_gauge_overwrites_counter_accumulates(self) -> None:
        sink = MemorySink()
        sink.gauge("nodes.status.ready", 3)
        sink.gauge("nodes.status.ready", 2)
        sink.counter("kubestats.errors")
        sink.counter("kubestats.errors", 2)

        assert sink.gauges == {"nodes.status.ready": 2}
        assert sink.counters == {"kubestats.errors": 3}
        assert len(sink.emissions) == 4

    def test_gauge_names_by_prefix(self) -> None:
        sink = MemorySink()
        sink.gauge("rc.default.web", 1)
        sink.gauge("svc.default.web", 2)
        assert sink.gauge_names("rc.") == {"rc.default.web"}


class TestPrometheusSink:
    def test_series_labelled_by_metric_name(self) -> None:
        registry = CollectorRegistry()
        sink = PrometheusSink(prefix="kubernetes", registry=registry)
        sink.gauge("rc.default.web", 3)
        sink.counter("event.kubelet.Pod.failed")
        sink.counter("event.kubelet.Pod.failed", 2)

        assert registry.get_sample_value("kubernetes_gauge", {"name": "rc.default.web"}) == 3.0
        assert registry.get_sample_value("kubernetes_count_total", {"name": "event.kubelet.Pod.failed"}) == 3.0

    def test_dotted_prefix_sanitised(self) -> None:
        registry = CollectorRegistry()
        sink = PrometheusSink(prefix="k8s.prod-a", registry=registry)
        sink.gauge("nodes.status.ready", 1)
        assert registry.get_sample_value("k8s_prod_a_gauge", {"name": "nodes.status.ready"}) == 1.0


class TestStatsdSink:
    def test_forwards_to_statsd_client(self) -> None:
        client = MagicMock()
        with patch("kubestats.observability.metrics.StatsClient", return_value=client) as factory:
            sink = StatsdSink("statsd.local", 8125, prefix="kubernetes")
            sink.gauge("svc.default.web", 4)
            sink.counter("kubestats.errors")
            sink.close()

        factory.assert_called_once_with(host="statsd.local", port=8125, prefix="kubernetes")
        client.gauge.assert_called_once_with("svc.default.web", 4)
        client.incr.assert_called_once_with("kubestats.errors", 1)
        client.close.assert_called_once()

    def test_send_failure_swallowed(self) -> None:
        client = MagicMock()
        client.gauge.side_effect = OSError("network unreachable")
        with patch("kubestats.observability.metrics.StatsClient", return_value=client):
            StatsdSink("statsd.local", 8125).gauge("rc.default.web", 1)

    def test_build_sink_statsd(self) -> None:
        with patch("kubestats.observability.metrics.StatsClient") as factory:
            sink = build_sink(SinkConfig(kind="statsd", address="10.0.0.9:9125", prefix="k8s"))
        assert isinstance(sink, StatsdSink)
        factory.assert_called_once_with(host="10.0.0.9", port=9125, prefix="k8s")

    def test_build_sink_prometheus_serves_registry(self) -> None:
        with patch("kubestats.observability.metrics.start_http_server") as serve:
            sink = build_sink(SinkConfig(kind="prometheus", prefix="k8s", prometheus_port=9200))
        assert isinstance(sink, PrometheusSink)
        serve.assert_called_once_with(9200, registry=sink.registry)
