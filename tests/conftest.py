import threading
import time

import pytest
from opentelemetry.sdk._logs.export import LogExporter, LogExportResult
from opentelemetry.sdk.metrics.export import MetricExporter, MetricExportResult
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from dicetel_core.models.config import DicetelTelemetryConfig
from dicetel_core.telemetry import Exporters, Signal, Telemetry


class FakeCollector:
    """In-memory collector standing in for the OTLP exporters.

    Parameters
    ----------
    delay : float
        Seconds each export takes.
    fail : bool
        When True every export is rejected.
    """

    endpoint = 'memory://collector'

    def __init__(self, delay: float = 0.0, fail: bool = False):
        self.delay = delay
        self.fail = fail
        self.closed = set()
        self._batches = {signal: [] for signal in Signal}
        self._lock = threading.Lock()

    def exporters(self) -> Exporters:
        return Exporters(
            spans=CollectorSpanExporter(self),
            metrics=CollectorMetricExporter(self),
            logs=CollectorLogExporter(self),
        )

    def receive(self, signal: Signal, batch) -> bool:
        if self.delay:
            time.sleep(self.delay)
        if self.fail:
            return False
        with self._lock:
            self._batches[signal].append(list(batch))
        return True

    def close(self, signal: Signal) -> None:
        with self._lock:
            self.closed.add(signal)

    @property
    def is_closed(self) -> bool:
        return self.closed == set(Signal)

    def batches(self, signal: Signal) -> list:
        with self._lock:
            return list(self._batches[signal])

    def spans(self):
        return [span for batch in self.batches(Signal.TRACES) for span in batch]

    def log_records(self):
        return [data.log_record for batch in self.batches(Signal.LOGS) for data in batch]

    def metrics(self):
        return [
            metric
            for batch in self.batches(Signal.METRICS)
            for metrics_data in batch
            for resource_metrics in metrics_data.resource_metrics
            for scope_metrics in resource_metrics.scope_metrics
            for metric in scope_metrics.metrics
        ]

    def counter_values(self, name: str) -> list:
        return [
            sum(point.value for point in metric.data.data_points)
            for metric in self.metrics()
            if metric.name == name
        ]


class CollectorSpanExporter(SpanExporter):
    def __init__(self, collector: FakeCollector):
        self._collector = collector

    def export(self, spans):
        if self._collector.receive(Signal.TRACES, spans):
            return SpanExportResult.SUCCESS
        return SpanExportResult.FAILURE

    def shutdown(self):
        self._collector.close(Signal.TRACES)


class CollectorLogExporter(LogExporter):
    def __init__(self, collector: FakeCollector):
        self._collector = collector

    def export(self, batch):
        if self._collector.receive(Signal.LOGS, batch):
            return LogExportResult.SUCCESS
        return LogExportResult.FAILURE

    def force_flush(self, timeout_millis=30000):
        return True

    def shutdown(self):
        self._collector.close(Signal.LOGS)


class CollectorMetricExporter(MetricExporter):
    def __init__(self, collector: FakeCollector):
        super().__init__()
        self._collector = collector

    def export(self, metrics_data, timeout_millis=10000, **kwargs):
        if self._collector.receive(Signal.METRICS, [metrics_data]):
            return MetricExportResult.SUCCESS
        return MetricExportResult.FAILURE

    def force_flush(self, timeout_millis=10000):
        return True

    def shutdown(self, timeout_millis=30000, **kwargs):
        self._collector.close(Signal.METRICS)


def wait_until(predicate, timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it is true or ``timeout`` elapses."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def collector():
    return FakeCollector()


@pytest.fixture
def telemetry_config():
    return DicetelTelemetryConfig(
        enable=True,
        service_name='dicetel-test',
        metrics_export_interval_millis=60000,
        spans_schedule_delay_millis=50,
        logs_schedule_delay_millis=50,
        shutdown_timeout_millis=2000,
        export_timeout_millis=1000,
        verbose=False,
    )


@pytest.fixture
def telemetry(telemetry_config, collector):
    instance = Telemetry(telemetry_config, exporters=collector.exporters())
    yield instance
    instance.shutdown()
