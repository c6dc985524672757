"""OTLP exporters and the wrappers that monitor them."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, NamedTuple, Optional, Sequence
from urllib.parse import urlparse

import grpc
import requests
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import (
    OTLPLogExporter as GrpcLogExporter,
)
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import (
    OTLPMetricExporter as GrpcMetricExporter,
)
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
    OTLPSpanExporter as GrpcSpanExporter,
)
from opentelemetry.exporter.otlp.proto.http import Compression as HttpCompression
from opentelemetry.exporter.otlp.proto.http._log_exporter import (
    OTLPLogExporter as HttpLogExporter,
)
from opentelemetry.exporter.otlp.proto.http.metric_exporter import (
    OTLPMetricExporter as HttpMetricExporter,
)
from opentelemetry.exporter.otlp.proto.http.trace_exporter import (
    OTLPSpanExporter as HttpSpanExporter,
)
from opentelemetry.sdk._logs import LogData
from opentelemetry.sdk._logs.export import LogExporter, LogExportResult
from opentelemetry.sdk.metrics.export import (
    MetricExporter,
    MetricExportResult,
    MetricsData,
)
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from dicetel_core.exceptions import TransmissionError
from dicetel_core.models.config import DicetelTelemetryConfig
from dicetel_core.telemetry.processors import ExporterStats, ExportQueue


class Signal(str, Enum):
    TRACES = 'traces'
    METRICS = 'metrics'
    LOGS = 'logs'


class Exporters(NamedTuple):
    """One OTLP exporter per signal, all pointing at the same collector."""

    spans: SpanExporter
    metrics: MetricExporter
    logs: LogExporter


def create_exporters(config: DicetelTelemetryConfig) -> Exporters:
    """Build the OTLP exporters selected by ``config.protocol``.

    Every exporter gives up on a batch after ``export_timeout_millis``,
    retries included.
    """
    headers = {}
    if config.api_key:
        headers[config.authentication_header] = config.api_key.get_secret_value()
    timeout = config.export_timeout_millis / 1000

    if config.protocol == 'http/protobuf':
        compression = (
            HttpCompression.Gzip if config.use_compression else HttpCompression.NoCompression
        )
        session = requests.Session()
        return Exporters(
            spans=HttpSpanExporter(
                endpoint=config.traces_endpoint,
                headers=headers,
                timeout=timeout,
                compression=compression,
                session=session,
            ),
            metrics=HttpMetricExporter(
                endpoint=config.metrics_endpoint,
                headers=headers,
                timeout=timeout,
                compression=compression,
                session=session,
            ),
            logs=HttpLogExporter(
                endpoint=config.logs_endpoint,
                headers=headers,
                timeout=timeout,
                compression=compression,
                session=session,
            ),
        )

    # gRPC metadata keys must be lowercase
    metadata = {key.lower(): value for key, value in headers.items()}
    insecure = urlparse(config.endpoint).scheme != 'https'
    compression = grpc.Compression.Gzip if config.use_compression else grpc.Compression.NoCompression
    return Exporters(
        spans=GrpcSpanExporter(
            endpoint=config.endpoint,
            insecure=insecure,
            headers=metadata,
            timeout=timeout,
            compression=compression,
        ),
        metrics=GrpcMetricExporter(
            endpoint=config.endpoint,
            insecure=insecure,
            headers=metadata,
            timeout=timeout,
            compression=compression,
        ),
        logs=GrpcLogExporter(
            endpoint=config.endpoint,
            insecure=insecure,
            headers=metadata,
            timeout=timeout,
            compression=compression,
        ),
    )


class ExportRecorder:
    """Accounts for every batch one exporter sends.

    A failed batch is never retried: it is logged, counted as a failure and,
    unless ``cumulative`` is set, counted as dropped. Cumulative metrics are
    not lost by a failure since the next export carries the same totals.

    When ``verbose`` is set every batch sent is logged, which makes telemetry
    activity visible while developing.
    """

    def __init__(
        self,
        signal: Signal,
        endpoint: str,
        stats: ExporterStats,
        queue: Optional[ExportQueue] = None,
        cumulative: bool = False,
        verbose: bool = False,
        logger: logging.Logger | None = None,
    ):
        self.signal = signal
        self.endpoint = endpoint
        self.stats = stats
        self._queue = queue
        self._cumulative = cumulative
        self._verbose = verbose
        self._logger = logger or logging.getLogger(__name__)

    def transmit(self, count: int, send: Callable[[], bool]) -> bool:
        """Run ``send`` for a batch of ``count`` records.

        Returns
        -------
        bool
            True if the collector accepted the batch.
        """
        try:
            if not count:
                return True
            if self._verbose:
                self._logger.debug(f'Sending {count} {self.signal.value} to {self.endpoint}')
            try:
                self._send(send)
            except TransmissionError as exc:
                self.stats.failures.add(1)
                if self._cumulative:
                    self._logger.warning(f'{exc}, the totals will be sent again on the next export')
                else:
                    self.stats.dropped.add(count)
                    self._logger.warning(f'Dropping {count} {self.signal.value}: {exc}')
                return False
            self.stats.exported.add(count)
            return True
        finally:
            if self._queue is not None:
                self._queue.release(count)

    def _send(self, send: Callable[[], bool]) -> None:
        try:
            delivered = send()
        except Exception as exc:
            raise TransmissionError(str(exc), self.signal.value, self.endpoint) from exc
        if not delivered:
            raise TransmissionError(
                'the collector did not accept the batch', self.signal.value, self.endpoint
            )


class MonitoredSpanExporter(SpanExporter):
    """A span exporter that wraps another exporter and records each batch."""

    def __init__(self, wrapped_exporter: SpanExporter, recorder: ExportRecorder):
        self._wrapped_exporter = wrapped_exporter
        self.recorder = recorder

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        delivered = self.recorder.transmit(
            len(spans),
            lambda: self._wrapped_exporter.export(spans) is SpanExportResult.SUCCESS,
        )
        return SpanExportResult.SUCCESS if delivered else SpanExportResult.FAILURE

    def shutdown(self) -> None:
        self._wrapped_exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._wrapped_exporter.force_flush(timeout_millis)


class MonitoredLogExporter(LogExporter):
    """A log exporter that wraps another exporter and records each batch."""

    def __init__(self, wrapped_exporter: LogExporter, recorder: ExportRecorder):
        self._wrapped_exporter = wrapped_exporter
        self.recorder = recorder

    def export(self, batch: Sequence[LogData]) -> LogExportResult:
        delivered = self.recorder.transmit(
            len(batch),
            lambda: self._wrapped_exporter.export(batch) is LogExportResult.SUCCESS,
        )
        return LogExportResult.SUCCESS if delivered else LogExportResult.FAILURE

    def shutdown(self) -> None:
        self._wrapped_exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True


class MonitoredMetricExporter(MetricExporter):
    """A metric exporter that wraps another exporter and records each export.

    Temporality and aggregation preferences are those of the wrapped
    exporter.
    """

    def __init__(self, wrapped_exporter: MetricExporter, recorder: ExportRecorder):
        super().__init__(
            preferred_temporality=wrapped_exporter._preferred_temporality,
            preferred_aggregation=wrapped_exporter._preferred_aggregation,
        )
        self._wrapped_exporter = wrapped_exporter
        self.recorder = recorder

    def export(
        self,
        metrics_data: MetricsData,
        timeout_millis: float = 10000,
        **kwargs,
    ) -> MetricExportResult:
        count = sum(
            len(scope_metrics.metrics)
            for resource_metrics in metrics_data.resource_metrics
            for scope_metrics in resource_metrics.scope_metrics
        )
        delivered = self.recorder.transmit(
            count,
            lambda: self._wrapped_exporter.export(metrics_data, timeout_millis=timeout_millis)
            is MetricExportResult.SUCCESS,
        )
        return MetricExportResult.SUCCESS if delivered else MetricExportResult.FAILURE

    def force_flush(self, timeout_millis: float = 10000) -> bool:
        return self._wrapped_exporter.force_flush(timeout_millis=timeout_millis)

    def shutdown(self, timeout_millis: float = 30000, **kwargs) -> None:
        self._wrapped_exporter.shutdown(timeout_millis=timeout_millis)
