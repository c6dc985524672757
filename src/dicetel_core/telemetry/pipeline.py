"""Wires the SDK providers to the exporters and runs the shutdown sequence."""

from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

from dicetel_core.exceptions import ShutdownTimeoutError
from dicetel_core.models.config import DicetelTelemetryConfig
from dicetel_core.telemetry.exporters import (
    Exporters,
    ExportRecorder,
    MonitoredLogExporter,
    MonitoredMetricExporter,
    MonitoredSpanExporter,
    Signal,
)
from dicetel_core.telemetry.metrics import MeterRegistry
from dicetel_core.telemetry.processors import (
    BoundedSpanProcessor,
    ExporterStats,
    ExportQueue,
)

logger = logging.getLogger(__name__)


def _remaining_millis(deadline: float) -> int:
    return int(max(0.0, deadline - time.monotonic()) * 1000)


class ExportPipeline:
    """Groups the span, log and metric providers that feed the exporters.

    The exporters are acquired by whoever builds the pipeline; the pipeline
    guarantees every one of them is asked to shut down by :meth:`shutdown`,
    whether or not the flushes finish in time.

    Attributes
    ----------
    stats : MeterRegistry
        Health counters of the exporters themselves (records exported,
        failed transmissions, dropped records).
    """

    def __init__(
        self,
        tracer_provider: TracerProvider,
        logger_provider: LoggerProvider,
        meter: MeterRegistry,
        stats: MeterRegistry,
        span_queue: ExportQueue,
        log_queue: ExportQueue,
        endpoint: str = '',
    ):
        self.tracer_provider = tracer_provider
        self.logger_provider = logger_provider
        self.meter = meter
        self.stats = stats
        self.span_queue = span_queue
        self.log_queue = log_queue
        self.endpoint = endpoint
        self._lock = threading.Lock()
        self._closed = False

    @property
    def components(self) -> dict[str, Callable[[int], object]]:
        """Shutdown of each signal, taking a timeout in milliseconds."""
        return {
            Signal.TRACES.value: lambda timeout: self.tracer_provider.shutdown(),
            Signal.LOGS.value: lambda timeout: self.logger_provider.shutdown(),
            Signal.METRICS.value: lambda timeout: self.meter.shutdown(timeout),
        }

    @property
    def failure_count(self) -> int:
        """Total number of failed transmissions, all signals included."""
        return sum(
            self.stats.get(f'exporter.{signal.value}.failures').snapshot()
            for signal in Signal
        )

    @property
    def is_closed(self) -> bool:
        return self._closed

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Export everything pending without shutting down."""
        deadline = time.monotonic() + timeout_millis / 1000
        flushed = self.tracer_provider.force_flush(timeout_millis)
        flushed = self.logger_provider.force_flush(_remaining_millis(deadline)) and flushed
        flushed = (
            self.meter.provider.force_flush(_remaining_millis(deadline)) and flushed
        )
        return flushed

    def shutdown(self, timeout_millis: int = 30000) -> None:
        """Flush every provider, then shut its exporter down.

        The three providers shut down concurrently against one deadline, so
        a slow signal never keeps the others from being flushed and closed.

        Raises
        ------
        ShutdownTimeoutError
            If some provider had not finished when time ran out.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        deadline = time.monotonic() + timeout_millis / 1000
        workers = {
            name: self._shutdown_in_background(name, shutdown, timeout_millis)
            for name, shutdown in self.components.items()
        }
        for worker in workers.values():
            worker.join(max(0.0, deadline - time.monotonic()))

        pending = [name for name, worker in workers.items() if worker.is_alive()]
        if pending:
            raise ShutdownTimeoutError(
                f'Telemetry flush did not complete within {timeout_millis}ms',
                pending=pending,
            )

    @staticmethod
    def _shutdown_in_background(
        name: str, shutdown: Callable[[int], object], timeout_millis: int
    ) -> threading.Thread:
        def run() -> None:
            try:
                shutdown(timeout_millis)
            except Exception:
                logger.exception(f'Unable to shut down the {name} exporter')

        worker = threading.Thread(target=run, name=f'dicetel-{name}-shutdown', daemon=True)
        worker.start()
        return worker


def build_pipeline(
    config: DicetelTelemetryConfig,
    exporters: Exporters,
    resource: Resource,
    scope: str = 'dicetel',
) -> ExportPipeline:
    """Wire the three exporters of ``config`` onto SDK providers.

    Spans and logs go through batch processors with their own thresholds;
    the counters of the pipeline meter are read periodically.
    """
    stats = MeterRegistry()
    endpoint = config.endpoint

    def recorder(signal: Signal, queue: ExportQueue | None = None, **kwargs) -> ExportRecorder:
        return ExportRecorder(
            signal,
            endpoint,
            ExporterStats(signal.value, stats),
            queue=queue,
            verbose=config.verbose,
            **kwargs,
        )

    span_queue = ExportQueue(
        Signal.TRACES.value,
        config.max_queue_size,
        config.overflow_policy,
        ExporterStats(Signal.TRACES.value, stats),
    )
    log_queue = ExportQueue(
        Signal.LOGS.value,
        config.max_queue_size,
        config.overflow_policy,
        ExporterStats(Signal.LOGS.value, stats),
    )

    tracer_provider = TracerProvider(resource=resource, shutdown_on_exit=False)
    tracer_provider.add_span_processor(
        BoundedSpanProcessor(
            BatchSpanProcessor(
                MonitoredSpanExporter(exporters.spans, recorder(Signal.TRACES, span_queue)),
                max_queue_size=config.max_queue_size,
                schedule_delay_millis=config.spans_schedule_delay_millis,
                max_export_batch_size=min(
                    config.spans_max_export_batch_size, config.max_queue_size
                ),
                export_timeout_millis=config.export_timeout_millis,
            ),
            span_queue,
        )
    )

    logger_provider = LoggerProvider(resource=resource, shutdown_on_exit=False)
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(
            MonitoredLogExporter(exporters.logs, recorder(Signal.LOGS, log_queue)),
            schedule_delay_millis=config.logs_schedule_delay_millis,
            max_export_batch_size=min(
                config.logs_max_export_batch_size, config.max_queue_size
            ),
            export_timeout_millis=config.export_timeout_millis,
            max_queue_size=config.max_queue_size,
        )
    )

    metric_reader = PeriodicExportingMetricReader(
        MonitoredMetricExporter(exporters.metrics, recorder(Signal.METRICS, cumulative=True)),
        export_interval_millis=config.metrics_export_interval_millis,
        export_timeout_millis=config.export_timeout_millis,
    )
    meter = MeterRegistry(resource=resource, readers=[metric_reader], scope=scope)

    return ExportPipeline(
        tracer_provider,
        logger_provider,
        meter,
        stats,
        span_queue,
        log_queue,
        endpoint,
    )
