"""
Telemetry client.

This module provides the context object that owns every telemetry component
of the process: the resource, the span manager, the counter registry, the
log correlator and the export pipeline.

Usage:
    from dicetel_core.telemetry import Telemetry

    with Telemetry(config) as telemetry:
        with telemetry.spans.span('roll_dice_operation') as span:
            telemetry.meter.counter('dice_roll_requests').add(1)

Leaving the ``with`` block flushes pending spans, logs and metrics and shuts
the exporters down.
"""

from __future__ import annotations

import atexit
import logging
import threading
from typing import Optional

from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import LogExporter, SimpleLogRecordProcessor
from opentelemetry.sdk.trace import TracerProvider

from dicetel_core.exceptions import ShutdownTimeoutError
from dicetel_core.models.config import DicetelTelemetryConfig
from dicetel_core.telemetry.exporters import Exporters, create_exporters
from dicetel_core.telemetry.logs import (
    CorrelatingLogHandler,
    LogCorrelator,
    TraceContextFilter,
)
from dicetel_core.telemetry.metrics import MeterRegistry
from dicetel_core.telemetry.pipeline import ExportPipeline, build_pipeline
from dicetel_core.telemetry.resource import build_resource
from dicetel_core.telemetry.spans import SpanContextManager

logger = logging.getLogger(__name__)


class Telemetry:
    """Process-wide telemetry, explicitly created and explicitly torn down.

    Nothing here is global: the application builds one instance at startup
    and passes it to whatever needs it, and tests build one per test. The
    SDK providers are owned by the instance and never installed as the
    OpenTelemetry global providers.

    Attributes
    ----------
    config : DicetelTelemetryConfig
        The settings the instance was built from
    resource : Resource
        Immutable identity attached to every export
    spans : SpanContextManager
        Creates spans and tracks the current context per request
    meter : MeterRegistry
        The counters exported periodically
    logs : LogCorrelator
        Emits log records stamped with a trace context
    pipeline : ExportPipeline, optional
        The exporters. None when telemetry export is disabled.
    """

    def __init__(
        self,
        config: DicetelTelemetryConfig | None = None,
        exporters: Exporters | None = None,
        instrumentation_name: str = 'dicetel',
        log_exporter: LogExporter | None = None,
    ):
        """Build every component.

        Parameters
        ----------
        config : DicetelTelemetryConfig, optional
            Telemetry settings. Read from the environment when omitted.
        exporters : Exporters, optional
            Exporters to use instead of the OTLP ones selected by the config.
        instrumentation_name : str, optional
            Instrumentation scope name attached to every export.
        log_exporter : LogExporter, optional
            Synchronous destination for log records when export is disabled.
        """
        self.config = config or DicetelTelemetryConfig()
        self.instrumentation_name = instrumentation_name
        self.resource = build_resource(self.config)
        self.pipeline: Optional[ExportPipeline] = None

        if self.config.enable:
            self.pipeline = build_pipeline(
                self.config,
                exporters or create_exporters(self.config),
                self.resource,
                instrumentation_name,
            )
            tracer_provider = self.pipeline.tracer_provider
            self._logger_provider = self.pipeline.logger_provider
            self.meter = self.pipeline.meter
            log_queue = self.pipeline.log_queue
        else:
            tracer_provider = TracerProvider(resource=self.resource, shutdown_on_exit=False)
            self._logger_provider = LoggerProvider(resource=self.resource, shutdown_on_exit=False)
            if log_exporter is not None:
                self._logger_provider.add_log_record_processor(
                    SimpleLogRecordProcessor(log_exporter)
                )
            self.meter = MeterRegistry(resource=self.resource, scope=instrumentation_name)
            log_queue = None

        self.spans = SpanContextManager(tracer_provider, instrumentation_name)
        self.log_handler = CorrelatingLogHandler(self._logger_provider, queue=log_queue)
        self.logs = LogCorrelator(self.log_handler, self.spans, instrumentation_name)

        self._lock = threading.Lock()
        self._handlers: list[tuple[logging.Logger, logging.Handler]] = []
        self._shutdown_result: Optional[bool] = None

        if self.pipeline is not None:
            logger.debug(
                f'Telemetry exporting to {self.pipeline.endpoint} as {self.config.service_name}'
            )

    @property
    def is_enabled(self) -> bool:
        """Check if telemetry is exported."""
        return self.pipeline is not None

    @property
    def is_shut_down(self) -> bool:
        return self._shutdown_result is not None

    @property
    def shutdown_timed_out(self) -> bool:
        """True once a shutdown has run out of time and lost telemetry."""
        return self._shutdown_result is False

    def instrument_logging(
        self, target: logging.Logger | str | None = None
    ) -> CorrelatingLogHandler:
        """Forward the records of ``target`` to the log exporter.

        Parameters
        ----------
        target : logging.Logger | str, optional
            Logger or logger name. The root logger when omitted.

        Returns
        -------
        CorrelatingLogHandler
            The installed handler. It is removed again on shutdown.
        """
        if not isinstance(target, logging.Logger):
            target = logging.getLogger(target)
        target.addHandler(self.log_handler)
        self._handlers.append((target, self.log_handler))
        return self.log_handler

    def context_filter(self) -> TraceContextFilter:
        """Return a filter adding trace ids to records for console output."""
        return TraceContextFilter()

    def register_exit_hook(self) -> None:
        """Run :meth:`shutdown` when the interpreter exits."""
        atexit.register(self.shutdown)

    def force_flush(self, timeout_millis: int | None = None) -> bool:
        """Export everything pending without shutting down."""
        if self.pipeline is None:
            return True
        timeout = (
            timeout_millis
            if timeout_millis is not None
            else self.config.shutdown_timeout_millis
        )
        return self.pipeline.force_flush(timeout)

    def shutdown(self, timeout_millis: int | None = None) -> bool:
        """Flush everything pending and shut the exporters down.

        Calling it again returns the result of the first call.

        Parameters
        ----------
        timeout_millis : int, optional
            Bound for the whole sequence. Defaults to the configured
            ``shutdown_timeout_millis``.

        Returns
        -------
        bool
            True if all pending telemetry was handled in time.
        """
        with self._lock:
            if self._shutdown_result is not None:
                return self._shutdown_result

            for target, handler in self._handlers:
                target.removeHandler(handler)
            self._handlers.clear()

            if self.pipeline is None:
                self.meter.shutdown()
                self._logger_provider.shutdown()
                self.spans.provider.shutdown()
                self._shutdown_result = True
                return True

            timeout = (
                timeout_millis
                if timeout_millis is not None
                else self.config.shutdown_timeout_millis
            )
            try:
                self.pipeline.shutdown(timeout)
            except ShutdownTimeoutError as exc:
                logger.warning(f'{exc}: pending telemetry was lost')
                self._shutdown_result = False
            else:
                logger.debug('Telemetry flushed and exporters shut down')
                self._shutdown_result = True

            failures = self.pipeline.failure_count
            if failures:
                logger.warning(f'{failures} telemetry transmission(s) failed during this run')

            return self._shutdown_result

    def __enter__(self) -> Telemetry:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()
