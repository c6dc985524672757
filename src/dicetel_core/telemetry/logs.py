"""Correlate log records with the span that is current when they are emitted."""

from __future__ import annotations

import logging
from typing import Any, Optional

from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler

from dicetel_core.models.models import TraceContext
from dicetel_core.telemetry.processors import ExportQueue
from dicetel_core.telemetry.spans import SpanContextManager, current_context

# Records emitted by the telemetry stack itself are never exported
_INTERNAL_LOGGER_PREFIXES = ('dicetel_core.telemetry', 'opentelemetry')


class CorrelatingLogHandler(LoggingHandler):
    """Forwards stdlib log records to the log exporter.

    The OpenTelemetry handler stamps each record with the span current in
    the thread or task that logged it. Records the export queue does not
    admit are dropped here, before they reach the batch processor.

    Parameters
    ----------
    logger_provider : LoggerProvider
        Provider whose processors receive the records
    queue : ExportQueue, optional
        Admission control of the log batch processor
    level : int, optional
        Minimum level of the records forwarded
    """

    def __init__(
        self,
        logger_provider: LoggerProvider,
        queue: Optional[ExportQueue] = None,
        level: int = logging.NOTSET,
    ):
        super().__init__(level=level, logger_provider=logger_provider)
        self.queue = queue

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(_INTERNAL_LOGGER_PREFIXES):
            return
        if self.queue is not None and not self.queue.admit():
            return
        super().emit(record)


class LogCorrelator:
    """Emits log records stamped with a given trace context.

    Parameters
    ----------
    handler : logging.Handler
        Receives every record, usually a :class:`CorrelatingLogHandler`.
    spans : SpanContextManager
        Used to make the record's context current while it is handled.
    scope : str, optional
        Logger name the records are attributed to.
    """

    def __init__(
        self,
        handler: logging.Handler,
        spans: SpanContextManager,
        scope: str = 'dicetel',
    ):
        self._handler = handler
        self._spans = spans
        self.scope = scope

    def log(
        self,
        severity: int,
        message: str,
        current: Optional[TraceContext] = None,
        **attributes: Any,
    ) -> None:
        """Create a log record and submit it.

        Correlation is best effort: without ``current`` the record simply
        carries no trace or span id. This method never raises.

        Parameters
        ----------
        severity : int
            A stdlib logging level, e.g. ``logging.INFO``
        message : str
            The log body
        current : TraceContext, optional
            The span the record belongs to
        """
        record = logging.makeLogRecord(
            {
                'name': self.scope,
                'levelno': severity,
                'levelname': logging.getLevelName(severity),
                'msg': message,
                **attributes,
            }
        )
        try:
            with self._spans.activate(current):
                self._handler.handle(record)
        except Exception:
            logging.getLogger(__name__).debug('Log handler rejected a record', exc_info=True)


class TraceContextFilter(logging.Filter):
    """Adds ``trace_id`` and ``span_id`` to records for console formatting.

    Both are ``-`` when no span is current.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        current = current_context()
        record.trace_id = current.trace_id_hex if current is not None else '-'
        record.span_id = current.span_id_hex if current is not None else '-'
        return True
