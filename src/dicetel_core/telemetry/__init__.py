"""
Dicetel Telemetry Module.

Spans with explicit parent/child linkage, monotonic counters, log records
correlated with the current span, and an export pipeline that ships all of
them to an OTLP collector through the OpenTelemetry SDK.

Usage:
    from dicetel_core.telemetry import Telemetry

    telemetry = Telemetry()

    span, context = telemetry.spans.start_span('roll_dice_operation')
    with telemetry.spans.activate(context):
        child, _ = telemetry.spans.start_span('work', parent=context)
        telemetry.spans.end_span(child)
    telemetry.spans.end_span(span)

    telemetry.meter.counter('dice_roll_requests', unit='1').add(1)

    # Flush and shut the exporters down before exiting
    telemetry.shutdown()
"""

from dicetel_core.telemetry.client import Telemetry
from dicetel_core.telemetry.exporters import (
    ExportRecorder,
    Exporters,
    MonitoredLogExporter,
    MonitoredMetricExporter,
    MonitoredSpanExporter,
    Signal,
    create_exporters,
)
from dicetel_core.telemetry.logs import (
    CorrelatingLogHandler,
    LogCorrelator,
    TraceContextFilter,
)
from dicetel_core.telemetry.metrics import CounterInstrument, MeterRegistry
from dicetel_core.telemetry.pipeline import ExportPipeline, build_pipeline
from dicetel_core.telemetry.processors import (
    BoundedSpanProcessor,
    ExporterStats,
    ExportQueue,
    OverflowPolicy,
)
from dicetel_core.telemetry.resource import build_resource
from dicetel_core.telemetry.spans import SpanContextManager, current_context

__all__ = [
    'BoundedSpanProcessor',
    'CorrelatingLogHandler',
    'CounterInstrument',
    'ExportPipeline',
    'ExportQueue',
    'ExportRecorder',
    'ExporterStats',
    'Exporters',
    'LogCorrelator',
    'MeterRegistry',
    'MonitoredLogExporter',
    'MonitoredMetricExporter',
    'MonitoredSpanExporter',
    'OverflowPolicy',
    'Signal',
    'SpanContextManager',
    'Telemetry',
    'TraceContextFilter',
    'build_pipeline',
    'build_resource',
    'create_exporters',
    'current_context',
]
