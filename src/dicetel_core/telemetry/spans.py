"""Span creation, parent/child linkage and request-scoped "current" tracking."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

from opentelemetry import context as otel_context
from opentelemetry import trace
from opentelemetry.sdk.trace import Span, TracerProvider
from opentelemetry.trace import NonRecordingSpan, Status, StatusCode

from dicetel_core.exceptions import InvalidStateError
from dicetel_core.models.models import TraceContext


def current_context() -> Optional[TraceContext]:
    """The trace context active in the calling thread or task, if any."""
    span_context = trace.get_current_span().get_span_context()
    if not span_context.is_valid:
        return None
    return TraceContext.from_span_context(span_context)


class SpanContextManager:
    """Creates spans and tracks the context that is current for each request.

    The current context is the OpenTelemetry runtime context, so every
    thread and every asyncio task sees its own value. Nothing about a
    request is stored on the manager itself, which makes one instance safe
    to share between all the requests in flight.

    Parameters
    ----------
    tracer_provider : TracerProvider, optional
        Provider whose span processors receive each ended span. A provider
        without processors is created when omitted, and ended spans are
        discarded.
    instrumentation_name : str, optional
        Instrumentation scope of the spans.
    """

    def __init__(
        self,
        tracer_provider: Optional[TracerProvider] = None,
        instrumentation_name: str = 'dicetel',
    ):
        self.provider = tracer_provider or TracerProvider(shutdown_on_exit=False)
        self._tracer = self.provider.get_tracer(instrumentation_name)

    def start_span(
        self,
        name: str,
        parent: Optional[TraceContext] = None,
        attributes: Optional[dict[str, Any]] = None,
    ) -> tuple[Span, TraceContext]:
        """Start a span.

        Parameters
        ----------
        name : str
            The operation name
        parent : TraceContext, optional
            Context of the parent span. Without it a new trace is started,
            whatever context happens to be current.
        attributes : dict, optional
            Initial attributes

        Returns
        -------
        tuple[Span, TraceContext]
            The open span and the context identifying it
        """
        if parent is None:
            parent_context = otel_context.Context()
        else:
            parent_context = trace.set_span_in_context(
                NonRecordingSpan(parent.to_span_context())
            )
        span = self._tracer.start_span(name, context=parent_context, attributes=attributes)
        return span, TraceContext.from_span_context(span.get_span_context())

    def end_span(self, span: Span) -> None:
        """End ``span`` and hand it over to the span processors.

        Raises
        ------
        InvalidStateError
            If the span has already ended.
        """
        if span.end_time is not None:
            raise InvalidStateError(
                f'Cannot end span "{span.name}" '
                f'({span.get_span_context().span_id:016x}): span already ended'
            )
        span.end()

    def current(self) -> Optional[TraceContext]:
        return current_context()

    @contextmanager
    def activate(self, context: Optional[TraceContext]) -> Iterator[Optional[TraceContext]]:
        """Make ``context`` current until the block exits.

        ``None`` clears the current context for the duration of the block.
        """
        span = (
            NonRecordingSpan(context.to_span_context())
            if context is not None
            else trace.INVALID_SPAN
        )
        token = otel_context.attach(trace.set_span_in_context(span))
        try:
            yield context
        finally:
            otel_context.detach(token)

    @contextmanager
    def span(
        self,
        name: str,
        parent: Optional[TraceContext] = None,
        **attributes: Any,
    ) -> Iterator[Span]:
        """Run a block inside a new span, ending it when the block exits.

        An exception escaping the block is recorded on the span, which is
        marked as an error, and then re-raised.
        """
        span, context = self.start_span(name, parent=parent, attributes=attributes)
        try:
            with self.activate(context):
                yield span
        except Exception as exc:
            if span.end_time is None:
                span.set_status(Status(StatusCode.ERROR, str(exc)))
                span.record_exception(exc)
            raise
        finally:
            if span.end_time is None:
                self.end_span(span)
