from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from opentelemetry.trace import SpanContext, TraceFlags


class TraceContext(BaseModel):
    """Identifies the span that is current for one logical request.

    A new span becomes current by replacing the context, never by mutating it.
    """

    model_config = ConfigDict(frozen=True)

    trace_id: int
    span_id: int

    @property
    def trace_id_hex(self) -> str:
        return format(self.trace_id, '032x')

    @property
    def span_id_hex(self) -> str:
        return format(self.span_id, '016x')

    def to_span_context(self) -> SpanContext:
        """The sampled OpenTelemetry span context pointing at this span."""
        return SpanContext(
            trace_id=self.trace_id,
            span_id=self.span_id,
            is_remote=False,
            trace_flags=TraceFlags(TraceFlags.SAMPLED),
        )

    @classmethod
    def from_span_context(cls, span_context: SpanContext) -> TraceContext:
        return cls(trace_id=span_context.trace_id, span_id=span_context.span_id)
