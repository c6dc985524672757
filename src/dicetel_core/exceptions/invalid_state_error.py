from dicetel_core.exceptions.telemetry_error import TelemetryError


class InvalidStateError(TelemetryError):
    """Exception raised when operating on a span that has already ended.

    Example
    ---------
    span, _ = spans.start_span('work')
    spans.end_span(span)
    spans.end_span(span)  # raises InvalidStateError
    """
