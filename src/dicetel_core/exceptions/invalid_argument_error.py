from dicetel_core.exceptions.telemetry_error import TelemetryError


class InvalidArgumentError(TelemetryError):
    """Exception raised when an instrument receives an invalid value.

    The most common case is a negative increment on a monotonic counter.
    """
