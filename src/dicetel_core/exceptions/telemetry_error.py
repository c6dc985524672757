class TelemetryError(Exception):
    """Base class for every error raised by the telemetry core."""
