from typing import Optional

from dicetel_core.exceptions.telemetry_error import TelemetryError


class TransmissionError(TelemetryError):
    """Exception raised when a telemetry batch cannot be delivered.

    Transmission errors never leave the export pipeline: the monitored
    exporters catch them, log them and count them, then drop the failed batch.

    Attributes
    ----------
    message : str
        Explanation of the failure
    signal : str
        The telemetry signal being exported ('traces', 'metrics' or 'logs')
    endpoint : str, optional
        The collector endpoint the batch was sent to

    Example
    ---------
    try:
        recorder._send(lambda: exporter.export(spans) is SpanExportResult.SUCCESS)
    except TransmissionError as e:
        print(e)  # Will print: "Failed to export traces to localhost:4317: deadline exceeded"
    """

    def __init__(
        self,
        message: str,
        signal: str,
        endpoint: Optional[str] = None,
    ):
        """Initialize the transmission error.

        Parameters
        ----------
        message : str
            Human-readable error message
        signal : str
            The telemetry signal being exported
        endpoint : str, optional
            The collector endpoint, by default None
        """
        self.message = message
        self.signal = signal
        self.endpoint = endpoint
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return a string representation of the error.

        Returns
        -------
        str
            Formatted error message including signal and endpoint
        """
        if self.endpoint:
            return f'Failed to export {self.signal} to {self.endpoint}: {self.message}'
        return f'Failed to export {self.signal}: {self.message}'
