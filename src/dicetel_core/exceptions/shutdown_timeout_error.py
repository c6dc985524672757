from typing import Optional

from dicetel_core.exceptions.telemetry_error import TelemetryError


class ShutdownTimeoutError(TelemetryError):
    """Exception raised when pending telemetry could not be flushed in time.

    Attributes
    ----------
    message : str
        Explanation of the timeout
    pending : list[str]
        Names of the components that did not finish flushing
    """

    def __init__(self, message: str, pending: Optional[list[str]] = None):
        self.message = message
        self.pending = pending or []
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.pending:
            return f'{self.message} (pending: {", ".join(self.pending)})'
        return self.message
