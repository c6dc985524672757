from dicetel_core.exceptions.telemetry_error import TelemetryError as TelemetryError
from dicetel_core.exceptions.invalid_state_error import (
    InvalidStateError as InvalidStateError,
)
from dicetel_core.exceptions.invalid_argument_error import (
    InvalidArgumentError as InvalidArgumentError,
)
from dicetel_core.exceptions.transmission_error import (
    TransmissionError as TransmissionError,
)
from dicetel_core.exceptions.shutdown_timeout_error import (
    ShutdownTimeoutError as ShutdownTimeoutError,
)
