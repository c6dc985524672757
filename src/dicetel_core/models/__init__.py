from dicetel_core.models.config import (
    DicetelConfig as DicetelConfig,
    DicetelTelemetryConfig as DicetelTelemetryConfig,
)
from dicetel_core.models.models import (
    TraceContext as TraceContext,
)
