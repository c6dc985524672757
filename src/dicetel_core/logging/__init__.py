from dicetel_core.logging.logger import (
    LOG_FORMAT as LOG_FORMAT,
    create_isolated_logger as create_isolated_logger,
)
