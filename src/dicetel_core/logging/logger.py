import logging
import sys
from datetime import datetime
from typing import Iterable, Optional

LOG_FORMAT = (
    '[%(asctime)s] %(name)s - %(levelname)s - '
    '[trace_id=%(trace_id)s span_id=%(span_id)s] %(message)s'
)


def create_isolated_logger(name: str, level: int = logging.INFO,
                          log_format: str = None,
                          propagate: bool = False,
                          add_console_handler: bool = True,
                          add_file_handler: bool = False,
                          file_path: str = None,
                          filters: Optional[Iterable[logging.Filter]] = None) -> logging.Logger:
    """
    Create an isolated logger that doesn't interfere with other loggers.

    The default format prints the trace and span ids of the current span, so
    the handlers must receive a filter providing them (see TraceContextFilter).
    Without filters the default format falls back to a format without ids.

    Args:
        name: Logger name (should be unique to your application)
        level: Logging level (default: logging.INFO)
        log_format: Custom log format string
        propagate: Whether to propagate to parent loggers (default: False)
        add_console_handler: Add console output handler (default: True)
        add_file_handler: Add file output handler (default: False)
        file_path: Path for log file (required if add_file_handler=True)
        filters: Filters attached to every handler

    Returns:
        Configured logger instance
    """

    logger = logging.getLogger(name)

    # Prevent interference with other loggers
    logger.propagate = propagate

    logger.setLevel(level)

    # Clear any existing handlers to avoid duplicates
    logger.handlers.clear()

    filters = list(filters or [])

    if log_format is None:
        log_format = LOG_FORMAT if filters else '[%(asctime)s] %(name)s - %(levelname)s - %(message)s'

    formatter = logging.Formatter(log_format)

    handlers: list[logging.Handler] = []

    if not add_console_handler and not add_file_handler:
        handlers.append(logging.NullHandler())

    if add_console_handler:
        handlers.append(logging.StreamHandler(sys.stdout))

    if add_file_handler:
        if file_path is None:
            file_path = f"{name}_{datetime.now().strftime('%Y%m%d')}.log"
        handlers.append(logging.FileHandler(file_path))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        for log_filter in filters:
            handler.addFilter(log_filter)
        logger.addHandler(handler)

    return logger
