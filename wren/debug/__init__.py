from wren.debug.logging import (
    JsonFormatter,
    LoggingConfig,
    configure_logging,
    get_logger,
    setup_logging,
)
from wren.debug.profiler import Measure

__all__ = [
    "JsonFormatter",
    "LoggingConfig",
    "Measure",
    "configure_logging",
    "get_logger",
    "setup_logging",
]
