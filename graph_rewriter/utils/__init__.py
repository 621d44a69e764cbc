# graph_utils and generators build on graph_rewriter.core, which itself imports
# the logger; import them by module path rather than from here.
from .logger import (
    logger,
    get_logger,
    set_log_level,
    add_file_handler,
    DEBUG,
    INFO,
    WARNING,
    ERROR,
)

__all__ = [
    "logger",
    "get_logger",
    "set_log_level",
    "add_file_handler",
    "DEBUG",
    "INFO",
    "WARNING",
    "ERROR",
]
