"""
Logging Configuration for procgraph.

Library modules only create loggers with ``logging.getLogger(__name__)``.
Applications (and the command line entry point) call ``configure_logging``
to attach handlers to the ``procgraph`` logger.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "procgraph"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Log level priority:
# 1. explicit argument to configure_logging()
# 2. PROCGRAPH_LOG_LEVEL
# 3. WARNING
DEFAULT_LOG_LEVEL = "WARNING"


class FlushingStreamHandler(logging.StreamHandler):
    """StreamHandler that flushes after every emit."""
    def emit(self, record):
        super().emit(record)
        self.flush()


def _resolve_level(level: Optional[Union[int, str]]) -> int:
    """Turn a level name or number into a logging level."""
    if level is None:
        level = os.getenv("PROCGRAPH_LOG_LEVEL", DEFAULT_LOG_LEVEL)
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


def _create_stderr_handler(level: int) -> logging.StreamHandler:
    """Create a stderr handler for console output with auto-flush."""
    handler = FlushingStreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def _create_file_handler(log_path: str) -> Optional[logging.FileHandler]:
    """
    Create a debug file handler for the given path.

    Args:
        log_path: Path of the log file (from PROCGRAPH_DEBUG_LOG)

    Returns:
        Configured FileHandler, or None if the file can't be opened
    """
    try:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, mode='a', encoding='utf-8')
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        return handler
    except OSError as e:
        logging.getLogger(LOGGER_NAME).warning("Can't open debug log %s: %s", log_path, e)
        return None


def configure_logging(level: Optional[Union[int, str]] = None) -> logging.Logger:
    """
    Configure the procgraph logger.

    Handlers are only attached once; later calls just update the level.
    Set PROCGRAPH_DEBUG_LOG to a file path to also write debug output there.

    Args:
        level: Log level name or number (default: PROCGRAPH_LOG_LEVEL or WARNING)

    Returns:
        Configured logger instance
    """
    log_level = _resolve_level(level)
    logger = logging.getLogger(LOGGER_NAME)

    # Only configure once
    if not logger.handlers:
        logger.propagate = False  # Don't propagate to root logger
        logger.addHandler(_create_stderr_handler(log_level))

        debug_log = os.getenv("PROCGRAPH_DEBUG_LOG")
        if debug_log:
            file_handler = _create_file_handler(debug_log)
            if file_handler:
                logger.addHandler(file_handler)
    else:
        for handler in logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(log_level)

    file_logging = any(isinstance(h, logging.FileHandler) for h in logger.handlers)
    logger.setLevel(logging.DEBUG if file_logging else log_level)
    return logger


def reset_logging() -> None:
    """Remove all handlers from the procgraph logger."""
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
