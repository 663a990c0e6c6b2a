"""
Logging setup shared by scripts and long-running sessions.

Modules log through ``logging.getLogger(__name__)``; this only wires the root
logger once with a console handler.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"


def setup_logging(level: str | int = "INFO") -> None:
    """Configure the root logger with a single stream handler."""
    if isinstance(level, str):
        log_level = logging.getLevelName(level.upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO
    else:
        log_level = level

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(stream_handler)

    logging.info(f"Logging setup complete. Level: {logging.getLevelName(log_level)}")
