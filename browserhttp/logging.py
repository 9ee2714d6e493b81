import logging
from typing import Optional

LOGGER_NAME = "browserhttp"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return the package logger (or a child of it) with a NullHandler attached."""
    logger = logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)
    if not logger.handlers and not name:
        logger.addHandler(logging.NullHandler())
    return logger
