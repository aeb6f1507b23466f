"""
Package-wide configuration for telemsim.

Provides the package logger and a helper for attaching console output to
it. Modules log through children of the "telemsim" logger.
"""

import logging
from typing import Optional, Union

logger = logging.getLogger("telemsim")

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def setup_logging(
    level: Union[int, str] = logging.INFO,
    fmt: Optional[str] = None,
) -> logging.Logger:
    """
    Attach a console handler to the package logger.

    Calling this more than once replaces the handler rather than adding
    a second one.

    Args:
        level: Logging level name or number
        fmt: Optional format string (defaults to LOG_FORMAT)

    Returns:
        The configured package logger
    """
    if isinstance(level, str):
        name = level.upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level: {name}")

    for handler in list(logger.handlers):
        if getattr(handler, "_telemsim_console", False):
            logger.removeHandler(handler)
            handler.close()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(fmt or LOG_FORMAT))
    handler._telemsim_console = True
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
