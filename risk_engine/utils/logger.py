"""
Logging setup for the Payment Risk Engine.

Modules log through ``logging.getLogger("risk_engine.<area>")`` and their
records propagate to the package logger configured here. Card numbers
are only ever logged masked.
"""

import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..config.settings import Settings

PACKAGE_LOGGER = "risk_engine"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEBUG_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s"


def configure_logging(settings: "Settings") -> logging.Logger:
    """
    Configure the package logger from settings.

    Attaches a single stdout handler the first time it is called. The level
    comes from APP_LOG_LEVEL, forced to DEBUG when APP_DEBUG is set; debug
    mode also adds the source location to each line. Calling it again
    re-applies the level and format.

    Returns:
        The ``risk_engine`` logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)

    handler = next(
        (h for h in logger.handlers if getattr(h, "name", None) == PACKAGE_LOGGER),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler(sys.stdout)
        handler.set_name(PACKAGE_LOGGER)
        logger.addHandler(handler)

    handler.setFormatter(logging.Formatter(
        DEBUG_LOG_FORMAT if settings.app_debug else LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.setLevel("DEBUG" if settings.app_debug else settings.app_log_level)

    return logger
