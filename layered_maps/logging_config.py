"""
Logging setup for the LayeredMaps package.

Every module logs under the ``layered_maps`` hierarchy
(``layered_maps.data``, ``layered_maps.rendering.basemap``, ...). This module
attaches handlers to the package logger once, so applications embedding the
package keep control of the root logger.
"""

import logging
import os
import sys
from typing import Optional


PACKAGE_LOGGER = "layered_maps"
LOG_LEVEL_ENV_VAR = "LAYERED_MAPS_LOG_LEVEL"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SIMPLE_FORMAT = "%(levelname)s: %(message)s"

# verbosity -> level; anything below -2 is treated as -2
_VERBOSITY_LEVELS = {
    -2: logging.ERROR,
    -1: logging.WARNING,
    0: logging.INFO,
    1: logging.DEBUG,
}


def _resolve_level(verbosity: int) -> int:
    """Level for ``verbosity``, unless LAYERED_MAPS_LOG_LEVEL names another."""
    env_level = os.environ.get(LOG_LEVEL_ENV_VAR, "").upper()
    if env_level in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        return getattr(logging, env_level)
    return _VERBOSITY_LEVELS[max(-2, min(1, verbosity))]


def setup_logging(
    verbosity: int = 0,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> None:
    """
    Configure the ``layered_maps`` logger.

    Console output goes to stdout at the chosen level. A log file, when
    given, always receives DEBUG records. Calling this again replaces the
    previous handlers.

    Args:
        verbosity: 1 = DEBUG, 0 = INFO, -1 = WARNING, -2 = ERROR
        log_file: Optional path of a file to append records to
        format_string: Console format; defaults to a timestamped format,
            or a short one for negative verbosity

    Environment Variables:
        LAYERED_MAPS_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL;
            takes precedence over ``verbosity``

    Example:
        >>> setup_logging(verbosity=1)
        >>> setup_logging(log_file="layered_maps.log")
    """
    level = _resolve_level(verbosity)
    if format_string is None:
        format_string = SIMPLE_FORMAT if verbosity < 0 else DEFAULT_FORMAT

    # geopandas, pyproj and urllib3 stay at WARNING
    logging.root.setLevel(logging.WARNING)

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(level)
    package_logger.propagate = False
    package_logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(format_string))
    package_logger.addHandler(console)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, mode="a")
        except OSError as e:
            package_logger.warning(f"Could not open log file {log_file}: {e}")
        else:
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
            package_logger.addHandler(file_handler)
            package_logger.info(f"Also logging to {log_file}")

    package_logger.debug(f"Log level set to {logging.getLevelName(level)}")


def get_logger(name: str) -> logging.Logger:
    """
    Logger for a module inside the package.

    Args:
        name: Usually ``__name__`` of the calling module

    Example:
        >>> logger = get_logger(__name__)
        >>> logger.info("Stage 'fetch' started")
    """
    return logging.getLogger(name)
