"""
Central logging configuration for taskcalendar.

Keeps package loggers at INFO (or DEBUG when requested) while quieting the
chatty third-party libraries the server and task store client pull in.
"""

import logging
import os
from typing import Optional

PACKAGE_LOGGER = "taskcalendar"

_VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Third-party loggers that flood DEBUG output
_NOISY_LOGGERS: dict[str, int] = {
    "aiohttp.access": logging.WARNING,
    "aiohttp.server": logging.WARNING,
    "aiohttp.web": logging.INFO,
    "aiohttp.web_log": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
}


def _env_debug() -> bool:
    return os.getenv("TASKCALENDAR_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")


def configure_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logger levels for taskcalendar.

    Args:
        debug_mode: Whether to enable debug logging for taskcalendar modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        TASKCALENDAR_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        TASKCALENDAR_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    if force_debug is not None:
        final_debug = force_debug
    elif _env_debug():
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    env_log_level = os.getenv("TASKCALENDAR_LOG_LEVEL", "").strip().upper()
    if env_log_level in _VALID_LEVELS:
        root_level = getattr(logging, env_log_level)

    # Handlers are installed by taskcalendar._init_logging; only levels are set here
    logging.getLogger().setLevel(root_level)

    for logger_name, level in _NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG if final_debug else logging.INFO)

    if final_debug:
        logging.getLogger(PACKAGE_LOGGER).debug(
            "Debug logging enabled for taskcalendar; third-party debug logs suppressed"
        )


def get_logging_status() -> dict[str, str]:
    """Current level names of the root, package and noisy third-party loggers."""
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in (PACKAGE_LOGGER, *_NOISY_LOGGERS):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
