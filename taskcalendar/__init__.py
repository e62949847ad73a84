"""taskcalendar - calendar event engine for a task/project management application.

Converts task records into calendar events, filters and buckets them per
view, and keeps them in sync with the task store through mutation
notifications.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream colorized output to the console.

    Honors the TASKCALENDAR_DEBUG environment variable (truthy values: "1",
    "true", "yes", "on"), which forces DEBUG verbosity.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("TASKCALENDAR_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Avoid duplicate output when a handler is already installed
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message (only the level is colorized)
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug("Logging initialized at level %s", logging.getLevelName(level))


def run_server(args: Optional[object] = None) -> None:
    """Start the taskcalendar HTTP API.

    Loads configuration (YAML file, .env and TASKCALENDAR_* variables), applies
    command line overrides from ``args`` and blocks until the server stops.

    Args:
        args: Optional argparse namespace with ``config`` and ``port``
    """
    import logging
    import os
    from pathlib import Path

    _init_logging(os.environ.get("TASKCALENDAR_LOG_LEVEL"))
    logger = logging.getLogger(__name__)

    from .api.server import run
    from .config_loader import load_config
    from .logging_config import configure_logging

    config_path = getattr(args, "config", None)
    config = load_config(Path(config_path) if config_path else None)

    port = getattr(args, "port", None)
    if port is not None:
        config.server_port = int(port)
        logger.debug("Applied command line port override: %d", config.server_port)

    _init_logging(config.log_level)
    configure_logging(debug_mode=config.log_level == "DEBUG")

    run(config)
