"""Environment and .env configuration for taskcalendar."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

ENV_PREFIX = "TASKCALENDAR_"

# Environment variable -> (config key, converter)
_ENV_KEYS: dict[str, tuple[str, Any]] = {
    "TASKCALENDAR_API_BASE_URL": ("api_base_url", str),
    "TASKCALENDAR_API_TOKEN": ("api_token", str),
    "TASKCALENDAR_VIEWER_ID": ("viewer_id", int),
    "TASKCALENDAR_TIMEZONE": ("display_timezone", str),
    "TASKCALENDAR_DEFAULT_VIEW": ("default_view", str),
    "TASKCALENDAR_DEFAULT_MODE": ("default_mode", str),
    "TASKCALENDAR_FETCH_CONCURRENCY": ("fetch_concurrency", int),
    "TASKCALENDAR_REQUEST_TIMEOUT": ("request_timeout_seconds", float),
    "TASKCALENDAR_SERVER_BIND": ("server_bind", str),
    "TASKCALENDAR_SERVER_PORT": ("server_port", int),
    "TASKCALENDAR_LOG_LEVEL": ("log_level", str),
}


class ConfigManager:
    """Manages configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env defaults without overriding variables already set.

        Returns:
            Keys that were loaded from the .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        try:
            content = self.env_file_path.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Failed to read .env file %s (continuing)", self.env_file_path, exc_info=True)
            return []

        set_keys = []
        for raw_line in content.splitlines():
            line = raw_line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue

            key, val = line.split("=", 1)
            key = key.strip()
            val = val.strip().strip('"').strip("'")

            if key and key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Map TASKCALENDAR_* environment variables onto config keys.

        Values that fail conversion are logged and ignored.
        """
        cfg: dict[str, Any] = {}
        for env_name, (key, convert) in _ENV_KEYS.items():
            raw = os.environ.get(env_name)
            if raw is None or raw.strip() == "":
                continue
            try:
                cfg[key] = convert(raw.strip())
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_name, raw)

        unknown = sorted(
            name
            for name in os.environ
            if name.startswith(ENV_PREFIX)
            and name not in _ENV_KEYS
            and name not in ("TASKCALENDAR_DEBUG", "TASKCALENDAR_TEST_TIME")
        )
        if unknown:
            logger.debug("Ignoring unrecognized environment variables: %s", ", ".join(unknown))
        return cfg
