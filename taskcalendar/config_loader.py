"""taskcalendar.config_loader

Typed configuration for taskcalendar, loaded from YAML.

- ``Config.from_dict`` coerces loosely typed values and clamps ranges,
  logging a warning for every correction instead of failing.
- ``load_config`` reads a YAML mapping and merges environment overrides
  from ``core.config_manager``.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Optional

import yaml

from .domain.models import CalendarView, TaskTypeMode
from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS = (Path("taskcalendar.yaml"), Path("config") / "taskcalendar.yaml")

MIN_FETCH_CONCURRENCY = 1
MAX_FETCH_CONCURRENCY = 8


@dataclass
class Config:
    """Typed configuration for taskcalendar.

    Fields:
        api_base_url: root URL of the task store HTTP API
        api_token: optional bearer token for the task store
        viewer_id: identity of the viewing user; None disables ownership and access checks
        display_timezone: IANA zone used to cut calendar days
        default_view: initial calendar view
        default_mode: initial task-type mode
        fetch_concurrency: concurrent per-project fetches (1..8)
        request_timeout_seconds: read timeout for task store requests
        server_bind: host to bind the HTTP API to
        server_port: port for the HTTP API
        log_level: logging level name
    """

    api_base_url: str = "http://localhost:8080"
    api_token: Optional[str] = None
    viewer_id: Optional[int] = None
    display_timezone: str = "UTC"
    default_view: CalendarView = CalendarView.MONTH
    default_mode: TaskTypeMode = TaskTypeMode.OWN_PROJECTS
    fetch_concurrency: int = 4
    request_timeout_seconds: float = 30.0
    server_bind: str = "127.0.0.1"
    server_port: int = 8090
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> Config:
        """Create Config from a plain mapping, applying defaults and validation."""
        if data is None:
            data = {}
        defaults = cls()

        def _coerce_int(key: str, default: int) -> int:
            raw = data.get(key, default)
            try:
                return int(raw)
            except (TypeError, ValueError):
                logger.warning("Config %s=%r is not an int; using default %d", key, raw, default)
                return default

        def _coerce_enum(key: str, enum_cls: Any, default: Any) -> Any:
            raw = data.get(key)
            if raw is None:
                return default
            # View values are lowercase, mode values uppercase
            text = str(raw).strip()
            text = text.lower() if enum_cls is CalendarView else text.upper()
            try:
                return enum_cls(text)
            except ValueError:
                logger.warning("Config %s=%r is not valid; using default %s", key, raw, default.value)
                return default

        concurrency = _coerce_int("fetch_concurrency", defaults.fetch_concurrency)
        if concurrency < MIN_FETCH_CONCURRENCY:
            logger.warning("fetch_concurrency %d below minimum; coercing to %d", concurrency, MIN_FETCH_CONCURRENCY)
            concurrency = MIN_FETCH_CONCURRENCY
        elif concurrency > MAX_FETCH_CONCURRENCY:
            logger.warning("fetch_concurrency %d above maximum; coercing to %d", concurrency, MAX_FETCH_CONCURRENCY)
            concurrency = MAX_FETCH_CONCURRENCY

        timeout_raw = data.get("request_timeout_seconds", defaults.request_timeout_seconds)
        try:
            timeout = float(timeout_raw)
        except (TypeError, ValueError):
            logger.warning("Config request_timeout_seconds=%r is not a number; using default", timeout_raw)
            timeout = defaults.request_timeout_seconds
        if timeout <= 0:
            logger.warning("request_timeout_seconds %s not positive; using default", timeout)
            timeout = defaults.request_timeout_seconds

        viewer_raw = data.get("viewer_id")
        viewer_id: Optional[int] = None
        if viewer_raw is not None and viewer_raw != "":
            try:
                viewer_id = int(viewer_raw)
            except (TypeError, ValueError):
                logger.warning("Config viewer_id=%r is not an int; running without a viewer", viewer_raw)

        api_token = data.get("api_token")

        return cls(
            api_base_url=str(data.get("api_base_url") or defaults.api_base_url),
            api_token=str(api_token) if api_token else None,
            viewer_id=viewer_id,
            display_timezone=str(data.get("display_timezone") or defaults.display_timezone),
            default_view=_coerce_enum("default_view", CalendarView, defaults.default_view),
            default_mode=_coerce_enum("default_mode", TaskTypeMode, defaults.default_mode),
            fetch_concurrency=concurrency,
            request_timeout_seconds=timeout,
            server_bind=str(data.get("server_bind") or defaults.server_bind),
            server_port=_coerce_int("server_port", defaults.server_port),
            log_level=str(data.get("log_level") or defaults.log_level).upper(),
        )

    def to_dict(self) -> dict[str, Any]:
        """Plain mapping with the token redacted, for logging and diagnostics."""
        data = asdict(self)
        data["default_view"] = self.default_view.value
        data["default_mode"] = self.default_mode.value
        if data["api_token"]:
            data["api_token"] = "***"
        return data


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a mapping from a YAML file.

    Raises:
        ConfigError: If the file cannot be read or is not a mapping
    """
    try:
        loaded = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Unable to read config {path}: {e}") from e
    # safe_load returns None for empty files
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at top level")
    return loaded


def load_config(path: Optional[Path] = None, use_env: bool = True) -> Config:
    """Load configuration from YAML plus environment overrides.

    Args:
        path: Explicit config file; when None the default locations are tried
        use_env: Apply TASKCALENDAR_* environment overrides (and .env defaults)

    Raises:
        ConfigError: If an explicit path does not exist or is malformed
    """
    data: dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        data = _load_yaml(path)
        logger.debug("Loaded config from %s", path)
    else:
        for candidate in DEFAULT_CONFIG_PATHS:
            if candidate.exists():
                data = _load_yaml(candidate)
                logger.debug("Loaded config from %s", candidate)
                break

    if use_env:
        from .core.config_manager import ConfigManager

        manager = ConfigManager()
        manager.load_env_file()
        data.update(manager.build_config_from_env())

    return Config.from_dict(data)
