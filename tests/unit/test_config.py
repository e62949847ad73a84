"""Tests for Config coercion, YAML loading and environment overrides."""

from pathlib import Path

import pytest

from taskcalendar.config_loader import Config, load_config
from taskcalendar.core.config_manager import ConfigManager
from taskcalendar.domain.models import CalendarView, TaskTypeMode
from taskcalendar.exceptions import ConfigError

pytestmark = [pytest.mark.unit, pytest.mark.fast]


def track_env(monkeypatch, name: str) -> None:
    """Make monkeypatch restore ``name`` even if code under test sets it directly."""
    monkeypatch.setenv(name, "placeholder")
    monkeypatch.delenv(name)


class TestFromDict:
    def test_defaults(self) -> None:
        config = Config.from_dict(None)

        assert config == Config()
        assert config.default_view == CalendarView.MONTH
        assert config.default_mode == TaskTypeMode.OWN_PROJECTS
        assert config.viewer_id is None

    @pytest.mark.parametrize(("raw", "expected"), [(0, 1), (-3, 1), (50, 8), ("6", 6), ("many", 4)])
    def test_fetch_concurrency_is_clamped(self, raw, expected) -> None:
        assert Config.from_dict({"fetch_concurrency": raw}).fetch_concurrency == expected

    def test_clamping_logs_warning(self, caplog) -> None:
        with caplog.at_level("WARNING"):
            Config.from_dict({"fetch_concurrency": 99})
        assert "above maximum" in caplog.text

    def test_enums_are_case_insensitive(self) -> None:
        config = Config.from_dict({"default_view": "WEEK", "default_mode": "personal"})

        assert config.default_view == CalendarView.WEEK
        assert config.default_mode == TaskTypeMode.PERSONAL

    def test_invalid_enum_falls_back(self, caplog) -> None:
        with caplog.at_level("WARNING"):
            config = Config.from_dict({"default_view": "year", "default_mode": "EVERYONE"})

        assert config.default_view == CalendarView.MONTH
        assert config.default_mode == TaskTypeMode.OWN_PROJECTS
        assert "default_view" in caplog.text

    @pytest.mark.parametrize("raw", [0, -1, "slow"])
    def test_bad_timeout_falls_back(self, raw) -> None:
        assert Config.from_dict({"request_timeout_seconds": raw}).request_timeout_seconds == 30.0

    @pytest.mark.parametrize(("raw", "expected"), [("7", 7), (0, 0), ("", None), ("me", None)])
    def test_viewer_id(self, raw, expected) -> None:
        assert Config.from_dict({"viewer_id": raw}).viewer_id == expected

    def test_log_level_is_upper_cased(self) -> None:
        assert Config.from_dict({"log_level": "debug"}).log_level == "DEBUG"

    def test_to_dict_redacts_token(self) -> None:
        data = Config.from_dict({"api_token": "secret", "default_view": "day"}).to_dict()

        assert data["api_token"] == "***"
        assert data["default_view"] == "day"
        assert data["default_mode"] == "OWN_PROJECTS"


class TestLoadConfig:
    def test_loads_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "taskcalendar.yaml"
        path.write_text(
            "api_base_url: https://tasks.example.com\n"
            "viewer_id: 5\n"
            "display_timezone: Europe/Berlin\n"
            "default_view: week\n"
            "fetch_concurrency: 2\n",
            encoding="utf-8",
        )

        config = load_config(path, use_env=False)

        assert config.api_base_url == "https://tasks.example.com"
        assert config.viewer_id == 5
        assert config.display_timezone == "Europe/Berlin"
        assert config.default_view == CalendarView.WEEK
        assert config.fetch_concurrency == 2

    def test_missing_explicit_path_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(tmp_path / "absent.yaml", use_env=False)

    @pytest.mark.parametrize("content", ["- just\n- a list\n", "key: [unclosed\n"])
    def test_malformed_file_raises(self, tmp_path: Path, content: str) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text(content, encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(path, use_env=False)

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")

        assert load_config(path, use_env=False) == Config()

    def test_default_location_is_used(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        (tmp_path / "taskcalendar.yaml").write_text("server_port: 9100\n", encoding="utf-8")

        assert load_config(use_env=False).server_port == 9100

    def test_no_file_anywhere_gives_defaults(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        assert load_config() == Config()

    def test_environment_overrides_yaml(self, tmp_path: Path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "taskcalendar.yaml"
        path.write_text("viewer_id: 5\nfetch_concurrency: 2\n", encoding="utf-8")
        monkeypatch.setenv("TASKCALENDAR_VIEWER_ID", "9")
        monkeypatch.setenv("TASKCALENDAR_DEFAULT_MODE", "ALL_PROJECT_TASKS")

        config = load_config(path)

        assert config.viewer_id == 9
        assert config.default_mode == TaskTypeMode.ALL_PROJECT_TASKS
        assert config.fetch_concurrency == 2


class TestConfigManager:
    def test_build_config_from_env_converts_types(self, monkeypatch) -> None:
        monkeypatch.setenv("TASKCALENDAR_SERVER_PORT", "9200")
        monkeypatch.setenv("TASKCALENDAR_REQUEST_TIMEOUT", "12.5")
        monkeypatch.setenv("TASKCALENDAR_API_TOKEN", "abc")

        cfg = ConfigManager().build_config_from_env()

        assert cfg == {"server_port": 9200, "request_timeout_seconds": 12.5, "api_token": "abc"}

    def test_invalid_values_are_ignored(self, monkeypatch, caplog) -> None:
        monkeypatch.setenv("TASKCALENDAR_FETCH_CONCURRENCY", "lots")

        with caplog.at_level("WARNING"):
            cfg = ConfigManager().build_config_from_env()

        assert "fetch_concurrency" not in cfg
        assert "TASKCALENDAR_FETCH_CONCURRENCY" in caplog.text

    def test_env_file_does_not_override_existing(self, tmp_path: Path, monkeypatch) -> None:
        env_file = tmp_path / ".env"
        env_file.write_text(
            "# local defaults\n"
            "TASKCALENDAR_TIMEZONE=Europe/Berlin\n"
            "TASKCALENDAR_VIEWER_ID='12'\n"
            "not a pair\n",
            encoding="utf-8",
        )
        track_env(monkeypatch, "TASKCALENDAR_TIMEZONE")
        monkeypatch.setenv("TASKCALENDAR_VIEWER_ID", "3")

        manager = ConfigManager(env_file)
        loaded = manager.load_env_file()
        cfg = manager.build_config_from_env()

        assert loaded == ["TASKCALENDAR_TIMEZONE"]
        assert cfg["display_timezone"] == "Europe/Berlin"
        assert cfg["viewer_id"] == 3

    def test_missing_env_file(self, tmp_path: Path) -> None:
        assert ConfigManager(tmp_path / ".env").load_env_file() == []
