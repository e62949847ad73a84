"""Tests for the command-line entry point and logging configuration."""

import logging
from datetime import date
from unittest.mock import patch

import pytest

from taskcalendar.__main__ import format_agenda, main
from taskcalendar.domain.calendar_state import CalendarState
from taskcalendar.domain.models import CalendarView
from taskcalendar.domain.pipeline import derive_snapshot, empty_snapshot
from taskcalendar.logging_config import configure_logging, get_logging_status
from tests.fixtures.factories import FROZEN_NOW

pytestmark = pytest.mark.unit


@pytest.fixture
def restore_logger_levels():
    names = ["", "taskcalendar", "httpx", "httpcore", "asyncio", "aiohttp.access"]
    saved = {name: logging.getLogger(name).level for name in names}
    yield
    for name, level in saved.items():
        logging.getLogger(name).setLevel(level)


class TestFormatAgenda:
    def test_lists_events_per_day(self, fake_store, projects) -> None:
        state = CalendarState(current_date=date(2025, 10, 22), view=CalendarView.WEEK)
        tasks = [t for ts in fake_store.project_tasks.values() for t in ts]
        snapshot = derive_snapshot(state, tasks, projects, 5, now=FROZEN_NOW)

        text = format_agenda(snapshot)

        assert text.splitlines()[0] == "Oct 19 - Oct 25, 2025 (week, OWN_PROJECTS)"
        assert "2025-10-22\n  - [FEATURE/TODO] Design login (Apollo)" in text
        assert "Other person's chore" not in text
        assert "2025-10-25" not in text

    def test_include_empty_days(self) -> None:
        snapshot = empty_snapshot(CalendarState(current_date=date(2025, 10, 22), view=CalendarView.WEEK))

        text = format_agenda(snapshot, include_empty=True)

        assert "2025-10-25" in text
        assert text.endswith("No tasks in this view.")

    def test_error_message(self) -> None:
        state = CalendarState(current_date=date(2025, 10, 22))
        text = format_agenda(empty_snapshot(state, error_message="Could not load"))

        assert text.splitlines()[-1] == "Error: Could not load"


class TestMain:
    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 0
        assert "usage: taskcalendar" in capsys.readouterr().out

    def test_serve_delegates_to_run_server(self) -> None:
        with patch("taskcalendar.__main__.run_server") as run_server:
            assert main(["serve", "--port", "9001"]) == 0

        args = run_server.call_args.args[0]
        assert args.port == 9001

    def test_show_with_missing_config_exits_2(self, tmp_path, capsys) -> None:
        with patch("taskcalendar.__main__._init_logging"):
            code = main(["--config", str(tmp_path / "missing.yaml"), "show"])

        assert code == 2
        assert "Config file not found" in capsys.readouterr().err

    def test_show_prints_agenda(self, fake_store, tmp_path, monkeypatch, capsys) -> None:
        monkeypatch.chdir(tmp_path)
        with patch("taskcalendar.__main__._init_logging"), patch(
            "taskcalendar.core.http_client.HttpTaskStore", return_value=fake_store
        ):
            code = main(["show", "--view", "week", "--date", "2025-10-22", "--search", "crash"])

        out = capsys.readouterr().out
        assert code == 0
        assert '1 tasks match "crash"' in out
        assert "Fix crash (Apollo)" in out
        assert "Design login" not in out

    def test_show_with_bad_date_exits_2(self, tmp_path, monkeypatch) -> None:
        monkeypatch.chdir(tmp_path)
        with patch("taskcalendar.__main__._init_logging"):
            assert main(["show", "--date", "22/10/2025"]) == 2


class TestLoggingConfig:
    def test_force_debug(self, restore_logger_levels) -> None:
        configure_logging(force_debug=True)

        status = get_logging_status()
        assert status["taskcalendar"] == "DEBUG"
        assert status["httpx"] == "WARNING"
        assert status["aiohttp.access"] == "WARNING"

    def test_env_debug_flag(self, restore_logger_levels, monkeypatch) -> None:
        monkeypatch.setenv("TASKCALENDAR_DEBUG", "yes")

        configure_logging()

        assert logging.getLogger("taskcalendar").level == logging.DEBUG

    def test_env_log_level_overrides_root(self, restore_logger_levels, monkeypatch) -> None:
        monkeypatch.setenv("TASKCALENDAR_LOG_LEVEL", "error")

        configure_logging()

        assert logging.getLogger().level == logging.ERROR
        assert logging.getLogger("taskcalendar").level == logging.INFO
