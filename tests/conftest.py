"""Shared fixtures for taskcalendar tests."""

from __future__ import annotations

import datetime
from collections.abc import AsyncIterator, Generator
from typing import Any

import pytest
import pytest_asyncio

from taskcalendar.core.http_client import close_all_clients
from taskcalendar.domain.models import ProjectRecord, TaskType
from tests.fixtures.factories import FROZEN_NOW, UTC, FakeTaskStore, make_task


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast, isolated unit tests")
    config.addinivalue_line("markers", "integration: tests spanning several components")
    config.addinivalue_line("markers", "smoke: minimal checks that the package boots")
    config.addinivalue_line("markers", "fast: tests that run in well under a second")


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear environment variables that change clock, logging or config behavior."""
    for name in (
        "TASKCALENDAR_TEST_TIME",
        "TASKCALENDAR_DEBUG",
        "TASKCALENDAR_LOG_LEVEL",
        "TASKCALENDAR_API_BASE_URL",
        "TASKCALENDAR_API_TOKEN",
        "TASKCALENDAR_VIEWER_ID",
        "TASKCALENDAR_TIMEZONE",
        "TASKCALENDAR_DEFAULT_VIEW",
        "TASKCALENDAR_DEFAULT_MODE",
        "TASKCALENDAR_FETCH_CONCURRENCY",
        "TASKCALENDAR_REQUEST_TIMEOUT",
        "TASKCALENDAR_SERVER_BIND",
        "TASKCALENDAR_SERVER_PORT",
    ):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest_asyncio.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()


@pytest.fixture
def frozen_now() -> datetime.datetime:
    return FROZEN_NOW


@pytest.fixture
def projects() -> list[ProjectRecord]:
    return [
        ProjectRecord(id=10, name="Apollo", owner_id=5),
        ProjectRecord(id=20, name="Gemini", owner_id=3),
    ]


@pytest.fixture
def fake_store(projects: list[ProjectRecord]) -> FakeTaskStore:
    """Store with two projects and one personal task in October 2025."""
    return FakeTaskStore(
        projects=projects,
        project_tasks={
            10: [
                make_task(1, project_id=10, title="Design login", due=datetime.datetime(2025, 10, 22, 15, 0, tzinfo=UTC)),
                make_task(2, project_id=10, title="Fix crash", task_type=TaskType.BUG, due=datetime.datetime(2025, 10, 24, 9, 0, tzinfo=UTC)),
            ],
            20: [
                make_task(
                    3,
                    project_id=20,
                    owner_id=3,
                    created_by=3,
                    assigned_user_ids=[5],
                    title="Write report",
                    task_type=TaskType.RESEARCH,
                    due=datetime.datetime(2025, 10, 20, 10, 0, tzinfo=UTC),
                ),
                make_task(
                    4,
                    project_id=20,
                    owner_id=3,
                    created_by=3,
                    assigned_user_ids=[7],
                    title="Other person's chore",
                    task_type=TaskType.CHORE,
                    due=datetime.datetime(2025, 10, 21, 10, 0, tzinfo=UTC),
                ),
            ],
        },
        personal_tasks=[
            make_task(
                9,
                project_id=None,
                title="Dentist",
                due=datetime.datetime(2025, 10, 23, 8, 0, tzinfo=UTC),
            )
        ],
    )
