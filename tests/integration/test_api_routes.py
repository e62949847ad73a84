"""Integration tests for the calendar HTTP API.

The app runs against an in-memory task store; the orchestrator mounts on
startup exactly as it does in production.
"""

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from taskcalendar.api.server import build_orchestrator, create_app
from taskcalendar.calendar_orchestrator import TASKS_ERROR_MESSAGE, CalendarOrchestrator
from taskcalendar.config_loader import Config
from taskcalendar.domain.calendar_state import CalendarState
from taskcalendar.domain.event_bus import TaskEventBus
from taskcalendar.domain.models import CalendarView, TaskTypeMode
from tests.fixtures.factories import FROZEN_NOW

pytestmark = pytest.mark.integration


@pytest.fixture
def event_bus() -> TaskEventBus:
    return TaskEventBus()


@pytest.fixture
def orchestrator(fake_store, event_bus) -> CalendarOrchestrator:
    return CalendarOrchestrator(
        fake_store,
        viewer_id=5,
        event_bus=event_bus,
        initial_state=CalendarState(current_date=FROZEN_NOW.date()),
        time_provider=lambda: FROZEN_NOW,
    )


@pytest_asyncio.fixture
async def client(orchestrator, event_bus):
    app = create_app(Config(), orchestrator=orchestrator, event_bus=event_bus)
    async with TestClient(TestServer(app)) as test_client:
        yield test_client


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_reports_mounted_calendar(self, client) -> None:
        response = await client.get("/api/health")

        assert response.status == 200
        assert await response.json() == {
            "status": "ok",
            "serverTimeIso": "2025-10-22T12:00:00Z",
            "mounted": True,
            "eventCount": 3,
            "projectCount": 2,
        }

    @pytest.mark.asyncio
    async def test_health_degraded_after_fetch_failure(self, fake_store, client) -> None:
        fake_store.fail_personal = True

        await client.post("/api/calendar/state", json={"type": "setMode", "mode": "PERSONAL"})
        data = await (await client.get("/api/health")).json()

        assert data["status"] == "degraded"
        assert data["eventCount"] == 0


class TestCalendar:
    @pytest.mark.asyncio
    async def test_get_calendar_returns_snapshot(self, client) -> None:
        response = await client.get("/api/calendar")

        assert response.status == 200
        data = await response.json()
        assert data["view"] == "month"
        assert data["mode"] == "OWN_PROJECTS"
        assert sorted(e["id"] for e in data["events"]) == [1, 2, 3]
        assert data["isLoading"] is False
        assert data["errorMessage"] is None

    @pytest.mark.asyncio
    async def test_refresh_query_refetches(self, fake_store, client) -> None:
        fake_store.calls.clear()

        await client.get("/api/calendar?refresh=1")

        assert len(fake_store.calls_of("project")) == 2

    @pytest.mark.asyncio
    async def test_plain_get_does_not_refetch(self, fake_store, client) -> None:
        fake_store.calls.clear()

        await client.get("/api/calendar")

        assert fake_store.calls == []


class TestStateChanges:
    @pytest.mark.asyncio
    async def test_set_view(self, client) -> None:
        response = await client.post("/api/calendar/state", json={"type": "setView", "view": "week"})

        assert response.status == 200
        data = await response.json()
        assert data["view"] == "week"
        assert data["window"]["start"] == "2025-10-19"
        assert len(data["window"]["days"]) == 7

    @pytest.mark.asyncio
    async def test_search_keyword_filters_events(self, client) -> None:
        response = await client.post(
            "/api/calendar/state", json={"type": "setSearchKeyword", "keyword": "report"}
        )

        data = await response.json()
        assert [e["id"] for e in data["events"]] == [3]
        assert data["events"][0]["matched_fields"] == ["title"]
        assert data["matchCount"] == 1

    @pytest.mark.asyncio
    async def test_personal_mode_error_message(self, fake_store, client) -> None:
        fake_store.fail_personal = True

        response = await client.post("/api/calendar/state", json={"type": "setMode", "mode": "PERSONAL"})

        data = await response.json()
        assert data["errorMessage"] == TASKS_ERROR_MESSAGE
        assert data["events"] == []

    @pytest.mark.asyncio
    async def test_go_to_today(self, client) -> None:
        await client.post("/api/calendar/state", json={"type": "setDate", "date": "2024-02-01"})

        response = await client.post("/api/calendar/state", json={"type": "goToToday"})

        assert (await response.json())["currentDate"] == "2025-10-22"

    @pytest.mark.parametrize(
        "body",
        [
            {"type": "setView", "view": "decade"},
            {"type": "unknown"},
            ["setView"],
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_action_is_400(self, client, body) -> None:
        response = await client.post("/api/calendar/state", json=body)

        assert response.status == 400
        assert "error" in await response.json()

    @pytest.mark.asyncio
    async def test_invalid_json_is_400(self, client) -> None:
        response = await client.post(
            "/api/calendar/state", data="{not json", headers={"Content-Type": "application/json"}
        )

        assert response.status == 400


class TestNotifications:
    @pytest.mark.asyncio
    async def test_project_notification_triggers_refetch(self, fake_store, client) -> None:
        fake_store.calls.clear()

        response = await client.post(
            "/api/notifications",
            json={"kind": "taskCreated", "task": {"id": 12, "projectId": 10}, "isPersonalTask": False},
        )

        assert response.status == 202
        assert await response.json() == {"kind": "taskCreated", "isPersonalTask": False, "delivered": 1}
        assert len(fake_store.calls_of("project")) == 2

    @pytest.mark.asyncio
    async def test_personal_notification_ignored_in_project_mode(self, fake_store, client) -> None:
        fake_store.calls.clear()

        response = await client.post(
            "/api/notifications", json={"kind": "taskUpdated", "isPersonalTask": True}
        )

        assert response.status == 202
        assert fake_store.calls == []

    @pytest.mark.parametrize(
        "body",
        [{}, {"kind": "taskExploded"}, {"kind": 3}, {"kind": "taskCreated", "isPersonalTask": "false"}],
    )
    @pytest.mark.asyncio
    async def test_invalid_notification_is_400(self, client, body) -> None:
        response = await client.post("/api/notifications", json=body)

        assert response.status == 400


class TestAppWiring:
    def test_build_orchestrator_uses_config_defaults(self, fake_store, event_bus) -> None:
        config = Config.from_dict(
            {"viewer_id": 5, "default_view": "timeline", "default_mode": "ALL_PROJECT_TASKS", "fetch_concurrency": 2}
        )

        orchestrator = build_orchestrator(config, event_bus, task_store=fake_store)

        assert orchestrator.viewer_id == 5
        assert orchestrator.state.view == CalendarView.TIMELINE
        assert orchestrator.state.mode == TaskTypeMode.ALL_PROJECT_TASKS
        assert orchestrator.fetch_concurrency == 2
        assert orchestrator.event_bus is event_bus

    @pytest.mark.asyncio
    async def test_cleanup_unmounts(self, orchestrator, event_bus) -> None:
        app = create_app(Config(), orchestrator=orchestrator, event_bus=event_bus)

        async with TestClient(TestServer(app)):
            assert orchestrator.is_mounted is True

        assert orchestrator.is_mounted is False
