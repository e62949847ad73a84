"""Unit tests for taskcalendar.domain.converter."""

from datetime import datetime, timezone

import pytest

from taskcalendar.domain.classification import OTHER_TASK_BORDER, OVERDUE_COLOR, OWN_TASK_BORDER
from taskcalendar.domain.converter import display_instant, is_own_task, task_to_event, tasks_to_events
from taskcalendar.domain.models import ProjectRecord, TaskRecord, TaskStatus, TaskType
from tests.fixtures.factories import FROZEN_NOW, make_task

pytestmark = [pytest.mark.unit, pytest.mark.fast]

UTC = timezone.utc
DUE = datetime(2025, 10, 25, 17, 0, tzinfo=UTC)
START = datetime(2025, 10, 20, 8, 0, tzinfo=UTC)
CREATED = datetime(2025, 10, 1, 9, 0, tzinfo=UTC)


class TestDisplayInstant:
    def test_due_wins(self) -> None:
        assert display_instant(make_task(due=DUE, start=START, created_at=CREATED)) == DUE

    def test_start_when_no_due(self) -> None:
        assert display_instant(make_task(start=START, created_at=CREATED)) == START

    def test_creation_as_last_resort(self) -> None:
        assert display_instant(make_task(created_at=CREATED)) == CREATED


class TestOwnership:
    def test_no_viewer_means_own(self) -> None:
        assert is_own_task(make_task(owner_id=3), None) is True

    def test_owner_or_assignee_is_own(self) -> None:
        assert is_own_task(make_task(owner_id=5), 5) is True
        assert is_own_task(make_task(owner_id=3, assigned_user_ids=[5]), 5) is True

    def test_other_viewer_is_not_own(self) -> None:
        assert is_own_task(make_task(owner_id=3, assigned_user_ids=[7]), 5) is False

    def test_viewer_zero_is_a_real_viewer(self) -> None:
        assert is_own_task(make_task(owner_id=3), 0) is False


class TestTaskToEvent:
    def test_fields_pass_through(self) -> None:
        task = make_task(
            42,
            project_id=10,
            owner_id=3,
            created_by=3,
            assigned_user_ids=[5, 7],
            task_type=TaskType.BUG,
            status=TaskStatus.IN_PROGRESS,
            title="Crash on save",
            description="Stack trace attached",
            tags=["backend"],
            due=DUE,
            created_at=CREATED,
        )
        project = ProjectRecord(id=10, name="Apollo")

        event = task_to_event(task, project, viewer_id=5, now=FROZEN_NOW)

        assert event.id == 42
        assert event.title == "Crash on save"
        assert event.project_name == "Apollo"
        assert event.start_date == CREATED
        assert event.display_date == DUE
        assert event.due_date == DUE
        assert event.tags == ("backend",)
        assert event.assigned_user_ids == (5, 7)
        assert event.owner_id == 3
        assert event.created_by == 3
        assert event.color == "bg-red-500 opacity-90"
        assert event.border_color == OWN_TASK_BORDER
        assert event.is_own_task is True
        assert event.is_overdue is False

    def test_overdue_task_gets_overdue_color(self) -> None:
        task = make_task(due=datetime(2025, 10, 1, tzinfo=UTC), status=TaskStatus.TODO)
        event = task_to_event(task, now=FROZEN_NOW)

        assert event.is_overdue is True
        assert event.color == OVERDUE_COLOR

    def test_missing_project_gives_no_name(self) -> None:
        assert task_to_event(make_task(), None, now=FROZEN_NOW).project_name is None

    def test_other_persons_task_gets_other_border(self) -> None:
        event = task_to_event(make_task(owner_id=3), viewer_id=5, now=FROZEN_NOW)
        assert event.border_color == OTHER_TASK_BORDER


def test_tasks_to_events_resolves_project_names() -> None:
    projects = [ProjectRecord(id=10, name="Apollo"), ProjectRecord(id=20, name="Gemini")]
    tasks = [
        make_task(1, project_id=20),
        make_task(2, project_id=None),
        make_task(3, project_id=0),
        make_task(4, project_id=99),
    ]

    events = tasks_to_events(tasks, projects, now=FROZEN_NOW)

    assert [e.project_name for e in events] == ["Gemini", None, None, None]


def test_task_record_accepts_camel_case_wire_format() -> None:
    task = TaskRecord.model_validate(
        {
            "id": 7,
            "projectId": 10,
            "ownerId": 5,
            "createdBy": 5,
            "assignedUserIds": None,
            "taskType": "CHORE",
            "status": "BLOCKED",
            "title": "Water plants",
            "tags": None,
            "dueDateTime": "2025-10-22T10:00:00",
            "createdAt": "2025-10-01T09:00:00Z",
            "unknownField": "ignored",
        }
    )

    assert task.assigned_user_ids == []
    assert task.tags == []
    assert task.due_date_time == datetime(2025, 10, 22, 10, 0, tzinfo=UTC)
    assert task.due_date_time.tzinfo is not None
    assert task.is_personal is False
