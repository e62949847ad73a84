"""Protocol definitions for orchestrator dependencies.

The orchestrator only needs these interfaces, so tests can pass in simple
fakes instead of an HTTP client.
"""

from __future__ import annotations

import datetime
from typing import Optional, Protocol

from .domain.models import CalendarEvent, CalendarView, ProjectRecord, TaskRecord


class TaskStore(Protocol):
    """Read access to the external task store."""

    async def get_user_projects(self, viewer_id: Optional[int]) -> list[ProjectRecord]:
        """Projects visible to the viewer.

        Raises:
            ProjectFetchError: If the list cannot be fetched
        """
        ...

    async def get_project_tasks(
        self, project_id: int, view: CalendarView, reference_date: datetime.date
    ) -> list[TaskRecord]:
        """Tasks of one project for the view around reference_date.

        Raises:
            TaskFetchError: If the tasks cannot be fetched
        """
        ...

    async def get_personal_tasks(
        self, viewer_id: Optional[int], view: CalendarView, reference_date: datetime.date
    ) -> list[TaskRecord]:
        """Personal tasks of the viewer for the view around reference_date.

        Raises:
            TaskFetchError: If the tasks cannot be fetched
        """
        ...


class TimeProvider(Protocol):
    """Callable returning the current aware UTC instant."""

    def __call__(self) -> datetime.datetime: ...


class EventClickHandler(Protocol):
    def __call__(self, event: CalendarEvent) -> None: ...


class DateClickHandler(Protocol):
    def __call__(self, day: datetime.date) -> None: ...
