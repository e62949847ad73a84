"""Projection of task records onto calendar events."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Optional

from .classification import color_token, is_task_overdue, ownership_token
from .models import CalendarEvent, ProjectRecord, TaskRecord

logger = logging.getLogger(__name__)


def display_instant(task: TaskRecord) -> datetime:
    """Instant used for day placement.

    Priority is fixed: due instant, else recurrence-window start, else creation.
    """
    if task.due_date_time is not None:
        return task.due_date_time
    if task.start_date is not None:
        return task.start_date
    return task.created_at


def is_own_task(task: TaskRecord, viewer_id: Optional[int] = None) -> bool:
    """Viewer owns the task or is assigned to it; no viewer means own task."""
    if viewer_id is None:
        return True
    return task.owner_id == viewer_id or viewer_id in task.assigned_user_ids


def task_to_event(
    task: TaskRecord,
    project: Optional[ProjectRecord] = None,
    viewer_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> CalendarEvent:
    """Convert a task (plus optional project and viewer) into a calendar event."""
    overdue = is_task_overdue(task.due_date_time, task.status, now)
    own = is_own_task(task, viewer_id)

    return CalendarEvent(
        id=task.id,
        title=task.title,
        description=task.description,
        start_date=task.created_at,
        display_date=display_instant(task),
        due_date=task.due_date_time,
        task_type=task.task_type,
        status=task.status,
        project_id=task.project_id,
        project_name=project.name if project is not None else None,
        tags=tuple(task.tags),
        assigned_user_ids=tuple(task.assigned_user_ids),
        owner_id=task.owner_id,
        created_by=task.created_by,
        is_recurring=task.is_recurring,
        color=color_token(task.task_type, task.status, overdue),
        border_color=ownership_token(own),
        is_overdue=overdue,
        is_own_task=own,
    )


def tasks_to_events(
    tasks: Iterable[TaskRecord],
    projects: Iterable[ProjectRecord] = (),
    viewer_id: Optional[int] = None,
    now: Optional[datetime] = None,
) -> list[CalendarEvent]:
    """Convert tasks, resolving each task's project name from the project list."""
    projects_by_id = {p.id: p for p in projects}
    events = [
        task_to_event(
            task,
            None if task.is_personal else projects_by_id.get(task.project_id),  # type: ignore[arg-type]
            viewer_id,
            now,
        )
        for task in tasks
    ]
    logger.debug("Converted %d tasks into calendar events", len(events))
    return events
