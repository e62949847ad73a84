"""Calendar view/filter state and its reducer.

``reduce_state`` is the only way the state changes. Every derived view is
computed from one immutable CalendarState, so a render never mixes old
filters with new tasks.
"""

from __future__ import annotations

import dataclasses
import datetime
import logging
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from .event_bus import NotificationKind, TaskNotification
from .models import CalendarView, TaskStatus, TaskType, TaskTypeMode
from .view_filter import navigate

logger = logging.getLogger(__name__)

FetchKey = tuple[CalendarView, datetime.date, TaskTypeMode, Optional[int]]

PROJECT_MODES = frozenset({TaskTypeMode.OWN_PROJECTS, TaskTypeMode.ALL_PROJECT_TASKS})


@dataclass(frozen=True)
class CalendarState:
    """View, anchor date, task-type mode and filters of one calendar."""

    current_date: datetime.date
    view: CalendarView = CalendarView.MONTH
    mode: TaskTypeMode = TaskTypeMode.OWN_PROJECTS
    project_filter: Optional[int] = None
    search_keyword: str = ""

    # Optional narrowing filters
    statuses: frozenset[TaskStatus] = field(default_factory=frozenset)
    task_types: frozenset[TaskType] = field(default_factory=frozenset)
    assigned_user_id: Optional[int] = None

    @property
    def fetch_key(self) -> FetchKey:
        """Part of the state that determines which tasks must be fetched."""
        return (self.view, self.current_date, self.mode, self.project_filter)

    @property
    def has_search(self) -> bool:
        return bool(self.search_keyword.strip())


# Actions


@dataclass(frozen=True)
class SetView:
    view: CalendarView


@dataclass(frozen=True)
class SetDate:
    day: datetime.date


@dataclass(frozen=True)
class GoToToday:
    """Jump to the current day; ``day`` is resolved by the caller's clock."""

    day: datetime.date


@dataclass(frozen=True)
class Navigate:
    direction: int


@dataclass(frozen=True)
class SetMode:
    mode: TaskTypeMode


@dataclass(frozen=True)
class SetProjectFilter:
    project_id: Optional[int]


@dataclass(frozen=True)
class SetSearchKeyword:
    keyword: str


@dataclass(frozen=True)
class SetStatusFilter:
    statuses: frozenset[TaskStatus]


@dataclass(frozen=True)
class SetTaskTypeFilter:
    task_types: frozenset[TaskType]


@dataclass(frozen=True)
class SetAssigneeFilter:
    user_id: Optional[int]


CalendarAction = Union[
    SetView,
    SetDate,
    GoToToday,
    Navigate,
    SetMode,
    SetProjectFilter,
    SetSearchKeyword,
    SetStatusFilter,
    SetTaskTypeFilter,
    SetAssigneeFilter,
]


def reduce_state(state: CalendarState, action: CalendarAction) -> CalendarState:
    """Apply one action and return the new state (the input is never mutated)."""
    if isinstance(action, SetView):
        return dataclasses.replace(state, view=CalendarView(action.view))

    if isinstance(action, (SetDate, GoToToday)):
        return dataclasses.replace(state, current_date=action.day)

    if isinstance(action, Navigate):
        return dataclasses.replace(
            state, current_date=navigate(state.view, state.current_date, action.direction)
        )

    if isinstance(action, SetMode):
        mode = TaskTypeMode(action.mode)
        if mode == state.mode:
            return state
        if mode == TaskTypeMode.ALL_PROJECT_TASKS:
            return dataclasses.replace(state, mode=mode)
        # Project filter only exists in ALL_PROJECT_TASKS
        return dataclasses.replace(state, mode=mode, project_filter=None)

    if isinstance(action, SetProjectFilter):
        project_id = action.project_id or None
        if project_id is not None and state.mode != TaskTypeMode.ALL_PROJECT_TASKS:
            logger.warning(
                "Ignoring project filter %s outside %s mode (current mode %s)",
                project_id,
                TaskTypeMode.ALL_PROJECT_TASKS.value,
                state.mode.value,
            )
            return state
        return dataclasses.replace(state, project_filter=project_id)

    if isinstance(action, SetSearchKeyword):
        return dataclasses.replace(state, search_keyword=action.keyword or "")

    if isinstance(action, SetStatusFilter):
        return dataclasses.replace(state, statuses=frozenset(TaskStatus(s) for s in action.statuses))

    if isinstance(action, SetTaskTypeFilter):
        return dataclasses.replace(
            state, task_types=frozenset(TaskType(t) for t in action.task_types)
        )

    if isinstance(action, SetAssigneeFilter):
        return dataclasses.replace(state, assigned_user_id=action.user_id)

    raise TypeError(f"Unsupported calendar action: {action!r}")


def should_refetch(mode: TaskTypeMode, notification: TaskNotification) -> bool:
    """Decide whether a mutation notification can affect what is displayed.

    Deletions always re-fetch. Creations and updates re-fetch only when the
    task's personal flag matches the mode: personal tasks in PERSONAL mode,
    project tasks in the project modes.
    """
    if notification.kind == NotificationKind.TASK_DELETED:
        return True
    if mode == TaskTypeMode.PERSONAL:
        return notification.is_personal_task
    return not notification.is_personal_task


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def action_from_payload(
    payload: dict[str, Any], current_day: Optional[datetime.date] = None
) -> CalendarAction:
    """Build an action from a JSON body such as ``{"type": "setView", "view": "week"}``.

    Args:
        payload: Decoded JSON body with a ``type`` discriminator
        current_day: Day used by "goToToday" (the caller's display-timezone today)

    Raises:
        ValueError: If the type is unknown or a value does not validate
    """
    action_type = payload.get("type")
    try:
        if action_type == "setView":
            return SetView(CalendarView(payload["view"]))
        if action_type == "setDate":
            return SetDate(datetime.date.fromisoformat(str(payload["date"])))
        if action_type == "goToToday":
            return GoToToday(current_day or datetime.date.fromisoformat(str(payload["date"])))
        if action_type == "navigate":
            return Navigate(int(payload.get("direction", 1)))
        if action_type == "setMode":
            return SetMode(TaskTypeMode(payload["mode"]))
        if action_type == "setProjectFilter":
            return SetProjectFilter(_optional_int(payload.get("projectId")))
        if action_type == "setSearchKeyword":
            return SetSearchKeyword(str(payload.get("keyword") or ""))
        if action_type == "setStatusFilter":
            return SetStatusFilter(frozenset(TaskStatus(s) for s in payload.get("statuses") or []))
        if action_type == "setTaskTypeFilter":
            return SetTaskTypeFilter(frozenset(TaskType(t) for t in payload.get("taskTypes") or []))
        if action_type == "setAssigneeFilter":
            return SetAssigneeFilter(_optional_int(payload.get("userId")))
    except KeyError as e:
        raise ValueError(f"Action {action_type!r} missing field {e.args[0]!r}") from e
    except TypeError as e:
        raise ValueError(f"Action {action_type!r} has an invalid value: {e}") from e

    raise ValueError(f"Unknown calendar action type: {action_type!r}")
