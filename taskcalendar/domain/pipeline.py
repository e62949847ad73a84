"""Pure derivation of a calendar snapshot from state and fetched data."""

from __future__ import annotations

import datetime
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from ..core.timezone_utils import now_utc, serialize_iso
from .access_filter import filter_events_by_user_access
from .calendar_state import CalendarState
from .converter import tasks_to_events
from .models import CalendarEvent, ProjectRecord, TaskRecord, TaskTypeMode
from .search import search_and_highlight
from .view_filter import (
    DATE_KEY_FORMAT,
    ViewWindow,
    events_for_view,
    format_display_date,
    view_window,
)

logger = logging.getLogger(__name__)


@dataclass
class CalendarSnapshot:
    """Everything a view needs to render one state of the calendar."""

    state: CalendarState
    window: ViewWindow
    events: list[CalendarEvent] = field(default_factory=list)
    buckets: dict[str, list[CalendarEvent]] = field(default_factory=dict)
    match_count: int = 0
    error_message: Optional[str] = None
    is_loading: bool = False

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready representation (camelCase keys, as the API serves it)."""
        state = self.state
        return {
            "view": state.view.value,
            "currentDate": state.current_date.isoformat(),
            "title": format_display_date(state.current_date, state.view),
            "mode": state.mode.value,
            "projectFilter": state.project_filter,
            "searchKeyword": state.search_keyword,
            "window": {
                "start": self.window.start.strftime(DATE_KEY_FORMAT),
                "end": self.window.end.strftime(DATE_KEY_FORMAT),
                "days": [d.strftime(DATE_KEY_FORMAT) for d in self.window.days],
            },
            "events": [_event_dict(e) for e in self.events],
            "buckets": {key: [e.id for e in events] for key, events in self.buckets.items()},
            "matchCount": self.match_count,
            "errorMessage": self.error_message,
            "isLoading": self.is_loading,
        }


def _event_dict(event: CalendarEvent) -> dict[str, Any]:
    data = event.model_dump(mode="json", by_alias=False)
    data["start_date"] = serialize_iso(event.start_date)
    data["display_date"] = serialize_iso(event.display_date)
    data["due_date"] = serialize_iso(event.due_date)
    return data


def empty_snapshot(
    state: CalendarState,
    error_message: Optional[str] = None,
    is_loading: bool = False,
) -> CalendarSnapshot:
    """Snapshot with no events, used for errors and the initial loading state."""
    window = view_window(state.view, state.current_date)
    buckets: dict[str, list[CalendarEvent]] = {
        day.strftime(DATE_KEY_FORMAT): [] for day in window.days
    }
    return CalendarSnapshot(
        state=state,
        window=window,
        buckets=buckets,
        error_message=error_message,
        is_loading=is_loading,
    )


def apply_optional_filters(events: list[CalendarEvent], state: CalendarState) -> list[CalendarEvent]:
    """Project, status, task-type and assignee narrowing."""
    if state.project_filter is not None and state.mode == TaskTypeMode.ALL_PROJECT_TASKS:
        events = [e for e in events if e.project_id == state.project_filter]
    if state.statuses:
        events = [e for e in events if e.status in state.statuses]
    if state.task_types:
        events = [e for e in events if e.task_type in state.task_types]
    if state.assigned_user_id is not None:
        events = [e for e in events if state.assigned_user_id in e.assigned_user_ids]
    return events


def derive_snapshot(
    state: CalendarState,
    tasks: Sequence[TaskRecord],
    projects: Sequence[ProjectRecord],
    viewer_id: Optional[int],
    tz: datetime.tzinfo = datetime.timezone.utc,
    now: Optional[datetime.datetime] = None,
    error_message: Optional[str] = None,
    is_loading: bool = False,
) -> CalendarSnapshot:
    """Run the derivation pipeline for one immutable (state, tasks, projects) input.

    Order: convert, search-annotate, access filter (skipped in
    ALL_PROJECT_TASKS), optional filters, keep matches when searching, then
    range-filter and bucket for the view. ``match_count`` is taken before the
    range filter so it counts matches across every fetched task.
    """
    if error_message is not None:
        return empty_snapshot(state, error_message=error_message, is_loading=is_loading)

    events = tasks_to_events(tasks, projects, viewer_id, now or now_utc())
    events = search_and_highlight(events, state.search_keyword)

    if state.mode != TaskTypeMode.ALL_PROJECT_TASKS:
        events = filter_events_by_user_access(events, viewer_id)

    events = apply_optional_filters(events, state)

    if state.has_search:
        events = [e for e in events if e.is_highlighted]

    bucketed = events_for_view(events, state.view, state.current_date, tz)
    logger.debug(
        "Derived %s snapshot for %s: %d events (%d matches) from %d tasks",
        state.view.value,
        state.current_date,
        len(bucketed.events),
        len(events),
        len(tasks),
    )

    return CalendarSnapshot(
        state=state,
        window=bucketed.window,
        events=bucketed.events,
        buckets=bucketed.buckets,
        match_count=len(events),
        is_loading=is_loading,
    )
