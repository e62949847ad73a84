"""Range filtering and day bucketing of calendar events per view.

Day, week, month and timeline views share one filter and one bucketing
algorithm. The only per-view logic is ``view_window``, which computes the
boundary days and the candidate day list. Filtering and bucketing both key
events on ``selection_instant`` so an event that passes the range filter
always lands in a bucket of the same view.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from ..core.timezone_utils import end_of_day, ensure_utc, local_date, start_of_day
from .models import CalendarEvent, CalendarView

logger = logging.getLogger(__name__)

DATE_KEY_FORMAT = "%Y-%m-%d"
PERSONAL_LANE = "Personal Tasks"

DateLike = Union[datetime.date, datetime.datetime]


@dataclass(frozen=True)
class ViewWindow:
    """Boundary days and candidate days of a view around an anchor date."""

    view: CalendarView
    start: datetime.date
    end: datetime.date
    days: tuple[datetime.date, ...]


@dataclass(frozen=True)
class BucketedEvents:
    """Events of one view: the range-filtered list and its day buckets."""

    window: ViewWindow
    events: list[CalendarEvent]
    buckets: dict[str, list[CalendarEvent]]


def selection_instant(event: CalendarEvent) -> datetime.datetime:
    """Due instant if present, else the display instant."""
    return event.due_date if event.due_date is not None else event.display_date


def date_key(value: DateLike, tz: datetime.tzinfo) -> str:
    """Bucket key ("YYYY-MM-DD") of a day or of an instant seen in tz."""
    return _as_day(value, tz).strftime(DATE_KEY_FORMAT)


def _as_day(value: DateLike, tz: datetime.tzinfo) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return local_date(value, tz)
    return value


def _days_between(start: datetime.date, end: datetime.date) -> tuple[datetime.date, ...]:
    count = (end - start).days + 1
    return tuple(start + datetime.timedelta(days=i) for i in range(max(0, count)))


def week_days(anchor: datetime.date) -> tuple[datetime.date, ...]:
    """Sunday-to-Saturday week containing the anchor."""
    week_start = anchor - datetime.timedelta(days=(anchor.weekday() + 1) % 7)
    return _days_between(week_start, week_start + datetime.timedelta(days=6))


def calendar_weeks(anchor: datetime.date) -> list[tuple[datetime.date, ...]]:
    """Month grid for the anchor's month as Sunday-aligned weeks."""
    month_start = anchor.replace(day=1)
    month_end = month_start + relativedelta(months=1, days=-1)
    grid_start = week_days(month_start)[0]
    grid_end = week_days(month_end)[-1]
    days = _days_between(grid_start, grid_end)
    return [days[i : i + 7] for i in range(0, len(days), 7)]


def view_window(view: CalendarView, anchor: datetime.date) -> ViewWindow:
    """Compute boundary days and candidate days for a view."""
    view = CalendarView(view)
    if view == CalendarView.DAY:
        return ViewWindow(view, anchor, anchor, (anchor,))

    if view == CalendarView.WEEK:
        days = week_days(anchor)
        return ViewWindow(view, days[0], days[-1], days)

    if view == CalendarView.MONTH:
        start = anchor.replace(day=1)
        end = start + relativedelta(months=1, days=-1)
        grid = tuple(day for week in calendar_weeks(anchor) for day in week)
        return ViewWindow(view, start, end, grid)

    # Timeline: one month before to two months after the anchor month
    start = (anchor - relativedelta(months=1)).replace(day=1)
    end = (anchor + relativedelta(months=2)).replace(day=1) + relativedelta(months=1, days=-1)
    return ViewWindow(view, start, end, _days_between(start, end))


def filter_events_by_range(
    events: Iterable[CalendarEvent],
    start: DateLike,
    end: DateLike,
    tz: datetime.tzinfo = datetime.timezone.utc,
) -> list[CalendarEvent]:
    """Keep events whose selection instant falls within [start, end].

    Both bounds are inclusive and widened to the start and end of their days
    in the display timezone, so time-of-day never drops an edge event.
    """
    range_start = start_of_day(_as_day(start, tz), tz)
    range_end = end_of_day(_as_day(end, tz), tz)
    return [e for e in events if range_start <= ensure_utc(selection_instant(e)) <= range_end]


def group_events_by_date(
    events: Iterable[CalendarEvent],
    days: Sequence[datetime.date],
    tz: datetime.tzinfo = datetime.timezone.utc,
) -> dict[str, list[CalendarEvent]]:
    """Bucket events by the day of their selection instant.

    Every candidate day gets a key (possibly empty); events falling on a day
    outside the candidate list are not bucketed.
    """
    buckets: dict[str, list[CalendarEvent]] = {date_key(day, tz): [] for day in days}
    dropped = 0
    for event in events:
        key = date_key(selection_instant(event), tz)
        bucket = buckets.get(key)
        if bucket is None:
            dropped += 1
            continue
        bucket.append(event)

    for bucket in buckets.values():
        bucket.sort(key=lambda e: (ensure_utc(selection_instant(e)), e.id))

    if dropped:
        logger.debug("%d events fell outside the candidate days and were not bucketed", dropped)
    return buckets


def events_for_view(
    events: Iterable[CalendarEvent],
    view: CalendarView,
    anchor: datetime.date,
    tz: datetime.tzinfo = datetime.timezone.utc,
) -> BucketedEvents:
    """Range-filter and bucket events for a view around the anchor date."""
    window = view_window(view, anchor)
    in_range = filter_events_by_range(events, window.start, window.end, tz)
    in_range.sort(key=lambda e: (ensure_utc(selection_instant(e)), e.id))
    return BucketedEvents(window, in_range, group_events_by_date(in_range, window.days, tz))


def group_events_by_hour(
    events: Iterable[CalendarEvent],
    tz: datetime.tzinfo = datetime.timezone.utc,
) -> dict[int, list[CalendarEvent]]:
    """Day view slots: events with a due instant keyed by local hour."""
    by_hour: dict[int, list[CalendarEvent]] = {}
    for event in events:
        if event.due_date is None:
            continue
        hour = ensure_utc(event.due_date).astimezone(tz).hour
        by_hour.setdefault(hour, []).append(event)
    return by_hour


def group_events_by_project(
    events: Iterable[CalendarEvent],
    personal_label: str = PERSONAL_LANE,
) -> dict[str, list[CalendarEvent]]:
    """Timeline lanes keyed by project name."""
    lanes: dict[str, list[CalendarEvent]] = {}
    for event in events:
        lanes.setdefault(event.project_name or personal_label, []).append(event)
    return lanes


def navigate(view: CalendarView, anchor: datetime.date, direction: int) -> datetime.date:
    """Move the anchor by one view unit per step (negative steps go back)."""
    view = CalendarView(view)
    if view == CalendarView.DAY:
        return anchor + relativedelta(days=direction)
    if view == CalendarView.WEEK:
        return anchor + relativedelta(weeks=direction)
    return anchor + relativedelta(months=direction)


def is_date_in_view(day: datetime.date, anchor: datetime.date, view: CalendarView) -> bool:
    """True if day is within the boundaries of the view around anchor."""
    window = view_window(view, anchor)
    return window.start <= day <= window.end


def format_display_date(day: datetime.date, view: Optional[CalendarView] = None) -> str:
    """Header label for the view, e.g. "Oct 19 - Oct 25, 2025" for a week."""
    if view is None:
        return f"{day:%B} {day.day}, {day.year}"

    view = CalendarView(view)
    if view == CalendarView.DAY:
        return f"{day:%A, %B} {day.day}, {day.year}"
    if view == CalendarView.WEEK:
        days = week_days(day)
        first, last = days[0], days[-1]
        return f"{first:%b} {first.day} - {last:%b} {last.day}, {last.year}"
    return f"{day:%B %Y}"
