"""Viewer-based visibility filtering of calendar events."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Optional

from .models import CalendarEvent

logger = logging.getLogger(__name__)


def can_view_event(event: CalendarEvent, viewer_id: int) -> bool:
    """Viewer created the event or is assigned to it.

    Ownership alone does not grant visibility.
    """
    return event.created_by == viewer_id or viewer_id in event.assigned_user_ids


def filter_events_by_user_access(
    events: Iterable[CalendarEvent],
    viewer_id: Optional[int] = None,
) -> list[CalendarEvent]:
    """Restrict events to those visible to the viewer.

    Args:
        events: Events to filter
        viewer_id: Viewer identity; None means no viewer and returns every event.
            A viewer id of 0 is a real viewer, not an absent one.

    Returns:
        Events the viewer created or is assigned to
    """
    events = list(events)
    if viewer_id is None:
        return events

    visible = [e for e in events if can_view_event(e, viewer_id)]
    logger.debug(
        "Access filter kept %d of %d events for viewer %s", len(visible), len(events), viewer_id
    )
    return visible
