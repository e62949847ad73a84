"""Keyword search and highlight annotation of calendar events."""

from __future__ import annotations

import re
from collections.abc import Iterable

from .models import CalendarEvent

# Wire names of the searchable fields, in reporting order
SEARCH_FIELDS = ("title", "description", "projectName", "taskType", "status", "tags")


def _normalize(keyword: str | None) -> str:
    return (keyword or "").strip().lower()


def matched_fields(event: CalendarEvent, keyword: str) -> list[str]:
    """Fields of the event containing the keyword (case-insensitive), one entry per field."""
    term = _normalize(keyword)
    if not term:
        return []

    candidates = {
        "title": event.title,
        "description": event.description,
        "projectName": event.project_name,
        "taskType": event.task_type.value,
        "status": event.status.value,
    }
    fields = [name for name, text in candidates.items() if text and term in text.lower()]
    if any(term in tag.lower() for tag in event.tags):
        fields.append("tags")
    return fields


def matches_search_term(event: CalendarEvent, keyword: str | None) -> bool:
    """A blank keyword matches everything."""
    if not _normalize(keyword):
        return True
    return bool(matched_fields(event, keyword or ""))


def search_and_highlight(events: Iterable[CalendarEvent], keyword: str | None) -> list[CalendarEvent]:
    """Annotate every event with its match flag and matched fields.

    Nothing is filtered out here; a blank keyword clears the annotations.
    """
    if not _normalize(keyword):
        return [e.model_copy(update={"is_highlighted": False, "matched_fields": ()}) for e in events]

    annotated = []
    for event in events:
        fields = matched_fields(event, keyword or "")
        annotated.append(
            event.model_copy(update={"is_highlighted": bool(fields), "matched_fields": tuple(fields)})
        )
    return annotated


def highlight_segments(text: str | None, keyword: str | None) -> list[tuple[str, bool]]:
    """Split text into (segment, is_match) pairs for rendering highlights."""
    if not text:
        return []
    term = (keyword or "").strip()
    if not term:
        return [(text, False)]

    pattern = re.compile(f"({re.escape(term)})", re.IGNORECASE)
    return [(part, bool(pattern.fullmatch(part))) for part in pattern.split(text) if part]
