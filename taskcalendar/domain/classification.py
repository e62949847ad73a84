"""Deterministic display tokens for calendar events."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from ..core.timezone_utils import ensure_utc, now_utc
from .models import TaskStatus, TaskType

OVERDUE_COLOR = "bg-red-600 opacity-100"

TASK_TYPE_COLORS: dict[TaskType, str] = {
    TaskType.BUG: "bg-red-500",
    TaskType.FEATURE: "bg-blue-500",
    TaskType.CHORE: "bg-yellow-500",
    TaskType.RESEARCH: "bg-purple-500",
}

STATUS_OPACITY: dict[TaskStatus, str] = {
    TaskStatus.TODO: "opacity-70",
    TaskStatus.IN_PROGRESS: "opacity-90",
    TaskStatus.COMPLETED: "opacity-50",
    TaskStatus.BLOCKED: "opacity-40",
}

OWN_TASK_BORDER = "border-l-4 border-emerald-500"
OTHER_TASK_BORDER = "border-l-4 border-dashed border-slate-400"


def is_task_overdue(
    due_date: Optional[datetime],
    status: TaskStatus,
    now: Optional[datetime] = None,
) -> bool:
    """A task is overdue if its due instant has passed and it is not completed."""
    if due_date is None:
        return False
    if status == TaskStatus.COMPLETED:
        return False
    reference = ensure_utc(now) if now is not None else now_utc()
    return ensure_utc(due_date) < reference


def color_token(task_type: TaskType, status: TaskStatus, is_overdue: bool = False) -> str:
    """Color class for an event; overdue overrides type and status."""
    if is_overdue:
        return OVERDUE_COLOR
    return f"{TASK_TYPE_COLORS[TaskType(task_type)]} {STATUS_OPACITY[TaskStatus(status)]}"


def ownership_token(is_own_task: bool) -> str:
    """Border class distinguishing the viewer's own tasks from colleagues' tasks."""
    return OWN_TASK_BORDER if is_own_task else OTHER_TASK_BORDER


def search_highlight_token(is_highlighted: bool, has_search_term: bool) -> str:
    """Ring class for search matches; non-matches are dimmed while a search is active."""
    if not has_search_term:
        return ""
    if is_highlighted:
        return "ring-2 ring-yellow-400 ring-offset-1"
    return "opacity-30"
