"""Data models for the calendar event engine.

Task and project records arrive from the external task store as camelCase
JSON; the models accept either the wire alias or the Python field name.
CalendarEvent is the derived, display-only projection of a task.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic.alias_generators import to_camel


class TaskType(str, Enum):
    """Closed set of task types."""

    BUG = "BUG"
    FEATURE = "FEATURE"
    CHORE = "CHORE"
    RESEARCH = "RESEARCH"


class TaskStatus(str, Enum):
    """Closed set of task statuses."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    BLOCKED = "BLOCKED"


class CalendarView(str, Enum):
    """View granularity; values match the task store's calendarView parameter."""

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    TIMELINE = "timeline"


class TaskTypeMode(str, Enum):
    """Top-level selector between personal, own-project and all-project tasks."""

    OWN_PROJECTS = "OWN_PROJECTS"
    PERSONAL = "PERSONAL"
    ALL_PROJECT_TASKS = "ALL_PROJECT_TASKS"


class RecurrenceFrequency(str, Enum):
    """Frequencies the recurrence editor can produce."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _WireModel(BaseModel):
    """Base for records exchanged with the task store in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class TaskRecord(_WireModel):
    """Task as returned by the task store (read-only input)."""

    id: int
    project_id: Optional[int] = Field(default=None, description="None or 0 for personal tasks")
    owner_id: int
    created_by: Optional[int] = None
    assigned_user_ids: list[int] = Field(default_factory=list)
    task_type: TaskType
    status: TaskStatus
    title: str
    description: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    due_date_time: Optional[datetime] = None

    # Recurrence window
    is_recurring: bool = False
    recurrence_rule_str: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("assigned_user_ids", "tags", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return [] if value is None else value

    @field_validator("due_date_time", "start_date", "end_date", "created_at", "updated_at")
    @classmethod
    def _normalize_instant(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)

    @property
    def is_personal(self) -> bool:
        """A task without a (non-zero) project id belongs to the personal bucket."""
        return not self.project_id


class ProjectRecord(_WireModel):
    """Project as returned by the task store; only the name is displayed."""

    id: int
    name: str
    description: Optional[str] = None
    owner_id: Optional[int] = None
    task_count: int = 0
    completed_task_count: int = 0


class CalendarEvent(BaseModel):
    """Display-only projection of a task onto the calendar."""

    model_config = ConfigDict(frozen=True)

    id: int
    title: str
    description: Optional[str] = None

    # Time information
    start_date: datetime = Field(..., description="Nominal start (task creation instant)")
    display_date: datetime = Field(..., description="Instant used for day placement")
    due_date: Optional[datetime] = None

    task_type: TaskType
    status: TaskStatus
    project_id: Optional[int] = None
    project_name: Optional[str] = None
    tags: tuple[str, ...] = ()
    assigned_user_ids: tuple[int, ...] = ()
    owner_id: Optional[int] = None
    created_by: Optional[int] = None
    is_recurring: bool = False

    # Classification
    color: str
    border_color: str
    is_overdue: bool = False
    is_own_task: bool = True

    # Search annotations
    is_highlighted: Optional[bool] = None
    matched_fields: tuple[str, ...] = ()

    @field_serializer("start_date", "display_date", "due_date", when_used="unless-none")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()


class RecurrenceParams(BaseModel):
    """Structured recurrence settings as edited in the UI.

    Weekdays use the UI ordinals 0=Sunday..6=Saturday. Bounds are normalized
    to whole-second UTC instants so they survive the wire format unchanged.
    """

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    frequency: RecurrenceFrequency = RecurrenceFrequency.WEEKLY
    interval: int = Field(default=1, ge=1)
    weekdays: tuple[int, ...] = ()
    start: Optional[datetime] = None
    until: Optional[datetime] = None

    @field_validator("weekdays", mode="before")
    @classmethod
    def _normalize_weekdays(cls, value: object) -> object:
        if value is None:
            return ()
        days = sorted({int(d) for d in value})  # type: ignore[union-attr]
        for day in days:
            if not 0 <= day <= 6:
                raise ValueError(f"weekday ordinal out of range: {day}")
        return tuple(days)

    @field_validator("start", "until", mode="before")
    @classmethod
    def _date_to_midnight(cls, value: object) -> object:
        if isinstance(value, date) and not isinstance(value, datetime):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        return value

    @field_validator("start", "until")
    @classmethod
    def _normalize_bound(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        return _as_utc(value).replace(microsecond=0)  # type: ignore[union-attr]
