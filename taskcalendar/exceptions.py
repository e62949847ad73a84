"""Custom exception hierarchy for taskcalendar.

Specific exception types let callers tell apart a malformed recurrence rule,
an unreachable task store and a bad configuration without catching bare
Exception everywhere.
"""


class TaskCalendarError(Exception):
    """Base exception for all taskcalendar errors."""


class RecurrenceRuleError(TaskCalendarError):
    """Recurrence rule string could not be parsed.

    Raised when:
    - The rule string is empty
    - The rule has no FREQ component
    - INTERVAL or UNTIL values are not parseable

    An unrecognized frequency is NOT an error; it is recovered with a default.
    """


class TaskStoreError(TaskCalendarError):
    """The external task store failed to answer a request."""


class ProjectFetchError(TaskStoreError):
    """Fetching the viewer's project list failed.

    Fatal to the current render: no project tasks can be shown.
    """


class TaskFetchError(TaskStoreError):
    """Fetching tasks for a project or the personal bucket failed.

    Attributes:
        project_id: Project whose tasks were requested, None for the personal bucket
    """

    def __init__(self, message: str, project_id: int | None = None):
        super().__init__(message)
        self.project_id = project_id


class ConfigError(TaskCalendarError):
    """Configuration file could not be loaded or is not a mapping."""
