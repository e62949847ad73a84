"""Typed publish/subscribe channel for task mutation notifications.

Components that create, update or delete tasks publish a TaskNotification;
views subscribe per notification kind and decide whether to re-fetch.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from .models import TaskRecord

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    """Names of the mutation notifications."""

    TASK_CREATED = "taskCreated"
    TASK_UPDATED = "taskUpdated"
    TASK_DELETED = "taskDeleted"


@dataclass(frozen=True)
class TaskNotification:
    """Payload schema shared by every mutation notification."""

    kind: NotificationKind
    is_personal_task: bool
    task: Optional[TaskRecord] = None
    task_id: Optional[int] = None

    @classmethod
    def for_task(cls, kind: NotificationKind, task: TaskRecord) -> TaskNotification:
        """Build a notification whose personal flag is derived from the task."""
        return cls(kind=NotificationKind(kind), is_personal_task=task.is_personal, task=task, task_id=task.id)

    @classmethod
    def from_payload(cls, kind: Union[str, NotificationKind], payload: dict[str, Any]) -> TaskNotification:
        """Build a notification from a JSON payload ``{"task": {...}, "isPersonalTask": bool}``.

        A partial task body (e.g. only an id for deletions) is accepted; the
        personal flag then must be supplied explicitly or defaults to False.

        Raises:
            ValueError: If the kind is not a known notification name or the
                personal flag is not a boolean
        """
        notification_kind = NotificationKind(kind)
        task_data = payload.get("task")
        task: Optional[TaskRecord] = None
        task_id: Optional[int] = None

        if isinstance(task_data, dict):
            task_id = task_data.get("id")
            try:
                task = TaskRecord.model_validate(task_data)
            except ValidationError:
                logger.debug("Notification %s carries a partial task body", notification_kind.value)

        flag = payload.get("isPersonalTask", payload.get("is_personal_task"))
        if flag is None:
            flag = task.is_personal if task is not None else False
        elif not isinstance(flag, bool):
            raise ValueError(f"isPersonalTask must be a boolean, got {flag!r}")

        return cls(kind=notification_kind, is_personal_task=flag, task=task, task_id=task_id)


NotificationHandler = Callable[[TaskNotification], Union[None, Awaitable[None]]]


class TaskEventBus:
    """In-process observer registry keyed by notification kind.

    Handlers may be plain callables or coroutine functions. A failing handler
    is logged and does not prevent delivery to the remaining subscribers.
    """

    def __init__(self) -> None:
        self._subscribers: dict[NotificationKind, list[NotificationHandler]] = {
            kind: [] for kind in NotificationKind
        }

    def subscribe(
        self,
        kinds: Union[NotificationKind, Iterable[NotificationKind]],
        handler: NotificationHandler,
    ) -> Callable[[], None]:
        """Register handler for one or more kinds.

        Returns:
            Callable that removes exactly these registrations
        """
        if isinstance(kinds, (NotificationKind, str)):
            kinds = [NotificationKind(kinds)]
        registered = [NotificationKind(k) for k in kinds]
        for kind in registered:
            self._subscribers[kind].append(handler)

        def unsubscribe() -> None:
            for kind in registered:
                try:
                    self._subscribers[kind].remove(handler)
                except ValueError:
                    logger.debug("Handler already unsubscribed from %s", kind.value)

        return unsubscribe

    def subscriber_count(self, kind: NotificationKind) -> int:
        """Number of handlers registered for a kind."""
        return len(self._subscribers[NotificationKind(kind)])

    async def publish(self, notification: TaskNotification) -> int:
        """Deliver a notification to every subscriber of its kind.

        Returns:
            Number of handlers that completed without raising
        """
        handlers = list(self._subscribers[notification.kind])
        logger.debug(
            "Publishing %s (personal=%s) to %d handlers",
            notification.kind.value,
            notification.is_personal_task,
            len(handlers),
        )

        delivered = 0
        for handler in handlers:
            try:
                result = handler(notification)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception("Notification handler %r failed for %s", handler, notification.kind.value)
        return delivered
