"""Calendar orchestration: state, two-phase fetching and snapshot publication.

Phase 1 loads the viewer's project list once per mount. Phase 2 loads the
tasks selected by the state's fetch key (personal bucket, every project, or a
single filtered project). Everything after fetching is the pure pipeline in
``domain.pipeline``.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
from typing import Any, Callable, Optional

from .core.timezone_utils import local_date, now_utc, resolve_timezone
from .domain.calendar_state import (
    CalendarAction,
    CalendarState,
    FetchKey,
    GoToToday,
    reduce_state,
    should_refetch,
)
from .domain.event_bus import NotificationKind, TaskEventBus, TaskNotification
from .domain.models import CalendarEvent, ProjectRecord, TaskRecord, TaskTypeMode
from .domain.pipeline import CalendarSnapshot, derive_snapshot, empty_snapshot
from .exceptions import ProjectFetchError, TaskStoreError
from .protocols import DateClickHandler, EventClickHandler, TaskStore, TimeProvider

logger = logging.getLogger(__name__)

PROJECTS_ERROR_MESSAGE = "There was an error loading the projects. Please try again."
TASKS_ERROR_MESSAGE = "There was an error loading the tasks. Please try again."

DEFAULT_FETCH_CONCURRENCY = 4


class CalendarOrchestrator:
    """Owns one calendar's state and keeps its snapshot in sync with the task store.

    Args:
        task_store: Source of projects and tasks
        viewer_id: Identity used for ownership and access; None disables both
        event_bus: Mutation notifications to react to (optional)
        display_timezone: IANA zone whose calendar days the views use
        fetch_concurrency: Maximum concurrent per-project fetches
        initial_state: Starting state (defaults to month view of today)
        on_event_click: Called by ``activate_event``
        on_date_click: Called by ``activate_date``
        on_snapshot: Called with every published snapshot
        time_provider: Clock used for "today" and the overdue rule
    """

    def __init__(
        self,
        task_store: TaskStore,
        viewer_id: Optional[int] = None,
        event_bus: Optional[TaskEventBus] = None,
        display_timezone: str = "UTC",
        fetch_concurrency: int = DEFAULT_FETCH_CONCURRENCY,
        initial_state: Optional[CalendarState] = None,
        on_event_click: Optional[EventClickHandler] = None,
        on_date_click: Optional[DateClickHandler] = None,
        on_snapshot: Optional[Callable[[CalendarSnapshot], Any]] = None,
        time_provider: TimeProvider = now_utc,
    ):
        self.task_store = task_store
        self.viewer_id = viewer_id
        self.event_bus = event_bus
        self.tz = resolve_timezone(display_timezone)
        self.fetch_concurrency = max(1, fetch_concurrency)
        self.on_event_click = on_event_click
        self.on_date_click = on_date_click
        self.on_snapshot = on_snapshot
        self.time_provider = time_provider

        self._state = initial_state or CalendarState(current_date=self.today())
        self._projects: Optional[list[ProjectRecord]] = None
        self._tasks: list[TaskRecord] = []
        # Fetch key the cached tasks were loaded for
        self._tasks_key: Optional[FetchKey] = None
        self._error_message: Optional[str] = None
        self._fetch_seq = 0
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._snapshot = empty_snapshot(self._state, is_loading=True)

    @property
    def state(self) -> CalendarState:
        return self._state

    @property
    def snapshot(self) -> CalendarSnapshot:
        return self._snapshot

    @property
    def projects(self) -> list[ProjectRecord]:
        return list(self._projects or [])

    @property
    def is_mounted(self) -> bool:
        return self._unsubscribe is not None

    def today(self) -> datetime.date:
        """Current day in the display timezone."""
        return local_date(self.time_provider(), self.tz)

    # Lifecycle

    async def mount(self) -> CalendarSnapshot:
        """Subscribe to notifications, load projects and fetch the first view."""
        if self.event_bus is not None and self._unsubscribe is None:
            self._unsubscribe = self.event_bus.subscribe(
                list(NotificationKind), self._on_notification
            )
        elif self._unsubscribe is None:
            self._unsubscribe = lambda: None

        self._projects = None
        logger.debug("Mounting calendar for viewer %s in %s mode", self.viewer_id, self._state.mode.value)
        return await self.refresh()

    def unmount(self) -> None:
        """Stop reacting to notifications; in-flight results are discarded."""
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        # Any fetch still running now compares against a newer sequence number
        self._fetch_seq += 1

    # Fetching

    async def load_projects(self) -> list[ProjectRecord]:
        """Phase 1: fetch the project list once and reuse it.

        Raises:
            ProjectFetchError: If the task store cannot list projects
        """
        if self._projects is None:
            self._projects = list(await self.task_store.get_user_projects(self.viewer_id))
            logger.debug("Loaded %d projects for viewer %s", len(self._projects), self.viewer_id)
        return self._projects

    async def refresh(self) -> CalendarSnapshot:
        """Fetch tasks for the current fetch key and publish a new snapshot.

        Results are dropped when a newer refresh started meanwhile or the
        fetch key changed, so only the latest request is ever displayed.
        """
        self._fetch_seq += 1
        seq = self._fetch_seq
        state = self._state
        key = state.fetch_key

        self._publish(empty_snapshot(state, is_loading=True))

        tasks: list[TaskRecord] = []
        error_message: Optional[str] = None
        try:
            projects = await self.load_projects()
            tasks = await self._fetch_tasks(state, projects)
        except ProjectFetchError as e:
            logger.error("Error loading projects: %s", e)
            error_message = PROJECTS_ERROR_MESSAGE
        except TaskStoreError as e:
            logger.error("Error loading tasks: %s", e)
            error_message = TASKS_ERROR_MESSAGE
        except Exception:
            logger.exception("Unexpected error loading tasks for %s", key)
            error_message = TASKS_ERROR_MESSAGE

        if seq != self._fetch_seq or key != self._state.fetch_key:
            logger.debug("Discarding stale fetch #%d for %s", seq, key)
            return self._snapshot

        self._tasks = tasks
        self._tasks_key = key
        self._error_message = error_message
        return self._rederive()

    async def _fetch_tasks(
        self, state: CalendarState, projects: list[ProjectRecord]
    ) -> list[TaskRecord]:
        """Phase 2: fetch the tasks selected by the state's mode and project filter.

        Raises:
            TaskStoreError: When the personal bucket (PERSONAL mode) or the
                single filtered project cannot be fetched
        """
        if state.mode == TaskTypeMode.PERSONAL:
            return list(
                await self.task_store.get_personal_tasks(self.viewer_id, state.view, state.current_date)
            )

        if state.mode == TaskTypeMode.ALL_PROJECT_TASKS and state.project_filter is not None:
            return list(
                await self.task_store.get_project_tasks(
                    state.project_filter, state.view, state.current_date
                )
            )

        project_ids = [p.id for p in projects if p.id]
        if not project_ids:
            logger.debug("No projects for viewer %s; calendar is empty", self.viewer_id)
            return []

        semaphore = asyncio.Semaphore(self.fetch_concurrency)

        async def fetch_one(project_id: int) -> list[TaskRecord]:
            async with semaphore:
                return list(
                    await self.task_store.get_project_tasks(project_id, state.view, state.current_date)
                )

        results = await asyncio.gather(
            *(fetch_one(pid) for pid in project_ids), return_exceptions=True
        )

        tasks: list[TaskRecord] = []
        for project_id, result in zip(project_ids, results):
            if isinstance(result, TaskStoreError):
                logger.warning("Error fetching tasks for project %s: %s", project_id, result)
                continue
            if isinstance(result, BaseException):
                logger.error(
                    "Unexpected error fetching tasks for project %s",
                    project_id,
                    exc_info=result,
                )
                continue
            tasks.extend(result)

        logger.debug("Fetched %d tasks from %d projects", len(tasks), len(project_ids))
        return tasks

    # State changes

    async def dispatch(self, action: CalendarAction) -> CalendarSnapshot:
        """Apply an action; re-fetch when the fetch key changed, otherwise re-derive."""
        previous = self._state
        self._state = reduce_state(previous, action)
        if self._state is previous:
            return self._snapshot

        if self._state.fetch_key != previous.fetch_key:
            return await self.refresh()
        return self._rederive()

    async def go_to_today(self) -> CalendarSnapshot:
        return await self.dispatch(GoToToday(self.today()))

    def _rederive(self) -> CalendarSnapshot:
        if self._tasks_key != self._state.fetch_key:
            # Cached tasks belong to another fetch; the running refresh publishes
            snapshot = empty_snapshot(self._state, is_loading=True)
            self._publish(snapshot)
            return snapshot

        snapshot = derive_snapshot(
            self._state,
            self._tasks,
            self._projects or [],
            self.viewer_id,
            self.tz,
            now=self.time_provider(),
            error_message=self._error_message,
        )
        self._publish(snapshot)
        return snapshot

    def _publish(self, snapshot: CalendarSnapshot) -> None:
        self._snapshot = snapshot
        if self.on_snapshot is not None:
            self.on_snapshot(snapshot)

    # Notifications and activation

    async def _on_notification(self, notification: TaskNotification) -> None:
        if not should_refetch(self._state.mode, notification):
            logger.debug(
                "Ignoring %s (personal=%s) in %s mode",
                notification.kind.value,
                notification.is_personal_task,
                self._state.mode.value,
            )
            return
        logger.debug("Refetching after %s", notification.kind.value)
        await self.refresh()

    def activate_event(self, event: CalendarEvent) -> None:
        """Forward an event activation (click) to the registered handler."""
        if self.on_event_click is not None:
            self.on_event_click(event)

    def activate_date(self, day: datetime.date) -> None:
        """Forward a day-cell activation (click) to the registered handler."""
        if self.on_date_click is not None:
            self.on_date_click(day)
