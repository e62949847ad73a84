"""HTTP access to the external task store.

A shared ``httpx.AsyncClient`` per base URL is reused across fetches so the
per-project fan-out of one refresh shares its connections. ``HttpTaskStore``
wraps the three read endpoints the calendar needs and turns transport and
decoding failures into TaskStoreError subclasses.
"""

from __future__ import annotations

import asyncio
import datetime
import logging
import time
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ..domain.models import CalendarView, ProjectRecord, TaskRecord
from ..exceptions import ProjectFetchError, TaskFetchError

logger = logging.getLogger(__name__)

_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_health: dict[str, dict[str, float]] = {}
_client_lock = asyncio.Lock()

DEFAULT_LIMITS = httpx.Limits(max_connections=8, max_keepalive_connections=4)

DEFAULT_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=30.0)

# Recreate a client after this many consecutive errors within the window
HEALTH_ERROR_THRESHOLD = 3
HEALTH_TIMEOUT_SECONDS = 300

PROJECTS_PATH = "/api/projects"
PROJECT_TASKS_PATH = "/api/tasks/project/{project_id}/calendar"
PERSONAL_TASKS_PATH = "/api/tasks/personal/calendar"


async def get_shared_client(
    client_id: str = "default",
    limits: Optional[httpx.Limits] = None,
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Get or create the shared client registered under client_id.

    Raises:
        RuntimeError: If client creation fails
    """
    async with _client_lock:
        await _recreate_client_if_unhealthy(client_id)

        if client_id not in _shared_clients or _shared_clients[client_id].is_closed:
            effective_limits = limits or DEFAULT_LIMITS
            try:
                _shared_clients[client_id] = httpx.AsyncClient(
                    limits=effective_limits,
                    timeout=timeout or DEFAULT_TIMEOUT,
                    follow_redirects=True,
                    headers={"Accept": "application/json"},
                )
            except Exception as e:
                logger.exception("Failed to create shared HTTP client '%s'", client_id)
                raise RuntimeError(f"Failed to create shared HTTP client: {e}") from e

            _client_health[client_id] = {
                "error_count": 0,
                "last_error_time": 0,
                "created_time": time.time(),
            }
            logger.debug(
                "Created shared HTTP client '%s' (max_connections=%s)",
                client_id,
                effective_limits.max_connections,
            )

        return _shared_clients[client_id]


async def close_all_clients() -> None:
    """Close every shared client; call on application shutdown."""
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            try:
                if not client.is_closed:
                    await client.aclose()
                    logger.debug("Closed shared HTTP client '%s'", client_id)
            except Exception as e:  # noqa: PERF203
                logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)

        _shared_clients.clear()
        _client_health.clear()
        logger.info("All shared HTTP clients closed")


async def record_client_error(client_id: str = "default") -> None:
    async with _client_lock:
        health = _client_health.setdefault(
            client_id, {"error_count": 0, "last_error_time": 0, "created_time": time.time()}
        )
        health["error_count"] += 1
        health["last_error_time"] = time.time()
        logger.debug("Recorded error for client '%s', total errors: %d", client_id, health["error_count"])


async def record_client_success(client_id: str = "default") -> None:
    async with _client_lock:
        if client_id in _client_health:
            _client_health[client_id]["error_count"] = 0


async def _recreate_client_if_unhealthy(client_id: str) -> None:
    # Caller holds _client_lock
    health = _client_health.get(client_id)
    if health is None or client_id not in _shared_clients:
        return

    should_recreate = (
        health["error_count"] >= HEALTH_ERROR_THRESHOLD
        and (time.time() - health["last_error_time"]) < HEALTH_TIMEOUT_SECONDS
    )
    if not should_recreate:
        return

    logger.warning(
        "Recreating unhealthy client '%s' after %d consecutive errors",
        client_id,
        int(health["error_count"]),
    )
    old_client = _shared_clients.pop(client_id)
    try:
        if not old_client.is_closed:
            await old_client.aclose()
    except Exception as e:
        logger.warning("Error closing unhealthy client '%s': %s", client_id, e)
    del _client_health[client_id]


class HttpTaskStore:
    """Task store reached over its JSON HTTP API.

    Args:
        base_url: Root URL of the task store, e.g. "http://localhost:8080"
        api_token: Bearer token sent with every request (optional)
        timeout_seconds: Read timeout per request
        client: Pre-built client (tests inject one with a mock transport)
    """

    def __init__(
        self,
        base_url: str,
        api_token: Optional[str] = None,
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = httpx.Timeout(connect=10.0, read=timeout_seconds, write=10.0, pool=30.0)
        self._client = client
        self._client_id = f"taskstore:{self.base_url}"

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is not None:
            return self._client
        return await get_shared_client(self._client_id, timeout=self.timeout)

    def _headers(self) -> dict[str, str]:
        if not self.api_token:
            return {}
        return {"Authorization": f"Bearer {self.api_token}"}

    async def _get_json(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        client = await self._get_client()
        url = f"{self.base_url}{path}"
        logger.debug("GET %s params=%s", url, params)
        try:
            response = await client.get(url, params=params, headers=self._headers())
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError):
            await record_client_error(self._client_id)
            raise
        await record_client_success(self._client_id)
        return payload

    @staticmethod
    def _calendar_params(view: CalendarView, reference_date: datetime.date) -> dict[str, str]:
        return {
            "calendarView": CalendarView(view).value.upper(),
            "referenceDate": reference_date.isoformat(),
        }

    async def get_user_projects(self, viewer_id: Optional[int]) -> list[ProjectRecord]:
        """Projects visible to the viewer.

        Raises:
            ProjectFetchError: On transport, status or decoding failure
        """
        try:
            payload = await self._get_json(PROJECTS_PATH)
            return [ProjectRecord.model_validate(item) for item in _as_list(payload)]
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.warning("Fetching projects for viewer %s failed: %s", viewer_id, e)
            raise ProjectFetchError(f"Failed to fetch projects: {e}") from e

    async def get_project_tasks(
        self, project_id: int, view: CalendarView, reference_date: datetime.date
    ) -> list[TaskRecord]:
        """Tasks of one project around the reference date.

        Raises:
            TaskFetchError: On transport, status or decoding failure
        """
        path = PROJECT_TASKS_PATH.format(project_id=project_id)
        try:
            payload = await self._get_json(path, self._calendar_params(view, reference_date))
            return [TaskRecord.model_validate(item) for item in _as_list(payload)]
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            raise TaskFetchError(f"Failed to fetch tasks of project {project_id}: {e}", project_id) from e

    async def get_personal_tasks(
        self, viewer_id: Optional[int], view: CalendarView, reference_date: datetime.date
    ) -> list[TaskRecord]:
        """Personal (project-less) tasks of the viewer.

        Raises:
            TaskFetchError: On transport, status or decoding failure
        """
        try:
            payload = await self._get_json(
                PERSONAL_TASKS_PATH, self._calendar_params(view, reference_date)
            )
            return [TaskRecord.model_validate(item) for item in _as_list(payload)]
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            raise TaskFetchError(f"Failed to fetch personal tasks of viewer {viewer_id}: {e}") from e


def _as_list(payload: Any) -> list[Any]:
    # Some endpoints wrap collections as {"content": [...]} (paged responses)
    if isinstance(payload, dict) and isinstance(payload.get("content"), list):
        return payload["content"]
    if not isinstance(payload, list):
        raise ValueError(f"Expected a JSON array, got {type(payload).__name__}")
    return payload
