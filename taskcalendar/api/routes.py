"""Calendar API routes for taskcalendar."""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from ..calendar_orchestrator import CalendarOrchestrator
from ..core.timezone_utils import serialize_iso
from ..domain.calendar_state import action_from_payload
from ..domain.event_bus import TaskEventBus, TaskNotification
from ..protocols import TimeProvider

logger = logging.getLogger(__name__)

_TRUTHY = ("1", "true", "yes", "on")


def _error(message: str, status: int = 400) -> web.Response:
    return web.json_response({"error": message}, status=status)


async def _read_json_object(request: web.Request) -> dict[str, Any]:
    """Decode the request body as a JSON object.

    Raises:
        ValueError: If the body is not valid JSON or not an object
    """
    try:
        data = await request.json()
    except ValueError as e:
        raise ValueError("invalid json") from e
    if not isinstance(data, dict):
        raise ValueError("request body must be a JSON object")
    return data


def register_calendar_routes(
    app: web.Application,
    orchestrator: CalendarOrchestrator,
    event_bus: TaskEventBus,
    time_provider: TimeProvider,
) -> None:
    """Register the calendar API routes.

    Args:
        app: aiohttp web application
        orchestrator: Calendar whose snapshot the routes serve
        event_bus: Bus that mutation notifications are published into
        time_provider: Clock for the health response
    """

    async def health_check(_request: web.Request) -> web.Response:
        snapshot = orchestrator.snapshot
        return web.json_response(
            {
                "status": "ok" if snapshot.error_message is None else "degraded",
                "serverTimeIso": serialize_iso(time_provider()),
                "mounted": orchestrator.is_mounted,
                "eventCount": len(snapshot.events),
                "projectCount": len(orchestrator.projects),
            }
        )

    async def get_calendar(request: web.Request) -> web.Response:
        if request.query.get("refresh", "").lower() in _TRUTHY:
            snapshot = await orchestrator.refresh()
        else:
            snapshot = orchestrator.snapshot
        return web.json_response(snapshot.to_dict())

    async def post_state(request: web.Request) -> web.Response:
        try:
            data = await _read_json_object(request)
            action = action_from_payload(data, current_day=orchestrator.today())
        except ValueError as e:
            logger.debug("Rejected calendar action: %s", e)
            return _error(str(e))

        logger.debug("Applying calendar action %r", action)
        snapshot = await orchestrator.dispatch(action)
        return web.json_response(snapshot.to_dict())

    async def post_notification(request: web.Request) -> web.Response:
        try:
            data = await _read_json_object(request)
            kind = data.get("kind")
            if not isinstance(kind, str):
                raise ValueError("missing or invalid kind")
            notification = TaskNotification.from_payload(kind, data)
        except ValueError as e:
            logger.debug("Rejected notification: %s", e)
            return _error(str(e))

        delivered = await event_bus.publish(notification)
        return web.json_response(
            {
                "kind": notification.kind.value,
                "isPersonalTask": notification.is_personal_task,
                "delivered": delivered,
            },
            status=202,
        )

    app.router.add_get("/api/health", health_check)
    app.router.add_get("/api/calendar", get_calendar)
    app.router.add_post("/api/calendar/state", post_state)
    app.router.add_post("/api/notifications", post_notification)
