"""aiohttp server wiring for taskcalendar.

One orchestrator serves the configured viewer. The app mounts it on startup
and closes the shared HTTP clients on cleanup.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from typing import Optional

from aiohttp import web

from ..calendar_orchestrator import CalendarOrchestrator
from ..config_loader import Config
from ..core.http_client import HttpTaskStore, close_all_clients
from ..core.timezone_utils import local_date, now_utc, resolve_timezone
from ..domain.calendar_state import CalendarState
from ..domain.event_bus import TaskEventBus
from ..protocols import TaskStore
from .routes import register_calendar_routes

logger = logging.getLogger(__name__)

MAX_PORT_ATTEMPTS = 10


def build_orchestrator(
    config: Config,
    event_bus: TaskEventBus,
    task_store: Optional[TaskStore] = None,
) -> CalendarOrchestrator:
    """Create the orchestrator described by config (HTTP task store by default)."""
    store = task_store or HttpTaskStore(
        config.api_base_url,
        api_token=config.api_token,
        timeout_seconds=config.request_timeout_seconds,
    )
    initial_state = CalendarState(
        current_date=local_date(now_utc(), resolve_timezone(config.display_timezone)),
        view=config.default_view,
        mode=config.default_mode,
    )
    return CalendarOrchestrator(
        store,
        viewer_id=config.viewer_id,
        event_bus=event_bus,
        display_timezone=config.display_timezone,
        fetch_concurrency=config.fetch_concurrency,
        initial_state=initial_state,
    )


def create_app(
    config: Config,
    orchestrator: Optional[CalendarOrchestrator] = None,
    event_bus: Optional[TaskEventBus] = None,
    mount_on_startup: bool = True,
) -> web.Application:
    """Create the aiohttp application.

    Args:
        config: Application configuration
        orchestrator: Pre-built orchestrator (tests inject one over a fake store)
        event_bus: Bus shared with the orchestrator
        mount_on_startup: Mount (and fetch) when the app starts
    """
    bus = event_bus or (orchestrator.event_bus if orchestrator is not None else None) or TaskEventBus()
    calendar = orchestrator or build_orchestrator(config, bus)

    app = web.Application()
    register_calendar_routes(app, calendar, bus, calendar.time_provider)

    async def _on_startup(_app: web.Application) -> None:
        if mount_on_startup:
            snapshot = await calendar.mount()
            logger.info(
                "Calendar mounted: %d events in %s view", len(snapshot.events), calendar.state.view.value
            )

    async def _on_cleanup(_app: web.Application) -> None:
        calendar.unmount()
        await close_all_clients()
        logger.info("Application shutdown complete")

    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    logger.debug("Web application created")
    return app


async def _serve(config: Config, stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the server until signalled to stop."""
    app = create_app(config)
    runner = web.AppRunner(app)
    await runner.setup()

    host = config.server_bind
    configured_port = config.server_port

    # Try configured port first, then increment if in use
    actual_port = configured_port
    for port_offset in range(MAX_PORT_ATTEMPTS):
        actual_port = configured_port + port_offset
        site = web.TCPSite(runner, host=host, port=actual_port)
        try:
            await site.start()
            break
        except OSError as e:
            if "address already in use" not in str(e).lower():
                logger.exception("Failed to start server on %s:%d", host, actual_port)
                await runner.cleanup()
                raise
            logger.debug("Port %d in use, trying next port", actual_port)
    else:
        await runner.cleanup()
        raise RuntimeError(
            f"No available port found in range {configured_port}-{configured_port + MAX_PORT_ATTEMPTS - 1}"
        )

    if actual_port != configured_port:
        logger.warning("Configured port %d was in use, using port %d instead", configured_port, actual_port)
    logger.info("Server started on %s:%d", host, actual_port)

    if stop_event is None:
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()  # type: ignore[union-attr]

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")
    await runner.cleanup()


def run(config: Config) -> None:
    """Block running the server until SIGINT/SIGTERM."""
    logger.debug("Starting taskcalendar with config %s", config.to_dict())
    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
