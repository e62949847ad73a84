"""Command-line entry for taskcalendar.

``serve`` runs the HTTP API; ``show`` fetches one calendar view from the task
store and prints it as a day-by-day agenda.
"""

from __future__ import annotations

import argparse
import asyncio
import datetime
import logging
import os
import sys
from pathlib import Path
from typing import Optional

from . import _init_logging, run_server
from .domain.pipeline import CalendarSnapshot
from .domain.view_filter import format_display_date
from .exceptions import ConfigError

logger = logging.getLogger(__name__)


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the taskcalendar CLI."""
    parser = argparse.ArgumentParser(
        prog="taskcalendar",
        description="taskcalendar - calendar views over a task/project store",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m taskcalendar serve --port 9000
  python -m taskcalendar show --view week --date 2025-10-22
  python -m taskcalendar show --mode ALL_PROJECT_TASKS --project 7 --search login
        """,
    )
    parser.add_argument("--config", metavar="PATH", help="YAML config file (default: ./taskcalendar.yaml)")

    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the calendar HTTP API")
    serve.add_argument(
        "--port",
        type=int,
        metavar="PORT",
        help="Port for the HTTP API (default: 8090, or TASKCALENDAR_SERVER_PORT)",
    )

    show = sub.add_parser("show", help="Print one calendar view as an agenda")
    show.add_argument("--view", choices=["day", "week", "month", "timeline"], help="Calendar view")
    show.add_argument("--date", metavar="YYYY-MM-DD", help="Anchor date (default: today)")
    show.add_argument(
        "--mode",
        choices=["OWN_PROJECTS", "PERSONAL", "ALL_PROJECT_TASKS"],
        help="Task-type mode",
    )
    show.add_argument("--project", type=int, metavar="ID", help="Project filter (ALL_PROJECT_TASKS only)")
    show.add_argument("--search", metavar="KEYWORD", default="", help="Only show matching tasks")
    show.add_argument("--include-empty", action="store_true", help="Print days without tasks")

    return parser


def format_agenda(snapshot: CalendarSnapshot, include_empty: bool = False) -> str:
    """Render a snapshot's buckets as plain text, one block per day."""
    state = snapshot.state
    lines = [f"{format_display_date(state.current_date, state.view)} ({state.view.value}, {state.mode.value})"]

    if snapshot.error_message:
        lines.append(f"Error: {snapshot.error_message}")
        return "\n".join(lines)

    if state.has_search:
        lines.append(f'{snapshot.match_count} tasks match "{state.search_keyword}"')

    for key, events in snapshot.buckets.items():
        if not events and not include_empty:
            continue
        lines.append("")
        lines.append(key)
        for event in events:
            marker = "!" if event.is_overdue else "*" if event.is_highlighted else "-"
            project = event.project_name or "Personal"
            lines.append(
                f"  {marker} [{event.task_type.value}/{event.status.value}] {event.title} ({project})"
            )

    if not snapshot.events:
        lines.append("")
        lines.append("No tasks in this view.")
    return "\n".join(lines)


async def _show(args: argparse.Namespace) -> int:
    from .calendar_orchestrator import CalendarOrchestrator
    from .config_loader import load_config
    from .core.http_client import HttpTaskStore, close_all_clients
    from .core.timezone_utils import local_date, now_utc, resolve_timezone
    from .domain.calendar_state import CalendarState
    from .domain.models import CalendarView, TaskTypeMode

    config = load_config(Path(args.config) if args.config else None)

    anchor = (
        datetime.date.fromisoformat(args.date)
        if args.date
        else local_date(now_utc(), resolve_timezone(config.display_timezone))
    )
    mode = TaskTypeMode(args.mode) if args.mode else config.default_mode
    state = CalendarState(
        current_date=anchor,
        view=CalendarView(args.view) if args.view else config.default_view,
        mode=mode,
        project_filter=args.project if mode == TaskTypeMode.ALL_PROJECT_TASKS else None,
        search_keyword=args.search or "",
    )
    if args.project is not None and state.project_filter is None:
        logger.warning("--project is only honored with --mode ALL_PROJECT_TASKS")

    store = HttpTaskStore(
        config.api_base_url,
        api_token=config.api_token,
        timeout_seconds=config.request_timeout_seconds,
    )
    orchestrator = CalendarOrchestrator(
        store,
        viewer_id=config.viewer_id,
        display_timezone=config.display_timezone,
        fetch_concurrency=config.fetch_concurrency,
        initial_state=state,
    )
    try:
        snapshot = await orchestrator.mount()
    finally:
        orchestrator.unmount()
        await close_all_clients()

    print(format_agenda(snapshot, include_empty=args.include_empty))
    return 1 if snapshot.error_message else 0


def main(argv: Optional[list[str]] = None) -> int:
    """Run the taskcalendar CLI and return the process exit code."""
    parser = _create_parser()
    args = parser.parse_args(argv)

    if args.command == "serve":
        run_server(args)
        return 0

    if args.command == "show":
        _init_logging(os.environ.get("TASKCALENDAR_LOG_LEVEL", "WARNING"))
        try:
            return asyncio.run(_show(args))
        except (ConfigError, ValueError) as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
