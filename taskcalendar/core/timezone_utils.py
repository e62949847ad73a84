"""Timezone and clock helpers for taskcalendar.

All instants inside the engine are timezone-aware UTC datetimes. Calendar
days, however, belong to the viewer's display timezone, so every conversion
from an instant to a day (and from a day back to its boundary instants) goes
through the helpers below.
"""

from __future__ import annotations

import datetime
import logging
import os
import zoneinfo

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "UTC"

# Common aliases that zoneinfo does not resolve on every platform
TIMEZONE_ALIASES: dict[str, str] = {
    "US/Pacific": "America/Los_Angeles",
    "US/Mountain": "America/Denver",
    "US/Central": "America/Chicago",
    "US/Eastern": "America/New_York",
    "GMT": "UTC",
    "Z": "UTC",
}


def now_utc() -> datetime.datetime:
    """Return current UTC time with tzinfo.

    Can be overridden for testing via TASKCALENDAR_TEST_TIME environment variable.
    Format: ISO 8601 datetime string (e.g., "2025-10-27T08:20:00-07:00")
    """
    test_time = os.environ.get("TASKCALENDAR_TEST_TIME")
    if test_time:
        try:
            from dateutil import parser as date_parser

            dt = date_parser.isoparse(test_time)
            if dt.tzinfo is not None:
                return dt.astimezone(datetime.timezone.utc)
            # Assume naive datetime is already UTC
            return dt.replace(tzinfo=datetime.timezone.utc)
        except (ValueError, OverflowError) as e:
            logger.warning("Failed to parse TASKCALENDAR_TEST_TIME=%r: %s", test_time, e)

    return datetime.datetime.now(datetime.timezone.utc)


def resolve_timezone(tz_name: str | None, fallback: str = DEFAULT_TIMEZONE) -> zoneinfo.ZoneInfo:
    """Resolve an IANA name (or common alias) to a ZoneInfo.

    Unknown names log a warning and resolve to the fallback zone.
    """
    name = (tz_name or fallback).strip()
    name = TIMEZONE_ALIASES.get(name, name)
    try:
        return zoneinfo.ZoneInfo(name)
    except (zoneinfo.ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone %r, falling back to %r", tz_name, fallback)
        return zoneinfo.ZoneInfo(fallback)


def ensure_utc(dt: datetime.datetime) -> datetime.datetime:
    """Return dt as an aware UTC datetime; naive values are taken to be UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.timezone.utc)
    return dt.astimezone(datetime.timezone.utc)


def local_date(dt: datetime.datetime, tz: datetime.tzinfo) -> datetime.date:
    """Calendar day of an instant as seen from the display timezone."""
    return ensure_utc(dt).astimezone(tz).date()


def start_of_day(day: datetime.date, tz: datetime.tzinfo) -> datetime.datetime:
    """First instant of a calendar day in the display timezone."""
    return datetime.datetime.combine(day, datetime.time.min, tzinfo=tz)


def end_of_day(day: datetime.date, tz: datetime.tzinfo) -> datetime.datetime:
    """Last representable instant of a calendar day in the display timezone."""
    return datetime.datetime.combine(day, datetime.time.max, tzinfo=tz)


def serialize_iso(dt: datetime.datetime | None) -> str | None:
    """Serialize an instant as ISO-8601 UTC with a trailing Z."""
    if dt is None:
        return None
    return ensure_utc(dt).strftime("%Y-%m-%dT%H:%M:%SZ")
