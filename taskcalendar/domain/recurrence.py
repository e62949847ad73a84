"""Recurrence rule generation and parsing for repeating tasks.

The task store exchanges rules as an RFC 5545 RRULE body *without* the
``RRULE:`` rule-set prefix, e.g. ``FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE``. The
recurrence window start travels next to the rule (it is not encoded as
DTSTART), while the end bound is carried in UNTIL.

Weekday ordinals differ between the two sides: the UI counts 0=Sunday..6=Saturday,
dateutil (like the wire grammar) counts 0=Monday..6=Sunday.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from itertools import islice
from typing import Any, Optional

from dateutil import parser as date_parser
from dateutil import rrule as dateutil_rrule

from ..core.timezone_utils import ensure_utc
from ..exceptions import RecurrenceRuleError
from .models import RecurrenceFrequency, RecurrenceParams

logger = logging.getLogger(__name__)

RRULE_PREFIX = "RRULE:"
DEFAULT_FREQUENCY = RecurrenceFrequency.WEEKLY

_FREQ_TO_DATEUTIL: dict[RecurrenceFrequency, int] = {
    RecurrenceFrequency.DAILY: dateutil_rrule.DAILY,
    RecurrenceFrequency.WEEKLY: dateutil_rrule.WEEKLY,
    RecurrenceFrequency.MONTHLY: dateutil_rrule.MONTHLY,
}

# Indexed by dateutil weekday number (MO=0 .. SU=6)
_DATEUTIL_WEEKDAYS = (
    dateutil_rrule.MO,
    dateutil_rrule.TU,
    dateutil_rrule.WE,
    dateutil_rrule.TH,
    dateutil_rrule.FR,
    dateutil_rrule.SA,
    dateutil_rrule.SU,
)
_WIRE_DAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")
_DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_BYDAY_TOKEN = re.compile(r"^([+-]?\d{1,2})?(MO|TU|WE|TH|FR|SA|SU)$")

_UNITS = {
    RecurrenceFrequency.DAILY: ("day", "days"),
    RecurrenceFrequency.WEEKLY: ("week", "weeks"),
    RecurrenceFrequency.MONTHLY: ("month", "months"),
}


def ui_to_rrule_weekday(ui_day: int) -> int:
    """Map a UI ordinal (0=Sunday) to the dateutil/wire ordinal (0=Monday)."""
    return (ui_day + 6) % 7


def rrule_to_ui_weekday(weekday: int) -> int:
    """Map a dateutil/wire ordinal (0=Monday) to the UI ordinal (0=Sunday)."""
    return (weekday + 1) % 7


def ensure_prefix(rule_str: str) -> str:
    """Return the rule with the ``RRULE:`` prefix, adding it if absent."""
    stripped = rule_str.strip()
    if stripped.upper().startswith(RRULE_PREFIX):
        return RRULE_PREFIX + stripped[len(RRULE_PREFIX):]
    return RRULE_PREFIX + stripped


def strip_prefix(rule_str: str) -> str:
    """Return the rule body without the ``RRULE:`` prefix (wire form)."""
    stripped = rule_str.strip()
    if stripped.upper().startswith(RRULE_PREFIX):
        return stripped[len(RRULE_PREFIX):]
    return stripped


def build_rrule(params: RecurrenceParams) -> Optional[dateutil_rrule.rrule]:
    """Build a dateutil rrule from recurrence parameters.

    Returns None when recurrence is disabled or either bound is missing.
    """
    if not params.enabled or params.start is None or params.until is None:
        return None

    byweekday = None
    if params.frequency == RecurrenceFrequency.WEEKLY and params.weekdays:
        byweekday = [_DATEUTIL_WEEKDAYS[ui_to_rrule_weekday(d)] for d in params.weekdays]

    return dateutil_rrule.rrule(
        _FREQ_TO_DATEUTIL[params.frequency],
        interval=params.interval,
        dtstart=params.start,
        until=params.until,
        byweekday=byweekday,
    )


def generate_rule(params: RecurrenceParams) -> Optional[str]:
    """Generate the wire recurrence string for the given parameters.

    Args:
        params: Recurrence settings; weekdays are only honored for WEEKLY

    Returns:
        Rule body without the ``RRULE:`` prefix, or None when recurrence is
        disabled or a bound is missing ("not yet generatable").
    """
    try:
        rule = build_rrule(params)
    except (ValueError, TypeError) as e:
        logger.warning("Cannot build recurrence rule from %r: %s", params, e)
        return None

    if rule is None:
        logger.debug(
            "Recurrence not generatable (enabled=%s, start=%s, until=%s)",
            params.enabled,
            params.start,
            params.until,
        )
        return None

    parts = [f"FREQ={params.frequency.value}", f"INTERVAL={params.interval}"]
    if params.frequency == RecurrenceFrequency.WEEKLY and params.weekdays:
        codes = [_WIRE_DAY_CODES[ui_to_rrule_weekday(d)] for d in params.weekdays]
        parts.append("BYDAY=" + ",".join(codes))
    until = ensure_utc(params.until)  # type: ignore[arg-type]
    parts.append(until.strftime("UNTIL=%Y%m%dT%H%M%SZ"))

    return ";".join(parts)


def _split_components(body: str) -> dict[str, str]:
    components: dict[str, str] = {}
    for part in body.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        components[key.strip().upper()] = value.strip()
    return components


def _parse_weekdays(value: str) -> tuple[int, ...]:
    days = []
    for token in value.split(","):
        token = token.strip().upper()
        if not token:
            continue
        match = _BYDAY_TOKEN.match(token)
        if match is None:
            raise RecurrenceRuleError(f"Invalid BYDAY value: {token!r}")
        days.append(rrule_to_ui_weekday(_WIRE_DAY_CODES.index(match.group(2))))
    return tuple(sorted(set(days)))


def _parse_until(value: str) -> datetime:
    try:
        return ensure_utc(date_parser.parse(value))
    except (ValueError, OverflowError) as e:
        raise RecurrenceRuleError(f"Invalid UNTIL value: {value!r}") from e


def parse_rule(rule_str: str, start: Optional[datetime] = None) -> RecurrenceParams:
    """Parse a recurrence string (with or without prefix) into parameters.

    Args:
        rule_str: Rule string, e.g. "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO"
        start: Recurrence-window start stored next to the rule

    Returns:
        RecurrenceParams; an unrecognized frequency is replaced by WEEKLY

    Raises:
        RecurrenceRuleError: If the rule is empty or structurally malformed
    """
    if not rule_str or not rule_str.strip():
        raise RecurrenceRuleError("Empty recurrence rule")

    # Full rule sets may carry a DTSTART line; only the RRULE line matters here
    lines = [line for line in rule_str.splitlines() if line.strip()]
    rule_line = next(
        (line for line in lines if line.strip().upper().startswith(RRULE_PREFIX)), lines[-1]
    )
    components = _split_components(strip_prefix(rule_line))

    freq_name = components.get("FREQ", "").upper()
    if not freq_name:
        raise RecurrenceRuleError(f"Recurrence rule missing FREQ: {rule_str!r}")
    try:
        frequency = RecurrenceFrequency(freq_name)
    except ValueError:
        logger.warning(
            "Unknown recurrence frequency %r; defaulting to %s",
            freq_name,
            DEFAULT_FREQUENCY.value,
        )
        frequency = DEFAULT_FREQUENCY

    interval = 1
    if "INTERVAL" in components:
        try:
            interval = int(components["INTERVAL"])
        except ValueError as e:
            raise RecurrenceRuleError(f"Invalid INTERVAL value: {components['INTERVAL']!r}") from e
        if interval < 1:
            logger.warning("Recurrence INTERVAL=%d below 1; using 1", interval)
            interval = 1

    weekdays: tuple[int, ...] = ()
    if frequency == RecurrenceFrequency.WEEKLY and components.get("BYDAY"):
        weekdays = _parse_weekdays(components["BYDAY"])

    until = _parse_until(components["UNTIL"]) if components.get("UNTIL") else None

    return RecurrenceParams(
        enabled=True,
        frequency=frequency,
        interval=interval,
        weekdays=weekdays,
        start=start,
        until=until,
    )


def preview_occurrences(params: RecurrenceParams, limit: int = 10) -> list[datetime]:
    """Return the first ``limit`` occurrence instants of the rule."""
    try:
        rule = build_rrule(params)
    except (ValueError, TypeError) as e:
        logger.warning("Cannot preview recurrence %r: %s", params, e)
        return []
    if rule is None:
        return []
    return list(islice(rule, max(0, limit)))


def describe_rule(rule_str: Optional[str]) -> str:
    """Human-readable text for a recurrence string.

    Examples:
        >>> describe_rule("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,FR")
        'Every 2 weeks on Monday, Friday'
    """
    if not rule_str:
        return ""
    try:
        params = parse_rule(rule_str)
    except RecurrenceRuleError as e:
        logger.error("Error parsing recurrence rule %r: %s", rule_str, e)
        return "Invalid recurrence rule"

    singular, plural = _UNITS[params.frequency]
    text = f"Every {singular}" if params.interval == 1 else f"Every {params.interval} {plural}"
    if params.weekdays:
        # Present Monday-first, as the wire grammar orders days
        ordered = sorted(ui_to_rrule_weekday(d) for d in params.weekdays)
        text += " on " + ", ".join(_DAY_NAMES[d] for d in ordered)
    if params.until is not None:
        text += f" until {params.until:%B} {params.until.day}, {params.until.year}"
    return text


def is_recurring_task(task: Any) -> bool:
    """True if the task has recurrence enabled and carries a rule string."""
    return getattr(task, "is_recurring", False) is True and getattr(
        task, "recurrence_rule_str", None
    ) is not None
