"""
Time-of-day trigger windows and calendar-day helpers.

Per-user jobs fire when the wall clock, in the user's zone, is inside a short
window that opens at the configured HH:MM. The window absorbs tick jitter; the
caller is responsible for remembering that a job already ran today.
"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from rssy.core.config import settings
from rssy.core.exceptions import TimeConfigError

logger = logging.getLogger(__name__)

_HHMM_RE = re.compile(r"^(\d{2}):(\d{2})$")


def parse_hhmm(value: str) -> Tuple[int, int]:
    """
    Parse a zero-padded "HH:MM" string.

    Raises:
        TimeConfigError: for anything but two-digit hour 00-23 and minute 00-59
    """
    if value is None:
        raise TimeConfigError("time is not set, should be HH:MM")

    match = _HHMM_RE.match(value.strip())
    if not match:
        raise TimeConfigError(f"invalid time format, should be HH:MM, got {value!r}")

    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23:
        raise TimeConfigError(f"invalid hour: {match.group(1)}")
    if minute > 59:
        raise TimeConfigError(f"invalid minute: {match.group(2)}")

    return hour, minute


def in_trigger_window(
    configured: str, now: datetime, window_minutes: Optional[int] = None
) -> bool:
    """
    True iff `now` has the configured hour and its minute is in
    [configured_minute, configured_minute + window_minutes).

    `now` must already be expressed in the zone the HH:MM refers to.
    """
    if window_minutes is None:
        window_minutes = settings.TRIGGER_WINDOW_MINUTES

    hour, minute = parse_hhmm(configured)
    return now.hour == hour and minute <= now.minute < minute + window_minutes


def resolve_timezone(name: Optional[str] = None) -> ZoneInfo:
    """Return the named zone, or the configured default if unset or unknown."""
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning(f"Unknown timezone {name!r}, using {settings.TIMEZONE}")
    return settings.tz


def day_bounds(day: date, tz: ZoneInfo) -> Tuple[int, int]:
    """Unix-second bounds [start, end) of a calendar day in `tz`."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    end = datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)
    return int(start.timestamp()), int(end.timestamp())


def yesterday(now: datetime) -> date:
    """The calendar day before `now`, in `now`'s own zone."""
    return (now - timedelta(days=1)).date()
