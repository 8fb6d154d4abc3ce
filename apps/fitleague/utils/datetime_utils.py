"""
Datetime utility functions.
League-local date math for the rest-day backfill and the leaderboard pending window.
"""

import math
import re
from datetime import date, datetime, timedelta, tzinfo
from typing import Optional
import pytz


# Common abbreviations leagues use instead of IANA names (fixed offsets, in hours)
TIMEZONE_ABBREVIATIONS = {
    "IST": 5.5,
    "EST": -5,
    "EDT": -4,
    "CST": -6,
    "CDT": -5,
    "MST": -7,
    "MDT": -6,
    "PST": -8,
    "PDT": -7,
    "GMT": 0,
    "UTC": 0,
}

_UTC_OFFSET_RE = re.compile(r"^(?:UTC|GMT)\s*([+-])(\d{1,2})(?::?(\d{2}))?$", re.IGNORECASE)


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def parse_league_timezone(tz_string: Optional[str]) -> tzinfo:
    """
    Resolve a league's timezone setting into a tzinfo.

    Accepts IANA names ("Asia/Kolkata"), explicit offsets ("UTC+5:30",
    "UTC-04", "GMT+1") and the abbreviations in TIMEZONE_ABBREVIATIONS.
    Anything empty or unrecognised falls back to UTC.

    Examples:
        >>> parse_league_timezone("UTC+5:30").utcoffset(None)
        datetime.timedelta(seconds=19800)
        >>> parse_league_timezone(None) is pytz.UTC
        True
    """
    if not tz_string or not tz_string.strip():
        return pytz.UTC

    value = tz_string.strip()

    match = _UTC_OFFSET_RE.match(value)
    if match:
        sign = 1 if match.group(1) == "+" else -1
        minutes = int(match.group(2)) * 60 + int(match.group(3) or 0)
        return pytz.FixedOffset(sign * minutes)

    abbreviation = TIMEZONE_ABBREVIATIONS.get(value.upper())
    if abbreviation is not None:
        return pytz.FixedOffset(int(abbreviation * 60))

    try:
        return pytz.timezone(value)
    except pytz.UnknownTimeZoneError:
        return pytz.UTC


def league_today(tz_string: Optional[str], now: Optional[datetime] = None) -> date:
    """Current calendar date in the league's timezone."""
    now = now or utcnow()
    if now.tzinfo is None:
        now = pytz.UTC.localize(now)
    return now.astimezone(parse_league_timezone(tz_string)).date()


def league_yesterday(tz_string: Optional[str], now: Optional[datetime] = None) -> date:
    """Yesterday's calendar date in the league's timezone."""
    return league_today(tz_string, now) - timedelta(days=1)


def weeks_in_span(start_date: date, end_date: date) -> int:
    """
    Number of (possibly partial) weeks covered by an inclusive date span.

    A partial final week counts as a whole week.

    Examples:
        >>> weeks_in_span(date(2025, 1, 1), date(2025, 1, 14))
        2
        >>> weeks_in_span(date(2025, 1, 1), date(2025, 1, 15))
        3
    """
    days = (end_date - start_date).days + 1
    if days <= 0:
        return 0
    return math.ceil(days / 7)

