"""
"Now" and "today" as seen by the user. Servers run on UTC; the user's IANA zone arrives
per request in a cookie set by the client (default Asia/Shanghai).

The zone offset is taken at the current instant: the same instant is rendered as a wall
clock in UTC and in the target zone and the two are differenced. That is correct for "now"
but not for converting past instants across a DST change, so only use it for "now".
"""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from urllib.parse import unquote
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Request

from liubai.config import settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEZONE = "Asia/Shanghai"
LOCAL_DATETIME_FORMAT = "%Y-%m-%dT%H:%M:%S"
LOCAL_DATE_FORMAT = "%Y-%m-%d"


def resolve_timezone(request: Request | None) -> str:
    """Per-request timezone hint from the cookie, or the default zone. Never raises."""
    default = settings.default_timezone or DEFAULT_TIMEZONE
    if request is None:
        return default
    raw = request.cookies.get(settings.timezone_cookie_name)
    if not raw:
        return default
    tz = unquote(raw).strip()
    return tz or default


def validate_timezone(tz: str) -> bool:
    """True if tz is a loadable IANA identifier. Use where the hint is set, not where it is read."""
    if not tz or not isinstance(tz, str):
        return False
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def zone_offset(tz: str, now: datetime | None = None) -> timedelta:
    """Offset of tz from UTC at the given instant (default: now)."""
    instant = now or datetime.now(timezone.utc)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    utc_wall = instant.astimezone(timezone.utc).replace(tzinfo=None)
    zone_wall = instant.astimezone(ZoneInfo(tz)).replace(tzinfo=None)
    return zone_wall - utc_wall


def now_in_zone(tz: str, now: datetime | None = None) -> datetime:
    """Naive wall-clock datetime in tz for the current (or given) instant."""
    instant = now or datetime.now(timezone.utc)
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    utc_wall = instant.astimezone(timezone.utc).replace(tzinfo=None)
    return utc_wall + zone_offset(tz, instant)


def today_string(tz: str, now: datetime | None = None) -> str:
    return now_in_zone(tz, now).strftime(LOCAL_DATE_FORMAT)


def date_time_string(tz: str, now: datetime | None = None) -> str:
    return now_in_zone(tz, now).strftime(LOCAL_DATETIME_FORMAT)


def hour_of_day(tz: str, now: datetime | None = None) -> int:
    return now_in_zone(tz, now).hour


def day_bounds(day: str | date) -> tuple[str, str]:
    """Inclusive local-time bounds of a calendar day, in the stored check_in_at format."""
    d = day.isoformat() if isinstance(day, date) else day
    return f"{d}T00:00:00", f"{d}T23:59:59"


def days_before(day: str, days: int) -> str:
    """YYYY-MM-DD that is `days` calendar days before `day`."""
    return (date.fromisoformat(day) - timedelta(days=days)).isoformat()
