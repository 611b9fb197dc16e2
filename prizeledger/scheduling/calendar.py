"""Draw calendar: when the next daily, weekly and monthly draw takes place."""

from __future__ import annotations

import calendar as _calendar
from datetime import datetime, time, timedelta, timezone, tzinfo
from typing import Callable, Optional

from ..db.utils import ensure_utc

DAILY_DRAW_TIME = time(21, 0)
WEEKLY_DRAW_TIME = time(20, 0)
MONTHLY_DRAW_TIME = time(20, 0)
SUNDAY = 6


def _local(now: datetime, tz: tzinfo) -> datetime:
    return ensure_utc(now).astimezone(tz)


def _at(day: datetime, at: time, tz: tzinfo) -> datetime:
    return datetime(day.year, day.month, day.day, at.hour, at.minute, tzinfo=tz)


def next_daily_draw(now: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Today at 21:00 local, or tomorrow if that has passed. Returned in UTC."""
    local = _local(now, tz)
    candidate = _at(local, DAILY_DRAW_TIME, tz)
    if candidate <= local:
        candidate = _at(local + timedelta(days=1), DAILY_DRAW_TIME, tz)
    return candidate.astimezone(timezone.utc)


def next_weekly_draw(now: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """The coming Sunday at 20:00 local; a week later if today's has passed."""
    local = _local(now, tz)
    days_ahead = (SUNDAY - local.weekday()) % 7
    candidate = _at(local + timedelta(days=days_ahead), WEEKLY_DRAW_TIME, tz)
    if candidate <= local:
        candidate = _at(local + timedelta(days=days_ahead + 7), WEEKLY_DRAW_TIME, tz)
    return candidate.astimezone(timezone.utc)


def last_sunday_of_month(year: int, month: int) -> int:
    last_day = _calendar.monthrange(year, month)[1]
    weekday = _calendar.weekday(year, month, last_day)
    return last_day - (weekday - SUNDAY) % 7


def next_monthly_draw(now: datetime, tz: tzinfo = timezone.utc) -> datetime:
    """Last Sunday of this month at 20:00 local, or of next month if passed."""
    local = _local(now, tz)
    year, month = local.year, local.month
    day = last_sunday_of_month(year, month)
    candidate = datetime(
        year, month, day, MONTHLY_DRAW_TIME.hour, MONTHLY_DRAW_TIME.minute, tzinfo=tz
    )
    if candidate <= local:
        year, month = (year + 1, 1) if month == 12 else (year, month + 1)
        day = last_sunday_of_month(year, month)
        candidate = datetime(
            year, month, day, MONTHLY_DRAW_TIME.hour, MONTHLY_DRAW_TIME.minute, tzinfo=tz
        )
    return candidate.astimezone(timezone.utc)


DRAW_CALENDAR: dict[str, Callable[[datetime, tzinfo], datetime]] = {
    "daily": next_daily_draw,
    "weekly": next_weekly_draw,
    "monthly": next_monthly_draw,
}


def next_draw_date(
    lottery_type: str, now: datetime, tz: tzinfo = timezone.utc
) -> Optional[datetime]:
    """Next draw date for ``lottery_type``; ``None`` for unscheduled types."""
    rule = DRAW_CALENDAR.get(lottery_type)
    if rule is None:
        return None
    return rule(now, tz)


__all__ = [
    "DRAW_CALENDAR",
    "last_sunday_of_month",
    "next_daily_draw",
    "next_weekly_draw",
    "next_monthly_draw",
    "next_draw_date",
]
