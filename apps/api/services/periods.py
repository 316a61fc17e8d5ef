"""
Period windows for standings and score queries.

Weeks are ISO weeks (Monday through Sunday). Months are calendar months.
All dates are UTC calendar days.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Tuple

from models import PeriodType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (as SQLite returns them) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def week_bounds(day: date) -> Tuple[date, date]:
    monday = day - timedelta(days=day.weekday())
    return monday, monday + timedelta(days=6)


def previous_week_bounds(day: date) -> Tuple[date, date]:
    """The ISO week before the one containing `day`."""
    return week_bounds(day - timedelta(days=7))


def month_bounds(day: date) -> Tuple[date, date]:
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


def previous_month_bounds(day: date) -> Tuple[date, date]:
    return month_bounds(day.replace(day=1) - timedelta(days=1))


def period_bounds(period_type: PeriodType, day: date) -> Tuple[date, date]:
    if PeriodType(period_type) == PeriodType.MONTH:
        return month_bounds(day)
    return week_bounds(day)
