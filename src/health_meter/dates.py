# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Calendar helpers for HB Health Meter.

All engine code works on ``datetime.date`` objects. ISO strings
(YYYY-MM-DD) are only accepted at the boundaries (CSV files, TOML
configuration, CLI arguments) and converted with ``parse_iso_date``.

Weeks start on Monday and end on Sunday. This convention is shared by
the weekly estimate, weekly balance and weekly delta series.
"""

from calendar import monthrange
from collections.abc import Iterator
from datetime import date, timedelta
from typing import Union

DateLike = Union[date, str]


def parse_iso_date(value: DateLike) -> date:
    """
    Convert a ``date`` or an ISO ``YYYY-MM-DD`` string into a ``date``.

    Raises:
        ValueError: if the string is not a valid ISO date.
    """
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as exc:
        raise ValueError(
            f"Invalid date: {value!r}. Expected YYYY-MM-DD format."
        ) from exc


def add_days(day: date, days: int) -> date:
    """Return ``day`` shifted by ``days`` calendar days (may be negative)."""
    return day + timedelta(days=days)


def days_in_month(year: int, month: int) -> int:
    """Number of calendar days in the given month (1-12)."""
    return monthrange(year, month)[1]


def month_start(day: date) -> date:
    """First day of the month containing ``day``."""
    return day.replace(day=1)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from the month of ``start`` to the month of ``end``."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def get_week_start(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def get_week_end(day: date) -> date:
    """Sunday of the week containing ``day``."""
    return get_week_start(day) + timedelta(days=6)


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` to ``end`` inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def iter_month_days(year: int, month: int) -> Iterator[date]:
    """Yield every date of the given month."""
    return iter_days(date(year, month, 1), date(year, month, days_in_month(year, month)))
