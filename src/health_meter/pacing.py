# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Hours-weighted pacing.

A store closed on Mondays should not be expected to make 1/30th of its
monthly goal on a Monday. Pacing therefore prorates the monthly goal by
open hours rather than by calendar days:

    target_to_date = goal * open_hours_elapsed / open_hours_in_month

where ``open_hours_elapsed`` runs from the first of the month through
the as-of date inclusive.

All functions are state-free calendar math over an ``OpenHoursTemplate``.
Days of week follow Python's convention (Monday = 0 ... Sunday = 6).
"""

from dataclasses import dataclass
from datetime import date

from .dates import days_in_month, iter_days, iter_month_days
from .models import WEEKDAY_KEYS, OpenHoursTemplate


@dataclass(frozen=True)
class PitBoard:
    """What it takes to reach the monthly goal from here."""

    remaining: float
    remaining_open_days: int
    remaining_open_hours: float
    daily_needed: float
    is_reachable: bool


def get_day_of_week(day: date) -> int:
    """Day of week, Monday = 0 ... Sunday = 6."""
    return day.weekday()


def hours_for_date(template: OpenHoursTemplate, day: date) -> float:
    return template.hours_for(day)


def is_open_day(template: OpenHoursTemplate, day: date) -> bool:
    return template.hours_for(day) > 0


def total_open_hours_in_month(template: OpenHoursTemplate, year: int, month: int) -> float:
    """Sum of template hours over every day of the month."""
    return sum(template.hours_for(d) for d in iter_month_days(year, month))


def remaining_open_hours(
    template: OpenHoursTemplate,
    from_date_exclusive: date,
    year: int,
    month: int,
) -> float:
    """Open hours on days strictly after ``from_date_exclusive`` until month end."""
    return sum(
        template.hours_for(d)
        for d in iter_month_days(year, month)
        if d > from_date_exclusive
    )


def target_for_day(day: date, monthly_goal: float, template: OpenHoursTemplate) -> float:
    """Share of the monthly goal expected on ``day``."""
    total = total_open_hours_in_month(template, day.year, day.month)
    if total <= 0:
        return 0.0
    return monthly_goal * template.hours_for(day) / total


def mtd_target_to_date_hours_weighted(
    as_of: date, monthly_goal: float, template: OpenHoursTemplate
) -> float:
    """Month-to-date target through ``as_of`` inclusive, rounded to cents."""
    total = total_open_hours_in_month(template, as_of.year, as_of.month)
    if total <= 0:
        return 0.0
    elapsed = sum(template.hours_for(d) for d in iter_days(as_of.replace(day=1), as_of))
    return round(monthly_goal * elapsed / total, 2)


def pace_delta_hours_weighted(mtd_actual: float, target: float) -> float:
    """Ahead (+) or behind (-) the hours-weighted target, rounded to cents."""
    return round(mtd_actual - target, 2)


def average_hours_per_open_day(template: OpenHoursTemplate) -> float:
    open_hours = [getattr(template, key) for key in WEEKDAY_KEYS if getattr(template, key) > 0]
    if not open_hours:
        return 0.0
    return sum(open_hours) / len(open_hours)


def daily_needed_from_here(
    remaining_goal: float,
    remaining_open_hours_count: float,
    avg_hours_per_open_day: float,
) -> float:
    """
    Sales needed per open day to close ``remaining_goal``.

    The remaining open-hour budget is converted to an equivalent number
    of open days using ``avg_hours_per_open_day``. Returns 0 when no
    open hours remain.
    """
    if remaining_open_hours_count <= 0 or avg_hours_per_open_day <= 0:
        return 0.0
    remaining_days = remaining_open_hours_count / avg_hours_per_open_day
    return round(remaining_goal / remaining_days, 2)


def pit_board(
    as_of: date,
    mtd_net_sales: float,
    monthly_goal: float,
    template: OpenHoursTemplate,
) -> PitBoard:
    """
    Summarise the rest of the month after ``as_of``.

    ``as_of`` is the last day with sales data; it is not counted as a
    remaining day. When money is still needed but no open day is left,
    ``is_reachable`` is False and ``daily_needed`` is 0.
    """
    remaining = max(0.0, monthly_goal - mtd_net_sales)
    hours_left = remaining_open_hours(template, as_of, as_of.year, as_of.month)
    month_end = date(as_of.year, as_of.month, days_in_month(as_of.year, as_of.month))
    open_days_left = sum(
        1 for d in iter_days(as_of, month_end) if d > as_of and is_open_day(template, d)
    )

    daily_needed = daily_needed_from_here(
        remaining, hours_left, average_hours_per_open_day(template)
    )

    return PitBoard(
        remaining=round(remaining, 2),
        remaining_open_days=open_days_left,
        remaining_open_hours=hours_left,
        daily_needed=daily_needed,
        is_reachable=remaining == 0 or open_days_left > 0,
    )
