# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Reference-based daily estimator.

Historical monthly totals (``ReferenceMonthData``) are turned into a
synthetic day-by-day sales curve, then into a daily net cash flow that
feeds the balance reconstruction in ``reconcile``.

Distribution of a monthly total
-------------------------------
- Without a template: evenly across the calendar days of the month.
- With an ``OpenHoursTemplate``: proportionally to each day's open hours.
  A month in which the template has no open hours at all falls back to
  the even spread.

Days not covered by any reference month get no entry at all. Callers
must read a missing day as "no estimate", never as "no sales".
"""

import logging
from collections import OrderedDict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .dates import days_in_month, get_week_end, get_week_start, iter_days, iter_month_days
from .goals import keep_rate
from .models import OpenHoursTemplate, ReferenceMonthData, Settings

logger = logging.getLogger(__name__)

LY_ESTIMATE_SOURCE = "LY_EST"


@dataclass(frozen=True)
class DailySalesEstimate:
    date: date
    estimated_sales: float


@dataclass(frozen=True)
class DailyNetFlowEstimate:
    date: date
    sales: float
    net_flow: float


@dataclass(frozen=True)
class WeeklyEstimate:
    week_start: date
    week_end: date
    value: float
    is_estimate: bool = True
    source: str = LY_ESTIMATE_SOURCE


def _index_reference_months(
    ref_months: Iterable[ReferenceMonthData],
) -> "OrderedDict[tuple[int, int], float]":
    """Map (year, month) -> total. The last duplicate wins."""
    index: "OrderedDict[tuple[int, int], float]" = OrderedDict()
    for ref in ref_months:
        index[(ref.year, ref.month)] = float(ref.net_sales_ex_tax)
    return index


def _distribute_month(
    total: float,
    year: int,
    month: int,
    template: Optional[OpenHoursTemplate],
) -> list[DailySalesEstimate]:
    days = list(iter_month_days(year, month))

    weights: list[float]
    if template is not None:
        weights = [template.hours_for(d) for d in days]
        if sum(weights) <= 0:
            logger.debug(
                "Open-hours template has no hours in %04d-%02d; spreading evenly.",
                year,
                month,
            )
            weights = [1.0] * len(days)
    else:
        weights = [1.0] * len(days)

    weight_total = sum(weights)
    return [
        DailySalesEstimate(date=d, estimated_sales=total * w / weight_total)
        for d, w in zip(days, weights)
    ]


def reference_months_to_daily_sales_estimate(
    ref_months: Iterable[ReferenceMonthData],
    template: Optional[OpenHoursTemplate] = None,
) -> list[DailySalesEstimate]:
    """
    One estimate per day of every reference month, sorted by date.

    Gaps between non-contiguous months are left empty.
    """
    index = _index_reference_months(ref_months)
    estimates: list[DailySalesEstimate] = []
    for (year, month) in sorted(index):
        estimates.extend(_distribute_month(index[(year, month)], year, month, template))
    return estimates


def _reference_total_for(
    index: "OrderedDict[tuple[int, int], float]",
    year: int,
    month: int,
    first_year: int,
) -> Optional[float]:
    """
    Pick the reference total used to estimate ``year``-``month``.

    Prior-year data is preferred. The same year's figure is used when the
    prior year is missing, which also covers the first reference year.
    """
    if year > first_year and (year - 1, month) in index:
        return index[(year - 1, month)]
    return index.get((year, month))


def reference_months_to_daily_sales_estimate_for_range(
    ref_months: Iterable[ReferenceMonthData],
    start: date,
    end: date,
    template: Optional[OpenHoursTemplate] = None,
) -> list[DailySalesEstimate]:
    """
    Daily sales estimate for every date in ``[start, end]`` that has a
    usable reference month.

    Each target month is estimated from the same calendar month of the
    previous year, distributed over the target month's own days (and
    open hours, when a template is given).
    """
    if end < start:
        return []

    index = _index_reference_months(ref_months)
    if not index:
        logger.debug("No reference months: the sales estimate is empty.")
        return []
    first_year = min(year for year, _ in index)

    by_date: dict[date, float] = {}
    months_seen: set[tuple[int, int]] = set()
    for day in iter_days(start, end):
        key = (day.year, day.month)
        if key in months_seen:
            continue
        months_seen.add(key)

        total = _reference_total_for(index, day.year, day.month, first_year)
        if total is None:
            logger.debug("No reference data for %04d-%02d; leaving a gap.", *key)
            continue
        for estimate in _distribute_month(total, day.year, day.month, template):
            by_date[estimate.date] = estimate.estimated_sales

    return [
        DailySalesEstimate(date=d, estimated_sales=by_date[d])
        for d in iter_days(start, end)
        if d in by_date
    ]


def reference_months_to_weekly_ly_estimate(
    ref_months: Iterable[ReferenceMonthData],
    start: date,
    end: date,
    template: Optional[OpenHoursTemplate] = None,
) -> list[WeeklyEstimate]:
    """Aggregate the range estimate into Monday-Sunday weeks."""
    daily = reference_months_to_daily_sales_estimate_for_range(
        ref_months, start, end, template
    )

    weeks: "OrderedDict[date, float]" = OrderedDict()
    for estimate in daily:
        week_start = get_week_start(estimate.date)
        weeks[week_start] = weeks.get(week_start, 0.0) + estimate.estimated_sales

    return [
        WeeklyEstimate(
            week_start=week_start,
            week_end=get_week_end(week_start),
            value=round(total, 2),
        )
        for week_start, total in weeks.items()
    ]


def estimate_daily_net_cash_flow(
    daily_sales: Iterable[DailySalesEstimate],
    settings: Settings,
) -> list[DailyNetFlowEstimate]:
    """
    Convert estimated sales into estimated net cash flow.

        net_flow = sales * keep_rate - monthly_fixed_nut / days_in_month

    Raises:
        InvalidRatioError: if the settings leave no margin.
    """
    rate = keep_rate(settings.target_cogs_pct, settings.target_fees_pct)
    flows: list[DailyNetFlowEstimate] = []
    for estimate in sorted(daily_sales, key=lambda e: e.date):
        daily_nut = settings.monthly_fixed_nut / days_in_month(
            estimate.date.year, estimate.date.month
        )
        flows.append(
            DailyNetFlowEstimate(
                date=estimate.date,
                sales=round(estimate.estimated_sales, 2),
                net_flow=round(estimate.estimated_sales * rate - daily_nut, 2),
            )
        )
    return flows


def cumulative_net_flow(
    flows: Sequence[DailyNetFlowEstimate],
    start_exclusive: date,
    end_inclusive: date,
) -> float:
    """Sum of estimated net flow on days in ``(start_exclusive, end_inclusive]``."""
    return round(
        sum(f.net_flow for f in flows if start_exclusive < f.date <= end_inclusive),
        2,
    )
