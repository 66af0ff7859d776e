# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Month-to-date dashboard orchestration.

This module provides the single entry point used by the CLI (or any
other front end) to compute every figure of the month-to-date dashboard
in one pass.

Workflow
--------
``compute_dashboard()``:

1. Determines the effective as-of date: the latest day of the month
   with logged sales greater than 0, or the requested ``as_of`` when no
   such day exists.

2. Aggregates month-to-date totals by expense category. Sales are cut
   off at the effective as-of date; expenses at the requested ``as_of``.

3. Computes goals and pacing:
   - survival and ideal goals,
   - survival percent and remaining amount,
   - hours-weighted pace target, pace delta and the pit board,
   - last-year reference pacing when the previous year's month is known.

4. Computes health:
   - cash result and spread-normalized true cash result,
   - actual COGS rate and data confidence,
   - the composite true-health score.

5. Builds the cash-continuity series (estimate, reconcile, merge) and
   derives the liquidity panel from it, including the owner capital
   invested at the close of each continuity week.

``annual_rollup()`` summarises a calendar year month by month with
year-to-date totals.

Nothing here reads the clock: ``as_of`` and ``today`` are inputs.
"""

import calendar
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .confidence import (
    ConfidenceLevel,
    confidence_factors_for_period,
    confidence_level,
    confidence_score,
)
from .dates import add_days, days_in_month, month_start
from .estimator import WeeklyEstimate, reference_months_to_weekly_ly_estimate
from .goals import (
    actual_cogs_rate,
    ideal_goal_net_ex_tax,
    remaining_to_goal,
    spread_adjusted_amount,
    survival_goal_net_ex_tax,
    survival_percent,
)
from .health import (
    HealthWeights,
    TrueHealthResult,
    cash_health_result,
    true_cash_result,
    true_health_result,
)
from .liquidity import (
    CapitalPoint,
    Change,
    MarginTrend,
    average_daily_sales,
    capital_series,
    cash_fill_pct,
    cash_on_hand_from_snapshot,
    daily_burn_rate,
    gross_margin_trend,
    nut_coverage_percent,
    runway_days,
    safe_to_spend,
    total_capital_invested,
    vs_last_year,
    week_over_week_change,
)
from .models import (
    CashInjection,
    CashSnapshot,
    DayEntry,
    ExpenseCategory,
    ExpenseTransaction,
    MonthData,
    ReferenceMonthData,
    Settings,
)
from .pacing import (
    PitBoard,
    is_open_day,
    mtd_target_to_date_hours_weighted,
    pace_delta_hours_weighted,
    pit_board,
)
from .reconcile import ContinuityResult, build_continuity_series

logger = logging.getLogger(__name__)

# Continuity window used when neither a year-start date nor reference
# data tells us where the business history begins.
DEFAULT_HISTORY_DAYS = 364


@dataclass(frozen=True)
class LastYearPace:
    """Current month compared with the same month last year."""

    year: int
    month: int
    net_sales: float
    target_to_date: float
    pace_delta: float
    pct_of_last_year: int
    change: Change


@dataclass(frozen=True)
class LiquiditySummary:
    cash_now: Optional[float]
    cash_fill_pct: float
    safe_to_spend: float
    daily_burn: float
    runway_days: Optional[int]
    nut_coverage_pct: int
    week_over_week: Optional[Change]
    average_daily_sales: float
    margin_trend: MarginTrend
    total_capital_invested: float
    capital_series: list[CapitalPoint]


@dataclass(frozen=True)
class DashboardResult:
    """
    Every figure of the month-to-date dashboard.

    Attributes
    ----------
    as_of :
        Effective as-of date (last day with logged sales this month).
    requested_as_of :
        The date the caller asked for.
    month_data :
        Month-to-date cash totals by category.
    survival_goal / ideal_goal :
        Monthly net sales goals (ex tax).
    survival_pct :
        Unclamped percent of the survival goal reached.
    continuity :
        Daily balance series and weekly derivatives.
    weekly_ly_estimate :
        Weekly last-year sales estimate over the continuity window.
    """

    business_name: str
    as_of: date
    requested_as_of: date
    month_data: MonthData
    survival_goal: float
    ideal_goal: float
    survival_pct: float
    remaining: float
    pace_target: float
    pace_delta: float
    pit_board: PitBoard
    cash_result: float
    true_cash_result: float
    normalized_cogs: float
    normalized_capex: float
    actual_cogs_rate: float
    confidence_score: int
    confidence: ConfidenceLevel
    true_health: TrueHealthResult
    last_year: Optional[LastYearPace]
    continuity: ContinuityResult
    weekly_ly_estimate: list[WeeklyEstimate]
    liquidity: LiquiditySummary
    sales_not_entered: bool


@dataclass(frozen=True)
class AnnualTotals:
    net_sales: float
    cogs: float
    opex: float
    capex: float
    owner_draw: float
    survival_goal: float
    survival_pct: float
    cash_result: float


@dataclass(frozen=True)
class AnnualMonth(AnnualTotals):
    month: int
    month_name: str


@dataclass(frozen=True)
class AnnualRollup:
    """Twelve monthly summaries of a calendar year plus year-to-date totals."""

    year: int
    months: list[AnnualMonth]
    ytd: AnnualTotals


def effective_as_of(day_entries: Iterable[DayEntry], as_of: date) -> date:
    """Latest day of ``as_of``'s month, up to ``as_of``, with sales > 0."""
    first = month_start(as_of)
    days_with_sales = [
        e.date
        for e in day_entries
        if first <= e.date <= as_of
        and e.net_sales_ex_tax is not None
        and e.net_sales_ex_tax > 0
    ]
    return max(days_with_sales) if days_with_sales else as_of


def sales_not_entered(settings: Settings, effective: date, today: Optional[datetime]) -> bool:
    """
    True when today's sales are overdue: today is after the last logged
    day, the store opens today and closing time has passed.
    """
    if today is None:
        return False
    return (
        today.date() > effective
        and is_open_day(settings.open_hours, today.date())
        and today.hour >= settings.store_close_hour
    )


def _month_totals(
    day_entries: Iterable[DayEntry],
    expenses: Iterable[ExpenseTransaction],
    effective: date,
    as_of: date,
) -> MonthData:
    first = month_start(as_of)
    sales = sum(
        e.net_sales_ex_tax
        for e in day_entries
        if e.net_sales_ex_tax is not None and first <= e.date <= effective
    )

    by_category: dict[ExpenseCategory, float] = {}
    for expense in expenses:
        if first <= expense.date <= as_of:
            by_category[expense.category] = by_category.get(expense.category, 0.0) + expense.amount

    return MonthData(
        mtd_net_sales=round(sales, 2),
        mtd_cogs_cash=round(by_category.get(ExpenseCategory.COGS, 0.0), 2),
        mtd_opex_cash=round(by_category.get(ExpenseCategory.OPEX, 0.0), 2),
        mtd_owner_draw=round(by_category.get(ExpenseCategory.OWNER_DRAW, 0.0), 2),
        mtd_capex_cash=round(by_category.get(ExpenseCategory.CAPEX, 0.0), 2),
    )


def _last_year_pace(
    settings: Settings,
    reference_months: list[ReferenceMonthData],
    effective: date,
    mtd_net_sales: float,
) -> Optional[LastYearPace]:
    reference = None
    for ref in reference_months:
        if ref.year == effective.year - 1 and ref.month == effective.month:
            reference = ref
    if reference is None:
        return None

    target = mtd_target_to_date_hours_weighted(
        effective, reference.net_sales_ex_tax, settings.open_hours
    )
    pct = (
        round(mtd_net_sales / reference.net_sales_ex_tax * 100)
        if reference.net_sales_ex_tax > 0
        else 0
    )
    return LastYearPace(
        year=reference.year,
        month=reference.month,
        net_sales=reference.net_sales_ex_tax,
        target_to_date=target,
        pace_delta=pace_delta_hours_weighted(mtd_net_sales, target),
        pct_of_last_year=pct,
        change=vs_last_year(mtd_net_sales, target),
    )


def continuity_start_date(
    settings: Settings,
    reference_months: list[ReferenceMonthData],
    effective: date,
) -> date:
    """
    First day of the continuity window.

    Uses the configured year-start date, else January 1st when only a
    year-start amount is configured, else the earliest reference month,
    else one year back from ``effective``.
    """
    if settings.year_start_cash_date is not None:
        return settings.year_start_cash_date
    if settings.year_start_cash_amount is not None:
        return date(effective.year, 1, 1)
    if reference_months:
        earliest = min(reference_months, key=lambda r: (r.year, r.month))
        return date(earliest.year, earliest.month, 1)
    return add_days(effective, -DEFAULT_HISTORY_DAYS)


def compute_dashboard(
    settings: Settings,
    as_of: date,
    day_entries: Iterable[DayEntry],
    expenses: Iterable[ExpenseTransaction],
    reference_months: Iterable[ReferenceMonthData],
    snapshots: Iterable[CashSnapshot],
    *,
    today: Optional[datetime] = None,
    weights: Optional[HealthWeights] = None,
    velocity_window: int = 4,
    injections: Iterable[CashInjection] = (),
) -> DashboardResult:
    """
    Compute the full month-to-date dashboard.

    Parameters
    ----------
    settings :
        Organisation settings (cost structure, open hours, reserves).
    as_of :
        Requested as-of date. The month of this date is the dashboard month.
    day_entries, expenses, reference_months, snapshots :
        Raw records for the organisation. They may span several months;
        each computation selects what it needs.
    today :
        Caller's local date and time, used only for ``sales_not_entered``.
    weights :
        True-health scoring policy.
    velocity_window :
        Number of recent weeks averaged into the cash velocity.
    injections :
        Owner capital injections and withdrawals. Every record counts
        toward the total; the weekly series counts records up to each
        week end.

    Raises
    ------
    InvalidRatioError
        If the target COGS and fee ratios leave no margin.
    """
    day_entries = list(day_entries)
    expenses = list(expenses)
    reference_months = list(reference_months)
    snapshots = list(snapshots)
    injections = list(injections)

    effective = effective_as_of(day_entries, as_of)
    if effective != as_of:
        logger.debug("Effective as-of date is %s (requested %s).", effective, as_of)
    first = month_start(as_of)
    month_entries = [e for e in day_entries if first <= e.date <= as_of]

    month_data = _month_totals(day_entries, expenses, effective, as_of)
    sales = month_data.mtd_net_sales

    # Goals and pacing
    survival_goal = survival_goal_net_ex_tax(
        settings.monthly_fixed_nut, settings.target_cogs_pct, settings.target_fees_pct
    )
    ideal_goal = ideal_goal_net_ex_tax(
        settings.monthly_fixed_nut,
        settings.monthly_roof_fund,
        settings.monthly_owner_draw_goal,
        settings.target_cogs_pct,
        settings.target_fees_pct,
    )
    survival_pct = survival_percent(sales, survival_goal)
    pace_target = mtd_target_to_date_hours_weighted(effective, survival_goal, settings.open_hours)

    # Health
    spread = [x.as_spread_expense() for x in expenses if x.is_spread]
    spread = [s for s in spread if s is not None]
    normalized_cogs_amount = spread_adjusted_amount(
        month_data.mtd_cogs_cash, spread, ExpenseCategory.COGS, as_of
    )
    normalized_capex = spread_adjusted_amount(
        month_data.mtd_capex_cash, spread, ExpenseCategory.CAPEX, as_of
    )
    cogs_rate = actual_cogs_rate(month_data.mtd_cogs_cash, sales)

    factors = confidence_factors_for_period(month_entries, expenses, first, as_of)
    score = confidence_score(factors)
    level = confidence_level(score)

    health = true_health_result(
        survival_pct,
        cogs_rate,
        settings.target_cogs_pct,
        level,
        mtd_opex=month_data.mtd_opex_cash,
        expected_opex=settings.monthly_fixed_nut,
        weights=weights,
    )

    # Continuity and liquidity
    start = continuity_start_date(settings, reference_months, effective)
    continuity = build_continuity_series(
        settings,
        start,
        effective,
        reference_months,
        snapshots,
        day_entries,
        expenses,
        velocity_window=velocity_window,
        provided_start_balance=settings.year_start_cash_amount,
    )
    weekly_ly = reference_months_to_weekly_ly_estimate(
        reference_months, start, effective, settings.open_hours
    )

    past_snapshots = [s for s in snapshots if s.date <= effective]
    if past_snapshots:
        latest = max(past_snapshots, key=lambda s: s.date)
        cash_now: Optional[float] = cash_on_hand_from_snapshot(
            latest, effective, day_entries, expenses
        )
    else:
        cash_now = continuity.current_balance

    weekly_balances = continuity.weekly_balances
    burn = daily_burn_rate(weekly_balances)
    cash_value = cash_now if cash_now is not None else 0.0
    liquidity = LiquiditySummary(
        cash_now=cash_now,
        cash_fill_pct=cash_fill_pct(cash_value, settings.target_reserve_cash),
        safe_to_spend=safe_to_spend(cash_value, settings.operating_floor_cash),
        daily_burn=burn,
        runway_days=runway_days(cash_value, burn),
        nut_coverage_pct=nut_coverage_percent(cash_value, settings.monthly_fixed_nut),
        week_over_week=week_over_week_change(weekly_balances),
        average_daily_sales=average_daily_sales(month_entries),
        margin_trend=gross_margin_trend(cogs_rate, settings.target_cogs_pct),
        total_capital_invested=total_capital_invested(injections),
        capital_series=capital_series(injections, weekly_balances),
    )

    return DashboardResult(
        business_name=settings.business_name,
        as_of=effective,
        requested_as_of=as_of,
        month_data=month_data,
        survival_goal=round(survival_goal, 2),
        ideal_goal=round(ideal_goal, 2),
        survival_pct=survival_pct,
        remaining=round(remaining_to_goal(survival_goal, sales), 2),
        pace_target=pace_target,
        pace_delta=pace_delta_hours_weighted(sales, pace_target),
        pit_board=pit_board(effective, sales, survival_goal, settings.open_hours),
        cash_result=cash_health_result(month_data, settings.monthly_roof_fund),
        true_cash_result=true_cash_result(month_data, normalized_cogs_amount, normalized_capex),
        normalized_cogs=normalized_cogs_amount,
        normalized_capex=normalized_capex,
        actual_cogs_rate=cogs_rate,
        confidence_score=score,
        confidence=level,
        true_health=health,
        last_year=_last_year_pace(settings, reference_months, effective, sales),
        continuity=continuity,
        weekly_ly_estimate=weekly_ly,
        liquidity=liquidity,
        sales_not_entered=sales_not_entered(settings, effective, today),
    )


def annual_rollup(
    settings: Settings,
    year: int,
    day_entries: Iterable[DayEntry],
    expenses: Iterable[ExpenseTransaction],
) -> AnnualRollup:
    """
    Month-by-month cash summary of ``year``.

    Every month carries the same survival goal. Months without records
    report zeros. The year-to-date survival goal is twelve monthly goals,
    whatever the date, and the year-to-date cash result is sales minus
    every expense category, so it equals the sum of the monthly results.

    Raises
    ------
    InvalidRatioError
        If the target COGS and fee ratios leave no margin.
    """
    day_entries = list(day_entries)
    expenses = list(expenses)
    survival_goal = round(
        survival_goal_net_ex_tax(
            settings.monthly_fixed_nut, settings.target_cogs_pct, settings.target_fees_pct
        ),
        2,
    )

    months: list[AnnualMonth] = []
    for month in range(1, 13):
        month_end = date(year, month, days_in_month(year, month))
        totals = _month_totals(day_entries, expenses, month_end, month_end)
        months.append(
            AnnualMonth(
                month=month,
                month_name=calendar.month_name[month],
                net_sales=totals.mtd_net_sales,
                cogs=totals.mtd_cogs_cash,
                opex=totals.mtd_opex_cash,
                capex=totals.mtd_capex_cash,
                owner_draw=totals.mtd_owner_draw,
                survival_goal=survival_goal,
                survival_pct=survival_percent(totals.mtd_net_sales, survival_goal),
                cash_result=cash_health_result(totals, settings.monthly_roof_fund),
            )
        )

    ytd_sales, cogs, opex, capex, owner_draw = (
        round(sum(getattr(m, name) for m in months), 2)
        for name in ("net_sales", "cogs", "opex", "capex", "owner_draw")
    )
    ytd_goal = round(survival_goal * 12, 2)
    ytd = AnnualTotals(
        net_sales=ytd_sales,
        cogs=cogs,
        opex=opex,
        capex=capex,
        owner_draw=owner_draw,
        survival_goal=ytd_goal,
        survival_pct=survival_percent(ytd_sales, ytd_goal),
        cash_result=round(ytd_sales - cogs - opex - capex - owner_draw, 2),
    )
    logger.debug("Annual rollup for %d: %d months, YTD sales %.2f.", year, len(months), ytd_sales)
    return AnnualRollup(year=year, months=months, ytd=ytd)
