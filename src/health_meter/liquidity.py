# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Liquidity helpers: cash on hand, reserve fill, runway, owner capital
and simple trends.

These are small, independent functions feeding the dashboard's cash
panel. Degenerate inputs (empty series, zero denominators) return 0 or
None; no function returns NaN or infinity.
"""

import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Optional

from .models import CashInjection, CashSnapshot, DayEntry, ExpenseTransaction
from .reconcile import DailyBalancePoint, WeeklyBalance


@dataclass(frozen=True)
class Change:
    amount: float
    percent: int


@dataclass(frozen=True)
class MarginTrend:
    """``up`` means COGS rose (margin fell)."""

    direction: str
    change: int


@dataclass(frozen=True)
class CapitalPoint:
    week_start: date
    week_end: date
    capital: float


def change_since_snapshot(
    snapshot_date: date,
    as_of: date,
    day_entries: Iterable[DayEntry],
    expenses: Iterable[ExpenseTransaction],
) -> float:
    """Logged sales minus expenses over ``(snapshot_date, as_of]``."""
    sales = sum(
        e.net_sales_ex_tax
        for e in day_entries
        if e.net_sales_ex_tax is not None and snapshot_date < e.date <= as_of
    )
    spent = sum(x.amount for x in expenses if snapshot_date < x.date <= as_of)
    return round(sales - spent, 2)


def cash_on_hand(series: Sequence[DailyBalancePoint]) -> Optional[float]:
    """Latest balance of a daily series, None when empty."""
    if not series:
        return None
    return max(series, key=lambda p: p.date).balance


def cash_on_hand_from_snapshot(
    snapshot: CashSnapshot,
    as_of: date,
    day_entries: Iterable[DayEntry],
    expenses: Iterable[ExpenseTransaction],
) -> float:
    change = change_since_snapshot(snapshot.date, as_of, day_entries, expenses)
    return round(snapshot.amount + change, 2)


def cash_fill_pct(cash: float, reserve_target: float, *, clamp: bool = True) -> float:
    """Cash as a percentage of the reserve target (0-100 when clamped)."""
    if reserve_target <= 0:
        return 0.0
    pct = cash / reserve_target * 100
    if clamp:
        return max(0.0, min(100.0, pct))
    return pct


def safe_to_spend(cash: float, floor: float) -> float:
    """Cash above the operating floor, never negative."""
    return max(0.0, cash - floor)


def runway_days(cash: float, daily_burn: float) -> Optional[int]:
    """
    Days until cash runs out at ``daily_burn`` (positive = burning).

    Returns None when the business is not burning cash.
    """
    if daily_burn <= 0:
        return None
    if cash <= 0:
        return 0
    return math.floor(cash / daily_burn)


def nut_coverage_percent(cash: float, monthly_nut: float) -> int:
    """Cash as a percentage of one month of fixed overhead (150 = 1.5 months)."""
    if monthly_nut <= 0:
        return 0
    return round(cash / monthly_nut * 100)


def week_over_week_change(balances: Sequence[WeeklyBalance]) -> Optional[Change]:
    if len(balances) < 2:
        return None
    current = balances[-1].balance
    previous = balances[-2].balance
    amount = round(current - previous, 2)
    percent = round(amount / previous * 100) if previous != 0 else 0
    return Change(amount=amount, percent=percent)


def daily_burn_rate(balances: Sequence[WeeklyBalance], lookback_weeks: int = 4) -> float:
    """
    Average daily decline of the balance across the last ``lookback_weeks``
    weekly points, which span one week fewer than the point count.
    Positive means cash is burning.
    """
    recent = list(balances[-lookback_weeks:]) if lookback_weeks > 0 else []
    if len(recent) < 2:
        return 0.0
    days_covered = (len(recent) - 1) * 7
    return round((recent[0].balance - recent[-1].balance) / days_covered, 2)


def average_daily_sales(day_entries: Iterable[DayEntry]) -> float:
    """Mean of logged days with positive sales, rounded to whole units."""
    values = [
        e.net_sales_ex_tax
        for e in day_entries
        if e.net_sales_ex_tax is not None and e.net_sales_ex_tax > 0
    ]
    if not values:
        return 0.0
    return float(round(sum(values) / len(values)))


def vs_last_year(current_value: float, ly_value: float) -> Change:
    amount = round(current_value - ly_value, 2)
    percent = round(amount / ly_value * 100) if ly_value != 0 else 0
    return Change(amount=amount, percent=percent)


def gross_margin_trend(current_cogs_rate: float, previous_cogs_rate: float) -> MarginTrend:
    """Compare two COGS rates. Moves within one point are ``flat``."""
    change = round((current_cogs_rate - previous_cogs_rate) * 100)
    if change > 1:
        return MarginTrend(direction="up", change=change)
    if change < -1:
        return MarginTrend(direction="down", change=change)
    return MarginTrend(direction="flat", change=change)


def total_capital_invested(
    injections: Iterable[CashInjection], up_to: Optional[date] = None
) -> float:
    """Injections minus withdrawals, optionally up to and including ``up_to``."""
    return round(
        sum(i.signed_amount for i in injections if up_to is None or i.date <= up_to), 2
    )


def capital_series(
    injections: Iterable[CashInjection], weeks: Sequence[WeeklyBalance]
) -> list[CapitalPoint]:
    """
    Net owner capital at the close of each week.

    Each point sums every injection dated on or before the week end and
    subtracts every withdrawal in the same window, so the series is
    cumulative and aligned with ``weeks``.
    """
    injections = list(injections)
    return [
        CapitalPoint(
            week_start=w.week_start,
            week_end=w.week_end,
            capital=total_capital_invested(injections, w.week_end),
        )
        for w in weeks
    ]
