# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Goal and ratio primitives.

This module converts a cost structure (fixed monthly overhead, target
COGS and fee ratios) into the sales figures a business needs to reach,
and provides the small ratio helpers used by the health scorers.

Key formulas
------------
    keep_rate     = 1 - target_cogs_pct - target_fees_pct
    survival_goal = monthly_fixed_nut / keep_rate
    ideal_goal    = (nut + roof_fund + owner_draw_goal) / keep_rate

A keep rate <= 0 means the business loses money on every sale: no sales
figure can cover the fixed overhead. This is reported as an
``InvalidRatioError`` rather than a silent 0 or infinity.

Spread (amortized) expenses
---------------------------
A lump expense can be spread across several consecutive months. Its
monthly portion is ``amount / spread_months`` inside the window
``[start_month, start_month + spread_months)`` and 0 outside.
"""

from collections.abc import Iterable
from datetime import date

from .dates import month_start, months_between
from .models import ExpenseCategory, SpreadExpense


class InvalidRatioError(ValueError):
    """Raised when cost ratios leave no margin (keep rate <= 0)."""


def keep_rate(cogs_pct: float, fees_pct: float) -> float:
    """
    Fraction of each sales dollar left after COGS and transaction fees.

    Raises:
        InvalidRatioError: if ``cogs_pct + fees_pct >= 1``.
    """
    rate = 1.0 - cogs_pct - fees_pct
    if rate <= 0:
        raise InvalidRatioError(
            f"COGS ({cogs_pct:.2%}) and fees ({fees_pct:.2%}) leave no margin: "
            "keep rate must be strictly positive."
        )
    return rate


def survival_goal_net_ex_tax(nut: float, cogs_pct: float, fees_pct: float) -> float:
    """Net sales (ex tax) needed to cover the fixed monthly overhead."""
    return nut / keep_rate(cogs_pct, fees_pct)


def ideal_goal_net_ex_tax(
    nut: float,
    roof_fund: float,
    owner_draw_goal: float,
    cogs_pct: float,
    fees_pct: float,
) -> float:
    """Net sales needed to cover overhead, the reserve fund and the owner draw."""
    return (nut + roof_fund + owner_draw_goal) / keep_rate(cogs_pct, fees_pct)


def survival_percent(actual_sales: float, goal: float) -> float:
    """
    Actual sales as a percentage of the goal.

    The value is not clamped: values above 100 or below 0 carry meaning
    and are only clamped for display (see ``clamp_for_gauge``).
    """
    if goal <= 0:
        return 0.0
    return (actual_sales / goal) * 100


def clamp_for_gauge(value: float, min_value: float = 0.0, max_value: float = 150.0) -> float:
    """Clamp a percentage for gauge display. Never used inside core math."""
    return max(min_value, min(max_value, value))


def remaining_to_goal(goal: float, actual: float) -> float:
    """Amount still needed to reach ``goal``; 0 once the goal is met."""
    return max(goal - actual, 0.0)


def normalized_cogs(cogs_cash: float, net_sales: float) -> float:
    """Realized COGS ratio (COGS / net sales), 0 when there are no sales."""
    if net_sales <= 0:
        return 0.0
    return cogs_cash / net_sales


# Same quantity under the name used by the dashboard.
actual_cogs_rate = normalized_cogs


def is_spread_expense_active_in_month(expense: SpreadExpense, target_month: date) -> bool:
    """True when ``target_month`` falls inside the expense's spread window."""
    elapsed = months_between(month_start(expense.start_date), month_start(target_month))
    return 0 <= elapsed < expense.spread_months


def spread_expense_monthly_portion(expense: SpreadExpense, target_month: date) -> float:
    """Portion of ``expense`` attributed to the month of ``target_month``."""
    if not is_spread_expense_active_in_month(expense, target_month):
        return 0.0
    return round(expense.amount / expense.spread_months, 2)


def spread_adjusted_amount(
    cash_amount: float,
    spread_expenses: Iterable[SpreadExpense],
    category: ExpenseCategory,
    target_month: date,
) -> float:
    """
    Replace lump spread purchases by their monthly portions.

    ``cash_amount`` is the cash spent in the target month for
    ``category``. For each active spread expense of that category:

    - in its purchase month, the full amount (already counted in cash)
      is removed and the monthly portion added back;
    - in later months of the window, the monthly portion is added.

    Returns:
        The normalized amount, rounded to cents.
    """
    normalized = cash_amount
    target = month_start(target_month)

    for expense in spread_expenses:
        if expense.category != category:
            continue
        if not is_spread_expense_active_in_month(expense, target):
            continue
        portion = spread_expense_monthly_portion(expense, target)

        if month_start(expense.start_date) == target:
            normalized = normalized - expense.amount + portion
        else:
            normalized += portion

    return round(normalized, 2)
