# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Data confidence scoring.

A figure computed from two logged days out of thirty should not be
presented with the same authority as one computed from a fully logged
month. This module rates how trustworthy a period's data is.

Score (0-100)
-------------
    coverage = days_with_data / total_days_in_period   (0 if no days)
    score    = 70 * coverage
             + 15 if any sales data
             + 15 if an expense was logged in the last 7 days

Coverage dominates: without any logged day the two bonuses add up to
30 at most, which always maps to LOW.

Levels
------
    score >= 80 -> HIGH
    score >= 50 -> MEDIUM
    otherwise   -> LOW
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from .models import DayEntry, ExpenseTransaction

COVERAGE_POINTS = 70
SALES_DATA_BONUS = 15
RECENT_EXPENSES_BONUS = 15

HIGH_THRESHOLD = 80
MEDIUM_THRESHOLD = 50

RECENT_EXPENSE_WINDOW_DAYS = 7


class ConfidenceLevel(str, Enum):
    """Coarse reliability rating attached to computed figures."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


@dataclass(frozen=True)
class ConfidenceFactors:
    """Raw data-completeness facts for a period."""

    has_sales_data: bool
    has_recent_expenses: bool
    days_with_data: int
    total_days_in_period: int


def confidence_score(factors: ConfidenceFactors) -> int:
    """Rate data completeness on a 0-100 scale."""
    coverage = 0.0
    if factors.total_days_in_period > 0:
        coverage = factors.days_with_data / factors.total_days_in_period
        coverage = max(0.0, min(1.0, coverage))

    score = COVERAGE_POINTS * coverage
    if factors.has_sales_data:
        score += SALES_DATA_BONUS
    if factors.has_recent_expenses:
        score += RECENT_EXPENSES_BONUS

    return min(100, int(round(score)))


def confidence_level(score: float) -> ConfidenceLevel:
    """Map a confidence score to HIGH / MEDIUM / LOW."""
    if score >= HIGH_THRESHOLD:
        return ConfidenceLevel.HIGH
    if score >= MEDIUM_THRESHOLD:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


def confidence_factors_for_period(
    day_entries: Iterable[DayEntry],
    expenses: Iterable[ExpenseTransaction],
    start: date,
    as_of: date,
) -> ConfidenceFactors:
    """
    Derive confidence factors from raw records for ``[start, as_of]``.

    A day counts as "with data" when its net sales were logged (even if
    the logged amount is 0). Expenses count as recent when dated within
    the 7 days up to and including ``as_of``.
    """
    logged_days = {
        e.date
        for e in day_entries
        if start <= e.date <= as_of and e.net_sales_ex_tax is not None
    }
    recent_from = as_of - timedelta(days=RECENT_EXPENSE_WINDOW_DAYS)
    has_recent_expenses = any(recent_from <= x.date <= as_of for x in expenses)
    total_days = (as_of - start).days + 1 if as_of >= start else 0

    return ConfidenceFactors(
        has_sales_data=bool(logged_days),
        has_recent_expenses=has_recent_expenses,
        days_with_data=len(logged_days),
        total_days_in_period=total_days,
    )
