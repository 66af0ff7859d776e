from datetime import date

import pytest

from health_meter.confidence import (
    ConfidenceFactors,
    ConfidenceLevel,
    confidence_factors_for_period,
    confidence_level,
    confidence_score,
)
from health_meter.models import DayEntry, ExpenseCategory, ExpenseTransaction


@pytest.mark.parametrize(
    "factors, expected_score, expected_level",
    [
        (ConfidenceFactors(True, True, 30, 30), 100, ConfidenceLevel.HIGH),
        (ConfidenceFactors(False, False, 0, 30), 0, ConfidenceLevel.LOW),
        (ConfidenceFactors(True, False, 15, 30), 50, ConfidenceLevel.MEDIUM),
        (ConfidenceFactors(True, True, 0, 0), 30, ConfidenceLevel.LOW),
        (ConfidenceFactors(True, True, 20, 30), 77, ConfidenceLevel.MEDIUM),
    ],
)
def test_confidence_score_and_level(
    factors: ConfidenceFactors, expected_score: int, expected_level: ConfidenceLevel
) -> None:
    score = confidence_score(factors)
    assert score == expected_score
    assert confidence_level(score) == expected_level


def test_confidence_score_is_monotonic_in_coverage() -> None:
    scores = [
        confidence_score(ConfidenceFactors(True, False, days, 30)) for days in range(31)
    ]
    assert scores == sorted(scores)
    assert all(0 <= s <= 100 for s in scores)


def test_level_thresholds() -> None:
    assert confidence_level(80) == ConfidenceLevel.HIGH
    assert confidence_level(79.9) == ConfidenceLevel.MEDIUM
    assert confidence_level(50) == ConfidenceLevel.MEDIUM
    assert confidence_level(49) == ConfidenceLevel.LOW


def test_factors_for_period_counts_logged_days_only() -> None:
    entries = [
        DayEntry(date(2025, 3, 1), 100.0),
        DayEntry(date(2025, 3, 2), 0.0),  # logged zero still counts
        DayEntry(date(2025, 3, 3), None),  # not logged
        DayEntry(date(2025, 2, 28), 50.0),  # outside the period
    ]
    expenses = [ExpenseTransaction(date(2025, 3, 5), 40.0, ExpenseCategory.OPEX)]

    factors = confidence_factors_for_period(entries, expenses, date(2025, 3, 1), date(2025, 3, 10))

    assert factors.days_with_data == 2
    assert factors.total_days_in_period == 10
    assert factors.has_sales_data is True
    assert factors.has_recent_expenses is True


def test_factors_for_period_old_expenses_are_not_recent() -> None:
    expenses = [ExpenseTransaction(date(2025, 3, 1), 40.0, ExpenseCategory.OPEX)]

    factors = confidence_factors_for_period([], expenses, date(2025, 3, 1), date(2025, 3, 20))

    assert factors.has_recent_expenses is False
    assert factors.has_sales_data is False
    assert confidence_level(confidence_score(factors)) == ConfidenceLevel.LOW
