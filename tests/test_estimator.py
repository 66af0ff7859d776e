from datetime import date

import pytest

from health_meter.estimator import (
    LY_ESTIMATE_SOURCE,
    DailySalesEstimate,
    cumulative_net_flow,
    estimate_daily_net_cash_flow,
    reference_months_to_daily_sales_estimate,
    reference_months_to_daily_sales_estimate_for_range,
    reference_months_to_weekly_ly_estimate,
)
from health_meter.goals import InvalidRatioError
from health_meter.models import OpenHoursTemplate, ReferenceMonthData, Settings


def _by_date(estimates) -> dict:
    return {e.date: e.estimated_sales for e in estimates}


def test_even_distribution_over_leap_february() -> None:
    estimates = reference_months_to_daily_sales_estimate([ReferenceMonthData(2024, 2, 2900)])

    assert len(estimates) == 29
    assert all(e.estimated_sales == pytest.approx(100.0) for e in estimates)
    assert sum(e.estimated_sales for e in estimates) == pytest.approx(2900)


def test_hours_weighted_distribution() -> None:
    # March 2025 has 193 open hours with the default template
    estimates = _by_date(
        reference_months_to_daily_sales_estimate(
            [ReferenceMonthData(2025, 3, 19300)], OpenHoursTemplate()
        )
    )

    assert estimates[date(2025, 3, 1)] == pytest.approx(800.0)  # Saturday, 8h
    assert estimates[date(2025, 3, 2)] == pytest.approx(500.0)  # Sunday, 5h
    assert estimates[date(2025, 3, 3)] == 0.0  # Monday, closed
    assert sum(estimates.values()) == pytest.approx(19300)


def test_closed_template_falls_back_to_even_spread() -> None:
    closed = OpenHoursTemplate(0, 0, 0, 0, 0, 0, 0)
    estimates = reference_months_to_daily_sales_estimate(
        [ReferenceMonthData(2025, 3, 31000)], closed
    )
    assert all(e.estimated_sales == pytest.approx(1000.0) for e in estimates)


def test_duplicate_reference_month_last_wins_and_gaps_stay_empty() -> None:
    refs = [
        ReferenceMonthData(2024, 1, 3100),
        ReferenceMonthData(2024, 1, 6200),
        ReferenceMonthData(2024, 3, 3100),
    ]
    estimates = _by_date(reference_months_to_daily_sales_estimate(refs))

    assert estimates[date(2024, 1, 15)] == pytest.approx(200.0)
    assert date(2024, 2, 10) not in estimates
    assert len(estimates) == 31 + 31


def test_range_estimate_uses_prior_year_reference() -> None:
    refs = [ReferenceMonthData(2024, 3, 31000), ReferenceMonthData(2025, 3, 62000)]

    this_year = reference_months_to_daily_sales_estimate_for_range(
        refs, date(2025, 3, 10), date(2025, 3, 12)
    )
    next_year = reference_months_to_daily_sales_estimate_for_range(
        refs, date(2026, 3, 10), date(2026, 3, 12)
    )

    assert [e.date for e in this_year] == [date(2025, 3, d) for d in (10, 11, 12)]
    assert all(e.estimated_sales == pytest.approx(1000.0) for e in this_year)
    assert all(e.estimated_sales == pytest.approx(2000.0) for e in next_year)


def test_range_estimate_first_year_uses_same_year_and_skips_unknown_months() -> None:
    refs = [ReferenceMonthData(2024, 3, 31000)]
    estimates = _by_date(
        reference_months_to_daily_sales_estimate_for_range(
            refs, date(2024, 3, 30), date(2024, 4, 2)
        )
    )

    assert estimates == {
        date(2024, 3, 30): pytest.approx(1000.0),
        date(2024, 3, 31): pytest.approx(1000.0),
    }


def test_range_estimate_empty_cases() -> None:
    refs = [ReferenceMonthData(2024, 3, 31000)]
    first, fifth = date(2024, 3, 1), date(2024, 3, 5)

    assert reference_months_to_daily_sales_estimate_for_range([], first, fifth) == []
    assert reference_months_to_daily_sales_estimate_for_range(refs, fifth, first) == []


def test_weekly_ly_estimate_monday_weeks() -> None:
    refs = [ReferenceMonthData(2024, 3, 31000)]
    weeks = reference_months_to_weekly_ly_estimate(refs, date(2025, 3, 3), date(2025, 3, 16))

    assert [w.week_start for w in weeks] == [date(2025, 3, 3), date(2025, 3, 10)]
    assert [w.week_end for w in weeks] == [date(2025, 3, 9), date(2025, 3, 16)]
    assert [w.value for w in weeks] == [7000.0, 7000.0]
    assert all(w.is_estimate and w.source == LY_ESTIMATE_SOURCE for w in weeks)


def test_daily_net_cash_flow() -> None:
    settings = Settings(monthly_fixed_nut=31000, target_cogs_pct=0.30, target_fees_pct=0.05)
    sales = [
        DailySalesEstimate(date(2025, 3, 2), 1000.0),
        DailySalesEstimate(date(2025, 3, 1), 1000.0),
    ]

    flows = estimate_daily_net_cash_flow(sales, settings)

    assert [f.date for f in flows] == [date(2025, 3, 1), date(2025, 3, 2)]
    assert flows[0].sales == 1000.0
    assert flows[0].net_flow == pytest.approx(-350.0)


def test_daily_net_cash_flow_rejects_invalid_ratios() -> None:
    settings = Settings(monthly_fixed_nut=31000, target_cogs_pct=0.70, target_fees_pct=0.30)
    with pytest.raises(InvalidRatioError):
        estimate_daily_net_cash_flow([DailySalesEstimate(date(2025, 3, 1), 1000.0)], settings)


def test_cumulative_net_flow_is_half_open() -> None:
    settings = Settings(monthly_fixed_nut=31000, target_cogs_pct=0.30, target_fees_pct=0.05)
    sales = [DailySalesEstimate(date(2025, 3, d), 1000.0) for d in range(1, 6)]
    flows = estimate_daily_net_cash_flow(sales, settings)

    # (Mar 1, Mar 4] -> Mar 2, 3, 4
    assert cumulative_net_flow(flows, date(2025, 3, 1), date(2025, 3, 4)) == pytest.approx(-1050.0)
    assert cumulative_net_flow(flows, date(2025, 3, 5), date(2025, 3, 5)) == 0.0
