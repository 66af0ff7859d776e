from datetime import date, datetime

import pytest

from health_meter.confidence import ConfidenceLevel
from health_meter.dashboard import (
    DEFAULT_HISTORY_DAYS,
    annual_rollup,
    compute_dashboard,
    continuity_start_date,
    effective_as_of,
    sales_not_entered,
)
from health_meter.models import (
    CashInjection,
    CashSnapshot,
    DayEntry,
    ExpenseCategory,
    ExpenseTransaction,
    InjectionType,
    OpenHoursTemplate,
    ReferenceMonthData,
    Settings,
)

AS_OF = date(2025, 3, 12)


def _settings(**overrides) -> Settings:
    values = dict(
        monthly_fixed_nut=19500,
        target_cogs_pct=0.30,
        target_fees_pct=0.05,
        open_hours=OpenHoursTemplate(8, 8, 8, 8, 8, 8, 8),
        operating_floor_cash=10000,
        target_reserve_cash=100000,
        business_name="Corner Shop",
    )
    values.update(overrides)
    return Settings(**values)


def _entries() -> list[DayEntry]:
    # Ten logged days, then an unlogged one
    entries = [DayEntry(date(2025, 3, d), 1000) for d in range(1, 11)]
    entries.append(DayEntry(date(2025, 3, 11), None))
    entries.append(DayEntry(date(2025, 2, 28), 5000))  # previous month
    return entries


def _expenses() -> list[ExpenseTransaction]:
    return [
        ExpenseTransaction(date(2025, 3, 3), 1800, ExpenseCategory.COGS),
        ExpenseTransaction(date(2025, 3, 4), 1200, ExpenseCategory.COGS, spread_months=12),
        ExpenseTransaction(date(2025, 3, 5), 2000, ExpenseCategory.OPEX),
        ExpenseTransaction(date(2025, 3, 8), 500, ExpenseCategory.OWNER_DRAW),
        ExpenseTransaction(date(2025, 3, 11), 700, ExpenseCategory.CAPEX),
    ]


def _dashboard(**kwargs):
    params = dict(
        settings=_settings(),
        as_of=AS_OF,
        day_entries=_entries(),
        expenses=_expenses(),
        reference_months=[ReferenceMonthData(2024, 3, 31000)],
        snapshots=[CashSnapshot(date(2025, 3, 1), 50000)],
    )
    params.update(kwargs)
    return compute_dashboard(**params)


def test_effective_as_of_uses_last_day_with_sales() -> None:
    entries = _entries() + [DayEntry(date(2025, 3, 12), 0)]
    assert effective_as_of(entries, AS_OF) == date(2025, 3, 10)
    assert effective_as_of([], AS_OF) == AS_OF
    # Sales from another month never move the date
    assert effective_as_of([DayEntry(date(2025, 2, 28), 10)], AS_OF) == AS_OF


def test_sales_not_entered_reminder() -> None:
    settings = _settings()
    effective = date(2025, 3, 10)

    assert sales_not_entered(settings, effective, datetime(2025, 3, 12, 17, 0))
    assert not sales_not_entered(settings, effective, datetime(2025, 3, 12, 10, 0))
    assert not sales_not_entered(settings, effective, datetime(2025, 3, 10, 18, 0))
    assert not sales_not_entered(settings, effective, None)

    closed_wednesday = _settings(open_hours=OpenHoursTemplate(8, 8, 0, 8, 8, 8, 8))
    assert not sales_not_entered(closed_wednesday, effective, datetime(2025, 3, 12, 17, 0))


def test_continuity_start_date_resolution() -> None:
    refs = [ReferenceMonthData(2024, 5, 1), ReferenceMonthData(2023, 11, 1)]
    effective = date(2025, 3, 10)

    dated = _settings(year_start_cash_date=date(2025, 1, 15))
    amount_only = _settings(year_start_cash_amount=1000)

    assert continuity_start_date(dated, refs, effective) == date(2025, 1, 15)
    assert continuity_start_date(amount_only, refs, effective) == date(2025, 1, 1)
    assert continuity_start_date(_settings(), refs, effective) == date(2023, 11, 1)
    assert (effective - continuity_start_date(_settings(), [], effective)).days == (
        DEFAULT_HISTORY_DAYS
    )


def test_goals_pacing_and_cash_results() -> None:
    result = _dashboard()

    assert result.business_name == "Corner Shop"
    assert result.as_of == date(2025, 3, 10)
    assert result.requested_as_of == AS_OF

    assert result.month_data.mtd_net_sales == 10000
    assert result.month_data.mtd_cogs_cash == 3000
    assert result.month_data.mtd_capex_cash == 700  # counted up to the requested date

    assert result.survival_goal == pytest.approx(30000)
    assert result.survival_pct == pytest.approx(100 / 3)
    assert result.remaining == pytest.approx(20000)
    assert result.pace_target == pytest.approx(9677.42)
    assert result.pace_delta == pytest.approx(322.58)
    assert result.pit_board.remaining_open_days == 21

    assert result.cash_result == pytest.approx(3800)
    assert result.normalized_cogs == pytest.approx(1900)
    assert result.true_cash_result == pytest.approx(4900)
    assert result.actual_cogs_rate == pytest.approx(0.30)


def test_confidence_and_health() -> None:
    result = _dashboard()

    # 10 of 12 days logged, sales present, expenses in the last week
    assert result.confidence_score == 88
    assert result.confidence == ConfidenceLevel.HIGH
    assert result.true_health.confidence == ConfidenceLevel.HIGH
    assert 0 <= result.true_health.score <= 100


def test_last_year_pace() -> None:
    ly = _dashboard().last_year

    assert ly is not None
    assert (ly.year, ly.month) == (2024, 3)
    assert ly.target_to_date == pytest.approx(10000)
    assert ly.pace_delta == pytest.approx(0)
    assert ly.pct_of_last_year == 32

    assert _dashboard(reference_months=[]).last_year is None


def test_liquidity_from_latest_snapshot() -> None:
    result = _dashboard()
    liquidity = result.liquidity

    # 50000 + 9000 sales after the snapshot - 5500 expenses up to Mar 10
    assert liquidity.cash_now == pytest.approx(53500)
    assert liquidity.cash_fill_pct == pytest.approx(53.5)
    assert liquidity.safe_to_spend == pytest.approx(43500)
    assert liquidity.nut_coverage_pct == 274
    assert liquidity.average_daily_sales == 1000.0
    assert liquidity.margin_trend.direction == "flat"

    assert result.continuity.end_date == date(2025, 3, 10)
    assert not result.continuity.is_complete
    assert result.weekly_ly_estimate


def test_without_snapshots_cash_comes_from_the_estimate() -> None:
    result = _dashboard(snapshots=[])

    assert result.continuity.confidence == ConfidenceLevel.LOW
    assert result.liquidity.cash_now == result.continuity.current_balance


def test_sales_not_entered_uses_today() -> None:
    assert _dashboard(today=datetime(2025, 3, 12, 17, 0)).sales_not_entered
    assert not _dashboard(today=datetime(2025, 3, 12, 10, 0)).sales_not_entered


def test_capital_invested_series_and_total() -> None:
    injections = [
        CashInjection(date(2025, 3, 4), 20000),
        CashInjection(date(2025, 3, 6), 5000, InjectionType.WITHDRAWAL),
        CashInjection(date(2025, 2, 10), 1000, InjectionType.INJECTION, note="start-up loan"),
    ]
    liquidity = _dashboard(injections=injections).liquidity
    by_week = {p.week_start: p.capital for p in liquidity.capital_series}

    assert liquidity.total_capital_invested == pytest.approx(16000)
    assert [p.week_start for p in liquidity.capital_series] == [
        w.week_start for w in _dashboard().continuity.weekly_balances
    ]
    assert by_week[date(2025, 2, 3)] == 0
    assert by_week[date(2025, 2, 10)] == pytest.approx(1000)
    assert by_week[date(2025, 3, 3)] == pytest.approx(16000)
    assert liquidity.capital_series[-1].capital == pytest.approx(16000)


def test_without_injections_capital_is_zero() -> None:
    liquidity = _dashboard().liquidity

    assert liquidity.total_capital_invested == 0
    assert all(p.capital == 0 for p in liquidity.capital_series)


def test_annual_rollup_months_and_year_to_date() -> None:
    rollup = annual_rollup(_settings(), 2025, _entries(), _expenses())

    assert rollup.year == 2025
    assert [m.month for m in rollup.months] == list(range(1, 13))
    assert rollup.months[0].month_name == "January"

    february, march = rollup.months[1], rollup.months[2]
    assert february.net_sales == 5000
    assert february.cash_result == pytest.approx(5000)
    assert (march.net_sales, march.cogs, march.opex) == (10000, 3000, 2000)
    assert (march.capex, march.owner_draw) == (700, 500)
    assert march.survival_goal == pytest.approx(30000)
    assert march.survival_pct == pytest.approx(100 / 3)
    assert march.cash_result == pytest.approx(3800)
    assert rollup.months[11].net_sales == 0
    assert rollup.months[11].survival_pct == 0

    ytd = rollup.ytd
    assert ytd.net_sales == 15000
    assert ytd.survival_goal == pytest.approx(360000)
    assert ytd.survival_pct == pytest.approx(15000 / 360000 * 100)
    assert ytd.cash_result == pytest.approx(sum(m.cash_result for m in rollup.months))
    assert ytd.cash_result == pytest.approx(8800)


def test_annual_rollup_only_counts_its_year() -> None:
    entries = _entries() + [DayEntry(date(2024, 12, 31), 4000)]
    expenses = _expenses() + [ExpenseTransaction(date(2026, 1, 2), 900, ExpenseCategory.OPEX)]

    ytd = annual_rollup(_settings(), 2025, entries, expenses).ytd

    assert ytd.net_sales == 15000
    assert ytd.opex == 2000
