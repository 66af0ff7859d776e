from datetime import date

import pytest

from health_meter.dates import (
    add_days,
    days_in_month,
    get_week_end,
    get_week_start,
    iter_days,
    iter_month_days,
    month_start,
    months_between,
    parse_iso_date,
)


def test_parse_iso_date_accepts_strings_and_dates() -> None:
    assert parse_iso_date("2025-03-14") == date(2025, 3, 14)
    assert parse_iso_date(" 2025-03-14 ") == date(2025, 3, 14)
    assert parse_iso_date(date(2025, 3, 14)) == date(2025, 3, 14)


@pytest.mark.parametrize("bad", ["2025-13-01", "14/03/2025", ""])
def test_parse_iso_date_rejects_invalid_strings(bad: str) -> None:
    with pytest.raises(ValueError, match="Expected YYYY-MM-DD"):
        parse_iso_date(bad)


def test_days_in_month_handles_leap_years() -> None:
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2025, 2) == 28
    assert days_in_month(2025, 12) == 31


def test_weeks_run_monday_to_sunday() -> None:
    # 2025-03-05 is a Wednesday
    assert get_week_start(date(2025, 3, 5)) == date(2025, 3, 3)
    assert get_week_end(date(2025, 3, 5)) == date(2025, 3, 9)
    # Sunday belongs to the week that started the previous Monday
    assert get_week_start(date(2025, 3, 9)) == date(2025, 3, 3)


def test_calendar_helpers() -> None:
    assert add_days(date(2025, 2, 27), 2) == date(2025, 3, 1)
    assert add_days(date(2025, 3, 1), -1) == date(2025, 2, 28)
    assert month_start(date(2025, 3, 14)) == date(2025, 3, 1)
    assert months_between(date(2024, 11, 30), date(2025, 2, 1)) == 3
    assert list(iter_days(date(2025, 3, 1), date(2025, 3, 3))) == [
        date(2025, 3, 1),
        date(2025, 3, 2),
        date(2025, 3, 3),
    ]
    assert list(iter_days(date(2025, 3, 3), date(2025, 3, 1))) == []
    assert len(list(iter_month_days(2024, 2))) == 29
