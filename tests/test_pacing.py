from datetime import date

import pytest

from health_meter.models import OpenHoursTemplate
from health_meter.pacing import (
    average_hours_per_open_day,
    daily_needed_from_here,
    get_day_of_week,
    hours_for_date,
    is_open_day,
    mtd_target_to_date_hours_weighted,
    pace_delta_hours_weighted,
    pit_board,
    remaining_open_hours,
    target_for_day,
    total_open_hours_in_month,
)

# Default template: closed Monday, 8h Tuesday to Saturday, 5h Sunday.
TEMPLATE = OpenHoursTemplate()

# March 2025 starts on a Saturday: 5 Saturdays, 5 Sundays, 5 Mondays and
# 4 of every other weekday, i.e. 5*8 + 5*5 + 16*8 = 193 open hours.
MARCH_HOURS = 193


def test_template_lookup_by_weekday() -> None:
    assert get_day_of_week(date(2025, 3, 3)) == 0  # Monday
    assert hours_for_date(TEMPLATE, date(2025, 3, 3)) == 0
    assert hours_for_date(TEMPLATE, date(2025, 3, 1)) == 8
    assert hours_for_date(TEMPLATE, date(2025, 3, 2)) == 5
    assert not is_open_day(TEMPLATE, date(2025, 3, 3))
    assert is_open_day(TEMPLATE, date(2025, 3, 4))


def test_open_hours_template_validation() -> None:
    with pytest.raises(ValueError):
        OpenHoursTemplate(mon=25)
    template = OpenHoursTemplate.from_mapping({"tue": 10, "sat": "6"})
    assert template.tue == 10
    assert template.sat == 6
    assert template.mon == 0  # missing weekdays are closed


def test_total_and_remaining_open_hours() -> None:
    assert total_open_hours_in_month(TEMPLATE, 2025, 3) == MARCH_HOURS
    # After Sat 1 (8h) and Sun 2 (5h)
    assert remaining_open_hours(TEMPLATE, date(2025, 3, 2), 2025, 3) == MARCH_HOURS - 13
    assert remaining_open_hours(TEMPLATE, date(2025, 3, 31), 2025, 3) == 0


def test_hours_weighted_targets() -> None:
    goal = 19300.0

    assert target_for_day(date(2025, 3, 1), goal, TEMPLATE) == pytest.approx(800.0)
    assert target_for_day(date(2025, 3, 3), goal, TEMPLATE) == 0.0
    assert mtd_target_to_date_hours_weighted(date(2025, 3, 2), goal, TEMPLATE) == 1300.0
    # A closed Monday adds nothing to the target
    assert mtd_target_to_date_hours_weighted(date(2025, 3, 3), goal, TEMPLATE) == 1300.0
    assert mtd_target_to_date_hours_weighted(date(2025, 3, 31), goal, TEMPLATE) == goal


def test_closed_month_has_zero_target() -> None:
    closed = OpenHoursTemplate(0, 0, 0, 0, 0, 0, 0)
    assert mtd_target_to_date_hours_weighted(date(2025, 3, 15), 19300, closed) == 0.0
    assert target_for_day(date(2025, 3, 15), 19300, closed) == 0.0


def test_pace_delta_sign() -> None:
    assert pace_delta_hours_weighted(1500, 1300) == 200.0
    assert pace_delta_hours_weighted(1000, 1300) == -300.0


def test_daily_needed_from_here() -> None:
    assert average_hours_per_open_day(TEMPLATE) == pytest.approx(7.5)
    assert daily_needed_from_here(1500, 15, 7.5) == 750.0
    assert daily_needed_from_here(1500, 0, 7.5) == 0.0


def test_pit_board_mid_month() -> None:
    board = pit_board(date(2025, 3, 2), 1300, 19300, TEMPLATE)

    assert board.remaining == 18000
    assert board.remaining_open_hours == MARCH_HOURS - 13
    assert board.remaining_open_days == 24
    assert board.daily_needed == pytest.approx(750.0)
    assert board.is_reachable


def test_pit_board_no_open_day_left() -> None:
    # Sunday 30; the only remaining day (Monday 31) is closed.
    board = pit_board(date(2025, 3, 30), 10000, 19300, TEMPLATE)

    assert board.remaining == 9300
    assert board.remaining_open_days == 0
    assert board.daily_needed == 0.0
    assert not board.is_reachable


def test_pit_board_goal_already_met() -> None:
    board = pit_board(date(2025, 3, 30), 20000, 19300, TEMPLATE)
    assert board.remaining == 0
    assert board.is_reachable
