# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Balance reconstruction and reconciliation.

Owners rarely log their bank balance every day. This module produces a
believable, continuous daily balance curve that passes exactly through
every balance they did observe.

Pipeline
--------
1. Estimate   : running sum of estimated daily net flow from a seed
                balance (``build_estimated_balance_series``).
2. Anchor     : observed snapshots as a sorted, de-duplicated series
                (``cash_balance_series_from_snapshot``).
3. Reconcile  : rebase the estimate so it hits every anchor while keeping
                the shape of the model between anchors
                (``reconcile_series_to_snapshot``).
4. Merge      : observed values override the reconciled curve
                (``merge_actual_and_estimated_series``), then weekly
                deltas, velocity and threshold ETAs are derived from it.

Reconciliation between two anchors
----------------------------------
With corrections ``c0 = b0 - est(d0)`` and ``c1 = b1 - est(d1)``, the
discrepancy ``c1 - c0`` is spread over the interval in proportion to the
estimator's own cumulative absolute day-to-day movement. A flat stretch
of the model receives no correction while a busy one receives most of
it, so peaks and dips stay where the model put them. When the model does
not move at all over the interval, the discrepancy is spread linearly
by calendar days.

Before the first anchor and after the last one, the nearest anchor's
correction is carried as a constant offset.
"""

import logging
import math
from collections import OrderedDict
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Union

from .confidence import (
    ConfidenceLevel,
    confidence_factors_for_period,
    confidence_level,
    confidence_score,
)
from .dates import add_days, get_week_end, get_week_start, iter_days
from .estimator import (
    DailyNetFlowEstimate,
    cumulative_net_flow,
    estimate_daily_net_cash_flow,
    reference_months_to_daily_sales_estimate_for_range,
)
from .models import CashSnapshot, DayEntry, ExpenseTransaction, ReferenceMonthData, Settings

logger = logging.getLogger(__name__)

# Inferred anchors further away than this are reported with LOW confidence.
INFERENCE_HORIZON_DAYS = 90

ETA_UNCERTAINTY = {
    ConfidenceLevel.HIGH: 0.0,
    ConfidenceLevel.MEDIUM: 0.2,
    ConfidenceLevel.LOW: 0.4,
}


class BalanceSource(str, Enum):
    """Pipeline stage that produced a balance point."""

    ESTIMATED = "ESTIMATED"
    RECONCILED = "RECONCILED"
    ACTUAL = "ACTUAL"


class AnchorMethod(str, Enum):
    USER_PROVIDED = "USER_PROVIDED"
    SNAPSHOT = "SNAPSHOT"
    BACK_CALCULATED = "BACK_CALCULATED"
    FORWARD_CALCULATED = "FORWARD_CALCULATED"
    DEFAULT = "DEFAULT"


class EtaDirection(str, Enum):
    TO_FLOOR = "to_floor"
    TO_TARGET = "to_target"
    STABLE = "stable"


@dataclass(frozen=True)
class DailyBalancePoint:
    date: date
    balance: float
    is_actual: bool
    source: BalanceSource = BalanceSource.ESTIMATED


@dataclass(frozen=True)
class WeeklyBalance:
    week_start: date
    week_end: date
    balance: float
    is_estimate: bool


@dataclass(frozen=True)
class WeeklyDelta:
    week_start: date
    week_end: date
    delta: float
    pct_change: float
    has_data: bool


@dataclass(frozen=True)
class EtaResult:
    """
    Weeks until a balance crosses a threshold.

    ``weeks`` is None when the threshold is never reached at the current
    velocity. ``weeks_min``/``weeks_max`` give an uncertainty band when
    confidence is not HIGH.
    """

    weeks: Optional[int]
    date: Optional[date]
    weeks_min: Optional[int] = None
    weeks_max: Optional[int] = None
    is_estimate: bool = False
    direction: EtaDirection = EtaDirection.STABLE


@dataclass(frozen=True)
class InferredAnchorResult:
    as_of: date
    balance: float
    is_inferred: bool
    method: AnchorMethod
    confidence: ConfidenceLevel


@dataclass(frozen=True)
class ContinuityResult:
    """Everything the cash-continuity view needs, from one computation."""

    start_date: date
    end_date: date
    anchor: InferredAnchorResult
    estimated: list[DailyBalancePoint]
    reconciled: list[DailyBalancePoint]
    actual: list[DailyBalancePoint]
    merged: list[DailyBalancePoint]
    weekly_balances: list[WeeklyBalance]
    weekly_deltas: list[WeeklyDelta]
    velocity: float
    current_balance: Optional[float]
    eta_floor: EtaResult
    eta_target: EtaResult
    confidence: ConfidenceLevel
    is_complete: bool
    stats: dict[str, int] = field(default_factory=dict)


AnchorLike = Union[CashSnapshot, DailyBalancePoint]


# ---------------------------------------------------------------------------
# Stage 1: estimate
# ---------------------------------------------------------------------------


def build_estimated_balance_series(
    daily_net_flow: Iterable[DailyNetFlowEstimate],
    starting_balance: float,
    start_date: date,
) -> list[DailyBalancePoint]:
    """
    Running balance seeded with ``starting_balance`` as the close of
    ``start_date``. Flows dated on or before ``start_date`` are ignored.
    """
    points = [
        DailyBalancePoint(
            date=start_date,
            balance=round(starting_balance, 2),
            is_actual=False,
            source=BalanceSource.ESTIMATED,
        )
    ]
    running = starting_balance
    for flow in sorted(daily_net_flow, key=lambda f: f.date):
        if flow.date <= start_date:
            continue
        running += flow.net_flow
        points.append(
            DailyBalancePoint(
                date=flow.date,
                balance=round(running, 2),
                is_actual=False,
                source=BalanceSource.ESTIMATED,
            )
        )
    return points


# ---------------------------------------------------------------------------
# Stage 2: anchors
# ---------------------------------------------------------------------------


def _anchor_balances(anchors: Iterable[AnchorLike]) -> "OrderedDict[date, float]":
    """Date -> balance, sorted by date. The last entry for a date wins."""
    by_date: dict[date, float] = {}
    for anchor in anchors:
        if isinstance(anchor, CashSnapshot):
            by_date[anchor.date] = float(anchor.amount)
        else:
            by_date[anchor.date] = float(anchor.balance)
    return OrderedDict(sorted(by_date.items()))


def cash_balance_series_from_snapshot(
    snapshots: Iterable[AnchorLike],
) -> list[DailyBalancePoint]:
    """Observed balances as a sorted, de-duplicated actual series."""
    return [
        DailyBalancePoint(date=d, balance=b, is_actual=True, source=BalanceSource.ACTUAL)
        for d, b in _anchor_balances(snapshots).items()
    ]


# ---------------------------------------------------------------------------
# Stage 3: reconcile
# ---------------------------------------------------------------------------


def _carried_balance(estimate: "OrderedDict[date, float]", day: date) -> float:
    """Nearest estimated balance on or before ``day`` (first one if none)."""
    carried = next(iter(estimate.values()))
    for d, balance in estimate.items():
        if d > day:
            break
        carried = balance
    return carried


def _interval_weights(dates: list[date], values: list[float], i0: int, i1: int) -> list[float]:
    """
    Cumulative share of the discrepancy at each index in ``(i0, i1)``.

    Returns one weight per intermediate index.
    """
    movements = [abs(values[m] - values[m - 1]) for m in range(i0 + 1, i1 + 1)]
    total = sum(movements)

    weights: list[float] = []
    if total > 0:
        running = 0.0
        for m in range(i0 + 1, i1):
            running += movements[m - i0 - 1]
            weights.append(running / total)
        return weights

    logger.debug(
        "Estimate is flat between %s and %s; spreading the correction linearly.",
        dates[i0],
        dates[i1],
    )
    span = (dates[i1] - dates[i0]).days
    for m in range(i0 + 1, i1):
        weights.append((dates[m] - dates[i0]).days / span)
    return weights


def reconcile_series_to_snapshot(
    estimated: Iterable[DailyBalancePoint],
    anchors: Iterable[AnchorLike],
) -> list[DailyBalancePoint]:
    """
    Rebase an estimated series so that it passes through every anchor.

    Anchor dates missing from the estimate are inserted first. Anchor
    points carry the anchor balance exactly; other points are rounded to
    cents. Without anchors the estimate is returned as a sorted copy.
    """
    points = sorted(estimated, key=lambda p: p.date)
    anchor_map = _anchor_balances(anchors)

    if not anchor_map:
        logger.debug("No anchors: estimate returned unchanged.")
        return points

    estimate: "OrderedDict[date, float]" = OrderedDict((p.date, p.balance) for p in points)

    if estimate:
        missing = [d for d in anchor_map if d not in estimate]
        base = OrderedDict(estimate)
        for day in missing:
            estimate[day] = _carried_balance(base, day)
        if missing:
            logger.debug("Inserted %d anchor date(s) missing from the estimate.", len(missing))
            estimate = OrderedDict(sorted(estimate.items()))
    else:
        estimate = OrderedDict(anchor_map)

    dates = list(estimate.keys())
    values = list(estimate.values())
    position = {d: i for i, d in enumerate(dates)}

    anchor_idx = [position[d] for d in anchor_map]
    corrections = [anchor_map[dates[i]] - values[i] for i in anchor_idx]
    if len(anchor_idx) == 1:
        logger.debug("Single anchor: applying a constant offset of %.2f.", corrections[0])

    corrected = list(values)
    first, last = anchor_idx[0], anchor_idx[-1]
    for j in range(0, first):
        corrected[j] = values[j] + corrections[0]
    for j in range(last + 1, len(values)):
        corrected[j] = values[j] + corrections[-1]

    for k in range(len(anchor_idx) - 1):
        i0, i1 = anchor_idx[k], anchor_idx[k + 1]
        if i1 - i0 < 2:
            continue
        c0 = corrections[k]
        discrepancy = corrections[k + 1] - c0
        weights = _interval_weights(dates, values, i0, i1)
        for offset, weight in enumerate(weights):
            j = i0 + 1 + offset
            corrected[j] = values[j] + c0 + discrepancy * weight

    anchor_dates = set(anchor_map)
    return [
        DailyBalancePoint(
            date=d,
            balance=anchor_map[d] if d in anchor_dates else round(corrected[i], 2),
            is_actual=False,
            source=BalanceSource.RECONCILED,
        )
        for i, d in enumerate(dates)
    ]


# ---------------------------------------------------------------------------
# Stage 4: merge and derived series
# ---------------------------------------------------------------------------


def merge_actual_and_estimated_series(
    reconciled: Iterable[DailyBalancePoint],
    anchors: Iterable[AnchorLike],
) -> list[DailyBalancePoint]:
    """Actual balances override the series on their dates. Idempotent."""
    merged: dict[date, DailyBalancePoint] = {p.date: p for p in reconciled}
    for point in cash_balance_series_from_snapshot(anchors):
        merged[point.date] = point
    return [merged[d] for d in sorted(merged)]


def _group_by_week(
    daily: Iterable[DailyBalancePoint],
) -> "OrderedDict[date, list[DailyBalancePoint]]":
    weeks: "OrderedDict[date, list[DailyBalancePoint]]" = OrderedDict()
    for point in sorted(daily, key=lambda p: p.date):
        weeks.setdefault(get_week_start(point.date), []).append(point)
    return weeks


def weekly_balance_series(daily: Iterable[DailyBalancePoint]) -> list[WeeklyBalance]:
    """Last balance of each Monday-start week."""
    return [
        WeeklyBalance(
            week_start=week_start,
            week_end=get_week_end(week_start),
            balance=points[-1].balance,
            is_estimate=not any(p.is_actual for p in points),
        )
        for week_start, points in _group_by_week(daily).items()
    ]


def weekly_delta_series_from_balance(daily: Iterable[DailyBalancePoint]) -> list[WeeklyDelta]:
    """
    Week-over-week change of the balance.

    A week opens at the previous week's close. The first week opens at
    its own first point.
    """
    deltas: list[WeeklyDelta] = []
    previous_close: Optional[float] = None

    for week_start, points in _group_by_week(daily).items():
        opening = previous_close if previous_close is not None else points[0].balance
        close = points[-1].balance
        delta = round(close - opening, 2)
        pct_change = delta / opening if opening != 0 else 0.0

        deltas.append(
            WeeklyDelta(
                week_start=week_start,
                week_end=get_week_end(week_start),
                delta=delta,
                pct_change=pct_change,
                has_data=any(p.is_actual for p in points),
            )
        )
        previous_close = close

    return deltas


def calculate_velocity(weekly_deltas: Sequence[WeeklyDelta], window_size: int) -> float:
    """Simple moving average of the last ``window_size`` weekly deltas."""
    if window_size < 1:
        raise ValueError(f"window_size must be >= 1, got {window_size!r}.")
    if not weekly_deltas:
        return 0.0
    recent = weekly_deltas[-window_size:]
    return round(sum(d.delta for d in recent) / len(recent), 2)


def eta_to_threshold(
    current: float,
    velocity_per_week: float,
    threshold: float,
    *,
    as_of: Optional[date] = None,
    confidence: ConfidenceLevel = ConfidenceLevel.HIGH,
) -> EtaResult:
    """
    Weeks until ``current`` reaches ``threshold`` at ``velocity_per_week``.

    Only movement toward the threshold produces a value. A zero velocity
    or movement away from the threshold yields ``weeks=None``.
    """
    uncertainty = ETA_UNCERTAINTY[confidence]
    is_estimate = uncertainty > 0

    if current == threshold:
        return EtaResult(weeks=0, date=as_of, is_estimate=False, direction=EtaDirection.STABLE)

    if velocity_per_week < 0 and threshold < current:
        weeks = math.ceil((current - threshold) / -velocity_per_week)
        direction = EtaDirection.TO_FLOOR
    elif velocity_per_week > 0 and threshold > current:
        weeks = math.ceil((threshold - current) / velocity_per_week)
        direction = EtaDirection.TO_TARGET
    else:
        return EtaResult(weeks=None, date=None, is_estimate=is_estimate)

    weeks_min = weeks_max = None
    if is_estimate:
        weeks_min = math.floor(weeks * (1 - uncertainty))
        weeks_max = math.ceil(weeks * (1 + uncertainty))

    return EtaResult(
        weeks=weeks,
        date=add_days(as_of, 7 * weeks) if as_of is not None else None,
        weeks_min=weeks_min,
        weeks_max=weeks_max,
        is_estimate=is_estimate,
        direction=direction,
    )


# ---------------------------------------------------------------------------
# Anchor inference and actual ledger
# ---------------------------------------------------------------------------


def infer_anchor(
    target_date: date,
    anchors: Iterable[AnchorLike],
    daily_net_flow: Sequence[DailyNetFlowEstimate],
    *,
    provided: Optional[float] = None,
) -> InferredAnchorResult:
    """
    Best estimate of the balance at ``target_date``.

    Priority: a provided value, a snapshot on that date, back-calculation
    from the nearest later snapshot, forward calculation from the nearest
    earlier snapshot, then 0 with LOW confidence.
    """
    if provided is not None:
        return InferredAnchorResult(
            as_of=target_date,
            balance=float(provided),
            is_inferred=False,
            method=AnchorMethod.USER_PROVIDED,
            confidence=ConfidenceLevel.HIGH,
        )

    balances = _anchor_balances(anchors)
    if target_date in balances:
        return InferredAnchorResult(
            as_of=target_date,
            balance=balances[target_date],
            is_inferred=False,
            method=AnchorMethod.SNAPSHOT,
            confidence=ConfidenceLevel.HIGH,
        )

    later = [d for d in balances if d > target_date]
    earlier = [d for d in balances if d < target_date]

    if later:
        source_date = later[0]
        flow = cumulative_net_flow(daily_net_flow, target_date, source_date)
        balance = balances[source_date] - flow
        method = AnchorMethod.BACK_CALCULATED
    elif earlier:
        source_date = earlier[-1]
        flow = cumulative_net_flow(daily_net_flow, source_date, target_date)
        balance = balances[source_date] + flow
        method = AnchorMethod.FORWARD_CALCULATED
    else:
        logger.debug("No snapshot available: anchor at %s defaults to 0.", target_date)
        return InferredAnchorResult(
            as_of=target_date,
            balance=0.0,
            is_inferred=True,
            method=AnchorMethod.DEFAULT,
            confidence=ConfidenceLevel.LOW,
        )

    distance = abs((source_date - target_date).days)
    confidence = (
        ConfidenceLevel.LOW if distance > INFERENCE_HORIZON_DAYS else ConfidenceLevel.MEDIUM
    )
    return InferredAnchorResult(
        as_of=target_date,
        balance=round(balance, 2),
        is_inferred=True,
        method=method,
        confidence=confidence,
    )


def build_actual_daily_balance_series(
    snapshot: CashSnapshot,
    day_entries: Iterable[DayEntry],
    expenses: Iterable[ExpenseTransaction],
    end_date: date,
) -> list[DailyBalancePoint]:
    """
    Walk forward from ``snapshot`` with logged sales minus logged expenses.

    A point is emitted on the snapshot date and on every later day with
    logged sales, up to ``end_date``. Expenses on unlogged days are held
    until the next logged day.
    """
    sales_by_date = {
        e.date: float(e.net_sales_ex_tax) for e in day_entries if e.net_sales_ex_tax is not None
    }
    expenses_by_date: dict[date, float] = {}
    for expense in expenses:
        expenses_by_date[expense.date] = expenses_by_date.get(expense.date, 0.0) + expense.amount

    points = [
        DailyBalancePoint(
            date=snapshot.date,
            balance=float(snapshot.amount),
            is_actual=True,
            source=BalanceSource.ACTUAL,
        )
    ]
    running = float(snapshot.amount)
    pending_expenses = 0.0
    for day in iter_days(add_days(snapshot.date, 1), end_date):
        pending_expenses += expenses_by_date.get(day, 0.0)
        if day not in sales_by_date:
            continue
        running += sales_by_date[day] - pending_expenses
        pending_expenses = 0.0
        points.append(
            DailyBalancePoint(
                date=day,
                balance=round(running, 2),
                is_actual=True,
                source=BalanceSource.ACTUAL,
            )
        )
    return points


# ---------------------------------------------------------------------------
# Orchestration
# ---------------------------------------------------------------------------


def build_continuity_series(
    settings: Settings,
    start_date: date,
    as_of: date,
    reference_months: Iterable[ReferenceMonthData],
    snapshots: Iterable[CashSnapshot],
    day_entries: Iterable[DayEntry] = (),
    expenses: Iterable[ExpenseTransaction] = (),
    *,
    velocity_window: int = 4,
    provided_start_balance: Optional[float] = None,
) -> ContinuityResult:
    """
    Build the continuous daily balance curve for ``[start_date, as_of]``.

    Runs the range estimate, the net flow estimate, anchor inference at
    ``start_date``, then stages 1, 3 and 4. Logged days from the latest
    snapshot onward join the snapshots as anchors for both reconciliation
    and merge (snapshots win on shared dates), so the curve passes through
    every logged balance and carries its offset to the following days.

    Raises:
        InvalidRatioError: if the settings leave no margin.
    """
    day_entries = list(day_entries)
    expenses = list(expenses)
    in_range = [s for s in snapshots if start_date <= s.date <= as_of]

    daily_sales = reference_months_to_daily_sales_estimate_for_range(
        reference_months, start_date, as_of, settings.open_hours
    )
    flows = estimate_daily_net_cash_flow(daily_sales, settings)
    anchor = infer_anchor(start_date, in_range, flows, provided=provided_start_balance)

    estimated = build_estimated_balance_series(flows, anchor.balance, start_date)
    anchor_points = cash_balance_series_from_snapshot(in_range)

    if anchor_points:
        latest = anchor_points[-1]
        actual = build_actual_daily_balance_series(
            CashSnapshot(date=latest.date, amount=latest.balance),
            day_entries,
            expenses,
            as_of,
        )
        anchors = actual + anchor_points
        reconciled = reconcile_series_to_snapshot(estimated, anchors)
        merged = merge_actual_and_estimated_series(reconciled, anchors)
        factors = confidence_factors_for_period(day_entries, expenses, start_date, as_of)
        level = confidence_level(confidence_score(factors))
    else:
        logger.debug("No cash snapshots in range: continuity series is the raw estimate.")
        reconciled = list(estimated)
        actual = []
        merged = list(estimated)
        level = ConfidenceLevel.LOW

    weekly_deltas = weekly_delta_series_from_balance(merged)
    velocity = calculate_velocity(weekly_deltas, velocity_window)
    current = merged[-1].balance if merged else None

    if current is None:
        eta_floor = eta_target = EtaResult(weeks=None, date=None, is_estimate=True)
    else:
        eta_floor = eta_to_threshold(
            current, velocity, settings.operating_floor_cash, as_of=as_of, confidence=level
        )
        eta_target = eta_to_threshold(
            current, velocity, settings.target_reserve_cash, as_of=as_of, confidence=level
        )

    requested_days = (as_of - start_date).days + 1 if as_of >= start_date else 0
    is_complete = len(daily_sales) >= requested_days
    if not is_complete:
        logger.debug(
            "Estimate covers %d of %d requested days.", len(daily_sales), requested_days
        )

    return ContinuityResult(
        start_date=start_date,
        end_date=as_of,
        anchor=anchor,
        estimated=estimated,
        reconciled=reconciled,
        actual=actual,
        merged=merged,
        weekly_balances=weekly_balance_series(merged),
        weekly_deltas=weekly_deltas,
        velocity=velocity,
        current_balance=current,
        eta_floor=eta_floor,
        eta_target=eta_target,
        confidence=level,
        is_complete=is_complete,
        stats={
            "estimated": len(estimated),
            "actual": len(actual),
            "merged": len(merged),
        },
    )
