# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for HB Health Meter.

This module turns engine results into pandas DataFrames ready for
display or CSV export, and into plain JSON-compatible structures.

The main views are:

- summary: one row per dashboard figure (key, label, value, unit, section),
- series:  the daily balance curve (date, balance, is_actual, source),
- weekly:  weekly balance, delta, last-year estimate and owner capital
           side by side,
- annual:  one row per calendar month plus a year-to-date row.

The computation itself is performed by ``dashboard.compute_dashboard``.
This module only reshapes its output.
"""

from collections.abc import Sequence
from dataclasses import asdict, is_dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional

import pandas as pd

from .dashboard import AnnualRollup, DashboardResult
from .estimator import WeeklyEstimate
from .goals import clamp_for_gauge
from .liquidity import CapitalPoint
from .reconcile import DailyBalancePoint, WeeklyBalance, WeeklyDelta

SUMMARY_COLUMNS = ["section", "key", "label", "value", "unit"]
SERIES_COLUMNS = ["date", "balance", "is_actual", "source"]
WEEKLY_COLUMNS = [
    "week_start",
    "week_end",
    "balance",
    "delta",
    "pct_change",
    "has_data",
    "is_estimate",
    "ly_estimate",
    "capital",
]
ANNUAL_COLUMNS = [
    "month",
    "net_sales",
    "cogs",
    "opex",
    "capex",
    "owner_draw",
    "survival_goal",
    "survival_pct",
    "cash_result",
]

# Display order of summary sections.
SECTION_ORDER = {"goals": 0, "pacing": 1, "health": 2, "cash": 3, "continuity": 4}


def _row(section: str, key: str, label: str, value: Any, unit: str) -> dict[str, object]:
    return {"section": section, "key": key, "label": label, "value": value, "unit": unit}


def summary_rows(result: DashboardResult) -> list[dict[str, object]]:
    """Flatten a DashboardResult into labelled summary rows."""
    md = result.month_data
    liq = result.liquidity
    cont = result.continuity
    health = result.true_health

    rows = [
        _row("goals", "mtd_net_sales", "Net sales (MTD)", md.mtd_net_sales, "amount"),
        _row("goals", "survival_goal", "Survival goal", result.survival_goal, "amount"),
        _row("goals", "ideal_goal", "Ideal goal", result.ideal_goal, "amount"),
        _row("goals", "survival_pct", "Survival %", result.survival_pct, "percent"),
        _row(
            "goals",
            "survival_gauge_pct",
            "Survival % (gauge)",
            clamp_for_gauge(result.survival_pct),
            "percent",
        ),
        _row("goals", "remaining", "Remaining to goal", result.remaining, "amount"),
        _row("pacing", "pace_target", "Pace target to date", result.pace_target, "amount"),
        _row("pacing", "pace_delta", "Ahead / behind pace", result.pace_delta, "amount"),
        _row(
            "pacing",
            "daily_needed",
            "Needed per open day",
            result.pit_board.daily_needed,
            "amount",
        ),
        _row(
            "pacing",
            "remaining_open_days",
            "Open days left",
            result.pit_board.remaining_open_days,
            "days",
        ),
        _row("health", "cash_result", "Cash result", result.cash_result, "amount"),
        _row("health", "true_cash_result", "True cash result", result.true_cash_result, "amount"),
        _row(
            "health",
            "actual_cogs_pct",
            "Actual COGS %",
            result.actual_cogs_rate * 100,
            "percent",
        ),
        _row("health", "confidence_score", "Confidence score", result.confidence_score, "score"),
        _row("health", "confidence", "Confidence", result.confidence.value, "level"),
        _row("health", "true_health", "True health", health.score, "score"),
        _row("health", "true_health_raw", "True health (raw)", health.raw_score, "score"),
        _row("cash", "cash_now", "Cash on hand", liq.cash_now, "amount"),
        _row("cash", "cash_fill_pct", "Reserve fill %", liq.cash_fill_pct, "percent"),
        _row("cash", "safe_to_spend", "Safe to spend", liq.safe_to_spend, "amount"),
        _row("cash", "daily_burn", "Daily burn", liq.daily_burn, "amount"),
        _row("cash", "runway_days", "Runway", liq.runway_days, "days"),
        _row("cash", "nut_coverage_pct", "Nut coverage %", liq.nut_coverage_pct, "percent"),
        _row(
            "cash",
            "total_capital_invested",
            "Owner capital invested",
            liq.total_capital_invested,
            "amount",
        ),
        _row("continuity", "velocity", "Velocity per week", cont.velocity, "amount"),
        _row("continuity", "eta_floor_weeks", "Weeks to floor", cont.eta_floor.weeks, "weeks"),
        _row(
            "continuity",
            "eta_target_weeks",
            "Weeks to target reserve",
            cont.eta_target.weeks,
            "weeks",
        ),
        _row("continuity", "anchor_method", "Start anchor", cont.anchor.method.value, "text"),
        _row("continuity", "is_complete", "Estimate complete", cont.is_complete, "flag"),
    ]

    if result.last_year is not None:
        ly = result.last_year
        rows.extend(
            [
                _row(
                    "pacing", "ly_target_to_date", "Last year to date", ly.target_to_date, "amount"
                ),
                _row("pacing", "ly_pace_delta", "Vs last year pace", ly.pace_delta, "amount"),
                _row(
                    "pacing", "pct_of_last_year", "% of last year", ly.pct_of_last_year, "percent"
                ),
            ]
        )
    return rows


def summary_to_dataframe(result: DashboardResult, decimals: int) -> pd.DataFrame:
    """
    Convert a DashboardResult into a summary DataFrame.

    Numeric values are rounded to ``decimals``. Missing values (for
    example an unreachable ETA) become NaN. Rows are sorted by section,
    keeping the insertion order inside a section.
    """
    rows = summary_rows(result)
    for row in rows:
        value = row["value"]
        if value is None:
            row["value"] = float("nan")
        elif isinstance(value, float):
            row["value"] = round(value, decimals)

    df = pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
    df["__section_order__"] = df["section"].map(lambda s: SECTION_ORDER.get(s, 99))
    df = df.sort_values("__section_order__", kind="stable").drop(columns=["__section_order__"])
    return df.reset_index(drop=True)


def balance_series_to_dataframe(
    points: Sequence[DailyBalancePoint], decimals: int = 2
) -> pd.DataFrame:
    if not points:
        return pd.DataFrame(columns=SERIES_COLUMNS)

    df = pd.DataFrame(
        [
            {
                "date": p.date.isoformat(),
                "balance": round(p.balance, decimals),
                "is_actual": p.is_actual,
                "source": p.source.value,
            }
            for p in points
        ]
    )
    return df[SERIES_COLUMNS]


def weekly_to_dataframe(
    balances: Sequence[WeeklyBalance],
    deltas: Sequence[WeeklyDelta],
    ly_estimates: Optional[Sequence[WeeklyEstimate]] = None,
    decimals: int = 2,
    capital: Optional[Sequence[CapitalPoint]] = None,
) -> pd.DataFrame:
    """
    Join weekly balances, deltas, the last-year estimate and owner capital
    on ``week_start``.

    Weeks with a last-year estimate but no balance are kept (outer join).
    Capital is NaN where no capital point exists.
    """
    if not balances and not ly_estimates:
        return pd.DataFrame(columns=WEEKLY_COLUMNS)

    bal = pd.DataFrame(
        [asdict(b) for b in balances],
        columns=["week_start", "week_end", "balance", "is_estimate"],
    )
    dlt = pd.DataFrame(
        [asdict(d) for d in deltas],
        columns=["week_start", "week_end", "delta", "pct_change", "has_data"],
    ).drop(columns=["week_end"])
    ly = pd.DataFrame(
        [
            {"week_start": e.week_start, "ly_week_end": e.week_end, "ly_estimate": e.value}
            for e in (ly_estimates or [])
        ],
        columns=["week_start", "ly_week_end", "ly_estimate"],
    )

    cap = pd.DataFrame(
        [{"week_start": c.week_start, "capital": c.capital} for c in (capital or [])],
        columns=["week_start", "capital"],
    )

    df = bal.merge(dlt, on="week_start", how="left").merge(ly, on="week_start", how="outer")
    df = df.merge(cap, on="week_start", how="left")
    df["week_end"] = df["week_end"].fillna(df["ly_week_end"])
    df = df.drop(columns=["ly_week_end"]).sort_values("week_start", kind="stable")

    for col in ("balance", "delta", "ly_estimate", "capital"):
        df[col] = df[col].astype(float).round(decimals)
    df["pct_change"] = df["pct_change"].astype(float).round(4)
    df["week_start"] = df["week_start"].map(lambda d: d.isoformat())
    df["week_end"] = df["week_end"].map(lambda d: d.isoformat())

    return df[WEEKLY_COLUMNS].reset_index(drop=True)


def annual_to_dataframe(rollup: AnnualRollup, decimals: int = 2) -> pd.DataFrame:
    """Twelve month rows named by month, then a ``YTD`` row."""
    rows = [{**asdict(m), "month": m.month_name} for m in rollup.months]
    rows.append({**asdict(rollup.ytd), "month": "YTD"})

    df = pd.DataFrame(rows)[ANNUAL_COLUMNS]
    numeric = [c for c in ANNUAL_COLUMNS if c != "month"]
    df[numeric] = df[numeric].astype(float).round(decimals)
    return df


def to_jsonable(value: Any) -> Any:
    """Recursively convert dataclasses, dates and enums to JSON types."""
    if is_dataclass(value) and not isinstance(value, type):
        return {k: to_jsonable(v) for k, v in asdict(value).items()}
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    return value
