# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for HB Health Meter.

This module reads the organisation's records from CSV files and turns
them into the plain dataclasses consumed by the engine.

Expected input formats
----------------------

Column names are case-insensitive and surrounding spaces are ignored.

1) Day entries
       date, net_sales_ex_tax

   ``net_sales`` is accepted as an alias for ``net_sales_ex_tax``.
   An empty cell means the day was not logged (different from 0).

2) Expenses
       date, amount, category [, vendor_name, spread_months]

   ``category`` is one of COGS, OPEX, CAPEX, OWNER_DRAW, TAX, OTHER
   (case-insensitive). An empty ``spread_months`` means a plain expense.

3) Cash snapshots
       date, amount

4) Reference months
       year, month, net_sales_ex_tax

   ``reference_net_sales_ex_tax`` is accepted as an alias.

5) Cash injections
       date, amount [, type, note]

   ``type`` is ``injection`` or ``withdrawal`` (case-insensitive). An
   empty or missing ``type`` means an injection.

Any other columns are ignored. Dates use the YYYY-MM-DD format.
If a file does not match its expected structure, or holds invalid
values, a clear ValueError is raised.
"""

import logging
import os
from typing import Union

import pandas as pd

from .models import (
    CashInjection,
    CashSnapshot,
    DayEntry,
    ExpenseCategory,
    ExpenseTransaction,
    InjectionType,
    ReferenceMonthData,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def _read_csv(path: PathLike, required: set[str], aliases: dict[str, str]) -> pd.DataFrame:
    """
    Read a CSV, normalize column names and check the required columns.

    Raises:
        ValueError: if a required column is missing.
    """
    df = pd.read_csv(path, dtype=str, keep_default_na=False)

    df.columns = [c.lower().strip() for c in df.columns]
    cols = set(df.columns)

    for alias, canonical in aliases.items():
        if alias in cols and canonical not in cols:
            df = df.rename(columns={alias: canonical})
            cols = set(df.columns)

    missing = required - cols
    if missing:
        raise ValueError(
            f"Invalid structure in {path}: missing column(s) "
            f"{', '.join(sorted(missing))}. Expected: {', '.join(sorted(required))} "
            "(column names are case-insensitive)."
        )

    for col in df.columns:
        df[col] = df[col].str.strip()
    return df


def _parse_dates(df: pd.DataFrame, path: PathLike) -> pd.Series:
    # Parse strictly: invalid dates should fail loudly
    try:
        return pd.to_datetime(df["date"], format="%Y-%m-%d", errors="raise").dt.date
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Invalid values in 'date' column of {path}.") from exc


def _parse_numbers(
    df: pd.DataFrame,
    column: str,
    path: PathLike,
    *,
    allow_empty: bool,
    whole: bool = False,
) -> pd.Series:
    values = df[column].where(df[column] != "")
    numbers = pd.to_numeric(values, errors="coerce")
    invalid = numbers.isna() & values.notna()
    if whole:
        invalid |= numbers.notna() & (numbers % 1 != 0)
    if invalid.any() or (not allow_empty and numbers.isna().any()):
        kind = "whole number" if whole else "numeric"
        raise ValueError(f"Invalid {kind} values in '{column}' column of {path}.")
    return numbers


def read_day_entries(path: PathLike) -> list[DayEntry]:
    """
    Read daily net sales.

    Returns:
        One DayEntry per row. Empty sales cells give ``None``.
    """
    df = _read_csv(path, {"date", "net_sales_ex_tax"}, {"net_sales": "net_sales_ex_tax"})
    dates = _parse_dates(df, path)
    sales = _parse_numbers(df, "net_sales_ex_tax", path, allow_empty=True)

    entries = [
        DayEntry(date=d, net_sales_ex_tax=None if pd.isna(s) else float(s))
        for d, s in zip(dates, sales)
    ]
    logger.info("Loaded %d day entries from %s", len(entries), path)
    return entries


def read_expenses(path: PathLike) -> list[ExpenseTransaction]:
    df = _read_csv(path, {"date", "amount", "category"}, {})
    dates = _parse_dates(df, path)
    amounts = _parse_numbers(df, "amount", path, allow_empty=False)

    try:
        categories = [ExpenseCategory(c.upper()) for c in df["category"]]
    except ValueError as exc:
        raise ValueError(
            f"Invalid values in 'category' column of {path}. Expected one of: "
            f"{', '.join(c.value for c in ExpenseCategory)}."
        ) from exc

    vendors = df["vendor_name"] if "vendor_name" in df.columns else [""] * len(df)
    if "spread_months" in df.columns:
        spreads = _parse_numbers(df, "spread_months", path, allow_empty=True, whole=True)
    else:
        spreads = pd.Series([None] * len(df), dtype="float64")

    expenses = [
        ExpenseTransaction(
            date=d,
            amount=float(a),
            category=c,
            vendor_name=str(v),
            spread_months=None if pd.isna(s) else int(s),
        )
        for d, a, c, v, s in zip(dates, amounts, categories, vendors, spreads)
    ]
    logger.info("Loaded %d expenses from %s", len(expenses), path)
    return expenses


def read_cash_snapshots(path: PathLike) -> list[CashSnapshot]:
    df = _read_csv(path, {"date", "amount"}, {})
    dates = _parse_dates(df, path)
    amounts = _parse_numbers(df, "amount", path, allow_empty=False)

    snapshots = [CashSnapshot(date=d, amount=float(a)) for d, a in zip(dates, amounts)]
    logger.info("Loaded %d cash snapshots from %s", len(snapshots), path)
    return snapshots


def read_reference_months(path: PathLike) -> list[ReferenceMonthData]:
    df = _read_csv(
        path,
        {"year", "month", "net_sales_ex_tax"},
        {"reference_net_sales_ex_tax": "net_sales_ex_tax"},
    )
    years = _parse_numbers(df, "year", path, allow_empty=False, whole=True)
    months = _parse_numbers(df, "month", path, allow_empty=False, whole=True)
    totals = _parse_numbers(df, "net_sales_ex_tax", path, allow_empty=False)

    try:
        refs = [
            ReferenceMonthData(year=int(y), month=int(m), net_sales_ex_tax=float(t))
            for y, m, t in zip(years, months, totals)
        ]
    except ValueError as exc:
        raise ValueError(f"Invalid reference month in {path}: {exc}") from exc

    logger.info("Loaded %d reference months from %s", len(refs), path)
    return refs


def read_cash_injections(path: PathLike) -> list[CashInjection]:
    df = _read_csv(path, {"date", "amount"}, {})
    dates = _parse_dates(df, path)
    amounts = _parse_numbers(df, "amount", path, allow_empty=False)

    raw_types = df["type"] if "type" in df.columns else [""] * len(df)
    try:
        types = [InjectionType(t.lower()) if t else InjectionType.INJECTION for t in raw_types]
    except ValueError as exc:
        raise ValueError(
            f"Invalid values in 'type' column of {path}. Expected one of: "
            f"{', '.join(t.value for t in InjectionType)}."
        ) from exc

    notes = df["note"] if "note" in df.columns else [""] * len(df)
    injections = [
        CashInjection(date=d, amount=float(a), type=t, note=str(n))
        for d, a, t, n in zip(dates, amounts, types, notes)
    ]
    logger.info("Loaded %d cash injections from %s", len(injections), path)
    return injections
