# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for HB Health Meter.

This module wires together the main building blocks of HB Health Meter:

- configuration (cost structure, open hours, reserves, inputs, display),
- CSV readers for day entries, expenses, snapshots, reference months
  and owner capital injections,
- the dashboard orchestrator (goals, pacing, health, continuity),
- view helpers (summary, daily series and weekly tables).

The CLI is intentionally thin: it does not implement any business logic
itself. It only reads inputs, calls ``compute_dashboard`` and renders
the result.


High-level pipeline
-------------------

1) Load the TOML configuration (health_meter_config.toml by default)
   using ``load_app_config()``.

2) Read the CSV inputs listed in the [inputs] table. Inputs that are
   not configured are treated as empty.

3) Compute the dashboard for the requested as-of date (today by default).
   This is the only place where the clock is read.

4) Render the selected scope as console tables, CSV files and/or JSON:

   - summary : one row per dashboard figure,
   - series  : the merged daily balance curve,
   - weekly  : weekly balance, delta, last-year estimate and capital,
   - annual  : month-by-month totals of the as-of year with YTD,
   - all     : all of the above.


Examples
--------
    health-meter --config shop.toml
    health-meter --as-of 2025-03-14 --scope all --display-mode both
    health-meter --display-mode json > dashboard.json
    health-meter --as-of 2025-12-31 --scope annual
"""

import argparse
import json
import logging
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from . import __version__
from .config import DISPLAY_MODES, AppConfig, load_app_config
from .dashboard import AnnualRollup, DashboardResult, annual_rollup, compute_dashboard
from .dates import parse_iso_date
from .goals import InvalidRatioError
from .io import (
    read_cash_injections,
    read_cash_snapshots,
    read_day_entries,
    read_expenses,
    read_reference_months,
)
from .views import (
    annual_to_dataframe,
    balance_series_to_dataframe,
    summary_to_dataframe,
    to_jsonable,
    weekly_to_dataframe,
)

logger = logging.getLogger(__name__)

SCOPES = ("summary", "series", "weekly", "annual", "all")


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="health-meter",
        description=(
            "HB Health Meter - Cash continuity & business health engine for SMBs. "
            "Reads daily sales, expenses, cash snapshots and reference months, "
            "then reports goals, pacing, health and a reconciled cash curve."
        ),
    )

    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of health_meter and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the TOML configuration file. "
            "If omitted, 'health_meter_config.toml' in the current directory is used."
        ),
    )
    ap.add_argument(
        "--as-of",
        dest="as_of",
        help="As-of date (YYYY-MM-DD). Defaults to today.",
    )
    ap.add_argument(
        "--scope",
        choices=SCOPES,
        default="summary",
        help=(
            "Select what to render: "
            "'summary' = dashboard figures; "
            "'series' = daily balance curve; "
            "'weekly' = weekly balances, deltas, last-year estimate and capital; "
            "'annual' = monthly totals of the as-of year with year-to-date; "
            "'all' = everything."
        ),
    )
    ap.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=DISPLAY_MODES,
        help=(
            "Override the display.mode setting from the configuration file. "
            "'table' prints results to stdout, "
            "'csv' writes CSV files only, "
            "'both' does both, "
            "'json' prints the full dashboard as JSON."
        ),
    )
    ap.add_argument(
        "--output-dir",
        dest="output_dir",
        help=(
            "Output directory where CSV files will be written when display "
            "mode includes 'csv'. If omitted, 'data/output' is used."
        ),
    )
    ap.add_argument(
        "--verbose",
        action="store_true",
        help="Log engine details (DEBUG level) to stderr.",
    )
    return ap


def _parse_optional_date(value: Optional[str]) -> Optional[date]:
    """
    Parse an optional CLI date argument (YYYY-MM-DD).

    Raises
    ------
    SystemExit
        If the date format is invalid.
    """
    if value is None:
        return None

    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise SystemExit(str(exc)) from exc


def _load_inputs(config: AppConfig) -> dict[str, list]:
    """Read every configured CSV input; unconfigured inputs are empty."""
    paths = config.inputs
    readers = {
        "day_entries": (paths.day_entries, read_day_entries),
        "expenses": (paths.expenses, read_expenses),
        "snapshots": (paths.cash_snapshots, read_cash_snapshots),
        "reference_months": (paths.reference_months, read_reference_months),
        "injections": (paths.cash_injections, read_cash_injections),
    }

    data: dict[str, list] = {}
    for name, (path, reader) in readers.items():
        if path is None:
            logger.warning("No '%s' input configured; using an empty list.", name)
            data[name] = []
            continue
        if not path.is_file():
            raise FileNotFoundError(f"Input file not found: {path}")
        data[name] = reader(path)
    return data


def _frames_for_scope(
    result: DashboardResult,
    scope: str,
    decimals: int,
    annual: Optional[AnnualRollup] = None,
) -> list[tuple[str, str, pd.DataFrame]]:
    """(title, file stem, DataFrame) for each table the scope asks for."""
    frames: list[tuple[str, str, pd.DataFrame]] = []
    if scope in {"summary", "all"}:
        frames.append(("Dashboard", "summary", summary_to_dataframe(result, decimals)))
    if scope in {"series", "all"}:
        frames.append(
            (
                "Daily balance",
                "balance_series",
                balance_series_to_dataframe(result.continuity.merged, decimals),
            )
        )
    if scope in {"weekly", "all"}:
        frames.append(
            (
                "Weekly balance",
                "weekly",
                weekly_to_dataframe(
                    result.continuity.weekly_balances,
                    result.continuity.weekly_deltas,
                    result.weekly_ly_estimate,
                    decimals,
                    capital=result.liquidity.capital_series,
                ),
            )
        )
    if scope in {"annual", "all"} and annual is not None:
        frames.append((f"Year {annual.year}", "annual", annual_to_dataframe(annual, decimals)))
    return frames


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the HB Health Meter CLI.

    This function parses command-line arguments, loads the configuration,
    reads the CSV inputs, computes the dashboard for the as-of date and
    renders the selected scope as console tables, CSV files or JSON.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    # --version: short-circuit and exit early.
    if args.version:
        print(f"health_meter version {__version__}")
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    # 1) Configuration
    try:
        config = load_app_config(args.config_path)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    # 2) Inputs
    try:
        inputs = _load_inputs(config)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"Input error: {exc}") from exc

    # 3) Compute
    now = datetime.now()
    as_of = _parse_optional_date(args.as_of) or now.date()

    try:
        result = compute_dashboard(
            config.settings,
            as_of,
            inputs["day_entries"],
            inputs["expenses"],
            inputs["reference_months"],
            inputs["snapshots"],
            today=now,
            weights=config.health_weights,
            velocity_window=config.display.velocity_window,
            injections=inputs["injections"],
        )
        annual = (
            annual_rollup(config.settings, as_of.year, inputs["day_entries"], inputs["expenses"])
            if args.scope in {"annual", "all"}
            else None
        )
    except InvalidRatioError as exc:
        raise SystemExit(f"Invalid cost ratios: {exc}") from exc

    # 4) Render
    display_mode = args.display_mode or config.display.mode

    if display_mode == "json":
        payload = to_jsonable(result)
        if annual is not None:
            payload["annual"] = to_jsonable(annual)
        print(json.dumps(payload, indent=2))
        return

    print(
        f"{result.business_name} as of {result.as_of.isoformat()} "
        f"(confidence: {result.confidence.value})"
    )
    if result.sales_not_entered:
        print("Reminder: today's sales have not been entered yet.")

    frames = _frames_for_scope(result, args.scope, config.display.decimals, annual)

    if display_mode in {"table", "both"}:
        for title, _, df in frames:
            print()
            print(f"=== {title} ===")
            print(df.to_string(index=False))

    if display_mode in {"csv", "both"}:
        output_dir = Path(args.output_dir) if args.output_dir else Path("data/output")
        output_dir.mkdir(parents=True, exist_ok=True)
        timestamp = now.strftime("%Y-%m-%d-%H-%M-%S")
        for _, stem, df in frames:
            path = output_dir / f"{stem}_{timestamp}.csv"
            df.to_csv(path, index=False)
            print(f"Wrote {path} ({len(df)} rows)")


if __name__ == "__main__":
    main()
