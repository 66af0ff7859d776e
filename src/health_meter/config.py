# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for HB Health Meter.

This module is responsible for:
- loading the application configuration from a TOML file,
- building the engine ``Settings`` and ``HealthWeights`` from it,
- resolving the CSV input paths and display options used by the CLI.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover - fallback for older Python
    import tomli as tomllib  # type: ignore[import]

from .dates import parse_iso_date
from .health import HealthWeights
from .models import WEEKDAY_KEYS, OpenHoursTemplate, Settings

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "health_meter_config.toml"

DISPLAY_MODES = ("table", "csv", "both", "json")


@dataclass(frozen=True)
class InputPaths:
    """CSV files holding the organisation's records (None when not configured)."""

    day_entries: Optional[Path]
    expenses: Optional[Path]
    cash_snapshots: Optional[Path]
    reference_months: Optional[Path]
    cash_injections: Optional[Path]


@dataclass(frozen=True)
class DisplayConfig:
    mode: str = "table"
    decimals: int = 2
    velocity_window: int = 4


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for HB Health Meter.

    This aggregates:
    - the engine settings (cost structure, open hours, reserves),
    - the true-health scoring policy,
    - the CSV input paths,
    - display options for the CLI.
    """

    settings: Settings
    health_weights: HealthWeights
    inputs: InputPaths
    display: DisplayConfig
    source: Path


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Config entry [{name}] must be a table.")
    return section


def _number(section: Mapping[str, Any], table: str, key: str, default: float) -> float:
    value = section.get(key, default)
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            f"Invalid value for '{table}.{key}' in the configuration. Expected a number."
        ) from exc


def _parse_settings(raw: Mapping[str, Any]) -> Settings:
    """
    Build engine Settings from the [business], [targets], [open_hours]
    and [reserves] tables.

    Raises:
        ValueError: if a required target is missing or a value is invalid.
    """
    business = _section(raw, "business")
    targets = _section(raw, "targets")
    hours = _section(raw, "open_hours")
    reserves = _section(raw, "reserves")

    for key in ("monthly_fixed_nut", "target_cogs_pct", "target_fees_pct"):
        if key not in targets:
            raise ValueError(f"Config file is missing [targets].{key}.")

    try:
        store_close_hour = int(hours.get("store_close_hour", 16))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'open_hours.store_close_hour'. Expected an integer."
        ) from exc
    if not 0 <= store_close_hour <= 23:
        raise ValueError("'open_hours.store_close_hour' must be between 0 and 23.")

    # Without any weekday key the default template is kept; once one is
    # listed, unlisted weekdays are closed.
    if any(key in hours for key in WEEKDAY_KEYS):
        template = OpenHoursTemplate.from_mapping(hours)
    else:
        template = OpenHoursTemplate()

    year_start_amount = reserves.get("year_start_cash_amount")
    year_start_date = reserves.get("year_start_cash_date")

    return Settings(
        monthly_fixed_nut=_number(targets, "targets", "monthly_fixed_nut", 0.0),
        target_cogs_pct=_number(targets, "targets", "target_cogs_pct", 0.0),
        target_fees_pct=_number(targets, "targets", "target_fees_pct", 0.0),
        monthly_roof_fund=_number(targets, "targets", "monthly_roof_fund", 0.0),
        monthly_owner_draw_goal=_number(targets, "targets", "monthly_owner_draw_goal", 0.0),
        open_hours=template,
        store_close_hour=store_close_hour,
        operating_floor_cash=_number(reserves, "reserves", "operating_floor_cash", 0.0),
        target_reserve_cash=_number(reserves, "reserves", "target_reserve_cash", 100000.0),
        year_start_cash_amount=(
            None
            if year_start_amount is None
            else _number(reserves, "reserves", "year_start_cash_amount", 0.0)
        ),
        year_start_cash_date=(
            None if year_start_date is None else parse_iso_date(year_start_date)
        ),
        business_name=str(business.get("name") or "My Business"),
    )


def _parse_health_weights(raw: Mapping[str, Any]) -> HealthWeights:
    section = _section(raw, "health_weights")
    known = {f.name for f in fields(HealthWeights)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(
            f"Unknown key(s) in [health_weights]: {', '.join(sorted(unknown))}."
        )
    values = {key: _number(section, "health_weights", key, 0.0) for key in section}
    return HealthWeights(**values)


def _parse_inputs(raw: Mapping[str, Any], base_dir: Path) -> InputPaths:
    section = _section(raw, "inputs")

    def _resolve_optional(key: str) -> Optional[Path]:
        rel = section.get(key)
        if not rel:
            return None
        return (base_dir / str(rel)).resolve()

    return InputPaths(
        day_entries=_resolve_optional("day_entries"),
        expenses=_resolve_optional("expenses"),
        cash_snapshots=_resolve_optional("cash_snapshots"),
        reference_months=_resolve_optional("reference_months"),
        cash_injections=_resolve_optional("cash_injections"),
    )


def _parse_display(raw: Mapping[str, Any]) -> DisplayConfig:
    section = _section(raw, "display")

    mode = str(section.get("mode", "table"))
    if mode not in DISPLAY_MODES:
        raise ValueError(
            f"Invalid display mode '{mode}'. Expected one of: {', '.join(DISPLAY_MODES)}."
        )

    try:
        decimals = int(section.get("decimals", 2))
        velocity_window = int(section.get("velocity_window", 4))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value in [display]: 'decimals' and 'velocity_window' must be integers."
        ) from exc
    if velocity_window < 1:
        raise ValueError("'display.velocity_window' must be >= 1.")

    return DisplayConfig(mode=mode, decimals=decimals, velocity_window=velocity_window)


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the HB Health Meter configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [business]
        ``name`` shown in reports.

    [targets]
        ``monthly_fixed_nut``, ``target_cogs_pct`` and ``target_fees_pct``
        (required), ``monthly_roof_fund`` and ``monthly_owner_draw_goal``.

    [open_hours]
        ``mon`` ... ``sun`` open hours and ``store_close_hour``.

    [reserves]
        ``operating_floor_cash``, ``target_reserve_cash`` and the optional
        ``year_start_cash_amount`` / ``year_start_cash_date``.

    [health_weights]
        Optional overrides of the true-health scoring policy.

    [inputs]
        CSV paths: ``day_entries``, ``expenses``, ``cash_snapshots``,
        ``reference_months``, ``cash_injections``.

    [display]
        ``mode`` (table, csv, both, json), ``decimals``, ``velocity_window``.

    Notes
    -----
    All file paths in the TOML are resolved relative to the directory of
    the TOML file itself.

    Parameters
    ----------
    config_path :
        Path to the TOML file. Defaults to ``health_meter_config.toml`` in
        the working directory.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
    else:
        config_file = Path(config_path).resolve()

    raw = _load_toml(config_file)
    base_dir = config_file.parent

    config = AppConfig(
        settings=_parse_settings(raw),
        health_weights=_parse_health_weights(raw),
        inputs=_parse_inputs(raw, base_dir),
        display=_parse_display(raw),
        source=config_file,
    )
    logger.info("Loaded configuration from %s", config_file)
    return config
