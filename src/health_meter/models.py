# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Input records consumed by the HB Health Meter engine.

These dataclasses are the plain-data contract between the engine and
whatever layer supplies the data (CSV files, a database, an HTTP API).
They carry no behaviour beyond small conveniences and validation of
their own invariants. Every record is scoped to a single organisation:
the caller decides which organisation's records to pass in.

Records
-------
- OpenHoursTemplate : weekday -> open hours (0 means closed).
- Settings          : cost-structure targets, reserves and open hours.
- MonthData         : month-to-date cash totals by category.
- SpreadExpense     : lump expense amortized over several months.
- DayEntry          : one day of logged net sales (or None if not logged).
- ExpenseTransaction: one logged expense, tagged by category.
- CashSnapshot      : an observed real bank balance at a date.
- CashInjection     : owner capital put in or withdrawn at a date.
- ReferenceMonthData: historical monthly net sales used for estimation.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional

WEEKDAY_KEYS: tuple[str, ...] = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class ExpenseCategory(str, Enum):
    """Expense categories as logged by the business owner."""

    COGS = "COGS"
    OPEX = "OPEX"
    CAPEX = "CAPEX"
    OWNER_DRAW = "OWNER_DRAW"
    TAX = "TAX"
    OTHER = "OTHER"


class InjectionType(str, Enum):
    """Direction of an owner capital movement."""

    INJECTION = "injection"
    WITHDRAWAL = "withdrawal"


@dataclass(frozen=True)
class OpenHoursTemplate:
    """
    Weekly open-hours template.

    Each attribute holds the number of open hours for that weekday.
    A value of 0 marks the store as closed on that day.
    """

    mon: float = 0.0
    tue: float = 8.0
    wed: float = 8.0
    thu: float = 8.0
    fri: float = 8.0
    sat: float = 8.0
    sun: float = 5.0

    def __post_init__(self) -> None:
        for key in WEEKDAY_KEYS:
            hours = getattr(self, key)
            if not 0 <= hours <= 24:
                raise ValueError(
                    f"Open hours for '{key}' must be between 0 and 24, got {hours!r}."
                )

    def hours_for(self, day: date) -> float:
        """Open hours for the weekday of ``day``."""
        return float(getattr(self, WEEKDAY_KEYS[day.weekday()]))

    def as_dict(self) -> dict[str, float]:
        return {key: float(getattr(self, key)) for key in WEEKDAY_KEYS}

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OpenHoursTemplate":
        """
        Build a template from a ``{"mon": 8, ...}`` mapping.

        Missing weekdays default to 0 (closed). Unknown keys are ignored.
        """
        values: dict[str, float] = {}
        for key in WEEKDAY_KEYS:
            raw = data.get(key, 0)
            try:
                values[key] = float(raw)
            except (TypeError, ValueError) as exc:
                raise ValueError(
                    f"Invalid open hours value for '{key}': {raw!r}."
                ) from exc
        return cls(**values)


@dataclass(frozen=True)
class Settings:
    """
    Organisation-wide settings read by the engine.

    The invariant ``target_cogs_pct + target_fees_pct < 1`` is not
    enforced here: goal computations raise ``InvalidRatioError`` when
    it does not hold, so that callers get an explicit failure instead
    of a silently wrong goal.
    """

    monthly_fixed_nut: float
    target_cogs_pct: float
    target_fees_pct: float
    monthly_roof_fund: float = 0.0
    monthly_owner_draw_goal: float = 0.0
    open_hours: OpenHoursTemplate = field(default_factory=OpenHoursTemplate)
    store_close_hour: int = 16
    operating_floor_cash: float = 0.0
    target_reserve_cash: float = 100000.0
    year_start_cash_amount: Optional[float] = None
    year_start_cash_date: Optional[date] = None
    business_name: str = "My Business"


@dataclass(frozen=True)
class MonthData:
    """Month-to-date cash totals. Net sales may be negative (refunds)."""

    mtd_net_sales: float = 0.0
    mtd_cogs_cash: float = 0.0
    mtd_opex_cash: float = 0.0
    mtd_owner_draw: float = 0.0
    mtd_capex_cash: float = 0.0


@dataclass(frozen=True)
class SpreadExpense:
    """
    Lump expense amortized over ``spread_months`` consecutive months
    starting with the month of ``start_date``.
    """

    amount: float
    spread_months: int
    start_date: date
    category: ExpenseCategory = ExpenseCategory.OTHER

    def __post_init__(self) -> None:
        if self.spread_months < 1:
            raise ValueError(
                f"spread_months must be >= 1, got {self.spread_months!r}."
            )


@dataclass(frozen=True)
class DayEntry:
    """One day of logged sales. ``None`` means the day was not logged."""

    date: date
    net_sales_ex_tax: Optional[float]


@dataclass(frozen=True)
class ExpenseTransaction:
    """One logged expense."""

    date: date
    amount: float
    category: ExpenseCategory
    vendor_name: str = ""
    spread_months: Optional[int] = None

    @property
    def is_spread(self) -> bool:
        return self.spread_months is not None and self.spread_months >= 2

    def as_spread_expense(self) -> Optional[SpreadExpense]:
        """Return the amortization view of this expense, if it is spread."""
        if not self.is_spread:
            return None
        return SpreadExpense(
            amount=self.amount,
            spread_months=int(self.spread_months),  # type: ignore[arg-type]
            start_date=self.date,
            category=self.category,
        )


@dataclass(frozen=True)
class CashSnapshot:
    """An observed real bank balance. Never mutated by the engine."""

    date: date
    amount: float


@dataclass(frozen=True)
class CashInjection:
    """Owner capital put into (or taken back out of) the business."""

    date: date
    amount: float
    type: InjectionType = InjectionType.INJECTION
    note: str = ""

    @property
    def signed_amount(self) -> float:
        if self.type == InjectionType.WITHDRAWAL:
            return -self.amount
        return self.amount


@dataclass(frozen=True)
class ReferenceMonthData:
    """Historical net sales (ex tax) for one calendar month."""

    year: int
    month: int
    net_sales_ex_tax: float

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month!r}.")
