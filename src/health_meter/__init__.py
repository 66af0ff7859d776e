# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
HB Health Meter
---------------

A cash-continuity and business-health engine for small retail and
service businesses. From sparse, owner-entered data (daily sales,
expenses, occasional bank balances and last year's monthly totals) it
answers three questions:

- Am I on pace to cover my fixed costs this month?
- How healthy is the business, given how complete my data is?
- What does my bank balance look like day by day, and when will it
  cross my floor or my reserve target?

Main capabilities:
- survival and ideal monthly sales goals from a cost structure,
- open-hours weighted pacing and a "what it takes" pit board,
- data-confidence scoring and a damped composite health score,
- a reference-based daily sales and net cash flow estimator,
- an anchor-exact balance reconciliation engine with weekly deltas,
  velocity and threshold ETAs,
- owner capital tracking and a month-by-month annual rollup,
- a TOML-configured CLI rendering tables, CSV files or JSON.

The engine is pure and synchronous: every input, including the as-of
date, is passed in explicitly.

Usage:
    health-meter --help
"""

__all__ = ["dashboard", "reconcile", "estimator", "views", "io"]

__version__ = "0.1.0"
