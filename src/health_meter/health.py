# HB Health Meter - Cash continuity & business health engine for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Health scorers.

Two families of figures live here:

1. Cash results (currency)
   -----------------------
   ``cash_health_result`` is the net cash effect of the month so far:

       sales - COGS - OPEX - owner draw - CAPEX

   The annual rollup sums this exact formula month by month, so the
   roof fund is not subtracted here (it is context for callers).

   ``true_cash_result`` is the same figure with COGS and CAPEX replaced
   by their spread-normalized amounts, so a single large inventory or
   equipment purchase does not make one month look catastrophic.

2. Composite score (0-100)
   -----------------------
   ``true_health_result`` blends:

   - attainment : how far sales are toward the survival goal,
   - COGS       : realized COGS rate vs target (overage penalized more
                  heavily than underage is credited),
   - OPEX       : month-to-date OPEX vs the expected monthly amount,

   into a raw score, then compresses it toward the neutral midpoint (50)
   according to the data confidence level. Sparse data cannot produce a
   falsely extreme reading.

   Weights and penalties are a tunable policy held by ``HealthWeights``
   (loadable from the ``[health_weights]`` TOML table). The expected
   outputs for the default policy are pinned by characterization tests.
"""

import math
from dataclasses import dataclass
from typing import Optional

from .confidence import ConfidenceLevel
from .models import MonthData

NEUTRAL_SCORE = 50.0

# health_score(1.0) == 100 * (1 - HEALTH_CURVE_BASE) == 80
HEALTH_CURVE_BASE = 0.2


@dataclass(frozen=True)
class HealthWeights:
    """
    Policy for the composite true-health score.

    Attributes:
        attainment: Weight of the survival-goal attainment component.
        cogs: Weight of the COGS-rate component.
        opex: Weight of the OPEX component.
        cogs_at_target: COGS component value when exactly on target.
        cogs_overage_penalty: Points lost per percentage point over target.
        cogs_underage_credit: Points gained per percentage point under target.
        opex_overage_penalty: Points lost per percentage point of OPEX overrun.
        damping_high / damping_medium / damping_low:
            Fraction of the raw deviation from 50 kept at each confidence level.
    """

    attainment: float = 0.6
    cogs: float = 0.25
    opex: float = 0.15
    cogs_at_target: float = 80.0
    cogs_overage_penalty: float = 5.0
    cogs_underage_credit: float = 2.0
    opex_overage_penalty: float = 2.0
    damping_high: float = 1.0
    damping_medium: float = 0.75
    damping_low: float = 0.5

    def __post_init__(self) -> None:
        for name in ("attainment", "cogs", "opex"):
            if getattr(self, name) < 0:
                raise ValueError(f"Health weight '{name}' cannot be negative.")
        if self.attainment + self.cogs + self.opex <= 0:
            raise ValueError("At least one health weight must be positive.")
        if self.cogs_overage_penalty < self.cogs_underage_credit:
            raise ValueError(
                "cogs_overage_penalty must be >= cogs_underage_credit "
                "(overage is penalized more than underage is credited)."
            )
        if not 0 < self.damping_low < self.damping_high <= 1:
            raise ValueError("Damping must satisfy 0 < low < high <= 1.")
        if not self.damping_low <= self.damping_medium <= self.damping_high:
            raise ValueError("damping_medium must lie between damping_low and damping_high.")

    def damping_for(self, level: ConfidenceLevel) -> float:
        if level == ConfidenceLevel.HIGH:
            return self.damping_high
        if level == ConfidenceLevel.MEDIUM:
            return self.damping_medium
        return self.damping_low


@dataclass(frozen=True)
class TrueHealthResult:
    """Composite score with the components it was built from."""

    score: float
    raw_score: float
    components: dict[str, float]
    confidence: ConfidenceLevel
    damping: float


def cash_health_result(month_data: MonthData, roof_fund: float = 0.0) -> float:
    """
    Net cash effect of the month to date, rounded to cents.

    ``roof_fund`` is accepted for symmetry with the dashboard inputs
    but is not subtracted.
    """
    result = (
        month_data.mtd_net_sales
        - month_data.mtd_cogs_cash
        - month_data.mtd_opex_cash
        - month_data.mtd_owner_draw
        - month_data.mtd_capex_cash
    )
    return round(result, 2)


def true_cash_result(
    month_data: MonthData,
    normalized_cogs_amount: float,
    normalized_capex: float,
) -> float:
    """Cash result using spread-normalized COGS and CAPEX, rounded to cents."""
    result = (
        month_data.mtd_net_sales
        - normalized_cogs_amount
        - month_data.mtd_opex_cash
        - month_data.mtd_owner_draw
        - normalized_capex
    )
    return round(result, 2)


def health_score(ratio_to_target: float) -> float:
    """
    Map a ratio-to-target onto a bounded 0-100 band.

    The curve ``100 * (1 - 0.2 ** ratio)`` is continuous and strictly
    increasing: 0 at ratio 0, 80 at 100% of target, approaching 100
    beyond it. Negative ratios score 0.
    """
    if ratio_to_target <= 0 or math.isnan(ratio_to_target):
        return 0.0
    return 100.0 * (1.0 - HEALTH_CURVE_BASE**ratio_to_target)


def _cogs_component(actual_rate: float, target_rate: float, weights: HealthWeights) -> float:
    points = (actual_rate - target_rate) * 100
    if points > 0:
        value = weights.cogs_at_target - points * weights.cogs_overage_penalty
    else:
        value = weights.cogs_at_target - points * weights.cogs_underage_credit
    return max(0.0, min(100.0, value))


def _opex_component(mtd_opex: float, expected_opex: float, weights: HealthWeights) -> float:
    if expected_opex <= 0 or mtd_opex <= expected_opex:
        return 100.0
    overage_points = (mtd_opex - expected_opex) / expected_opex * 100
    return max(0.0, 100.0 - overage_points * weights.opex_overage_penalty)


def true_health_result(
    survival_pct: float,
    actual_cogs_rate: float,
    target_cogs_rate: float,
    confidence: ConfidenceLevel,
    *,
    mtd_opex: float = 0.0,
    expected_opex: float = 0.0,
    weights: Optional[HealthWeights] = None,
) -> TrueHealthResult:
    """
    Composite 0-100 health score.

    Args:
        survival_pct: Unclamped survival percent (see ``goals.survival_percent``).
        actual_cogs_rate: Realized COGS / net sales.
        target_cogs_rate: Target COGS ratio from settings.
        confidence: Data confidence level for the period.
        mtd_opex: Month-to-date OPEX cash.
        expected_opex: OPEX the business expects for the month (0 disables
            the OPEX component's penalty).
        weights: Scoring policy; defaults to ``HealthWeights()``.

    Returns:
        A TrueHealthResult. Improving attainment, lowering the COGS rate
        or lowering OPEX never decreases ``score``. Lower confidence pulls
        ``score`` toward 50.
    """
    policy = weights or HealthWeights()

    components = {
        "attainment": health_score(survival_pct / 100),
        "cogs": _cogs_component(actual_cogs_rate, target_cogs_rate, policy),
        "opex": _opex_component(mtd_opex, expected_opex, policy),
    }
    total_weight = policy.attainment + policy.cogs + policy.opex
    raw = (
        components["attainment"] * policy.attainment
        + components["cogs"] * policy.cogs
        + components["opex"] * policy.opex
    ) / total_weight

    damping = policy.damping_for(confidence)
    score = NEUTRAL_SCORE + (raw - NEUTRAL_SCORE) * damping

    return TrueHealthResult(
        score=round(score, 1),
        raw_score=round(raw, 1),
        components={k: round(v, 1) for k, v in components.items()},
        confidence=confidence,
        damping=damping,
    )
