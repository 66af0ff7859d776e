import pytest

from health_meter.confidence import ConfidenceLevel
from health_meter.health import (
    HealthWeights,
    cash_health_result,
    health_score,
    true_cash_result,
    true_health_result,
)
from health_meter.models import MonthData

MONTH = MonthData(
    mtd_net_sales=30000,
    mtd_cogs_cash=9000,
    mtd_opex_cash=5000,
    mtd_owner_draw=2000,
    mtd_capex_cash=1000,
)


def test_cash_health_result_ignores_roof_fund() -> None:
    assert cash_health_result(MONTH, roof_fund=500) == 13000
    assert cash_health_result(MONTH) == 13000


def test_true_cash_result_uses_normalized_amounts() -> None:
    assert true_cash_result(MONTH, 8000, 200) == 14800


def test_health_score_curve() -> None:
    assert health_score(0) == 0.0
    assert health_score(-1) == 0.0
    assert health_score(1.0) == pytest.approx(80.0)
    assert health_score(2.0) == pytest.approx(96.0)

    values = [health_score(r / 10) for r in range(0, 31)]
    assert all(a < b for a, b in zip(values, values[1:]))
    assert all(v < 100 for v in values)


def test_true_health_default_policy_characterization() -> None:
    """On goal, on COGS target and within OPEX: 0.6*80 + 0.25*80 + 0.15*100."""
    high = true_health_result(100, 0.30, 0.30, ConfidenceLevel.HIGH)
    low = true_health_result(100, 0.30, 0.30, ConfidenceLevel.LOW)

    assert high.raw_score == pytest.approx(83.0)
    assert high.score == pytest.approx(83.0)
    assert high.components == {"attainment": 80.0, "cogs": 80.0, "opex": 100.0}
    assert low.score == pytest.approx(66.5)
    assert low.damping == 0.5


def test_cogs_overage_penalized_more_than_underage_credited() -> None:
    over = true_health_result(100, 0.32, 0.30, ConfidenceLevel.HIGH)
    under = true_health_result(100, 0.28, 0.30, ConfidenceLevel.HIGH)

    assert over.components["cogs"] == pytest.approx(70.0)
    assert under.components["cogs"] == pytest.approx(84.0)
    assert 80 - over.components["cogs"] > under.components["cogs"] - 80


def test_opex_component_penalizes_overrun() -> None:
    result = true_health_result(
        100, 0.30, 0.30, ConfidenceLevel.HIGH, mtd_opex=12000, expected_opex=10000
    )
    assert result.components["opex"] == pytest.approx(60.0)


@pytest.mark.parametrize("level", list(ConfidenceLevel))
def test_score_monotonic_in_inputs(level: ConfidenceLevel) -> None:
    by_attainment = [
        true_health_result(pct, 0.30, 0.30, level).score for pct in range(0, 201, 10)
    ]
    by_cogs = [
        true_health_result(100, rate / 100, 0.30, level).score for rate in range(10, 60, 2)
    ]
    by_opex = [
        true_health_result(
            100, 0.30, 0.30, level, mtd_opex=opex, expected_opex=10000
        ).score
        for opex in range(0, 20001, 1000)
    ]

    assert by_attainment == sorted(by_attainment)
    assert by_cogs == sorted(by_cogs, reverse=True)
    assert by_opex == sorted(by_opex, reverse=True)


@pytest.mark.parametrize("survival_pct", [0, 20, 150])
def test_low_confidence_pulls_score_toward_midpoint(survival_pct: float) -> None:
    high = true_health_result(survival_pct, 0.30, 0.30, ConfidenceLevel.HIGH)
    medium = true_health_result(survival_pct, 0.30, 0.30, ConfidenceLevel.MEDIUM)
    low = true_health_result(survival_pct, 0.30, 0.30, ConfidenceLevel.LOW)

    assert high.raw_score != 50
    assert abs(low.score - 50) < abs(medium.score - 50) < abs(high.score - 50)


def test_custom_weights() -> None:
    weights = HealthWeights(attainment=1.0, cogs=0.0, opex=0.0)
    result = true_health_result(100, 0.90, 0.30, ConfidenceLevel.HIGH, weights=weights)
    # Only attainment counts
    assert result.raw_score == pytest.approx(80.0)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"damping_low": 1.0, "damping_high": 1.0},
        {"damping_low": 0.0},
        {"cogs_overage_penalty": 1.0, "cogs_underage_credit": 2.0},
        {"attainment": -0.1},
        {"attainment": 0.0, "cogs": 0.0, "opex": 0.0},
        {"damping_medium": 0.3},
    ],
)
def test_invalid_weights_rejected(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        HealthWeights(**kwargs)
