"""
Тесты для построения формул при вводе сделки

Проверяет:
1. Exposure по токенам формулы (знак physical и обратный знак pricing)
2. EFP формулы (согласованные и нет, с месяцем фьючерса)
3. Распределение pricing exposure по рабочим дням периода
"""

from datetime import date

import pytest

from src.core.domain.direction import BuySell
from src.core.domain.formula import FormulaExposures, PricingFormula, parse_pricing_formula
from src.pricing.formula_builder import (
    EFP_PRICING_INSTRUMENT,
    build_monthly_distribution,
    calculate_formula_exposures,
    create_efp_formula,
)


def _ucome_minus_lsgo() -> PricingFormula:
    return parse_pricing_formula(
        {
            "tokens": [
                {"type": "instrument", "value": "UCOME"},
                {"type": "operator", "value": "-"},
                {"type": "instrument", "value": "LSGO"},
            ]
        }
    )


class TestCalculateFormulaExposures:
    """Тесты для calculate_formula_exposures"""

    def test_buy(self) -> None:
        exposures = calculate_formula_exposures(_ucome_minus_lsgo().tokens, 100.0, BuySell.BUY)
        assert exposures.physical == {"Argus UCOME": 100.0, "Platts LSGO": 100.0}
        assert exposures.pricing == {"Argus UCOME": -100.0, "Platts LSGO": -100.0}

    def test_sell(self) -> None:
        exposures = calculate_formula_exposures(_ucome_minus_lsgo().tokens, 100.0, BuySell.SELL)
        assert exposures.physical == {"Argus UCOME": -100.0, "Platts LSGO": -100.0}
        assert exposures.pricing == {"Argus UCOME": 100.0, "Platts LSGO": 100.0}

    def test_zero_quantity_or_no_tokens(self) -> None:
        assert calculate_formula_exposures(_ucome_minus_lsgo().tokens, 0.0, BuySell.BUY).is_empty
        assert calculate_formula_exposures((), 100.0, BuySell.BUY).is_empty


class TestCreateEfpFormula:
    """Тесты для create_efp_formula"""

    def test_agreed_has_no_exposure(self) -> None:
        formula = create_efp_formula(100.0, BuySell.BUY, agreed=True)
        assert formula.is_empty
        assert formula.exposures.is_empty

    def test_unagreed_buy_is_short_futures(self) -> None:
        formula = create_efp_formula(100.0, BuySell.BUY, agreed=False)
        assert formula.is_empty
        assert formula.exposures.pricing == {EFP_PRICING_INSTRUMENT: -100.0}
        assert formula.monthly_distribution is None

    def test_unagreed_sell_with_designated_month(self) -> None:
        formula = create_efp_formula(250.0, BuySell.SELL, agreed=False, designated_month="Jul-24")
        assert formula.exposures.pricing == {EFP_PRICING_INSTRUMENT: 250.0}
        assert formula.monthly_distribution == {EFP_PRICING_INSTRUMENT: {"2024-07": 250.0}}


class TestBuildMonthlyDistribution:
    """Тесты для build_monthly_distribution"""

    def test_split_by_working_days(self) -> None:
        formula = PricingFormula(exposures=FormulaExposures(pricing={"Argus UCOME": -1000.0}))
        result = build_monthly_distribution(formula, date(2024, 6, 24), date(2024, 7, 5))

        distribution = result.monthly_distribution["Argus UCOME"]
        assert distribution == {"2024-06": pytest.approx(-500.0), "2024-07": pytest.approx(-500.0)}
        assert result.exposures == formula.exposures

    def test_reversed_bounds(self) -> None:
        formula = PricingFormula(exposures=FormulaExposures(pricing={"Argus UCOME": 1000.0}))
        result = build_monthly_distribution(formula, "2024-06-04", "2024-05-29")
        assert result.monthly_distribution["Argus UCOME"]["2024-05"] == pytest.approx(600.0)
        assert result.monthly_distribution["Argus UCOME"]["2024-06"] == pytest.approx(400.0)

    def test_shares_sum_to_exposure(self) -> None:
        formula = PricingFormula(exposures=FormulaExposures(pricing={"Platts LSGO": 777.0}))
        result = build_monthly_distribution(formula, date(2024, 3, 11), date(2024, 8, 20))
        assert sum(result.monthly_distribution["Platts LSGO"].values()) == pytest.approx(777.0)

    def test_without_pricing_exposure(self) -> None:
        formula = _ucome_minus_lsgo()
        assert build_monthly_distribution(formula, date(2024, 6, 1), date(2024, 6, 30)) is formula
