"""
Formula Builder — Построение формул при вводе сделки

- calculate_formula_exposures: exposure по токенам формулы и количеству
- create_efp_formula: формула EFP-ноги (без токенов, только exposure)
- build_monthly_distribution: разбивка pricing exposure по рабочим дням
  периода ценообразования, после которой monthly_distribution авторитетен
"""

from datetime import date, datetime
from typing import Final, Sequence

from src.core.domain.direction import BuySell, position_direction_factor
from src.core.domain.formula import FormulaExposures, FormulaToken, PricingFormula, TokenType
from src.core.domain.periods import normalize_month_code
from src.core.math.working_days import distribute_quantity_by_working_days
from src.pricing.period_classifier import normalize_period


EFP_PRICING_INSTRUMENT: Final[str] = "ICE GASOIL FUTURES (EFP)"


def calculate_formula_exposures(
    tokens: Sequence[FormulaToken], quantity: float, buy_sell: BuySell
) -> FormulaExposures:
    """
    Exposure формулы по её инструментам.

    Каждый инструмент получает quantity со знаком позиции в physical и
    с противоположным знаком в pricing: покупка груза по формуле создаёт
    короткую ценовую позицию по котировкам формулы.

    Args:
        tokens: Токены формулы (инструменты уже канонические)
        quantity: Количество ноги
        buy_sell: Направление ноги

    Returns:
        FormulaExposures (пустые при quantity == 0)
    """
    if not tokens or quantity == 0:
        return FormulaExposures()

    sign = position_direction_factor(buy_sell)
    physical: dict[str, float] = {}
    pricing: dict[str, float] = {}

    for token in tokens:
        if token.type == TokenType.INSTRUMENT:
            physical[token.value] = physical.get(token.value, 0.0) + sign * quantity
            pricing[token.value] = pricing.get(token.value, 0.0) - sign * quantity

    return FormulaExposures(physical=physical, pricing=pricing)


def create_efp_formula(
    quantity: float,
    buy_sell: BuySell,
    agreed: bool,
    designated_month: str | None = None,
) -> PricingFormula:
    """
    Формула EFP-ноги.

    Токенов нет. Согласованный EFP уже зафиксирован и ценового exposure не несёт.
    Несогласованный несёт exposure на EFP_PRICING_INSTRUMENT со знаком,
    противоположным физической стороне; если известен месяц фьючерса,
    exposure сразу закрепляется за ним через monthly_distribution.

    Args:
        quantity: Количество ноги
        buy_sell: Направление ноги
        agreed: Фьючерсная часть зафиксирована
        designated_month: Месяц фьючерса (код месяца)

    Returns:
        PricingFormula с пустыми tokens
    """
    if agreed:
        return PricingFormula()

    value = -position_direction_factor(buy_sell) * quantity
    distribution = None
    if designated_month:
        distribution = {EFP_PRICING_INSTRUMENT: {normalize_month_code(designated_month): value}}

    return PricingFormula(
        exposures=FormulaExposures(pricing={EFP_PRICING_INSTRUMENT: value}),
        monthly_distribution=distribution,
    )


def build_monthly_distribution(
    formula: PricingFormula,
    start: date | datetime | str,
    end: date | datetime | str,
) -> PricingFormula:
    """
    Распределение pricing exposure формулы по месяцам периода ценообразования.

    Вес месяца — доля рабочих дней периода. Границы упорядочиваются.

    Returns:
        Новая формула с заполненным monthly_distribution
        (исходная, если pricing exposure нет)
    """
    if not formula.exposures.pricing:
        return formula

    start_day, end_day = normalize_period(start, end)
    distribution = {
        instrument: distribute_quantity_by_working_days(start_day, end_day, value)
        for instrument, value in formula.exposures.pricing.items()
    }
    return PricingFormula(
        tokens=formula.tokens,
        exposures=formula.exposures,
        monthly_distribution=distribution,
    )
