"""
Pricing Table — Дневная таблица цен формулы

Для детального просмотра ноги: по каждому рабочему дню периода берутся цены
всех инструментов формулы и вычисляется цена формулы.

Это контекст отображения: отсутствующая цена инструмента подставляется как 0
(apply_pricing_formula), сами пропуски видны в поле prices как None.
MTM оценка так не делает и возвращает UNRESOLVED.
"""

import asyncio
from datetime import date, datetime

from pydantic import BaseModel, Field

from src.core.domain.formula import PricingFormula, apply_pricing_formula, formula_instruments
from src.pricing.period_classifier import normalize_period
from src.pricing.price_resolver import PriceResolver


class PricingTableRow(BaseModel):
    """Строка таблицы: один рабочий день"""

    day: date = Field(..., description="Дата")
    prices: dict[str, float | None] = Field(default_factory=dict, description="Цены инструментов")
    evaluated_price: float = Field(..., description="Цена формулы (пропуски как 0)")

    model_config = {"frozen": True}

    @property
    def is_complete(self) -> bool:
        return all(price is not None for price in self.prices.values())


async def build_pricing_table(
    resolver: PriceResolver,
    formula: PricingFormula,
    start: date | datetime | str,
    end: date | datetime | str,
) -> list[PricingTableRow]:
    """
    Дневная таблица цен формулы по рабочим дням [start, end].

    Args:
        resolver: Резолвер цен (today берётся из него)
        formula: Формула ноги
        start: Начало периода ценообразования
        end: Конец периода ценообразования

    Returns:
        Строки по рабочим дням; пустой список для пустой формулы
    """
    instruments = formula_instruments(formula)
    if not instruments:
        return []

    start_day, end_day = normalize_period(start, end)
    series = await asyncio.gather(
        *(resolver.daily_series(instrument, start_day, end_day) for instrument in instruments)
    )

    rows: list[PricingTableRow] = []
    for points in zip(*series):
        prices = {point.instrument: point.price for point in points}
        rows.append(
            PricingTableRow(
                day=points[0].day,
                prices=prices,
                evaluated_price=apply_pricing_formula(formula, prices),
            )
        )
    return rows


def average_evaluated_price(rows: list[PricingTableRow]) -> float | None:
    """Средняя цена формулы по таблице (None для пустой таблицы)"""
    if not rows:
        return None
    return sum(row.evaluated_price for row in rows) / len(rows)
