"""
Totals — Итоги матрицы exposure

Финальная свёртка после прохода агрегации:
- GrandTotals: итоги по продуктам и общие итоги по всему горизонту
- GroupTotals: биодизель (сорта Argus), ценовые инструменты и итоговая строка
"""

from typing import Sequence

from src.core.domain.exposure import (
    ZERO_EXPOSURE,
    ExposureData,
    GrandTotals,
    GroupTotals,
    MonthlyExposure,
    sum_exposures,
)
from src.core.domain.products import DEFAULT_VOCABULARY, ProductVocabulary, split_product_groups


def calculate_grand_totals(monthly: Sequence[MonthlyExposure]) -> GrandTotals:
    """
    Итоги по всему горизонту.

    Сумма product_totals[p] по продуктам равна сумме итогов всех месяцев.
    """
    product_totals: dict[str, ExposureData] = {}
    for row in monthly:
        for product, cell in row.products.items():
            product_totals[product] = product_totals.get(product, ZERO_EXPOSURE).plus(cell)

    overall = sum_exposures(product_totals.values())
    return GrandTotals(
        total_physical=overall.physical,
        total_pricing=overall.pricing,
        total_paper=overall.paper,
        total_net=overall.net_exposure,
        product_totals=dict(sorted(product_totals.items())),
    )


def calculate_group_totals(
    grand: GrandTotals, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> GroupTotals:
    """
    Итоги по группам продуктов.

    Биодизель — продукты с маркером vocabulary.biodiesel_marker в имени,
    ценовые инструменты — все остальные.
    """
    biodiesel, pricing_instruments = split_product_groups(grand.product_totals, vocabulary)

    biodiesel_total = sum_exposures(grand.product_totals[p] for p in biodiesel)
    pricing_instrument_total = sum_exposures(grand.product_totals[p] for p in pricing_instruments)

    return GroupTotals(
        biodiesel_total=biodiesel_total,
        pricing_instrument_total=pricing_instrument_total,
        total_row=biodiesel_total.plus(pricing_instrument_total),
    )
