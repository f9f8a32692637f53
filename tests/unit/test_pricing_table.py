"""
Тесты для дневной таблицы цен формулы
"""

from datetime import date

import pytest

from src.core.domain.formula import EMPTY_FORMULA, parse_pricing_formula
from src.pricing.price_resolver import PriceResolver
from src.pricing.pricing_table import average_evaluated_price, build_pricing_table


@pytest.fixture
def spread_formula():
    return parse_pricing_formula(
        {
            "tokens": [
                {"type": "instrument", "value": "UCOME"},
                {"type": "operator", "value": "-"},
                {"type": "instrument", "value": "LSGO"},
            ]
        }
    )


class TestBuildPricingTable:
    """Тесты для build_pricing_table"""

    @pytest.mark.asyncio
    async def test_historical_rows(self, price_store, today, spread_formula) -> None:
        resolver = PriceResolver(price_store, today)
        rows = await build_pricing_table(resolver, spread_formula, date(2024, 5, 6), date(2024, 5, 8))

        assert [row.day for row in rows] == [date(2024, 5, 6), date(2024, 5, 7), date(2024, 5, 8)]
        assert [row.evaluated_price for row in rows] == pytest.approx([200.0, 200.0, 920.0])
        assert rows[0].is_complete
        assert not rows[2].is_complete
        assert rows[2].prices == {"Argus UCOME": 920.0, "Platts LSGO": None}
        assert average_evaluated_price(rows) == pytest.approx(440.0)

    @pytest.mark.asyncio
    async def test_future_rows_use_forward(self, price_store, today, spread_formula) -> None:
        resolver = PriceResolver(price_store, today)
        rows = await build_pricing_table(resolver, spread_formula, "2024-07-02", "2024-07-01")

        assert len(rows) == 2
        assert all(row.evaluated_price == pytest.approx(230.0) for row in rows)

    @pytest.mark.asyncio
    async def test_empty_formula(self, price_store, today) -> None:
        resolver = PriceResolver(price_store, today)
        assert await build_pricing_table(resolver, EMPTY_FORMULA, date(2024, 5, 1), date(2024, 5, 31)) == []
        assert average_evaluated_price([]) is None
