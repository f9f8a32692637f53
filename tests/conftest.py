"""
Pytest Configuration
====================

Shared fixtures for testing.
"""

from datetime import date

import pytest

from src.core.domain.products import DEFAULT_VOCABULARY, ProductRule, ProductVocabulary
from src.pricing.price_store import InMemoryPriceStore


@pytest.fixture
def today() -> date:
    """Опорная дата расчётов (суббота середины месяца)"""
    return date(2024, 6, 15)


@pytest.fixture
def vocabulary() -> ProductVocabulary:
    """Боевой словарь продуктов"""
    return DEFAULT_VOCABULARY


@pytest.fixture
def synthetic_vocabulary() -> ProductVocabulary:
    """Синтетический словарь без правил для UCOME: продукт проходит как есть"""
    return ProductVocabulary(
        rules=(
            ProductRule("ALPHA", aliases=("A",)),
            ProductRule("BETA REF", aliases=("B",)),
        ),
        biodiesel_marker="ALPHA",
        diff_reference_product="BETA REF",
    )


@pytest.fixture
def price_store() -> InMemoryPriceStore:
    """Хранилище с историей за май 2024 и форвардом на июнь–август 2024"""
    return InMemoryPriceStore(
        historical={
            "Argus UCOME": {
                date(2024, 5, 6): 900.0,
                date(2024, 5, 7): 910.0,
                date(2024, 5, 8): 920.0,
            },
            "Platts LSGO": {
                date(2024, 5, 6): 700.0,
                date(2024, 5, 7): 710.0,
            },
        },
        forward={
            "Argus UCOME": {"2024-06": 950.0, "2024-07": 960.0, "2024-08": 970.0},
            "Platts LSGO": {"2024-06": 720.0, "2024-07": 730.0, "2024-08": 740.0},
            "ICE GASOIL FUTURES": {"2024-06": 615.0, "2024-07": 620.0},
        },
    )
