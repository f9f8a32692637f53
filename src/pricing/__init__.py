"""
Pricing — Классификация периодов, резолвер цен и построение формул.
"""

from src.pricing.formula_builder import (
    EFP_PRICING_INSTRUMENT,
    build_monthly_distribution,
    calculate_formula_exposures,
    create_efp_formula,
)
from src.pricing.period_classifier import (
    PeriodType,
    get_month_period_type,
    get_period_type,
    is_date_range_in_future,
    normalize_period,
)
from src.pricing.price_resolver import (
    DailyPricePoint,
    PriceResolver,
    ResolverStats,
    source_for_period,
)
from src.pricing.price_store import InMemoryPriceStore, PriceSource, PriceStore
from src.pricing.pricing_table import PricingTableRow, average_evaluated_price, build_pricing_table

__all__ = [
    # Period classifier
    "PeriodType",
    "get_period_type",
    "get_month_period_type",
    "is_date_range_in_future",
    "normalize_period",
    # Price store
    "PriceSource",
    "PriceStore",
    "InMemoryPriceStore",
    # Price resolver
    "DailyPricePoint",
    "PriceResolver",
    "ResolverStats",
    "source_for_period",
    # Pricing table
    "PricingTableRow",
    "build_pricing_table",
    "average_evaluated_price",
    # Formula builder
    "EFP_PRICING_INSTRUMENT",
    "calculate_formula_exposures",
    "create_efp_formula",
    "build_monthly_distribution",
]
