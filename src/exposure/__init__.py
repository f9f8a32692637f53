"""
Exposure — Агрегация exposure по месяцам, итоги и окно активности.
"""

from src.exposure.activity import count_trades_per_month
from src.exposure.aggregation import (
    ExposureAggregationEngine,
    ExposureEngineConfig,
    compute_exposure,
    paper_exposure_month,
    physical_exposure_month,
    pricing_exposure_month,
)
from src.exposure.totals import calculate_grand_totals, calculate_group_totals

__all__ = [
    # Aggregation
    "ExposureEngineConfig",
    "ExposureAggregationEngine",
    "compute_exposure",
    "physical_exposure_month",
    "pricing_exposure_month",
    "paper_exposure_month",
    # Totals
    "calculate_grand_totals",
    "calculate_group_totals",
    # Activity
    "count_trades_per_month",
]
