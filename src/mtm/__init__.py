"""
MTM — Оценка ног и книги по рынку.
"""

from src.mtm.valuation import (
    BookMTMResult,
    LegMTMResult,
    MTMConfig,
    MTMStatus,
    MTMValuationEngine,
    calculate_mtm_value,
    compute_leg_mtm,
)

__all__ = [
    "MTMConfig",
    "MTMStatus",
    "LegMTMResult",
    "BookMTMResult",
    "MTMValuationEngine",
    "calculate_mtm_value",
    "compute_leg_mtm",
]
