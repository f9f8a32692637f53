"""
Core math modules

Численные примитивы и пропорциональное распределение по рабочим дням.
"""

# Numerical Safeguards
from src.core.math.numerical_safeguards import (
    # Epsilon constants
    EPS_FLOAT_COMPARE_ABS,
    EPS_FLOAT_COMPARE_REL,
    EPS_PRICE,
    EPS_QTY,
    # Safe division
    safe_divide,
    # NaN/Inf sanitization
    is_valid_float,
    sanitize_float,
    # Epsilon comparisons
    is_close,
    is_zero,
    # Validation
    validate_non_negative,
)

# Working Days
from src.core.math.working_days import (
    count_working_days,
    distribute_quantity_by_working_days,
    is_working_day,
    iter_days,
    iter_working_days,
    working_days_by_month,
    working_days_in_month,
)

__all__ = [
    # Numerical Safeguards — Epsilon constants
    "EPS_FLOAT_COMPARE_ABS",
    "EPS_FLOAT_COMPARE_REL",
    "EPS_PRICE",
    "EPS_QTY",
    # Numerical Safeguards — Safe division
    "safe_divide",
    # Numerical Safeguards — NaN/Inf sanitization
    "is_valid_float",
    "sanitize_float",
    # Numerical Safeguards — Epsilon comparisons
    "is_close",
    "is_zero",
    # Numerical Safeguards — Validation
    "validate_non_negative",
    # Working Days
    "is_working_day",
    "iter_days",
    "iter_working_days",
    "count_working_days",
    "working_days_by_month",
    "working_days_in_month",
    "distribute_quantity_by_working_days",
]
