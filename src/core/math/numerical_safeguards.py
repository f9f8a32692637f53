"""
Numerical Safeguards — Безопасные математические примитивы

Модуль обеспечивает численную устойчивость расчётов exposure и MTM:
- Безопасное деление с защитой от деления на ноль
- NaN/Inf санитизация (результат формулы никогда не бывает NaN)
- Epsilon-сравнения float для проверки инвариантов итогов

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Деление на ноль никогда не происходит (возвращается fallback)
2. NaN/Inf никогда не пропагируют в exposure-матрицу
3. Суммы по месяцам сравниваются с итогами только через is_close
"""

import math
from typing import Final

# =============================================================================
# EPSILON-ПАРАМЕТРЫ
# =============================================================================

# Epsilon для цен (USD/MT)
EPS_PRICE: Final[float] = 1e-8

# Epsilon для количеств (MT): всё, что меньше, считается нулевой позицией
EPS_QTY: Final[float] = 1e-9

# Относительная толерантность для is_close
EPS_FLOAT_COMPARE_REL: Final[float] = 1e-9

# Абсолютная толерантность для is_close / is_zero
EPS_FLOAT_COMPARE_ABS: Final[float] = 1e-9


# =============================================================================
# БЕЗОПАСНОЕ ДЕЛЕНИЕ
# =============================================================================


def safe_divide(
    numerator: float,
    denominator: float,
    eps: float = EPS_QTY,
    fallback: float = 0.0,
) -> float:
    """
    Безопасное деление с защитой от деления на ноль и NaN/Inf.

    Args:
        numerator: Числитель
        denominator: Знаменатель
        eps: Порог, ниже которого знаменатель считается нулевым
        fallback: Значение при делении на ноль (default: 0.0)

    Returns:
        Результат деления или fallback

    Examples:
        >>> safe_divide(10.0, 2.0)
        5.0
        >>> safe_divide(10.0, 0.0)
        0.0
        >>> safe_divide(10.0, 0.0, fallback=10.0)
        10.0
    """
    if eps <= 0:
        raise ValueError(f"eps must be positive, got {eps}")

    num_clean = sanitize_float(numerator, fallback=0.0)
    denom_clean = sanitize_float(denominator, fallback=0.0)

    if abs(denom_clean) < eps:
        return fallback

    return sanitize_float(num_clean / denom_clean, fallback=fallback)


# =============================================================================
# NaN/Inf САНИТИЗАЦИЯ
# =============================================================================


def is_valid_float(value: float) -> bool:
    """True, если значение конечное (не NaN, не Inf)"""
    return math.isfinite(value)


def sanitize_float(value: float, fallback: float = 0.0) -> float:
    """
    Санитизация float: замена NaN/Inf на fallback значение.

    Examples:
        >>> sanitize_float(10.0)
        10.0
        >>> sanitize_float(float('nan'))
        0.0
        >>> sanitize_float(float('-inf'), fallback=-1.0)
        -1.0
    """
    if is_valid_float(value):
        return value
    return fallback


# =============================================================================
# EPSILON-СРАВНЕНИЯ FLOAT
# =============================================================================


def is_close(
    a: float,
    b: float,
    rel_tol: float = EPS_FLOAT_COMPARE_REL,
    abs_tol: float = EPS_FLOAT_COMPARE_ABS,
) -> bool:
    """
    Сравнение float с учётом машинной точности.

    Алгоритм:
        abs(a - b) <= max(rel_tol * max(abs(a), abs(b)), abs_tol)

    Examples:
        >>> is_close(0.1 + 0.2, 0.3)
        True
        >>> is_close(1.0, 1.1)
        False
    """
    return math.isclose(a, b, rel_tol=rel_tol, abs_tol=abs_tol)


def is_zero(value: float, tol: float = EPS_FLOAT_COMPARE_ABS) -> bool:
    """True если abs(value) <= tol"""
    return abs(value) <= tol


# =============================================================================
# ВАЛИДАЦИЯ
# =============================================================================


def validate_non_negative(value: float, name: str) -> None:
    """
    Валидация, что значение конечное и неотрицательное.

    Args:
        value: Проверяемое значение
        name: Имя параметра (для сообщения об ошибке)

    Raises:
        ValueError: Если value < 0 или NaN/Inf
    """
    if not is_valid_float(value):
        raise ValueError(f"{name} must be a valid float (not NaN/Inf), got {value}")

    if value < 0:
        raise ValueError(f"{name} must be non-negative, got {value}")
