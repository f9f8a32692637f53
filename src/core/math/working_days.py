"""
Working Days — Распределение количества по рабочим дням

Рабочий день: понедельник–пятница, без календаря праздников.

distribute_quantity_by_working_days() делит количество между календарными
месяцами пропорционально числу рабочих дней каждого месяца в диапазоне.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Сумма долей равна исходному количеству: остаток от округления float
   забирает последний месяц
2. Диапазон из одного дня целиком относится к месяцу этого дня
3. start > end — ошибка входа (вызывающий код сам упорядочивает границы)
"""

from datetime import date, timedelta
from typing import Iterator

from src.core.domain.errors import InvalidPeriodError
from src.core.domain.periods import month_bounds, month_code_for
from src.core.math.numerical_safeguards import safe_divide


_ONE_DAY = timedelta(days=1)


# =============================================================================
# РАБОЧИЕ ДНИ
# =============================================================================


def is_working_day(day: date) -> bool:
    """Пн–Пт"""
    return day.weekday() < 5


def iter_days(start: date, end: date) -> Iterator[date]:
    """Все календарные дни диапазона [start, end]"""
    current = start
    while current <= end:
        yield current
        current += _ONE_DAY


def iter_working_days(start: date, end: date) -> Iterator[date]:
    """Рабочие дни диапазона [start, end]"""
    return (day for day in iter_days(start, end) if is_working_day(day))


def count_working_days(start: date, end: date) -> int:
    """Число рабочих дней в [start, end]; 0, если start > end"""
    return sum(1 for _ in iter_working_days(start, end))


def working_days_by_month(start: date, end: date) -> dict[str, int]:
    """
    Число рабочих дней диапазона в разбивке по месяцам.

    Месяцы без рабочих дней в диапазоне не попадают в результат.
    Ключи упорядочены хронологически.
    """
    counts: dict[str, int] = {}
    for day in iter_working_days(start, end):
        code = month_code_for(day)
        counts[code] = counts.get(code, 0) + 1
    return counts


def working_days_in_month(code: str) -> int:
    """Число рабочих дней в календарном месяце"""
    first, last = month_bounds(code)
    return count_working_days(first, last)


# =============================================================================
# ПРОПОРЦИОНАЛЬНОЕ РАСПРЕДЕЛЕНИЕ
# =============================================================================


def distribute_quantity_by_working_days(
    start: date, end: date, quantity: float
) -> dict[str, float]:
    """
    Распределение количества по месяцам пропорционально рабочим дням.

    Алгоритм:
        weight(M) = working_days(M ∩ [start, end]) / working_days([start, end])
        share(M) = quantity * weight(M)
        последний месяц получает quantity - sum(остальные доли)

    Диапазон без единого рабочего дня (например, одни выходные) целиком
    относится к месяцу start.

    Args:
        start: Начало диапазона (включительно)
        end: Конец диапазона (включительно)
        quantity: Распределяемое количество (любого знака)

    Returns:
        {month_code: share}, сумма значений равна quantity

    Raises:
        InvalidPeriodError: Если start > end
    """
    if start > end:
        raise InvalidPeriodError(f"Range start {start} is after end {end}")

    counts = working_days_by_month(start, end)
    total_days = sum(counts.values())

    if total_days == 0:
        return {month_code_for(start): quantity}

    months = list(counts)
    distribution: dict[str, float] = {}
    allocated = 0.0

    for code in months[:-1]:
        share = quantity * safe_divide(counts[code], total_days)
        distribution[code] = share
        allocated += share

    distribution[months[-1]] = quantity - allocated
    return distribution
