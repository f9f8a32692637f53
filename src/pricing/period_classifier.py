"""
Period Classifier — Классификация периода относительно "сегодня"

    end < today    → past     (историческая средняя)
    start > today  → future   (форвардная кривая)
    иначе          → current  (период пересекает today, тоже форвард)

is_date_range_in_future() выводится из того же сравнения и не может
разойтись с get_period_type().
"""

from datetime import date, datetime
from enum import Enum

from src.core.domain.periods import month_bounds, to_date


class PeriodType(str, Enum):
    """Положение периода относительно опорной даты"""

    PAST = "past"
    CURRENT = "current"
    FUTURE = "future"


def normalize_period(start: date | datetime | str, end: date | datetime | str) -> tuple[date, date]:
    """
    Упорядочивание границ периода (start <= end).

    Часть исторических записей хранит даты в обратном порядке.
    """
    start_day, end_day = to_date(start), to_date(end)
    if start_day > end_day:
        return end_day, start_day
    return start_day, end_day


def get_period_type(
    start: date | datetime | str,
    end: date | datetime | str,
    today: date | datetime | str,
) -> PeriodType:
    """
    Классификация периода [start, end] относительно today.

    Границы упорядочиваются перед сравнением.

    Examples:
        >>> d = date(2024, 6, 15)
        >>> get_period_type(d, d, d)
        <PeriodType.CURRENT: 'current'>
    """
    start_day, end_day = normalize_period(start, end)
    reference = to_date(today)

    if end_day < reference:
        return PeriodType.PAST
    if start_day > reference:
        return PeriodType.FUTURE
    return PeriodType.CURRENT


def is_date_range_in_future(
    start: date | datetime | str,
    end: date | datetime | str,
    today: date | datetime | str | None = None,
) -> bool:
    """Период целиком после today (today по умолчанию — системная дата)"""
    reference = today if today is not None else date.today()
    return get_period_type(start, end, reference) == PeriodType.FUTURE


def get_month_period_type(code: str, today: date | datetime | str) -> PeriodType:
    """Классификация календарного месяца по его первому и последнему дню"""
    first, last = month_bounds(code)
    return get_period_type(first, last, today)
