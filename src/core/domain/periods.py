"""
Periods — Коды месяцев и горизонты агрегации

MonthCode — строка вида 'YYYY-MM'. Лексикографический порядок совпадает
с хронологическим, поэтому коды можно сортировать и сравнивать как строки.

Исторически в хранилище встречаются коды 'Jun-24', 'Jun 24', 'Jun24' и полные
даты ISO. Все они нормализуются на входе через normalize_month_code(), дальше
движок работает только с 'YYYY-MM'.

Два независимых горизонта:
- exposure: 13 месяцев начиная с текущего
- trades-per-month: 7 месяцев (2 назад, 4 вперёд)
"""

import calendar
import re
from datetime import date, datetime
from typing import Final

from src.core.domain.errors import InvalidPeriodError


# =============================================================================
# КОНСТАНТЫ
# =============================================================================

EXPOSURE_HORIZON_MONTHS: Final[int] = 13

TRADES_WINDOW_MONTHS_BACK: Final[int] = 2
TRADES_WINDOW_MONTHS_FORWARD: Final[int] = 4

MONTH_ABBREVIATIONS: Final[tuple[str, ...]] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

_ISO_MONTH_RE = re.compile(r"^(\d{4})-(\d{1,2})$")
_ISO_DATE_RE = re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})(?:[T ].*)?$")
_LEGACY_MONTH_RE = re.compile(r"^([A-Za-z]{3})[A-Za-z]*[-\s]?(\d{2}|\d{4})$")


# =============================================================================
# ПРЕОБРАЗОВАНИЯ
# =============================================================================


def to_date(value: date | datetime | str) -> date:
    """
    Приведение datetime/ISO-строки к date (время отбрасывается).

    Raises:
        InvalidPeriodError: Если строка не является датой ISO
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        match = _ISO_DATE_RE.match(value.strip())
        if match:
            year, month, day = (int(g) for g in match.groups())
            try:
                return date(year, month, day)
            except ValueError as e:
                raise InvalidPeriodError(f"Invalid date {value!r}: {e}") from e
    raise InvalidPeriodError(f"Cannot interpret {value!r} as a date")


def month_code(year: int, month: int) -> str:
    """Код месяца 'YYYY-MM'"""
    if not 1 <= month <= 12:
        raise InvalidPeriodError(f"Month out of range: {month}")
    return f"{year:04d}-{month:02d}"


def month_code_for(day: date | datetime) -> str:
    """Код месяца, в который попадает дата"""
    return month_code(day.year, day.month)


def parse_month_code(code: str) -> tuple[int, int]:
    """
    Разбор кода месяца в пару (year, month).

    Принимает 'YYYY-MM', 'YYYY-MM-DD', 'Jun-24', 'Jun 24', 'Jun24', 'June-2024'.

    Raises:
        InvalidPeriodError: Если код пустой или не распознан
    """
    if not isinstance(code, str) or not code.strip():
        raise InvalidPeriodError(f"Empty month code: {code!r}")

    text = code.strip()

    match = _ISO_MONTH_RE.match(text)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if 1 <= month <= 12:
            return year, month
        raise InvalidPeriodError(f"Month out of range in {code!r}")

    if _ISO_DATE_RE.match(text):
        day = to_date(text)
        return day.year, day.month

    match = _LEGACY_MONTH_RE.match(text)
    if match:
        abbreviation = match.group(1).capitalize()
        if abbreviation in MONTH_ABBREVIATIONS:
            year_text = match.group(2)
            year = int(year_text) if len(year_text) == 4 else 2000 + int(year_text)
            return year, MONTH_ABBREVIATIONS.index(abbreviation) + 1

    raise InvalidPeriodError(f"Unrecognised month code: {code!r}")


def normalize_month_code(code: str) -> str:
    """Нормализация любого поддерживаемого формата к 'YYYY-MM'"""
    year, month = parse_month_code(code)
    return month_code(year, month)


def month_bounds(code: str) -> tuple[date, date]:
    """
    Первый и последний календарный день месяца.

    Returns:
        (first_day, last_day)
    """
    year, month = parse_month_code(code)
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1), date(year, month, last_day)


def add_months(code: str, offset: int) -> str:
    """Сдвиг кода месяца на offset месяцев (offset может быть отрицательным)"""
    year, month = parse_month_code(code)
    index = year * 12 + (month - 1) + offset
    return month_code(index // 12, index % 12 + 1)


def months_in_range(start: date, end: date) -> list[str]:
    """
    Все коды месяцев, пересекающиеся с диапазоном [start, end].

    Пустой список, если start > end.
    """
    if start > end:
        return []
    first = month_code_for(start)
    last = month_code_for(end)
    months = [first]
    while months[-1] != last:
        months.append(add_months(months[-1], 1))
    return months


# =============================================================================
# ГОРИЗОНТЫ
# =============================================================================


def build_month_window(anchor: date, months_back: int, months_forward: int) -> list[str]:
    """Окно месяцев [anchor - back, anchor + forward] включительно"""
    if months_back < 0 or months_forward < 0:
        raise ValueError("Window bounds must be non-negative")
    anchor_code = month_code_for(anchor)
    return [add_months(anchor_code, i) for i in range(-months_back, months_forward + 1)]


def build_exposure_horizon(
    today: date, months: int = EXPOSURE_HORIZON_MONTHS
) -> list[str]:
    """
    Горизонт агрегации exposure: months подряд идущих месяцев от текущего.

    Args:
        today: Опорная дата
        months: Длина горизонта (по умолчанию 13)
    """
    if months <= 0:
        raise ValueError(f"Horizon length must be positive, got {months}")
    return build_month_window(today, 0, months - 1)


def build_trades_window(today: date) -> list[str]:
    """Окно trades-per-month: 2 месяца назад, текущий и 4 вперёд"""
    return build_month_window(today, TRADES_WINDOW_MONTHS_BACK, TRADES_WINDOW_MONTHS_FORWARD)
