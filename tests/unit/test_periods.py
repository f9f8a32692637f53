"""
Тесты для кодов месяцев и горизонтов

Проверяет:
1. Нормализацию унаследованных форматов к 'YYYY-MM'
2. Арифметику месяцев через границу года
3. Горизонт exposure (13 месяцев) и окно trades-per-month (7 месяцев)
"""

from datetime import date, datetime

import pytest

from src.core.domain.errors import InvalidPeriodError
from src.core.domain.periods import (
    add_months,
    build_exposure_horizon,
    build_month_window,
    build_trades_window,
    month_bounds,
    month_code,
    months_in_range,
    normalize_month_code,
    to_date,
)


# =============================================================================
# MONTH CODES
# =============================================================================


class TestNormalizeMonthCode:
    """Тесты для normalize_month_code"""

    @pytest.mark.parametrize(
        "raw",
        ["2024-06", "2024-6", "2024-06-15", "Jun-24", "Jun 24", "Jun24", "June-2024", "jun-24"],
    )
    def test_supported_formats(self, raw: str) -> None:
        assert normalize_month_code(raw) == "2024-06"

    @pytest.mark.parametrize("raw", ["", "   ", "2024-13", "Foo-24", "junk"])
    def test_rejected(self, raw: str) -> None:
        with pytest.raises(InvalidPeriodError):
            normalize_month_code(raw)

    def test_invalid_period_error_is_value_error(self) -> None:
        """Вызывающий код может ловить ValueError"""
        with pytest.raises(ValueError):
            normalize_month_code("2024-00")

    def test_month_code_range(self) -> None:
        assert month_code(2024, 1) == "2024-01"
        with pytest.raises(InvalidPeriodError):
            month_code(2024, 0)


class TestToDate:
    """Тесты для to_date"""

    def test_datetime_drops_time(self) -> None:
        assert to_date(datetime(2024, 6, 15, 23, 59)) == date(2024, 6, 15)

    def test_iso_string(self) -> None:
        assert to_date("2024-06-15") == date(2024, 6, 15)
        assert to_date("2024-06-15T10:00:00Z") == date(2024, 6, 15)

    def test_invalid(self) -> None:
        with pytest.raises(InvalidPeriodError):
            to_date("2024-02-30")
        with pytest.raises(InvalidPeriodError):
            to_date("tomorrow")


# =============================================================================
# ARITHMETIC
# =============================================================================


class TestMonthArithmetic:
    """Сдвиги и границы месяцев"""

    def test_add_months_across_year(self) -> None:
        assert add_months("2024-11", 3) == "2025-02"
        assert add_months("2024-01", -1) == "2023-12"
        assert add_months("2024-06", 0) == "2024-06"

    def test_month_bounds_leap_year(self) -> None:
        assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))
        assert month_bounds("2023-02") == (date(2023, 2, 1), date(2023, 2, 28))

    def test_months_in_range(self) -> None:
        assert months_in_range(date(2024, 11, 20), date(2025, 1, 5)) == [
            "2024-11",
            "2024-12",
            "2025-01",
        ]
        assert months_in_range(date(2024, 6, 1), date(2024, 6, 30)) == ["2024-06"]
        assert months_in_range(date(2024, 7, 1), date(2024, 6, 1)) == []


# =============================================================================
# HORIZONS
# =============================================================================


class TestHorizons:
    """Горизонт exposure и окно trades-per-month"""

    def test_exposure_horizon(self, today: date) -> None:
        horizon = build_exposure_horizon(today)
        assert len(horizon) == 13
        assert horizon[0] == "2024-06"
        assert horizon[-1] == "2025-06"
        assert horizon == sorted(horizon)

    def test_custom_horizon_length(self, today: date) -> None:
        assert build_exposure_horizon(today, months=2) == ["2024-06", "2024-07"]
        with pytest.raises(ValueError):
            build_exposure_horizon(today, months=0)

    def test_trades_window(self) -> None:
        window = build_trades_window(date(2024, 1, 10))
        assert window == [
            "2023-11",
            "2023-12",
            "2024-01",
            "2024-02",
            "2024-03",
            "2024-04",
            "2024-05",
        ]

    def test_negative_window(self, today: date) -> None:
        with pytest.raises(ValueError):
            build_month_window(today, -1, 2)
