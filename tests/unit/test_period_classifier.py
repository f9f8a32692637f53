"""
Тесты для классификации периодов past / current / future

Проверяет:
1. Границы: период, касающийся today, всегда current
2. Упорядочивание перевёрнутых границ
3. Согласованность is_date_range_in_future с get_period_type
"""

from datetime import date, datetime, timedelta

import pytest

from src.pricing.period_classifier import (
    PeriodType,
    get_month_period_type,
    get_period_type,
    is_date_range_in_future,
    normalize_period,
)


D = date(2024, 6, 15)
ONE_DAY = timedelta(days=1)


class TestGetPeriodType:
    """Тесты для get_period_type"""

    def test_single_day_today_is_current(self) -> None:
        assert get_period_type(D, D, D) == PeriodType.CURRENT

    def test_ending_yesterday_is_past(self) -> None:
        assert get_period_type(D - 10 * ONE_DAY, D - ONE_DAY, D) == PeriodType.PAST

    def test_starting_tomorrow_is_future(self) -> None:
        assert get_period_type(D + ONE_DAY, D + 10 * ONE_DAY, D) == PeriodType.FUTURE

    def test_spanning_today_is_current(self) -> None:
        assert get_period_type(D - ONE_DAY, D + ONE_DAY, D) == PeriodType.CURRENT
        assert get_period_type(D, D + ONE_DAY, D) == PeriodType.CURRENT
        assert get_period_type(D - ONE_DAY, D, D) == PeriodType.CURRENT

    def test_reversed_bounds(self) -> None:
        assert normalize_period(D + ONE_DAY, D - ONE_DAY) == (D - ONE_DAY, D + ONE_DAY)
        assert get_period_type(D + 5 * ONE_DAY, D + ONE_DAY, D) == PeriodType.FUTURE

    def test_accepts_strings_and_datetimes(self) -> None:
        assert get_period_type("2024-05-01", "2024-05-31", datetime(2024, 6, 15, 9, 0)) == PeriodType.PAST


class TestIsDateRangeInFuture:
    """Согласованность с get_period_type"""

    @pytest.mark.parametrize(
        "start,end",
        [
            (D, D),
            (D - ONE_DAY, D - ONE_DAY),
            (D + ONE_DAY, D + ONE_DAY),
            (D - ONE_DAY, D + ONE_DAY),
            (D + 30 * ONE_DAY, D + ONE_DAY),
        ],
    )
    def test_agrees_with_classifier(self, start: date, end: date) -> None:
        expected = get_period_type(start, end, D) == PeriodType.FUTURE
        assert is_date_range_in_future(start, end, D) is expected

    def test_default_today(self) -> None:
        assert is_date_range_in_future(date(2999, 1, 1), date(2999, 1, 31))
        assert not is_date_range_in_future(date(2000, 1, 1), date(2000, 1, 31))


class TestMonthPeriodType:
    """Тесты для get_month_period_type"""

    def test_months_around_today(self, today: date) -> None:
        assert get_month_period_type("2024-05", today) == PeriodType.PAST
        assert get_month_period_type("2024-06", today) == PeriodType.CURRENT
        assert get_month_period_type("Jul-24", today) == PeriodType.FUTURE

    def test_first_and_last_day_of_month(self) -> None:
        assert get_month_period_type("2024-06", date(2024, 6, 1)) == PeriodType.CURRENT
        assert get_month_period_type("2024-06", date(2024, 6, 30)) == PeriodType.CURRENT
        assert get_month_period_type("2024-06", date(2024, 7, 1)) == PeriodType.PAST
