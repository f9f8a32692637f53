"""
Price Store — Интерфейс внешнего хранилища цен

Движок не загружает котировки сам: хранилище цен — внешний компонент.
Все три метода возвращают None при отсутствии данных и не бросают исключений.

InMemoryPriceStore — реализация на словарях для тестов и офлайн-расчётов:
историческая средняя считается как арифметическое среднее дневных цен месяца.
"""

from datetime import date
from enum import Enum
from typing import Mapping, Protocol

from src.core.domain.periods import month_code_for, normalize_month_code
from src.core.math.numerical_safeguards import safe_divide, validate_non_negative


class PriceSource(str, Enum):
    """Источник цены"""

    HISTORICAL = "historical"  # Средняя дневных котировок месяца
    FORWARD = "forward"  # Форвардная кривая на месяц


class PriceStore(Protocol):
    """Протокол хранилища цен"""

    async def fetch_monthly_average_price(self, instrument: str, month: str) -> float | None:
        """Средняя историческая цена инструмента за месяц"""
        ...

    async def fetch_specific_forward_price(self, instrument: str, month: str) -> float | None:
        """Форвардная котировка инструмента на месяц"""
        ...

    async def fetch_daily_price(self, instrument: str, day: date) -> float | None:
        """Историческая котировка инструмента на дату"""
        ...


class InMemoryPriceStore:
    """
    Хранилище цен в памяти.

    Args:
        historical: {instrument: {date: price}}
        forward: {instrument: {month_code: price}}
    """

    def __init__(
        self,
        historical: Mapping[str, Mapping[date, float]] | None = None,
        forward: Mapping[str, Mapping[str, float]] | None = None,
    ):
        self._historical: dict[str, dict[date, float]] = {}
        self._forward: dict[str, dict[str, float]] = {}

        for instrument, prices in (historical or {}).items():
            for day, price in prices.items():
                self.add_historical_price(instrument, day, price)
        for instrument, curve in (forward or {}).items():
            for month, price in curve.items():
                self.add_forward_price(instrument, month, price)

    def add_historical_price(self, instrument: str, day: date, price: float) -> None:
        validate_non_negative(price, "price")
        self._historical.setdefault(instrument, {})[day] = float(price)

    def add_forward_price(self, instrument: str, month: str, price: float) -> None:
        validate_non_negative(price, "price")
        self._forward.setdefault(instrument, {})[normalize_month_code(month)] = float(price)

    async def fetch_monthly_average_price(self, instrument: str, month: str) -> float | None:
        code = normalize_month_code(month)
        prices = [
            price
            for day, price in self._historical.get(instrument, {}).items()
            if month_code_for(day) == code
        ]
        if not prices:
            return None
        return safe_divide(sum(prices), len(prices))

    async def fetch_specific_forward_price(self, instrument: str, month: str) -> float | None:
        return self._forward.get(instrument, {}).get(normalize_month_code(month))

    async def fetch_daily_price(self, instrument: str, day: date) -> float | None:
        return self._historical.get(instrument, {}).get(day)
