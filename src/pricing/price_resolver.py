"""
Price Resolver — Выбор и кэширование цен инструментов

Политика выбора источника (единая для всех вызывающих):
    past              → историческая средняя за месяц
    current / future  → форвардная цена месяца

"current" сознательно не смешивает историю и форвард.

Кэш на один проход расчёта:
- одна задача asyncio.Task на ключ (источник, инструмент, месяц): параллельные
  запросы одного ключа ждут одну и ту же задачу, поэтому все ноги видят
  одинаковую цену
- задача, завершившаяся исключением, удаляется из кэша
- кэш сбрасывается при смене границ расчёта (bind_range)
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Awaitable, Callable, Iterable

from pydantic import BaseModel, Field

from src.core.domain.errors import UnresolvedPriceError
from src.core.domain.periods import month_code_for, normalize_month_code, to_date
from src.core.domain.products import DEFAULT_VOCABULARY, ProductVocabulary, map_product_to_canonical
from src.core.math.working_days import iter_working_days
from src.pricing.period_classifier import PeriodType, get_month_period_type
from src.pricing.price_store import PriceSource, PriceStore


logger = logging.getLogger(__name__)


# =============================================================================
# МОДЕЛИ
# =============================================================================


class DailyPricePoint(BaseModel):
    """Цена инструмента на один рабочий день"""

    day: date = Field(..., description="Дата")
    instrument: str = Field(..., description="Канонический инструмент")
    price: float | None = Field(None, description="Цена или None, если котировки нет")
    source: PriceSource = Field(..., description="historical / forward")

    model_config = {"frozen": True}


@dataclass
class ResolverStats:
    """Статистика кэша резолвера"""

    cache_hits: int = 0
    cache_misses: int = 0
    invalidations: int = 0


def source_for_period(period_type: PeriodType) -> PriceSource:
    """past → historical, иначе forward"""
    if PeriodType(period_type) == PeriodType.PAST:
        return PriceSource.HISTORICAL
    return PriceSource.FORWARD


# =============================================================================
# RESOLVER
# =============================================================================


class PriceResolver:
    """
    Резолвер цен поверх внешнего PriceStore.

    Usage:
        resolver = PriceResolver(store, today=date(2024, 6, 15))
        resolver.bind_range(date(2024, 6, 1), date(2025, 6, 30))
        price = await resolver.resolve("Argus UCOME", "2024-05", PeriodType.PAST)
    """

    def __init__(
        self,
        store: PriceStore,
        today: date | datetime | str,
        vocabulary: ProductVocabulary = DEFAULT_VOCABULARY,
    ):
        self._store = store
        self._today = to_date(today)
        self._vocabulary = vocabulary

        # (source, instrument, key) -> задача загрузки
        self._tasks: dict[tuple[str, str, str], asyncio.Task] = {}
        self._bounds: tuple[date, date] | None = None

        self.stats = ResolverStats()

    @property
    def today(self) -> date:
        return self._today

    @property
    def cache_size(self) -> int:
        return len(self._tasks)

    # -------------------------------------------------------------------------
    # Кэш
    # -------------------------------------------------------------------------

    def bind_range(self, start: date | datetime | str, end: date | datetime | str) -> None:
        """
        Привязка кэша к границам расчёта.

        Новые границы сбрасывают кэш, повторный вызов с теми же границами — нет.
        """
        bounds = (to_date(start), to_date(end))
        if self._bounds is not None and bounds != self._bounds:
            self.invalidate()
        self._bounds = bounds

    def invalidate(self) -> None:
        """Сброс кэша цен"""
        if self._tasks:
            logger.debug("Price cache invalidated (%d entries)", len(self._tasks))
        self._tasks.clear()
        self.stats.invalidations += 1

    def _evict_failed(self, key: tuple[str, str, str], task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is not None:
            if self._tasks.get(key) is task:
                del self._tasks[key]

    async def _cached(
        self,
        key: tuple[str, str, str],
        loader: Callable[[], Awaitable[float | None]],
    ) -> float | None:
        task = self._tasks.get(key)
        if task is None:
            self.stats.cache_misses += 1
            logger.debug("Price cache miss %s", key)
            task = asyncio.ensure_future(loader())
            task.add_done_callback(lambda t, k=key: self._evict_failed(k, t))
            self._tasks[key] = task
        else:
            self.stats.cache_hits += 1
        return await task

    # -------------------------------------------------------------------------
    # Источники
    # -------------------------------------------------------------------------

    def _canonical(self, instrument: str) -> str:
        return map_product_to_canonical(instrument, self._vocabulary)

    async def historical_average(self, instrument: str, month: str) -> float | None:
        """Средняя историческая цена за месяц (None, если истории нет)"""
        canonical = self._canonical(instrument)
        month = normalize_month_code(month)
        return await self._cached(
            (PriceSource.HISTORICAL.value, canonical, month),
            lambda: self._store.fetch_monthly_average_price(canonical, month),
        )

    async def forward_price(self, instrument: str, month: str) -> float | None:
        """Форвардная цена месяца (None, если котировки нет)"""
        canonical = self._canonical(instrument)
        month = normalize_month_code(month)
        return await self._cached(
            (PriceSource.FORWARD.value, canonical, month),
            lambda: self._store.fetch_specific_forward_price(canonical, month),
        )

    async def daily_price(self, instrument: str, day: date) -> float | None:
        """Историческая котировка на дату"""
        canonical = self._canonical(instrument)
        return await self._cached(
            ("daily", canonical, day.isoformat()),
            lambda: self._store.fetch_daily_price(canonical, day),
        )

    # -------------------------------------------------------------------------
    # Политика выбора
    # -------------------------------------------------------------------------

    def period_type_for_month(self, month: str) -> PeriodType:
        return get_month_period_type(month, self._today)

    async def resolve(self, instrument: str, month: str, period_type: PeriodType) -> float | None:
        """
        Цена инструмента на месяц по типу периода.

        Args:
            instrument: Инструмент (сырое или каноническое имя)
            month: Код месяца YYYY-MM
            period_type: Тип периода, определяющий источник

        Returns:
            Цена или None
        """
        if source_for_period(period_type) == PriceSource.HISTORICAL:
            return await self.historical_average(instrument, month)
        return await self.forward_price(instrument, month)

    async def require(self, instrument: str, month: str, period_type: PeriodType) -> float:
        """
        Цена, которая обязана существовать.

        Raises:
            UnresolvedPriceError: Если источник не вернул цену
        """
        price = await self.resolve(instrument, month, period_type)
        if price is None:
            raise UnresolvedPriceError(
                self._canonical(instrument), month, source_for_period(period_type).value
            )
        return price

    async def prices_for(
        self, instruments: Iterable[str], month: str, period_type: PeriodType
    ) -> dict[str, float | None]:
        """Снимок цен набора инструментов на месяц"""
        names = list(dict.fromkeys(instruments))
        prices = await asyncio.gather(*(self.resolve(name, month, period_type) for name in names))
        return dict(zip(names, prices))

    async def daily_series(
        self, instrument: str, start: date | datetime | str, end: date | datetime | str
    ) -> list[DailyPricePoint]:
        """
        Дневной ряд цен по рабочим дням [start, end].

        Дни до today включительно берут историческую котировку дня.
        Дни после today повторяют форвардную цену своего месяца:
        дневной форвардной кривой нет.
        """
        canonical = self._canonical(instrument)
        start_day, end_day = to_date(start), to_date(end)

        points: list[DailyPricePoint] = []
        for day in iter_working_days(start_day, end_day):
            if day <= self._today:
                price = await self.daily_price(canonical, day)
                source = PriceSource.HISTORICAL
            else:
                price = await self.forward_price(canonical, month_code_for(day))
                source = PriceSource.FORWARD
            points.append(DailyPricePoint(day=day, instrument=canonical, price=price, source=source))
        return points
