"""
MTM Valuation — Оценка ноги по рынку

Для одной ноги: цена сделки, MTM цена и MTM стоимость.

    mtm_value = (trade_price - mtm_price) * quantity * pnl_direction_factor

pnl_direction_factor: buy = -1, sell = +1. Это ОБРАТНЫЙ знак по сравнению
с агрегацией exposure (position_direction_factor), см. src.core.domain.direction.

Источник цен (PriceResolver):
    past              → историческая средняя по месяцам периода
    current / future  → форвард

Физическая нога:
- EFP: цена сделки = зафиксированная фьючерсная цена + премия (agreed),
  иначе форвард фьючерса на месяц EFP + премия; MTM цена всегда форвард + премия
- fixed: цена сделки = fixed_price
- формула: цена сделки — формула на ценах периода ценообразования,
  взвешенных по рабочим дням месяцев; MTM цена — mtm_formula (или формула
  цены) на ценах периода для past, иначе на форварде текущего месяца

Бумажная нога: left - right для DIFF/SPREAD, left для FP.

Нет цены — не ноль: результат получает status=UNRESOLVED, а недостающие
значения остаются None, чтобы отображение показало "N/A", а не "$0.00".
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Awaitable, Iterable

from pydantic import BaseModel, Field, model_validator

from src.core.domain.direction import BuySell, pnl_direction_factor
from src.core.domain.errors import InvalidPeriodError, UnresolvedPriceError
from src.core.domain.formula import PricingFormula, apply_pricing_formula, formula_instruments
from src.core.domain.periods import month_bounds, month_code_for, normalize_month_code, to_date
from src.core.domain.products import (
    DEFAULT_VOCABULARY,
    PaperInstrumentDescriptor,
    ProductVocabulary,
    RelationshipType,
    map_product_to_canonical,
)
from src.core.domain.trade_leg import PaperTradeLeg, PhysicalTradeLeg, PricingType, describe_paper_leg
from src.core.math.working_days import distribute_quantity_by_working_days
from src.pricing.period_classifier import PeriodType, get_period_type, normalize_period
from src.pricing.price_resolver import PriceResolver, source_for_period
from src.pricing.price_store import PriceStore


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIG / MODELS
# =============================================================================


@dataclass(frozen=True)
class MTMConfig:
    """Конфигурация MTM оценки"""

    vocabulary: ProductVocabulary = DEFAULT_VOCABULARY

    # Фьючерс, по которому оценивается EFP
    efp_instrument: str = "ICE GASOIL FUTURES"


class MTMStatus(str, Enum):
    """Полнота результата оценки"""

    RESOLVED = "resolved"
    UNRESOLVED = "unresolved"


class LegMTMResult(BaseModel):
    """
    Результат оценки одной ноги.

    RESOLVED: все три числа заданы. UNRESOLVED: хотя бы одно None,
    причины перечислены в unresolved.
    """

    leg_id: str = Field(..., min_length=1, description="Референс ноги")
    trade_price: float | None = Field(None, description="Цена сделки")
    mtm_price: float | None = Field(None, description="Рыночная (MTM) цена")
    mtm_value: float | None = Field(None, description="MTM стоимость, USD")
    period_type: PeriodType | None = Field(None, description="Тип периода ценообразования")
    status: MTMStatus = Field(..., description="resolved / unresolved")
    unresolved: tuple[str, ...] = Field(default=(), description="Недостающие цены")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_status(self) -> "LegMTMResult":
        """Статус согласован с наличием значений"""
        complete = None not in (self.trade_price, self.mtm_price, self.mtm_value)
        if self.status == MTMStatus.RESOLVED and (not complete or self.unresolved):
            raise ValueError("Resolved MTM result requires all prices and no unresolved entries")
        if self.status == MTMStatus.UNRESOLVED and not self.unresolved:
            raise ValueError("Unresolved MTM result must list what is missing")
        return self

    @property
    def is_resolved(self) -> bool:
        return self.status == MTMStatus.RESOLVED


class BookMTMResult(BaseModel):
    """Оценка набора ног"""

    results: tuple[LegMTMResult, ...] = Field(default=(), description="Результаты по ногам")
    total_mtm_value: float = Field(0.0, description="Сумма MTM по оценённым ногам")
    unresolved_leg_count: int = Field(0, ge=0, description="Ноги без полной оценки")

    model_config = {"frozen": True}


def calculate_mtm_value(
    trade_price: float, mtm_price: float, quantity: float, buy_sell: BuySell
) -> float:
    """
    MTM стоимость ноги.

    Examples:
        >>> calculate_mtm_value(100.0, 90.0, 10.0, BuySell.BUY)
        -100.0
        >>> calculate_mtm_value(100.0, 90.0, 10.0, BuySell.SELL)
        100.0
    """
    return (trade_price - mtm_price) * quantity * pnl_direction_factor(buy_sell)


# =============================================================================
# ENGINE
# =============================================================================


class MTMValuationEngine:
    """
    Оценка ног по рынку.

    Usage:
        engine = MTMValuationEngine(store)
        result = await engine.compute_leg_mtm(leg, today=date(2024, 6, 15))
        if result.is_resolved:
            print(result.mtm_value)
    """

    def __init__(self, store: PriceStore, config: MTMConfig | None = None):
        self._store = store
        self.config = config or MTMConfig()

    def create_resolver(self, today: date | datetime | str) -> PriceResolver:
        """Резолвер с кэшем на один проход оценки"""
        return PriceResolver(self._store, today, self.config.vocabulary)

    async def compute_leg_mtm(
        self,
        leg: PhysicalTradeLeg | PaperTradeLeg,
        today: date | datetime | str,
        resolver: PriceResolver | None = None,
    ) -> LegMTMResult:
        """
        Оценка одной ноги.

        Args:
            leg: Физическая или бумажная нога
            today: Дата оценки
            resolver: Общий резолвер прохода (создаётся, если не передан)

        Returns:
            LegMTMResult (UNRESOLVED вместо исключения при отсутствии цен)
        """
        resolver = resolver or self.create_resolver(today)

        if isinstance(leg, PhysicalTradeLeg):
            result = await self._value_physical_leg(leg, resolver)
        elif isinstance(leg, PaperTradeLeg):
            result = await self._value_paper_leg(leg, resolver)
        else:
            raise TypeError(f"Unsupported leg type: {type(leg).__name__}")

        if not result.is_resolved:
            logger.warning("MTM for leg %s unresolved: %s", leg.leg_id, "; ".join(result.unresolved))
        return result

    async def compute_book_mtm(
        self,
        legs: Iterable[PhysicalTradeLeg | PaperTradeLeg],
        today: date | datetime | str,
    ) -> BookMTMResult:
        """
        Оценка набора ног с одним общим резолвером.

        Все ноги, ссылающиеся на один инструмент/месяц, видят одну и ту же цену.
        """
        resolver = self.create_resolver(today)
        results = await asyncio.gather(
            *(self.compute_leg_mtm(leg, today, resolver) for leg in legs)
        )

        total = sum(r.mtm_value for r in results if r.is_resolved)
        unresolved_count = sum(1 for r in results if not r.is_resolved)

        logger.info(
            "Book MTM: %d legs valued, %d unresolved, total %.2f",
            len(results),
            unresolved_count,
            total,
        )
        return BookMTMResult(
            results=tuple(results),
            total_mtm_value=total,
            unresolved_leg_count=unresolved_count,
        )

    # -------------------------------------------------------------------------
    # Сборка результата
    # -------------------------------------------------------------------------

    @staticmethod
    async def _attempt(price: Awaitable[float], unresolved: list[str]) -> float | None:
        try:
            return await price
        except UnresolvedPriceError as e:
            unresolved.append(str(e))
            return None

    @staticmethod
    def _result(
        leg: PhysicalTradeLeg | PaperTradeLeg,
        trade_price: float | None,
        mtm_price: float | None,
        period_type: PeriodType | None,
        unresolved: list[str],
    ) -> LegMTMResult:
        mtm_value = None
        if trade_price is not None and mtm_price is not None:
            mtm_value = calculate_mtm_value(trade_price, mtm_price, leg.quantity, leg.buy_sell)
        status = MTMStatus.RESOLVED if mtm_value is not None and not unresolved else MTMStatus.UNRESOLVED
        if status == MTMStatus.UNRESOLVED and not unresolved:
            unresolved.append("price unavailable")
        return LegMTMResult(
            leg_id=leg.leg_id,
            trade_price=trade_price,
            mtm_price=mtm_price,
            mtm_value=mtm_value,
            period_type=period_type,
            status=status,
            unresolved=tuple(unresolved),
        )

    # -------------------------------------------------------------------------
    # Физические ноги
    # -------------------------------------------------------------------------

    @staticmethod
    def _pricing_window(leg: PhysicalTradeLeg) -> tuple[date, date]:
        """
        Период ценообразования ноги с упорядоченными границами.

        Запасные варианты: период погрузки, затем торговый месяц.

        Raises:
            InvalidPeriodError: Если ни один период не задан
        """
        start = leg.pricing_period_start or leg.pricing_period_end
        end = leg.pricing_period_end or leg.pricing_period_start
        if start is None:
            start = leg.loading_period_start or leg.loading_period_end
            end = leg.loading_period_end or leg.loading_period_start
        if start is None and leg.trading_period:
            start, end = month_bounds(leg.trading_period)
        if start is None or end is None:
            raise InvalidPeriodError(f"Leg {leg.leg_id} has no pricing period")
        return normalize_period(start, end)

    async def _value_physical_leg(
        self, leg: PhysicalTradeLeg, resolver: PriceResolver
    ) -> LegMTMResult:
        unresolved: list[str] = []
        try:
            start, end = self._pricing_window(leg)
        except InvalidPeriodError as e:
            if not leg.is_efp:
                return self._result(leg, None, None, None, [str(e)])
            start = end = resolver.today

        period_type = get_period_type(start, end, resolver.today)

        if leg.is_efp:
            trade_price, mtm_price = await self._value_efp(leg, resolver, start, unresolved)
            return self._result(leg, trade_price, mtm_price, period_type, unresolved)

        if leg.pricing_type == PricingType.FIXED and leg.fixed_price is not None:
            trade_price = leg.fixed_price
        elif leg.pricing_formula.is_empty:
            trade_price = None
            unresolved.append("pricing formula is empty")
        else:
            trade_price = await self._attempt(
                self._period_formula_price(leg.pricing_formula, start, end, period_type, resolver),
                unresolved,
            )

        mtm_formula = leg.mtm_formula if not leg.mtm_formula.is_empty else leg.pricing_formula
        if mtm_formula.is_empty:
            mtm_price = None
            unresolved.append("mtm formula is empty")
        elif period_type == PeriodType.PAST:
            mtm_price = await self._attempt(
                self._period_formula_price(mtm_formula, start, end, period_type, resolver),
                unresolved,
            )
        else:
            current_month = month_code_for(resolver.today)
            mtm_price = await self._attempt(
                self._month_formula_price(mtm_formula, current_month, PeriodType.CURRENT, resolver),
                unresolved,
            )

        return self._result(leg, trade_price, mtm_price, period_type, unresolved)

    def _efp_month(self, leg: PhysicalTradeLeg, start: date, resolver: PriceResolver) -> str:
        """Месяц фьючерса EFP: заданный, иначе месяц начала ценообразования, иначе текущий"""
        if leg.efp_designated_month:
            try:
                return normalize_month_code(leg.efp_designated_month)
            except InvalidPeriodError as e:
                logger.warning("Leg %s: %s, falling back to pricing month", leg.leg_id, e)
        if leg.pricing_period_start is not None:
            return month_code_for(start)
        return month_code_for(resolver.today)

    async def _value_efp(
        self,
        leg: PhysicalTradeLeg,
        resolver: PriceResolver,
        start: date,
        unresolved: list[str],
    ) -> tuple[float | None, float | None]:
        premium = leg.efp_premium or 0.0
        month = self._efp_month(leg, start, resolver)
        instrument = self.config.efp_instrument

        futures = await self._attempt(
            resolver.require(instrument, month, PeriodType.FUTURE), unresolved
        )
        mtm_price = futures + premium if futures is not None else None

        if leg.efp_agreed_status and leg.efp_fixed_value is not None:
            trade_price = leg.efp_fixed_value + premium
        else:
            trade_price = mtm_price

        return trade_price, mtm_price

    async def _month_formula_price(
        self,
        formula: PricingFormula,
        month: str,
        period_type: PeriodType,
        resolver: PriceResolver,
    ) -> float:
        instruments = formula_instruments(formula)
        prices = await resolver.prices_for(instruments, month, period_type)
        missing = [instrument for instrument, price in prices.items() if price is None]
        if missing:
            raise UnresolvedPriceError(missing[0], month, source_for_period(period_type).value)
        return apply_pricing_formula(formula, prices)

    async def _period_formula_price(
        self,
        formula: PricingFormula,
        start: date,
        end: date,
        period_type: PeriodType,
        resolver: PriceResolver,
    ) -> float:
        """Цена формулы за период: месячные цены, взвешенные по рабочим дням"""
        weights = distribute_quantity_by_working_days(start, end, 1.0)
        total = 0.0
        for month, weight in weights.items():
            total += weight * await self._month_formula_price(formula, month, period_type, resolver)
        return total

    # -------------------------------------------------------------------------
    # Бумажные ноги
    # -------------------------------------------------------------------------

    def _paper_descriptor(self, leg: PaperTradeLeg) -> PaperInstrumentDescriptor | None:
        descriptor = describe_paper_leg(leg, self.config.vocabulary)
        if descriptor is None and leg.product:
            descriptor = PaperInstrumentDescriptor(
                base_product=map_product_to_canonical(leg.product, self.config.vocabulary),
                relationship_type=RelationshipType.FP,
            )
        return descriptor

    async def _market_paper_price(
        self,
        descriptor: PaperInstrumentDescriptor,
        month: str,
        period_type: PeriodType,
        resolver: PriceResolver,
    ) -> float:
        """left - right (или left для FP) по правилу типа периода для каждой стороны"""
        left = await resolver.require(descriptor.base_product, month, period_type)
        if descriptor.opposite_product is None:
            return left
        right = await resolver.require(descriptor.opposite_product, month, period_type)
        return left - right

    async def _value_paper_leg(self, leg: PaperTradeLeg, resolver: PriceResolver) -> LegMTMResult:
        try:
            month = normalize_month_code(leg.settlement_period or "")
        except InvalidPeriodError as e:
            return self._result(leg, None, None, None, [str(e)])

        first, last = month_bounds(month)
        period_type = get_period_type(first, last, resolver.today)

        descriptor = self._paper_descriptor(leg)
        if descriptor is None:
            return self._result(leg, None, None, period_type, [f"Leg {leg.leg_id} has no instrument"])

        unresolved: list[str] = []

        if leg.price is not None:
            trade_price = leg.price
            if descriptor.is_composite and leg.right_side_price is not None:
                trade_price -= leg.right_side_price
        else:
            trade_price = await self._attempt(
                self._market_paper_price(descriptor, month, period_type, resolver), unresolved
            )

        mtm_price = await self._attempt(
            self._market_paper_price(descriptor, month, period_type, resolver), unresolved
        )

        # одна и та же недостающая цена не дублируется
        unresolved = list(dict.fromkeys(unresolved))
        return self._result(leg, trade_price, mtm_price, period_type, unresolved)


async def compute_leg_mtm(
    leg: PhysicalTradeLeg | PaperTradeLeg,
    today: date | datetime | str,
    store: PriceStore,
    config: MTMConfig | None = None,
) -> LegMTMResult:
    """Оценка одной ноги с отдельным резолвером"""
    return await MTMValuationEngine(store, config).compute_leg_mtm(leg, to_date(today))
