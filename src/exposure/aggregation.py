"""
Exposure Aggregation — Матрица exposure по месяцам горизонта

Вход: все физические и бумажные ноги книги, горизонт из 13 месяцев.
Выход: ExposureReport (строки по месяцам, итоги, итоги по группам, счётчики).

Физическая нога:
1. Месяц physical: loading_period_start → trading_period → pricing_period_start
   (первый непустой источник, без слияния)
2. Месяц pricing: месяц фьючерса EFP → trading_period → pricing_period_start
3. physical: ненулевые exposures.physical из mtm_formula заменяют
   quantity * direction на собственном продукте ноги; нога, чей собственный
   продукт исключён из physical (фьючерс), physical не даёт вовсе
4. pricing: monthly_distribution формулы цены (авторитетен для своего
   инструмента), иначе exposures.pricing в месяц pricing, иначе ничего

Бумажная нога (первая подходящая ветка):
1. Инструмент разобран: ±quantity в paper и pricing базового продукта,
   для DIFF/SPREAD противоположный продукт получает то же со знаком минус
2. Явные exposures ноги (уже со знаком), даже пустая карта
3. exposures из mtm_formula, масштабированные направлением
4. quantity * direction на собственном продукте ноги

Нога без распознаваемого месяца пропускается и учитывается в skipped_leg_count.
Нераспознанный месяц фьючерса EFP отбрасывает только pricing часть,
если месяц physical известен.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Iterable, Mapping, Sequence

from src.core.domain.direction import position_direction_factor
from src.core.domain.errors import InvalidPeriodError
from src.core.domain.exposure import (
    ZERO_EXPOSURE,
    ExposureData,
    ExposureReport,
    MonthlyExposure,
    sum_exposures,
)
from src.core.domain.periods import (
    EXPOSURE_HORIZON_MONTHS,
    build_exposure_horizon,
    month_code_for,
    normalize_month_code,
)
from src.core.domain.products import DEFAULT_VOCABULARY, ProductVocabulary, map_product_to_canonical
from src.core.domain.trade_leg import PaperTradeLeg, PhysicalTradeLeg, describe_paper_leg
from src.core.math.numerical_safeguards import is_zero
from src.exposure.totals import calculate_grand_totals, calculate_group_totals


logger = logging.getLogger(__name__)


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class ExposureEngineConfig:
    """Конфигурация агрегации exposure"""

    vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
    horizon_months: int = EXPOSURE_HORIZON_MONTHS

    # Продукты без физической атрибуции (фьючерсы не грузятся)
    physical_excluded_products: tuple[str, ...] = ("ICE GASOIL FUTURES",)

    # Каждый месяц содержит все продукты словаря (нулевые строки таблицы)
    seed_vocabulary_products: bool = True


# =============================================================================
# МЕСЯЦЫ НОГ
# =============================================================================


def _first_month(*sources: date | str | None) -> str | None:
    """
    Код месяца первого непустого источника.

    Raises:
        InvalidPeriodError: Если первый непустой источник не парсится
    """
    for source in sources:
        if source is None:
            continue
        if isinstance(source, date):
            return month_code_for(source)
        return normalize_month_code(source)
    return None


def physical_exposure_month(leg: PhysicalTradeLeg) -> str | None:
    """Месяц physical: погрузка → торговый месяц → начало ценообразования"""
    return _first_month(leg.loading_period_start, leg.trading_period, leg.pricing_period_start)


def pricing_exposure_month(leg: PhysicalTradeLeg) -> str | None:
    """Месяц pricing: месяц фьючерса EFP → торговый месяц → начало ценообразования"""
    designated = leg.efp_designated_month if leg.is_efp else None
    return _first_month(designated, leg.trading_period, leg.pricing_period_start)


def paper_exposure_month(leg: PaperTradeLeg) -> str | None:
    """Расчётный месяц бумажной ноги"""
    return _first_month(leg.settlement_period)


# =============================================================================
# LEDGER
# =============================================================================


@dataclass
class _ExposureLedger:
    """
    Изменяемое накопление матрицы внутри одного прохода.

    Каждая запись пересчитывает net_exposure ячейки и итоги месяца целиком.
    """

    horizon: tuple[str, ...]
    pricing_only_products: frozenset[str]
    rows: dict[str, dict[str, ExposureData]] = field(default_factory=dict)
    totals: dict[str, ExposureData] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for month in self.horizon:
            self.rows[month] = {}
            self.totals[month] = ZERO_EXPOSURE

    def seed(self, products: Iterable[str]) -> None:
        for month in self.horizon:
            for product in products:
                self.rows[month].setdefault(product, ZERO_EXPOSURE)

    def add(
        self,
        month: str,
        product: str,
        physical: float = 0.0,
        pricing: float = 0.0,
        paper: float = 0.0,
    ) -> bool:
        """
        Добавление к ячейке (month, product).

        Returns:
            False, если месяц вне горизонта (вклад отброшен)
        """
        row = self.rows.get(month)
        if row is None:
            logger.debug("Dropping %s contribution for %s: month outside horizon", product, month)
            return False

        current = row.get(product, ZERO_EXPOSURE)
        row[product] = ExposureData.build(
            physical=current.physical + physical,
            pricing=current.pricing + pricing,
            paper=current.paper + paper,
            pricing_only=product in self.pricing_only_products,
        )
        self.totals[month] = sum_exposures(row.values())
        return True

    def freeze(self) -> tuple[MonthlyExposure, ...]:
        return tuple(
            MonthlyExposure(
                month=month,
                products=dict(sorted(self.rows[month].items())),
                totals=self.totals[month],
            )
            for month in self.horizon
        )


# =============================================================================
# ENGINE
# =============================================================================


class ExposureAggregationEngine:
    """
    Агрегация exposure по книге.

    Без состояния между вызовами: каждый compute() строит новый ledger.
    """

    def __init__(self, config: ExposureEngineConfig | None = None):
        self.config = config or ExposureEngineConfig()

    def _canonical(self, raw: str | None) -> str:
        return map_product_to_canonical(raw, self.config.vocabulary)

    def build_horizon(self, today: date) -> list[str]:
        """Горизонт по умолчанию от месяца today"""
        return build_exposure_horizon(today, self.config.horizon_months)

    def compute(
        self,
        physical_legs: Iterable[PhysicalTradeLeg],
        paper_legs: Iterable[PaperTradeLeg],
        horizon: Sequence[str],
    ) -> ExposureReport:
        """
        Один проход агрегации.

        Args:
            physical_legs: Физические ноги
            paper_legs: Бумажные ноги
            horizon: Коды месяцев горизонта по возрастанию

        Returns:
            ExposureReport

        Raises:
            ValueError: Если горизонт пустой, не упорядочен или содержит повторы
        """
        months = _validate_horizon(horizon)
        vocabulary = self.config.vocabulary

        ledger = _ExposureLedger(
            horizon=months,
            pricing_only_products=frozenset(vocabulary.pricing_only_products),
        )
        if self.config.seed_vocabulary_products:
            ledger.seed(vocabulary.canonical_products)

        processed = 0
        skipped = 0

        for leg in physical_legs:
            if self._apply_guarded(ledger, leg, self._apply_physical_leg):
                processed += 1
            else:
                skipped += 1

        for leg in paper_legs:
            if self._apply_guarded(ledger, leg, self._apply_paper_leg):
                processed += 1
            else:
                skipped += 1

        monthly = ledger.freeze()
        grand = calculate_grand_totals(monthly)
        group = calculate_group_totals(grand, vocabulary)

        logger.info(
            "Exposure aggregation %s..%s: %d legs processed, %d skipped",
            months[0],
            months[-1],
            processed,
            skipped,
        )

        return ExposureReport(
            monthly=monthly,
            grand=grand,
            group=group,
            skipped_leg_count=skipped,
            processed_leg_count=processed,
        )

    def _apply_guarded(
        self,
        ledger: _ExposureLedger,
        leg: PhysicalTradeLeg | PaperTradeLeg,
        apply: Callable[[_ExposureLedger, Any], bool],
    ) -> bool:
        try:
            applied = apply(ledger, leg)
        except InvalidPeriodError as e:
            logger.warning("Skipping leg %s: invalid period (%s)", leg.leg_id, e)
            return False
        if not applied:
            logger.warning("Skipping leg %s: no resolvable exposure month", leg.leg_id)
        return applied

    # -------------------------------------------------------------------------
    # Физические ноги
    # -------------------------------------------------------------------------

    def _apply_physical_leg(self, ledger: _ExposureLedger, leg: PhysicalTradeLeg) -> bool:
        physical_month = physical_exposure_month(leg)
        try:
            pricing_month = pricing_exposure_month(leg)
        except InvalidPeriodError as e:
            if physical_month is None:
                raise
            logger.warning("Leg %s: pricing month skipped (%s)", leg.leg_id, e)
            pricing_month = None

        if physical_month is None and pricing_month is None:
            return False

        if physical_month is not None:
            self._add_physical(ledger, leg, physical_month)

        self._add_pricing(ledger, leg, pricing_month)
        return True

    def _add_physical(self, ledger: _ExposureLedger, leg: PhysicalTradeLeg, month: str) -> None:
        product = self._canonical(leg.product)
        if product in self.config.physical_excluded_products:
            logger.debug("Leg %s: %s excluded from physical exposure", leg.leg_id, product)
            return

        attribution = {
            instrument: value
            for instrument, value in leg.mtm_formula.exposures.physical.items()
            if not is_zero(value)
        }

        if attribution:
            logger.debug("Leg %s: physical from mtm formula %s", leg.leg_id, attribution)
        else:
            attribution = {product: leg.quantity * position_direction_factor(leg.buy_sell)}

        for instrument, value in attribution.items():
            ledger.add(month, instrument, physical=value)

    def _add_pricing(
        self, ledger: _ExposureLedger, leg: PhysicalTradeLeg, pricing_month: str | None
    ) -> None:
        formula = leg.pricing_formula
        distribution = formula.monthly_distribution or {}

        for instrument, months in distribution.items():
            for month, value in months.items():
                ledger.add(month, instrument, pricing=value)

        for instrument, value in formula.exposures.pricing.items():
            if instrument in distribution:
                continue
            if pricing_month is None:
                logger.debug("Leg %s: no pricing month for %s", leg.leg_id, instrument)
                continue
            ledger.add(pricing_month, instrument, pricing=value)

    # -------------------------------------------------------------------------
    # Бумажные ноги
    # -------------------------------------------------------------------------

    def _apply_paper_leg(self, ledger: _ExposureLedger, leg: PaperTradeLeg) -> bool:
        month = paper_exposure_month(leg)
        if month is None:
            return False

        signed = leg.quantity * position_direction_factor(leg.buy_sell)
        descriptor = describe_paper_leg(leg, self.config.vocabulary)

        if descriptor is not None:
            ledger.add(month, descriptor.base_product, paper=signed, pricing=signed)
            if descriptor.is_composite:
                ledger.add(month, descriptor.opposite_product, paper=-signed, pricing=-signed)
        elif leg.exposures is not None:
            self._add_exposure_maps(ledger, month, leg.exposures.physical, leg.exposures.pricing, 1)
        elif not leg.mtm_formula.exposures.is_empty:
            exposures = leg.mtm_formula.exposures
            self._add_exposure_maps(
                ledger,
                month,
                exposures.physical,
                exposures.pricing,
                position_direction_factor(leg.buy_sell),
            )
        else:
            ledger.add(month, self._canonical(leg.product), paper=signed, pricing=signed)

        return True

    @staticmethod
    def _add_exposure_maps(
        ledger: _ExposureLedger,
        month: str,
        physical: Mapping[str, float],
        pricing: Mapping[str, float],
        scale: int,
    ) -> None:
        for instrument, value in physical.items():
            # инструмент с явной pricing-записью не дублируется в pricing
            mirrored = 0.0 if instrument in pricing else value * scale
            ledger.add(month, instrument, paper=value * scale, pricing=mirrored)
        for instrument, value in pricing.items():
            ledger.add(month, instrument, pricing=value * scale)


# =============================================================================
# API
# =============================================================================


def _validate_horizon(horizon: Sequence[str]) -> tuple[str, ...]:
    if not horizon:
        raise ValueError("Exposure horizon must contain at least one month")
    months = tuple(normalize_month_code(code) for code in horizon)
    for previous, current in zip(months, months[1:]):
        if current <= previous:
            raise ValueError(f"Exposure horizon must be strictly increasing: {previous} >= {current}")
    return months


def compute_exposure(
    legs: Iterable[PhysicalTradeLeg | PaperTradeLeg],
    horizon: Sequence[str],
    config: ExposureEngineConfig | None = None,
) -> ExposureReport:
    """
    Агрегация exposure по смешанному набору ног.

    Args:
        legs: Физические и бумажные ноги в любом порядке
        horizon: Коды месяцев горизонта (обычно 13 от текущего)
        config: Конфигурация (по умолчанию ExposureEngineConfig())

    Returns:
        ExposureReport
    """
    physical: list[PhysicalTradeLeg] = []
    paper: list[PaperTradeLeg] = []
    for leg in legs:
        if isinstance(leg, PhysicalTradeLeg):
            physical.append(leg)
        elif isinstance(leg, PaperTradeLeg):
            paper.append(leg)
        else:
            raise TypeError(f"Unsupported leg type: {type(leg).__name__}")
    return ExposureAggregationEngine(config).compute(physical, paper, horizon)
