"""
Exposure — Структуры матрицы exposure

ExposureData — четыре категории для одной ячейки (месяц, продукт):
- physical: объёмное обязательство
- pricing: атрибуция ценового риска
- paper: позиция по деривативам
- net_exposure: вычисляемое значение, никогда не хранится отдельно

Знак: покупка положительна, продажа отрицательна во всех категориях.

net_exposure = physical + pricing, кроме pricing-only инструментов
(фьючерсы), у которых нет физического объёма: для них net = pricing.
paper в net не входит.

Модели неизменяемые и проверяют инварианты итогов при создании:
итоги месяца равны сумме продуктов, итоговая строка групп равна сумме групп.
"""

from typing import Iterable

from pydantic import BaseModel, Field, model_validator

from src.core.math.numerical_safeguards import is_close


# =============================================================================
# NET EXPOSURE
# =============================================================================


def calculate_net_exposure(physical: float, pricing: float, pricing_only: bool = False) -> float:
    """
    Чистый exposure ячейки.

    Args:
        physical: Физический exposure
        pricing: Ценовой exposure
        pricing_only: Продукт без физического объёма (фьючерс)

    Returns:
        pricing для pricing-only продукта, иначе physical + pricing
    """
    if pricing_only:
        return pricing
    return physical + pricing


# =============================================================================
# EXPOSURE DATA
# =============================================================================


class ExposureData(BaseModel):
    """Значения одной ячейки (или итога) exposure"""

    physical: float = Field(0.0, description="Физический exposure, MT")
    pricing: float = Field(0.0, description="Ценовой exposure, MT")
    paper: float = Field(0.0, description="Бумажный exposure, MT")
    net_exposure: float = Field(0.0, description="Чистый exposure, MT")

    model_config = {"frozen": True}

    @classmethod
    def build(
        cls, physical: float, pricing: float, paper: float, pricing_only: bool = False
    ) -> "ExposureData":
        """Создание ячейки с вычисленным net_exposure"""
        return cls(
            physical=physical,
            pricing=pricing,
            paper=paper,
            net_exposure=calculate_net_exposure(physical, pricing, pricing_only),
        )

    def plus(self, other: "ExposureData") -> "ExposureData":
        """Покомпонентная сумма (итоги складывают и net_exposure)"""
        return ExposureData(
            physical=self.physical + other.physical,
            pricing=self.pricing + other.pricing,
            paper=self.paper + other.paper,
            net_exposure=self.net_exposure + other.net_exposure,
        )

    def is_close_to(self, other: "ExposureData") -> bool:
        return (
            is_close(self.physical, other.physical)
            and is_close(self.pricing, other.pricing)
            and is_close(self.paper, other.paper)
            and is_close(self.net_exposure, other.net_exposure)
        )


ZERO_EXPOSURE = ExposureData()


def sum_exposures(items: Iterable[ExposureData]) -> ExposureData:
    """Сумма набора ячеек"""
    total = ZERO_EXPOSURE
    for item in items:
        total = total.plus(item)
    return total


# =============================================================================
# MONTHLY EXPOSURE
# =============================================================================


class MonthlyExposure(BaseModel):
    """
    Строка матрицы за один месяц.

    Immutable модель (frozen=True). totals всегда равны сумме products.
    """

    month: str = Field(..., pattern=r"^\d{4}-\d{2}$", description="Код месяца YYYY-MM")
    products: dict[str, ExposureData] = Field(default_factory=dict, description="Ячейки по продуктам")
    totals: ExposureData = Field(default_factory=ExposureData, description="Итоги месяца")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_totals(self) -> "MonthlyExposure":
        """Итоги месяца — сумма всех продуктов"""
        expected = sum_exposures(self.products.values())
        if not self.totals.is_close_to(expected):
            raise ValueError(f"Totals for {self.month} do not match product sum: {self.totals} != {expected}")
        return self

    def get(self, product: str) -> ExposureData:
        """Ячейка продукта (нулевая, если продукт в месяце не встречался)"""
        return self.products.get(product, ZERO_EXPOSURE)


# =============================================================================
# GRAND / GROUP TOTALS
# =============================================================================


class GrandTotals(BaseModel):
    """
    Итоги по всему горизонту.

    product_totals[p] — сумма ячеек продукта p по всем месяцам.
    """

    total_physical: float = Field(0.0, description="Сумма physical")
    total_pricing: float = Field(0.0, description="Сумма pricing")
    total_paper: float = Field(0.0, description="Сумма paper")
    total_net: float = Field(0.0, description="Сумма net_exposure")
    product_totals: dict[str, ExposureData] = Field(default_factory=dict, description="Итоги по продуктам")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_product_sum(self) -> "GrandTotals":
        """Общие итоги равны сумме итогов по продуктам"""
        expected = sum_exposures(self.product_totals.values())
        actual = ExposureData(
            physical=self.total_physical,
            pricing=self.total_pricing,
            paper=self.total_paper,
            net_exposure=self.total_net,
        )
        if not actual.is_close_to(expected):
            raise ValueError(f"Grand totals do not match product totals: {actual} != {expected}")
        return self

    def as_exposure(self) -> ExposureData:
        return ExposureData(
            physical=self.total_physical,
            pricing=self.total_pricing,
            paper=self.total_paper,
            net_exposure=self.total_net,
        )


class GroupTotals(BaseModel):
    """Итоги по группам: биодизель, ценовые инструменты и итоговая строка"""

    biodiesel_total: ExposureData = Field(default_factory=ExposureData, description="Сорта Argus")
    pricing_instrument_total: ExposureData = Field(
        default_factory=ExposureData, description="Остальные инструменты"
    )
    total_row: ExposureData = Field(default_factory=ExposureData, description="Итоговая строка")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_total_row(self) -> "GroupTotals":
        """total_row = biodiesel_total + pricing_instrument_total"""
        expected = self.biodiesel_total.plus(self.pricing_instrument_total)
        if not self.total_row.is_close_to(expected):
            raise ValueError(f"Total row {self.total_row} != biodiesel + pricing instruments {expected}")
        return self


# =============================================================================
# REPORT
# =============================================================================


class ExposureReport(BaseModel):
    """Результат одного прохода агрегации"""

    monthly: tuple[MonthlyExposure, ...] = Field(..., description="Строки по месяцам горизонта")
    grand: GrandTotals = Field(..., description="Итоги по горизонту")
    group: GroupTotals = Field(..., description="Итоги по группам")
    skipped_leg_count: int = Field(0, ge=0, description="Ноги без распознаваемого периода")
    processed_leg_count: int = Field(0, ge=0, description="Учтённые ноги")

    model_config = {"frozen": True}

    @property
    def months(self) -> tuple[str, ...]:
        return tuple(row.month for row in self.monthly)

    def month(self, code: str) -> MonthlyExposure:
        """
        Строка месяца по коду.

        Raises:
            KeyError: Если месяц вне горизонта
        """
        for row in self.monthly:
            if row.month == code:
                return row
        raise KeyError(code)
