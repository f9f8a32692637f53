"""
Trade Legs — Ноги физических и бумажных сделок

Входные данные движка: записи из репозитория сделок. Модели неизменяемые,
количество и продукт не меняются в пределах расчёта.

Формулы (pricing_formula, mtm_formula) принимают сырой persisted JSON
(dict или строку) и разбираются мягко при создании ноги: испорченная формула
превращается в EMPTY_FORMULA, нога остаётся в расчёте.

Словарь продуктов для канонизации имён в формулах передаётся через
контекст валидации:

    PhysicalTradeLeg.model_validate(record, context={"vocabulary": vocabulary})

Поля-месяцы (trading_period, period, efp_designated_month) хранятся как есть
и нормализуются при использовании: нераспознанный код не ломает создание
ноги, а приводит к пропуску ноги в агрегации.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationInfo, field_validator, model_validator

from src.core.contracts.validators import PaperTradeLegValidator, PhysicalTradeLegValidator
from src.core.domain.direction import BuySell
from src.core.domain.formula import (
    EMPTY_FORMULA,
    FormulaExposures,
    PricingFormula,
    validate_and_parse_pricing_formula,
)
from src.core.domain.periods import to_date
from src.core.domain.products import (
    DEFAULT_VOCABULARY,
    PaperInstrumentDescriptor,
    ProductVocabulary,
    RelationshipType,
    map_product_to_canonical,
    parse_paper_instrument,
)


# =============================================================================
# ENUMS
# =============================================================================


class PricingType(str, Enum):
    """Способ ценообразования физической ноги"""

    STANDARD = "standard"  # Формула по котировкам
    EFP = "efp"  # Exchange for Physical: фьючерс + премия
    FIXED = "fixed"  # Фиксированная цена


# =============================================================================
# VALIDATION HELPERS
# =============================================================================


def _vocabulary_from(info: ValidationInfo) -> ProductVocabulary:
    if info.context and "vocabulary" in info.context:
        return info.context["vocabulary"]
    return DEFAULT_VOCABULARY


def _optional_date(v: Any) -> date | None:
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    if isinstance(v, (date, datetime, str)):
        return to_date(v)
    return v


def _optional_text(v: Any) -> str | None:
    if v is None:
        return None
    text = str(v).strip()
    return text or None


def canonicalize_exposures(
    raw: Any, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> FormulaExposures | None:
    """
    Явные exposure бумажной ноги с каноническими ключами.

    Returns:
        FormulaExposures или None, если карта не задана
    """
    if raw is None:
        return None
    if isinstance(raw, FormulaExposures):
        raw = raw.model_dump()

    categories: dict[str, dict[str, float]] = {}
    for category in ("physical", "pricing"):
        merged: dict[str, float] = {}
        for name, value in (raw.get(category) or {}).items():
            canonical = map_product_to_canonical(name, vocabulary)
            merged[canonical] = merged.get(canonical, 0.0) + float(value)
        categories[category] = merged
    return FormulaExposures(**categories)


# =============================================================================
# PHYSICAL LEG
# =============================================================================


class PhysicalTradeLeg(BaseModel):
    """
    Нога физической сделки.

    pricing_formula формирует ЦЕНОВОЙ exposure, mtm_formula (если объявляет
    exposures.physical) формирует ФИЗИЧЕСКУЮ атрибуцию. Это разные формулы:
    груз может быть UCOME, а цена привязана к LSGO.

    Immutable модель (frozen=True).
    """

    # Идентификация
    leg_id: str = Field(..., min_length=1, description="Референс ноги")
    buy_sell: BuySell = Field(..., description="Направление (buy/sell)")
    product: str = Field(..., description="Продукт (сырое название)")
    quantity: float = Field(..., ge=0, description="Количество, MT")

    # Периоды
    loading_period_start: date | None = Field(None, description="Начало погрузки")
    loading_period_end: date | None = Field(None, description="Конец погрузки")
    pricing_period_start: date | None = Field(None, description="Начало периода ценообразования")
    pricing_period_end: date | None = Field(None, description="Конец периода ценообразования")
    trading_period: str | None = Field(None, description="Торговый месяц (код месяца)")

    # Ценообразование
    pricing_type: PricingType = Field(PricingType.STANDARD, description="standard / efp / fixed")
    pricing_formula: PricingFormula = Field(EMPTY_FORMULA, description="Формула цены сделки")
    mtm_formula: PricingFormula = Field(EMPTY_FORMULA, description="Формула MTM / физической атрибуции")

    # EFP
    efp_premium: float | None = Field(None, description="Премия EFP, USD/MT")
    efp_agreed_status: bool = Field(False, description="Фьючерсная часть EFP зафиксирована")
    efp_fixed_value: float | None = Field(None, description="Зафиксированная фьючерсная цена")
    efp_designated_month: str | None = Field(None, description="Месяц фьючерса EFP")

    fixed_price: float | None = Field(None, description="Цена для pricing_type=fixed")

    model_config = {"frozen": True}

    @field_validator(
        "loading_period_start",
        "loading_period_end",
        "pricing_period_start",
        "pricing_period_end",
        mode="before",
    )
    @classmethod
    def parse_optional_date(cls, v: Any) -> date | None:
        """Пустая строка — отсутствие даты; datetime и ISO-строки приводятся к date"""
        return _optional_date(v)

    @field_validator("trading_period", "efp_designated_month", mode="before")
    @classmethod
    def strip_month_text(cls, v: Any) -> str | None:
        return _optional_text(v)

    @field_validator("pricing_type", mode="before")
    @classmethod
    def default_pricing_type(cls, v: Any) -> Any:
        return PricingType.STANDARD if v is None or v == "" else v

    @field_validator("efp_agreed_status", mode="before")
    @classmethod
    def null_agreed_is_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("pricing_formula", "mtm_formula", mode="before")
    @classmethod
    def parse_formula(cls, v: Any, info: ValidationInfo) -> PricingFormula:
        """Мягкий разбор persisted формулы"""
        return validate_and_parse_pricing_formula(v, _vocabulary_from(info))

    @property
    def is_efp(self) -> bool:
        return self.pricing_type == PricingType.EFP


# =============================================================================
# PAPER LEG
# =============================================================================


class PaperTradeLeg(BaseModel):
    """
    Нога бумажной сделки.

    Один расчётный период (period), без разделения на погрузку и ценообразование.

    Immutable модель (frozen=True).
    """

    # Идентификация
    leg_id: str = Field(..., min_length=1, description="Референс ноги")
    buy_sell: BuySell = Field(..., description="Направление (buy/sell)")
    product: str | None = Field(None, description="Левый продукт (сырое название)")
    quantity: float = Field(..., ge=0, description="Количество, MT")

    # Инструмент
    instrument: str | None = Field(None, description="Код инструмента, например 'UCOME DIFF'")
    relationship_type: RelationshipType | None = Field(None, description="FP / DIFF / SPREAD")
    right_side_product: str | None = Field(None, description="Правый продукт SPREAD")

    # Периоды
    period: str | None = Field(None, description="Расчётный месяц")
    trading_period: str | None = Field(None, description="Торговый месяц (если period пуст)")

    # Цены сделки
    price: float | None = Field(None, description="Цена левой стороны")
    right_side_price: float | None = Field(None, description="Цена правой стороны")

    # Явная атрибуция
    exposures: FormulaExposures | None = Field(None, description="Явные exposure (уже со знаком)")
    mtm_formula: PricingFormula = Field(EMPTY_FORMULA, description="Формула MTM")

    model_config = {"frozen": True}

    @field_validator("product", "instrument", "right_side_product", "period", "trading_period", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> str | None:
        return _optional_text(v)

    @field_validator("relationship_type", mode="before")
    @classmethod
    def normalize_relationship(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v.strip().upper() if isinstance(v, str) else v

    @field_validator("exposures", mode="before")
    @classmethod
    def parse_exposures(cls, v: Any, info: ValidationInfo) -> FormulaExposures | None:
        return canonicalize_exposures(v, _vocabulary_from(info))

    @field_validator("mtm_formula", mode="before")
    @classmethod
    def parse_formula(cls, v: Any, info: ValidationInfo) -> PricingFormula:
        return validate_and_parse_pricing_formula(v, _vocabulary_from(info))

    @model_validator(mode="after")
    def validate_right_side_price(self) -> "PaperTradeLeg":
        """Цена правой стороны имеет смысл только для DIFF/SPREAD"""
        if self.right_side_price is not None and self.relationship_type == RelationshipType.FP:
            raise ValueError("right_side_price is only valid for DIFF/SPREAD legs")
        return self

    @property
    def settlement_period(self) -> str | None:
        """Расчётный месяц: period, иначе trading_period"""
        return self.period or self.trading_period


def describe_paper_leg(
    leg: PaperTradeLeg, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> PaperInstrumentDescriptor | None:
    """
    Дескриптор инструмента бумажной ноги.

    Составной код инструмента имеет приоритет. Если код описывает outright,
    а нога явно помечена DIFF/SPREAD, противоположная сторона берётся из
    right_side_product (для DIFF по умолчанию — референсный продукт словаря).

    Returns:
        Дескриптор или None, если ни инструмент, ни тип связи не заданы
    """
    descriptor = parse_paper_instrument(leg.instrument, vocabulary)
    if descriptor is not None and descriptor.is_composite:
        return descriptor

    relationship = leg.relationship_type
    if relationship in (RelationshipType.DIFF, RelationshipType.SPREAD):
        base = descriptor.base_product if descriptor is not None else leg.product
        if base:
            if leg.right_side_product:
                opposite = map_product_to_canonical(leg.right_side_product, vocabulary)
            elif relationship == RelationshipType.DIFF:
                opposite = vocabulary.diff_reference_product
            else:
                opposite = None
            if opposite:
                return PaperInstrumentDescriptor(
                    base_product=map_product_to_canonical(base, vocabulary),
                    opposite_product=opposite,
                    relationship_type=relationship,
                )

    return descriptor


# =============================================================================
# ЗАГРУЗКА ЗАПИСЕЙ РЕПОЗИТОРИЯ
# =============================================================================

_PHYSICAL_LEG_CONTRACT = PhysicalTradeLegValidator()
_PAPER_LEG_CONTRACT = PaperTradeLegValidator()


def physical_leg_from_record(
    record: Mapping[str, Any], vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> PhysicalTradeLeg:
    """
    Физическая нога из записи репозитория сделок.

    Сначала JSON Schema контракт записи, затем модель (формулы разбираются
    мягко с канонизацией по vocabulary).

    Raises:
        jsonschema.ValidationError: Запись нарушает контракт
        pydantic.ValidationError: Запись не проходит модель
    """
    _PHYSICAL_LEG_CONTRACT.validate(dict(record))
    return PhysicalTradeLeg.model_validate(dict(record), context={"vocabulary": vocabulary})


def paper_leg_from_record(
    record: Mapping[str, Any], vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> PaperTradeLeg:
    """
    Бумажная нога из записи репозитория сделок.

    Raises:
        jsonschema.ValidationError: Запись нарушает контракт
        pydantic.ValidationError: Запись не проходит модель
    """
    _PAPER_LEG_CONTRACT.validate(dict(record))
    return PaperTradeLeg.model_validate(dict(record), context={"vocabulary": vocabulary})
