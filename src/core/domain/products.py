"""
Products — Канонические продукты и разбор бумажных инструментов

Единственная точка входа для ключей всех карт exposure: любое сырое название
продукта/инструмента сначала проходит через map_product_to_canonical().
Ранняя канонизация исключает двойной учёт одного продукта под разными именами.

Словарь продуктов передаётся как конфигурация (ProductVocabulary), а не
зашит в модуль: тесты могут подставить синтетический набор продуктов.

Маппинг тотален: неизвестная строка возвращается как есть (после обрезки
пробелов), пустая строка превращается в vocabulary.unknown_product.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class RelationshipType(str, Enum):
    """Тип бумажной позиции"""

    FP = "FP"  # Outright fixed price
    DIFF = "DIFF"  # Дифференциал к референсному инструменту
    SPREAD = "SPREAD"  # Спред между двумя инструментами


# =============================================================================
# VOCABULARY CONFIG
# =============================================================================


@dataclass(frozen=True)
class ProductRule:
    """
    Правило сопоставления сырых названий одному каноническому продукту.

    aliases сравниваются целиком, substrings ищутся внутри строки.
    Оба сравнения регистронезависимые.
    """

    canonical: str
    aliases: tuple[str, ...] = ()
    substrings: tuple[str, ...] = ()

    def matches(self, folded: str) -> bool:
        if folded == self.canonical.casefold():
            return True
        if any(folded == alias.casefold() for alias in self.aliases):
            return True
        return any(sub.casefold() in folded for sub in self.substrings)


@dataclass(frozen=True)
class ProductVocabulary:
    """
    Словарь канонических продуктов.

    Правила проверяются по порядку, побеждает первое совпадение.
    Точное совпадение с каноническим именем любого правила проверяется
    раньше подстрок, чтобы 'Platts LSGO' не перехватывался чужой подстрокой.
    """

    rules: tuple[ProductRule, ...] = ()
    biodiesel_marker: str = "Argus"
    diff_reference_product: str = "Platts LSGO"
    pricing_only_products: frozenset[str] = field(default_factory=frozenset)
    unknown_product: str = "Unknown"

    @property
    def canonical_products(self) -> tuple[str, ...]:
        return tuple(rule.canonical for rule in self.rules)


DEFAULT_VOCABULARY = ProductVocabulary(
    rules=(
        ProductRule("Argus UCOME", aliases=("UCOME", "UCOME FP"), substrings=("UCOME-",)),
        ProductRule("Argus RME", aliases=("RME", "RME FP", "RME DC"), substrings=("RME-",)),
        ProductRule("Argus FAME0", aliases=("FAME0", "FAME0 FP"), substrings=("FAME0-",)),
        ProductRule("Argus HVO", aliases=("HVO", "HVO FP"), substrings=("HVO-",)),
        ProductRule("Platts LSGO", aliases=("LSGO",), substrings=("LSGO",)),
        ProductRule("Platts Diesel", aliases=("diesel",), substrings=("diesel",)),
        ProductRule(
            "ICE GASOIL FUTURES (EFP)",
            aliases=("EFP", "GASOIL EFP", "ICE GASOIL EFP"),
        ),
        ProductRule(
            "ICE GASOIL FUTURES",
            aliases=("GASOIL", "ICE GASOIL", "ICE GASOIL FUTURE"),
        ),
    ),
    pricing_only_products=frozenset({"ICE GASOIL FUTURES", "ICE GASOIL FUTURES (EFP)"}),
)


# =============================================================================
# CANONICAL MAPPING
# =============================================================================

_WHITESPACE_RE = re.compile(r"\s+")


def _clean(raw: str | None) -> str:
    if raw is None:
        return ""
    return _WHITESPACE_RE.sub(" ", str(raw)).strip()


def map_product_to_canonical(
    raw: str | None, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> str:
    """
    Сопоставление сырого названия каноническому продукту.

    Чистая тотальная функция: никогда не падает и никогда не возвращает
    пустую строку.

    Args:
        raw: Название из формы/файла/формулы (например, 'UCOME FP', 'ucome-5')
        vocabulary: Словарь продуктов

    Returns:
        Каноническое имя, либо очищенный исходный текст, если правило не найдено
    """
    cleaned = _clean(raw)
    if not cleaned:
        return vocabulary.unknown_product

    folded = cleaned.casefold()

    for rule in vocabulary.rules:
        if folded == rule.canonical.casefold():
            return rule.canonical

    for rule in vocabulary.rules:
        if rule.matches(folded):
            return rule.canonical

    return cleaned


def is_known_product(raw: str | None, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY) -> bool:
    """True, если название распознаётся хотя бы одним правилом словаря"""
    cleaned = _clean(raw)
    if not cleaned:
        return False
    folded = cleaned.casefold()
    return any(rule.matches(folded) for rule in vocabulary.rules)


# =============================================================================
# PRODUCT GROUPS
# =============================================================================


def is_biodiesel_product(product: str, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY) -> bool:
    """Биодизельный сорт: каноническое имя содержит маркер котировки Argus"""
    return vocabulary.biodiesel_marker in product


def is_pricing_instrument_product(
    product: str, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> bool:
    """Ценовой инструмент: всё, что не биодизель"""
    return not is_biodiesel_product(product, vocabulary)


def split_product_groups(
    products: Iterable[str], vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> tuple[list[str], list[str]]:
    """
    Разделение продуктов на биодизель и ценовые инструменты.

    Returns:
        (biodiesel_products, pricing_instrument_products), оба отсортированы
    """
    unique = sorted(set(products))
    biodiesel = [p for p in unique if is_biodiesel_product(p, vocabulary)]
    pricing = [p for p in unique if not is_biodiesel_product(p, vocabulary)]
    return biodiesel, pricing


# =============================================================================
# PAPER INSTRUMENT DESCRIPTOR
# =============================================================================


class PaperInstrumentDescriptor(BaseModel):
    """
    Разобранный код бумажного инструмента.

    FP не имеет противоположной ноги, DIFF/SPREAD всегда имеют.
    """

    base_product: str = Field(..., min_length=1, description="Базовый канонический продукт")
    opposite_product: str | None = Field(None, description="Противоположный продукт (DIFF/SPREAD)")
    relationship_type: RelationshipType = Field(..., description="FP / DIFF / SPREAD")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_opposite_leg(self) -> "PaperInstrumentDescriptor":
        """FP без opposite_product, DIFF/SPREAD — обязательно с ним"""
        if self.relationship_type == RelationshipType.FP:
            if self.opposite_product is not None:
                raise ValueError("FP instrument cannot have an opposite product")
        elif not self.opposite_product:
            raise ValueError(f"{self.relationship_type.value} instrument requires an opposite product")
        return self

    @property
    def is_composite(self) -> bool:
        return self.relationship_type != RelationshipType.FP


_KEYWORD_RE = {
    RelationshipType.DIFF: re.compile(r"\bDIFF\b", re.IGNORECASE),
    RelationshipType.SPREAD: re.compile(r"\bSPREAD\b", re.IGNORECASE),
}
_FP_SUFFIX_RE = re.compile(r"\s+FP$", re.IGNORECASE)


def _split_composite(
    text: str, vocabulary: ProductVocabulary
) -> tuple[str, str, str] | None:
    """
    Поиск разделителя двух продуктов.

    '/' всегда разделитель. '-' считается разделителем, только если правая часть
    распознаётся словарём: 'UCOME-5' — это сорт UCOME, а не спред.

    Returns:
        (left, right, separator) или None
    """
    if "/" in text:
        left, _, right = text.partition("/")
        if left.strip() and right.strip():
            return left.strip(), right.strip(), "/"

    if "-" in text:
        left, _, right = text.partition("-")
        if left.strip() and is_known_product(right, vocabulary):
            return left.strip(), right.strip(), "-"

    return None


def parse_paper_instrument(
    raw: str | None, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> PaperInstrumentDescriptor | None:
    """
    Разбор составного кода бумажного инструмента.

    Правила:
    - ключевое слово DIFF или SPREAD задаёт тип явно
    - без ключевого слова: 'A/B' — DIFF, 'A-B' (B из словаря) — SPREAD
    - DIFF без второго продукта считается против vocabulary.diff_reference_product
    - код без разделителя — FP

    Args:
        raw: Код инструмента (например, 'UCOME DIFF', 'RME-FAME0 SPREAD', 'UCOME/FAME0')
        vocabulary: Словарь продуктов

    Returns:
        Дескриптор, либо None для пустого кода
    """
    text = _clean(raw)
    if not text:
        return None

    relationship: RelationshipType | None = None
    for candidate, pattern in _KEYWORD_RE.items():
        if pattern.search(text):
            relationship = candidate
            text = _clean(pattern.sub(" ", text))
            break

    composite = _split_composite(text, vocabulary)

    if composite is not None:
        left, right, separator = composite
        if relationship is None:
            relationship = RelationshipType.DIFF if separator == "/" else RelationshipType.SPREAD
        if relationship != RelationshipType.FP:
            return PaperInstrumentDescriptor(
                base_product=map_product_to_canonical(left, vocabulary),
                opposite_product=map_product_to_canonical(right, vocabulary),
                relationship_type=relationship,
            )

    base = _FP_SUFFIX_RE.sub("", text)

    if relationship == RelationshipType.DIFF:
        return PaperInstrumentDescriptor(
            base_product=map_product_to_canonical(base, vocabulary),
            opposite_product=vocabulary.diff_reference_product,
            relationship_type=RelationshipType.DIFF,
        )

    # SPREAD без второго продукта вырождается в outright
    return PaperInstrumentDescriptor(
        base_product=map_product_to_canonical(base, vocabulary),
        relationship_type=RelationshipType.FP,
    )
