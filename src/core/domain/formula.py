"""
Pricing Formula — Модель формулы ценообразования

Формула состоит из трёх частей:
- tokens: инфиксное выражение (инструменты, числа, проценты, операторы, скобки)
- exposures: объявленные веса по категориям physical/pricing на инструмент
- monthly_distribution: явная разбивка pricing exposure по месяцам

Persisted формулы приходят как нетипизированный JSON (dict или строка).
Они проверяются ОДИН раз на границе (parse_pricing_formula): JSON Schema
контракт, затем pydantic модель с грамматикой токенов. Дальше движок
работает только с PricingFormula.

Политика ошибок:
- parse_pricing_formula() строгая, бросает MalformedFormulaError
- validate_and_parse_pricing_formula() мягкая, возвращает EMPTY_FORMULA
  (испорченная формула не должна останавливать агрегацию остальной книги);
  при незавершённом выражении отбрасываются только tokens, exposures остаются

Пустые tokens — sentinel "формулы нет". При этом exposures могут быть
заполнены: у EFP формулы токенов нет, а pricing exposure есть.
"""

import json
import logging
from enum import Enum
from typing import Any, Final, Mapping, Sequence

from jsonschema import ValidationError as SchemaValidationError
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from src.core.contracts.validators import PricingFormulaValidator
from src.core.domain.errors import InvalidPeriodError, MalformedFormulaError
from src.core.domain.periods import normalize_month_code
from src.core.domain.products import (
    DEFAULT_VOCABULARY,
    ProductVocabulary,
    map_product_to_canonical,
)
from src.core.math.numerical_safeguards import EPS_PRICE, is_zero, sanitize_float


logger = logging.getLogger(__name__)


# =============================================================================
# ENUMS / КОНСТАНТЫ
# =============================================================================


class TokenType(str, Enum):
    """Тип токена формулы"""

    INSTRUMENT = "instrument"
    FIXED_VALUE = "fixedValue"
    PERCENTAGE = "percentage"
    OPERATOR = "operator"
    OPEN_BRACKET = "openBracket"
    CLOSE_BRACKET = "closeBracket"


OPERATORS: Final[tuple[str, ...]] = ("+", "-", "*", "/")

_OPERAND_TYPES: Final[frozenset[TokenType]] = frozenset(
    {TokenType.INSTRUMENT, TokenType.FIXED_VALUE, TokenType.PERCENTAGE}
)


# =============================================================================
# TOKENS
# =============================================================================


class FormulaToken(BaseModel):
    """Один токен инфиксного выражения"""

    id: int | str | None = Field(None, description="Идентификатор токена в редакторе формул")
    type: TokenType = Field(..., description="Тип токена")
    value: str = Field("", description="Инструмент, число, процент, оператор или скобка")

    model_config = {"frozen": True}

    @field_validator("value", mode="before")
    @classmethod
    def coerce_value_to_str(cls, v: Any) -> str:
        """Числовые значения в persisted JSON хранятся как number или string"""
        if v is None:
            return ""
        if isinstance(v, bool):
            raise ValueError("Token value cannot be boolean")
        return str(v).strip()

    @model_validator(mode="after")
    def validate_value_for_type(self) -> "FormulaToken":
        """Проверка значения токена в зависимости от типа"""
        if self.type == TokenType.INSTRUMENT and not self.value:
            raise ValueError("Instrument token requires a non-empty value")
        if self.type == TokenType.OPERATOR and self.value not in OPERATORS:
            raise ValueError(f"Unknown operator {self.value!r}, expected one of {OPERATORS}")
        if self.type in (TokenType.FIXED_VALUE, TokenType.PERCENTAGE):
            try:
                float(self.value.rstrip("%"))
            except ValueError as e:
                raise ValueError(f"{self.type.value} token value {self.value!r} is not numeric") from e
        return self

    @property
    def numeric_value(self) -> float:
        """Числовое значение fixedValue/percentage (процент уже поделён на 100)"""
        number = float(self.value.rstrip("%"))
        if self.type == TokenType.PERCENTAGE:
            return number / 100.0
        return number


def _open_bracket_depth(tokens: Sequence[FormulaToken]) -> int:
    depth = 0
    for token in tokens:
        if token.type == TokenType.OPEN_BRACKET:
            depth += 1
        elif token.type == TokenType.CLOSE_BRACKET:
            depth -= 1
    return depth


def can_add_token_type(tokens: Sequence[FormulaToken], token_type: TokenType) -> bool:
    """
    Можно ли дописать токен данного типа в конец выражения.

    Грамматика:
    - в начале: инструмент, число или открывающая скобка
    - после операнда или ')': оператор, либо ')' при незакрытой '('
    - после оператора или '(': операнд или '('

    Args:
        tokens: Текущее выражение
        token_type: Тип добавляемого токена

    Returns:
        True, если токен допустим
    """
    token_type = TokenType(token_type)

    if not tokens:
        return token_type in (TokenType.INSTRUMENT, TokenType.FIXED_VALUE, TokenType.OPEN_BRACKET)

    last = tokens[-1].type

    if last in _OPERAND_TYPES or last == TokenType.CLOSE_BRACKET:
        if token_type == TokenType.OPERATOR:
            return True
        return token_type == TokenType.CLOSE_BRACKET and _open_bracket_depth(tokens) > 0

    if last in (TokenType.OPERATOR, TokenType.OPEN_BRACKET):
        return token_type in _OPERAND_TYPES or token_type == TokenType.OPEN_BRACKET

    return False


def is_complete_expression(tokens: Sequence[FormulaToken]) -> bool:
    """Выражение синтаксически завершено (или пустое)"""
    if not tokens:
        return True
    last = tokens[-1].type
    ends_with_value = last in _OPERAND_TYPES or last == TokenType.CLOSE_BRACKET
    return ends_with_value and _open_bracket_depth(tokens) == 0


# =============================================================================
# PRICING FORMULA
# =============================================================================


class FormulaExposures(BaseModel):
    """Объявленные exposure формулы: {instrument: signed weight}"""

    physical: dict[str, float] = Field(default_factory=dict, description="Физическая атрибуция")
    pricing: dict[str, float] = Field(default_factory=dict, description="Ценовая атрибуция")

    model_config = {"frozen": True}

    @property
    def is_empty(self) -> bool:
        return not self.physical and not self.pricing


class PricingFormula(BaseModel):
    """
    Формула ценообразования.

    monthly_distribution, если задан для инструмента, авторитетен:
    агрегация берёт значения как есть и не перенормирует их.

    Immutable модель (frozen=True).
    """

    tokens: tuple[FormulaToken, ...] = Field(default=(), description="Инфиксное выражение")
    exposures: FormulaExposures = Field(
        default_factory=FormulaExposures, description="Exposure по категориям"
    )
    monthly_distribution: dict[str, dict[str, float]] | None = Field(
        None,
        alias="monthlyDistribution",
        description="{instrument: {YYYY-MM: value}}",
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @field_validator("monthly_distribution")
    @classmethod
    def normalize_distribution_months(
        cls, v: dict[str, dict[str, float]] | None
    ) -> dict[str, dict[str, float]] | None:
        """Коды месяцев приводятся к YYYY-MM, нераспознанные отбрасываются"""
        if v is None:
            return None

        normalized: dict[str, dict[str, float]] = {}
        for instrument, months in v.items():
            per_month: dict[str, float] = {}
            for raw_month, value in months.items():
                try:
                    code = normalize_month_code(raw_month)
                except InvalidPeriodError:
                    logger.warning(
                        "Dropping monthlyDistribution entry %s/%r: unrecognised month",
                        instrument,
                        raw_month,
                    )
                    continue
                per_month[code] = per_month.get(code, 0.0) + value
            if per_month:
                normalized[instrument] = dict(sorted(per_month.items()))

        return normalized or None

    @model_validator(mode="after")
    def validate_token_grammar(self) -> "PricingFormula":
        """Токены образуют завершённое инфиксное выражение"""
        for index, token in enumerate(self.tokens):
            if not can_add_token_type(self.tokens[:index], token.type):
                raise ValueError(f"Token {token.type.value} {token.value!r} not allowed at position {index}")
        if not is_complete_expression(self.tokens):
            raise ValueError("Formula expression is incomplete")
        return self

    @property
    def is_empty(self) -> bool:
        """Sentinel "формулы нет": нечего вычислять"""
        return not self.tokens

    @property
    def has_monthly_distribution(self) -> bool:
        return bool(self.monthly_distribution)


EMPTY_FORMULA: Final[PricingFormula] = PricingFormula()


# =============================================================================
# ПАРСИНГ (ГРАНИЦА)
# =============================================================================

_FORMULA_CONTRACT = PricingFormulaValidator()


def _merge_weights(weights: Mapping[str, float], vocabulary: ProductVocabulary) -> dict[str, float]:
    merged: dict[str, float] = {}
    for raw_name, value in weights.items():
        canonical = map_product_to_canonical(raw_name, vocabulary)
        merged[canonical] = merged.get(canonical, 0.0) + value
    return merged


def _canonicalize_payload(data: Mapping[str, Any], vocabulary: ProductVocabulary) -> dict[str, Any]:
    """Все имена инструментов в формуле переводятся в канонические"""
    payload = dict(data)

    tokens = []
    for token in data.get("tokens", []):
        token = dict(token)
        if token.get("type") == TokenType.INSTRUMENT.value:
            token["value"] = map_product_to_canonical(token.get("value"), vocabulary)
        tokens.append(token)
    payload["tokens"] = tokens

    exposures = data.get("exposures") or {}
    payload["exposures"] = {
        category: _merge_weights(exposures.get(category) or {}, vocabulary)
        for category in ("physical", "pricing")
    }

    distribution = data.get("monthlyDistribution")
    if distribution is not None:
        merged: dict[str, dict[str, float]] = {}
        for raw_name, months in distribution.items():
            canonical = map_product_to_canonical(raw_name, vocabulary)
            target = merged.setdefault(canonical, {})
            for month, value in (months or {}).items():
                target[month] = target.get(month, 0.0) + value
        payload["monthlyDistribution"] = merged

    payload.pop("monthly_distribution", None)
    return payload


def _load_payload(raw: Any) -> Mapping[str, Any] | None:
    """
    JSON и контракт persisted формулы.

    Returns:
        Словарь формулы или None, если формулы нет

    Raises:
        MalformedFormulaError: JSON не парсится или нарушен контракт
    """
    if raw is None:
        return None

    data: Any = raw
    if isinstance(raw, (str, bytes)):
        if not raw.strip():
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MalformedFormulaError(f"Pricing formula is not valid JSON: {e}") from e

    if not isinstance(data, Mapping):
        raise MalformedFormulaError(f"Pricing formula must be an object, got {type(data).__name__}")

    if "monthly_distribution" in data and "monthlyDistribution" not in data:
        data = {**data, "monthlyDistribution": data["monthly_distribution"]}
        del data["monthly_distribution"]

    try:
        _FORMULA_CONTRACT.validate(dict(data))
    except SchemaValidationError as e:
        raise MalformedFormulaError(f"Pricing formula violates contract: {e.message}") from e

    return data


def parse_pricing_formula(
    raw: Any, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> PricingFormula:
    """
    Строгий разбор persisted формулы.

    Args:
        raw: dict, JSON-строка, уже разобранная PricingFormula или None
        vocabulary: Словарь для канонизации имён инструментов

    Returns:
        PricingFormula (EMPTY_FORMULA для None и пустой строки)

    Raises:
        MalformedFormulaError: JSON не парсится, нарушен контракт или грамматика
    """
    if isinstance(raw, PricingFormula):
        return raw

    data = _load_payload(raw)
    if data is None:
        return EMPTY_FORMULA

    try:
        return PricingFormula.model_validate(_canonicalize_payload(data, vocabulary))
    except ValidationError as e:
        raise MalformedFormulaError(f"Pricing formula rejected: {e}") from e


def validate_and_parse_pricing_formula(
    raw: Any, vocabulary: ProductVocabulary = DEFAULT_VOCABULARY
) -> PricingFormula:
    """
    Мягкий разбор persisted формулы.

    Испорченный JSON или нарушенный контракт дают EMPTY_FORMULA. Незавершённое
    выражение (формула сохраняется на каждом шаге редактирования) теряет
    только tokens: exposures и monthly_distribution остаются в расчёте,
    а вычисление такой формулы считается "формулы нет".
    """
    if isinstance(raw, PricingFormula):
        return raw

    try:
        data = _load_payload(raw)
    except MalformedFormulaError as e:
        logger.warning("Malformed pricing formula replaced with empty formula: %s", e)
        return EMPTY_FORMULA
    if data is None:
        return EMPTY_FORMULA

    payload = _canonicalize_payload(data, vocabulary)
    try:
        return PricingFormula.model_validate(payload)
    except ValidationError as e:
        logger.warning("Malformed pricing formula tokens dropped, exposures kept: %s", e)

    try:
        formula = PricingFormula.model_validate({**payload, "tokens": []})
    except ValidationError as e:
        logger.warning("Malformed pricing formula replaced with empty formula: %s", e)
        return EMPTY_FORMULA

    if formula.exposures.is_empty and not formula.has_monthly_distribution:
        return EMPTY_FORMULA
    return formula


# =============================================================================
# ВЫЧИСЛЕНИЕ
# =============================================================================


class _FormulaEvaluator:
    """
    Рекурсивный спуск по токенам.

        expression := term (('+' | '-') term)*
        term       := factor (('*' | '/') factor)*
        factor     := instrument | fixedValue | percentage | '(' expression ')'

    Грамматика уже проверена моделью, поэтому evaluator не валидирует токены.
    """

    def __init__(self, tokens: Sequence[FormulaToken], prices: Mapping[str, float | None]):
        self._tokens = tokens
        self._prices = prices
        self._pos = 0

    def evaluate(self) -> float:
        return self._expression()

    def _peek(self) -> FormulaToken | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None

    def _next(self) -> FormulaToken:
        token = self._tokens[self._pos]
        self._pos += 1
        return token

    def _peek_operator(self, operators: tuple[str, ...]) -> str | None:
        token = self._peek()
        if token is not None and token.type == TokenType.OPERATOR and token.value in operators:
            return token.value
        return None

    def _expression(self) -> float:
        result = self._term()
        while (op := self._peek_operator(("+", "-"))) is not None:
            self._next()
            right = self._term()
            result = result + right if op == "+" else result - right
        return result

    def _term(self) -> float:
        result = self._factor()
        while (op := self._peek_operator(("*", "/"))) is not None:
            self._next()
            right = self._factor()
            if op == "*":
                result *= right
            elif not is_zero(right, EPS_PRICE):
                result /= right
            # деление на ноль пропускается, левый операнд остаётся
        return result

    def _factor(self) -> float:
        token = self._next()
        if token.type == TokenType.OPEN_BRACKET:
            value = self._expression()
            self._next()  # closeBracket
            return value
        if token.type == TokenType.INSTRUMENT:
            price = self._prices.get(token.value)
            return float(price) if price is not None else 0.0
        return token.numeric_value


def apply_pricing_formula(formula: PricingFormula, prices: Mapping[str, float | None]) -> float:
    """
    Вычисление цены по формуле на снимке цен инструментов.

    Без побочных эффектов. Отсутствующая цена инструмента считается 0,
    чтобы дневной ряд цен всегда вычислялся. Вызывающий код, которому нужно
    отличать "нет цены" от нуля (MTM), проверяет formula_instruments() сам.

    Args:
        formula: Разобранная формула
        prices: {canonical_instrument: price | None}

    Returns:
        Цена (0.0 для пустой формулы)
    """
    if formula.is_empty:
        return 0.0
    return sanitize_float(_FormulaEvaluator(formula.tokens, prices).evaluate())


def formula_instruments(formula: PricingFormula) -> tuple[str, ...]:
    """Уникальные инструменты выражения в порядке первого появления"""
    seen: dict[str, None] = {}
    for token in formula.tokens:
        if token.type == TokenType.INSTRUMENT:
            seen.setdefault(token.value, None)
    return tuple(seen)


def formula_to_string(formula: PricingFormula) -> str:
    """Человекочитаемое выражение, например 'Argus UCOME + 5' или '(Platts LSGO * 10%)'"""
    parts: list[str] = []
    for token in formula.tokens:
        if token.type == TokenType.OPEN_BRACKET:
            parts.append("(")
        elif token.type == TokenType.CLOSE_BRACKET:
            parts.append(")")
        elif token.type == TokenType.PERCENTAGE:
            parts.append(f"{token.value.rstrip('%')}%")
        else:
            parts.append(token.value)
    return " ".join(parts).replace("( ", "(").replace(" )", ")")
