"""
Тесты для формулы ценообразования

Проверяет:
1. Строгий и мягкий разбор persisted JSON
2. Грамматику токенов (can_add_token_type / is_complete_expression)
3. Канонизацию инструментов, exposures и monthlyDistribution
4. Вычисление с приоритетом операторов, процентами и делением на ноль
5. Человекочитаемое представление
"""

import json

import pytest
from pydantic import ValidationError

from src.core.domain.errors import MalformedFormulaError
from src.core.domain.formula import (
    EMPTY_FORMULA,
    FormulaToken,
    TokenType,
    apply_pricing_formula,
    can_add_token_type,
    formula_instruments,
    formula_to_string,
    is_complete_expression,
    parse_pricing_formula,
    validate_and_parse_pricing_formula,
)


def _instrument(name: str) -> dict:
    return {"type": "instrument", "value": name}


def _number(value) -> dict:
    return {"type": "fixedValue", "value": value}


def _op(symbol: str) -> dict:
    return {"type": "operator", "value": symbol}


OPEN = {"type": "openBracket", "value": "("}
CLOSE = {"type": "closeBracket", "value": ")"}


def _formula(*tokens: dict, **extra):
    return parse_pricing_formula({"tokens": list(tokens), **extra})


# =============================================================================
# PARSING
# =============================================================================


class TestParsePricingFormula:
    """Тесты для parse_pricing_formula"""

    def test_none_and_blank_are_empty(self) -> None:
        assert parse_pricing_formula(None) is EMPTY_FORMULA
        assert parse_pricing_formula("   ") is EMPTY_FORMULA
        assert EMPTY_FORMULA.is_empty

    def test_json_string(self) -> None:
        raw = json.dumps({"tokens": [_instrument("UCOME"), _op("+"), _number(5)]})
        formula = parse_pricing_formula(raw)
        assert [t.type for t in formula.tokens] == [
            TokenType.INSTRUMENT,
            TokenType.OPERATOR,
            TokenType.FIXED_VALUE,
        ]
        assert formula.tokens[2].value == "5"

    def test_instruments_are_canonicalized(self) -> None:
        formula = _formula(_instrument("UCOME"), _op("-"), _instrument("LSGO"))
        assert formula_instruments(formula) == ("Argus UCOME", "Platts LSGO")

    def test_exposure_keys_are_canonicalized(self) -> None:
        formula = _formula(
            _instrument("UCOME"),
            exposures={"physical": {"UCOME": 1.0, "UCOME FP": 0.5}, "pricing": {"LSGO": -1.0}},
        )
        assert formula.exposures.physical == {"Argus UCOME": 1.5}
        assert formula.exposures.pricing == {"Platts LSGO": -1.0}

    def test_exposure_only_formula(self) -> None:
        """EFP формула: токенов нет, pricing exposure есть"""
        formula = parse_pricing_formula({"tokens": [], "exposures": {"pricing": {"EFP": -100}}})
        assert formula.is_empty
        assert formula.exposures.pricing == {"ICE GASOIL FUTURES (EFP)": -100.0}

    @pytest.mark.parametrize(
        "raw",
        [
            "{not json",
            "[1, 2]",
            {"exposures": {}},
            {"tokens": [{"type": "bogus", "value": "x"}]},
            {"tokens": [_instrument("UCOME"), _op("+")]},
            {"tokens": [_op("+"), _number(1)]},
            {"tokens": [OPEN, _number(1)]},
            {"tokens": [_number(1), CLOSE]},
            {"tokens": [{"type": "percentage", "value": "10%"}]},
            {"tokens": [_number("abc")]},
            {"tokens": [_number(1), _op("^"), _number(2)]},
        ],
    )
    def test_malformed(self, raw) -> None:
        with pytest.raises(MalformedFormulaError):
            parse_pricing_formula(raw)

    def test_malformed_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_pricing_formula("{not json")

    def test_soft_parse_returns_empty(self, caplog) -> None:
        with caplog.at_level("WARNING"):
            formula = validate_and_parse_pricing_formula({"tokens": [_op("*")]})
        assert formula is EMPTY_FORMULA
        assert "Malformed pricing formula" in caplog.text

    def test_soft_parse_keeps_exposures_of_incomplete_expression(self, caplog) -> None:
        """Формула сохраняется на каждом шаге редактирования: висящий оператор"""
        raw = {
            "tokens": [_instrument("UCOME"), _op("+")],
            "exposures": {"physical": {"UCOME": 1000}, "pricing": {"UCOME": -1000}},
            "monthlyDistribution": {"UCOME": {"2024-07": -1000}},
        }
        with caplog.at_level("WARNING"):
            formula = validate_and_parse_pricing_formula(raw)

        assert formula.is_empty
        assert formula.exposures.physical == {"Argus UCOME": 1000.0}
        assert formula.exposures.pricing == {"Argus UCOME": -1000.0}
        assert formula.monthly_distribution == {"Argus UCOME": {"2024-07": -1000.0}}
        assert apply_pricing_formula(formula, {"Argus UCOME": 900.0}) == 0.0
        assert "tokens dropped" in caplog.text

    def test_strict_parse_still_rejects_incomplete_expression(self) -> None:
        with pytest.raises(MalformedFormulaError):
            parse_pricing_formula({"tokens": [_instrument("UCOME"), _op("+")], "exposures": {"pricing": {"UCOME": -1}}})

    def test_soft_parse_contract_violation_is_empty(self) -> None:
        formula = validate_and_parse_pricing_formula({"exposures": {"pricing": {"UCOME": -1}}})
        assert formula is EMPTY_FORMULA

    def test_frozen(self) -> None:
        formula = _formula(_number(1))
        with pytest.raises(ValidationError):
            formula.tokens = ()


class TestMonthlyDistribution:
    """Нормализация monthlyDistribution"""

    def test_months_and_instruments_normalized(self) -> None:
        formula = _formula(
            _instrument("GASOIL"),
            monthlyDistribution={"ICE GASOIL": {"Jul-24": 700, "2024-06-01": 300}},
        )
        assert formula.has_monthly_distribution
        assert formula.monthly_distribution == {
            "ICE GASOIL FUTURES": {"2024-06": 300.0, "2024-07": 700.0}
        }

    def test_snake_case_key_accepted(self) -> None:
        formula = _formula(_instrument("GASOIL"), monthly_distribution={"GASOIL": {"2024-06": 1.0}})
        assert formula.monthly_distribution == {"ICE GASOIL FUTURES": {"2024-06": 1.0}}

    def test_unrecognised_month_dropped(self) -> None:
        formula = _formula(
            _instrument("GASOIL"),
            monthlyDistribution={"GASOIL": {"someday": 5, "2024-06": 10}},
        )
        assert formula.monthly_distribution == {"ICE GASOIL FUTURES": {"2024-06": 10.0}}

    def test_colliding_names_summed(self) -> None:
        formula = _formula(
            _instrument("UCOME"),
            monthlyDistribution={"UCOME": {"2024-06": 1.0}, "UCOME FP": {"Jun-24": 2.0}},
        )
        assert formula.monthly_distribution == {"Argus UCOME": {"2024-06": 3.0}}

    def test_empty_distribution_is_none(self) -> None:
        formula = _formula(_instrument("UCOME"), monthlyDistribution={})
        assert formula.monthly_distribution is None
        assert not formula.has_monthly_distribution


# =============================================================================
# GRAMMAR
# =============================================================================


class TestTokenGrammar:
    """Тесты для can_add_token_type"""

    def test_start(self) -> None:
        assert can_add_token_type([], TokenType.INSTRUMENT)
        assert can_add_token_type([], TokenType.FIXED_VALUE)
        assert can_add_token_type([], TokenType.OPEN_BRACKET)
        assert not can_add_token_type([], TokenType.OPERATOR)
        assert not can_add_token_type([], TokenType.CLOSE_BRACKET)

    def test_after_operand(self) -> None:
        tokens = [FormulaToken(type=TokenType.INSTRUMENT, value="Argus UCOME")]
        assert can_add_token_type(tokens, TokenType.OPERATOR)
        assert not can_add_token_type(tokens, TokenType.FIXED_VALUE)
        assert not can_add_token_type(tokens, TokenType.CLOSE_BRACKET)

    def test_close_bracket_requires_open(self) -> None:
        tokens = [
            FormulaToken(type=TokenType.OPEN_BRACKET, value="("),
            FormulaToken(type=TokenType.FIXED_VALUE, value="1"),
        ]
        assert can_add_token_type(tokens, TokenType.CLOSE_BRACKET)
        assert not is_complete_expression(tokens)

    def test_after_operator(self) -> None:
        tokens = [
            FormulaToken(type=TokenType.FIXED_VALUE, value="1"),
            FormulaToken(type=TokenType.OPERATOR, value="*"),
        ]
        assert can_add_token_type(tokens, TokenType.PERCENTAGE)
        assert can_add_token_type(tokens, TokenType.OPEN_BRACKET)
        assert not can_add_token_type(tokens, TokenType.OPERATOR)
        assert not is_complete_expression(tokens)

    def test_string_type_accepted(self) -> None:
        assert can_add_token_type([], "instrument")


# =============================================================================
# EVALUATION
# =============================================================================


class TestApplyPricingFormula:
    """Тесты для apply_pricing_formula"""

    def test_instrument_plus_premium(self) -> None:
        formula = _formula(_instrument("UCOME"), _op("+"), _number(5))
        assert apply_pricing_formula(formula, {"Argus UCOME": 900.0}) == pytest.approx(905.0)

    def test_operator_precedence(self) -> None:
        formula = _formula(_number(2), _op("+"), _number(3), _op("*"), _number(4))
        assert apply_pricing_formula(formula, {}) == pytest.approx(14.0)

    def test_brackets(self) -> None:
        formula = _formula(OPEN, _number(2), _op("+"), _number(3), CLOSE, _op("*"), _number(4))
        assert apply_pricing_formula(formula, {}) == pytest.approx(20.0)

    def test_percentage(self) -> None:
        formula = _formula(_instrument("LSGO"), _op("*"), {"type": "percentage", "value": "10%"})
        assert apply_pricing_formula(formula, {"Platts LSGO": 700.0}) == pytest.approx(70.0)

    def test_weighted_blend(self) -> None:
        formula = _formula(
            _instrument("UCOME"),
            _op("*"),
            {"type": "percentage", "value": 60},
            _op("+"),
            _instrument("LSGO"),
            _op("*"),
            {"type": "percentage", "value": 40},
        )
        prices = {"Argus UCOME": 1000.0, "Platts LSGO": 500.0}
        assert apply_pricing_formula(formula, prices) == pytest.approx(800.0)

    def test_division_by_zero_skipped(self) -> None:
        formula = _formula(_number(10), _op("/"), _number(0))
        assert apply_pricing_formula(formula, {}) == pytest.approx(10.0)

    def test_missing_price_is_zero(self) -> None:
        formula = _formula(_instrument("UCOME"), _op("+"), _number(5))
        assert apply_pricing_formula(formula, {}) == pytest.approx(5.0)
        assert apply_pricing_formula(formula, {"Argus UCOME": None}) == pytest.approx(5.0)

    def test_empty_formula(self) -> None:
        assert apply_pricing_formula(EMPTY_FORMULA, {"Argus UCOME": 900.0}) == 0.0


class TestFormulaToString:
    """Тесты для formula_to_string"""

    def test_rendering(self) -> None:
        formula = _formula(
            OPEN, _instrument("LSGO"), _op("*"), {"type": "percentage", "value": "10"}, CLOSE,
            _op("+"), _number(5),
        )
        assert formula_to_string(formula) == "(Platts LSGO * 10%) + 5"

    def test_empty(self) -> None:
        assert formula_to_string(EMPTY_FORMULA) == ""
