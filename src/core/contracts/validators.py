"""
JSON Schema Contract Validators

Модуль для валидации persisted JSON данных согласно формальным JSON Schema
контрактам. Использует библиотеку jsonschema (Draft 2020-12).

Схемы (src/core/contracts/schema/):
- pricing_formula.json — формула ценообразования (tokens / exposures / monthlyDistribution)
- physical_trade_leg.json — нога физической сделки
- paper_trade_leg.json — нога бумажной сделки
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterator

import jsonschema
from jsonschema import Draft202012Validator, ValidationError


# =============================================================================
# SCHEMA LOADER
# =============================================================================


class SchemaLoader:
    """
    Загрузчик JSON Schema файлов.

    Схемы поставляются как package data рядом с этим модулем.
    """

    def __init__(self, schema_dir: Path | None = None):
        self._schema_dir = schema_dir or Path(__file__).parent / "schema"
        if not self._schema_dir.exists():
            raise RuntimeError(f"Schema directory not found: {self._schema_dir}")

        # Кэш загруженных схем
        self._schemas: Dict[str, Dict[str, Any]] = {}

    def load_schema(self, schema_name: str) -> Dict[str, Any]:
        """
        Загрузка JSON Schema файла.

        Args:
            schema_name: Имя схемы без расширения (например, 'pricing_formula')

        Returns:
            Загруженная схема как dict

        Raises:
            FileNotFoundError: Если файл схемы не найден
            ValueError: Если файл не является валидной JSON Schema
        """
        if schema_name in self._schemas:
            return self._schemas[schema_name]

        schema_path = self._schema_dir / f"{schema_name}.json"
        if not schema_path.exists():
            raise FileNotFoundError(f"Schema not found: {schema_path}")

        with open(schema_path, "r", encoding="utf-8") as f:
            schema = json.load(f)

        # Валидируем саму схему (meta-validation)
        try:
            Draft202012Validator.check_schema(schema)
        except jsonschema.SchemaError as e:
            raise ValueError(f"Invalid JSON Schema in {schema_name}.json: {e}")

        self._schemas[schema_name] = schema
        return schema


# Глобальный экземпляр загрузчика
_SCHEMA_LOADER = SchemaLoader()


# =============================================================================
# CONTRACT VALIDATORS
# =============================================================================


class ContractValidator:
    """
    Базовый класс для валидаторов контрактов.

    Инкапсулирует логику валидации данных против JSON Schema.
    """

    def __init__(self, schema_name: str):
        self.schema_name = schema_name
        self.schema = _SCHEMA_LOADER.load_schema(schema_name)
        self.validator = Draft202012Validator(self.schema)

    def validate(self, data: Dict[str, Any]) -> None:
        """
        Валидация данных против схемы.

        Raises:
            ValidationError: Если данные не соответствуют схеме
        """
        self.validator.validate(data)

    def is_valid(self, data: Dict[str, Any]) -> bool:
        """Проверка валидности данных без exception"""
        return self.validator.is_valid(data)

    def iter_errors(self, data: Dict[str, Any]) -> Iterator[ValidationError]:
        """Итератор по всем ошибкам валидации"""
        return self.validator.iter_errors(data)


class PricingFormulaValidator(ContractValidator):
    """Валидатор для pricing_formula контракта"""

    def __init__(self):
        super().__init__("pricing_formula")


class PhysicalTradeLegValidator(ContractValidator):
    """Валидатор для physical_trade_leg контракта"""

    def __init__(self):
        super().__init__("physical_trade_leg")


class PaperTradeLegValidator(ContractValidator):
    """Валидатор для paper_trade_leg контракта"""

    def __init__(self):
        super().__init__("paper_trade_leg")


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def validate_pricing_formula(data: Dict[str, Any]) -> None:
    """
    Валидация persisted формулы ценообразования.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    PricingFormulaValidator().validate(data)


def validate_physical_trade_leg(data: Dict[str, Any]) -> None:
    """
    Валидация записи физической ноги.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    PhysicalTradeLegValidator().validate(data)


def validate_paper_trade_leg(data: Dict[str, Any]) -> None:
    """
    Валидация записи бумажной ноги.

    Raises:
        ValidationError: Если данные не соответствуют схеме
    """
    PaperTradeLegValidator().validate(data)
