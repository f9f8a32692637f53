"""
Contract Validation Module

Модуль для валидации persisted JSON контрактов движка exposure/MTM.
"""

from .validators import (
    ContractValidator,
    PaperTradeLegValidator,
    PhysicalTradeLegValidator,
    PricingFormulaValidator,
    SchemaLoader,
    validate_paper_trade_leg,
    validate_physical_trade_leg,
    validate_pricing_formula,
)

__all__ = [
    # Classes
    "SchemaLoader",
    "ContractValidator",
    "PricingFormulaValidator",
    "PhysicalTradeLegValidator",
    "PaperTradeLegValidator",
    # Functions
    "validate_pricing_formula",
    "validate_physical_trade_leg",
    "validate_paper_trade_leg",
]
