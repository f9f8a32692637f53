"""
Domain models and value objects.

Contains the fundamental entities of the exposure/MTM engine: canonical
products, month codes, pricing formulas, trade legs and exposure structures.
"""

from src.core.domain.direction import BuySell, pnl_direction_factor, position_direction_factor
from src.core.domain.errors import (
    ExposureEngineError,
    InvalidPeriodError,
    MalformedFormulaError,
    UnresolvedPriceError,
)
from src.core.domain.exposure import (
    ZERO_EXPOSURE,
    ExposureData,
    ExposureReport,
    GrandTotals,
    GroupTotals,
    MonthlyExposure,
    calculate_net_exposure,
    sum_exposures,
)
from src.core.domain.formula import (
    EMPTY_FORMULA,
    OPERATORS,
    FormulaExposures,
    FormulaToken,
    PricingFormula,
    TokenType,
    apply_pricing_formula,
    can_add_token_type,
    formula_instruments,
    formula_to_string,
    is_complete_expression,
    parse_pricing_formula,
    validate_and_parse_pricing_formula,
)
from src.core.domain.periods import (
    EXPOSURE_HORIZON_MONTHS,
    TRADES_WINDOW_MONTHS_BACK,
    TRADES_WINDOW_MONTHS_FORWARD,
    add_months,
    build_exposure_horizon,
    build_month_window,
    build_trades_window,
    month_bounds,
    month_code,
    month_code_for,
    months_in_range,
    normalize_month_code,
    parse_month_code,
    to_date,
)
from src.core.domain.products import (
    DEFAULT_VOCABULARY,
    PaperInstrumentDescriptor,
    ProductRule,
    ProductVocabulary,
    RelationshipType,
    is_biodiesel_product,
    is_known_product,
    is_pricing_instrument_product,
    map_product_to_canonical,
    parse_paper_instrument,
    split_product_groups,
)
from src.core.domain.trade_leg import (
    PaperTradeLeg,
    PhysicalTradeLeg,
    PricingType,
    canonicalize_exposures,
    describe_paper_leg,
    paper_leg_from_record,
    physical_leg_from_record,
)

__all__ = [
    # Direction
    "BuySell",
    "position_direction_factor",
    "pnl_direction_factor",
    # Errors
    "ExposureEngineError",
    "MalformedFormulaError",
    "InvalidPeriodError",
    "UnresolvedPriceError",
    # Periods
    "EXPOSURE_HORIZON_MONTHS",
    "TRADES_WINDOW_MONTHS_BACK",
    "TRADES_WINDOW_MONTHS_FORWARD",
    "to_date",
    "month_code",
    "month_code_for",
    "parse_month_code",
    "normalize_month_code",
    "month_bounds",
    "add_months",
    "months_in_range",
    "build_month_window",
    "build_exposure_horizon",
    "build_trades_window",
    # Products
    "DEFAULT_VOCABULARY",
    "ProductRule",
    "ProductVocabulary",
    "RelationshipType",
    "PaperInstrumentDescriptor",
    "map_product_to_canonical",
    "is_known_product",
    "parse_paper_instrument",
    "is_biodiesel_product",
    "is_pricing_instrument_product",
    "split_product_groups",
    # Pricing formula
    "EMPTY_FORMULA",
    "OPERATORS",
    "TokenType",
    "FormulaToken",
    "FormulaExposures",
    "PricingFormula",
    "parse_pricing_formula",
    "validate_and_parse_pricing_formula",
    "apply_pricing_formula",
    "can_add_token_type",
    "is_complete_expression",
    "formula_instruments",
    "formula_to_string",
    # Trade legs
    "PricingType",
    "PhysicalTradeLeg",
    "PaperTradeLeg",
    "canonicalize_exposures",
    "describe_paper_leg",
    "physical_leg_from_record",
    "paper_leg_from_record",
    # Exposure structures
    "ZERO_EXPOSURE",
    "ExposureData",
    "MonthlyExposure",
    "GrandTotals",
    "GroupTotals",
    "ExposureReport",
    "calculate_net_exposure",
    "sum_exposures",
]
