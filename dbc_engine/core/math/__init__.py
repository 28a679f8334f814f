"""
Core math modules для dbc-engine

Целочисленная fixed-point арифметика (Q64.64), кривая, fee. Decimal
допускается только в decimal_math и fee_params.
"""

# FixedPointMath
from dbc_engine.core.math.safe_math import (
    BASIS_POINT_MAX,
    ONE_Q64,
    RESOLUTION,
    div_ceil,
    mul_div,
    pow_q64,
)

# CurveModel
from dbc_engine.core.math.curve_math import (
    MAX_SQRT_PRICE,
    MIN_SQRT_PRICE,
    amount_base_between,
    amount_quote_between,
    next_sqrt_price_from_input,
    next_sqrt_price_from_output,
)
from dbc_engine.core.math.curve_traversal import (
    price_at_quote_threshold,
    traverse_from_base,
    traverse_from_quote,
    traverse_to_base_output,
    traverse_to_quote_output,
)

# FeeEngine
from dbc_engine.core.math.fee_scheduler import (
    FEE_DENOMINATOR,
    MAX_FEE_NUMERATOR,
    MIN_FEE_NUMERATOR,
    scheduler_fee_numerator,
)
from dbc_engine.core.math.rate_limiter import rate_limiter_fee_numerator
from dbc_engine.core.math.fee_math import (
    fee_on_amount,
    included_fee_amount,
    total_fee_numerator,
    variable_fee,
)

# Decimal boundary
from dbc_engine.core.math.decimal_math import (
    price_from_sqrt_price,
    sqrt_price_from_market_cap,
    sqrt_price_from_price,
)
from dbc_engine.core.math.fee_params import (
    derive_base_fee_params,
    derive_dynamic_fee_params,
    derive_rate_limiter_params,
)

# Supply
from dbc_engine.core.math.supply import SupplyBreakdown, supply_breakdown

__all__ = [
    # FixedPointMath
    "BASIS_POINT_MAX",
    "ONE_Q64",
    "RESOLUTION",
    "div_ceil",
    "mul_div",
    "pow_q64",
    # CurveModel
    "MAX_SQRT_PRICE",
    "MIN_SQRT_PRICE",
    "amount_base_between",
    "amount_quote_between",
    "next_sqrt_price_from_input",
    "next_sqrt_price_from_output",
    "price_at_quote_threshold",
    "traverse_from_base",
    "traverse_from_quote",
    "traverse_to_base_output",
    "traverse_to_quote_output",
    # FeeEngine
    "FEE_DENOMINATOR",
    "MAX_FEE_NUMERATOR",
    "MIN_FEE_NUMERATOR",
    "scheduler_fee_numerator",
    "rate_limiter_fee_numerator",
    "fee_on_amount",
    "included_fee_amount",
    "total_fee_numerator",
    "variable_fee",
    # Decimal boundary
    "price_from_sqrt_price",
    "sqrt_price_from_market_cap",
    "sqrt_price_from_price",
    "derive_base_fee_params",
    "derive_dynamic_fee_params",
    "derive_rate_limiter_params",
    # Supply
    "SupplyBreakdown",
    "supply_breakdown",
]
