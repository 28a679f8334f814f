"""
Domain models and value objects.

Immutable Pydantic модели кривой, fee, vesting, конфигурации пула и
снапшота виртуального пула; результаты котировок.
"""

from dbc_engine.core.domain.curve import MAX_CURVE_POINT, Curve, CurvePoint
from dbc_engine.core.domain.enums import (
    ActivationType,
    BaseFeeMode,
    CollectFeeMode,
    MigrationFeeOption,
    MigrationOption,
    Rounding,
    TokenDecimal,
    TokenType,
    TradeDirection,
)
from dbc_engine.core.domain.fees import (
    BaseFeeSchedule,
    DynamicFeeConfig,
    PoolFees,
    VolatilityTracker,
)
from dbc_engine.core.domain.pool_config import MigrationFee, PoolConfig, TokenSupply
from dbc_engine.core.domain.quote import (
    FeeBreakdown,
    QuoteRejectReason,
    SwapQuote,
    SwapQuoteExactOut,
)
from dbc_engine.core.domain.vesting import LockedVestingSchedule
from dbc_engine.core.domain.virtual_pool import VirtualPoolState

__all__ = [
    # Curve
    "MAX_CURVE_POINT",
    "Curve",
    "CurvePoint",
    # Enums
    "ActivationType",
    "BaseFeeMode",
    "CollectFeeMode",
    "MigrationFeeOption",
    "MigrationOption",
    "Rounding",
    "TokenDecimal",
    "TokenType",
    "TradeDirection",
    # Fees
    "BaseFeeSchedule",
    "DynamicFeeConfig",
    "PoolFees",
    "VolatilityTracker",
    # Pool
    "MigrationFee",
    "PoolConfig",
    "TokenSupply",
    "LockedVestingSchedule",
    "VirtualPoolState",
    # Quote
    "FeeBreakdown",
    "QuoteRejectReason",
    "SwapQuote",
    "SwapQuoteExactOut",
]
