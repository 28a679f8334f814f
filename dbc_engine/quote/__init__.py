"""Quote — котировки exact-in / exact-out."""

from .engine import QuoteEngine, QuoteEngineConfig, fee_mode, is_curve_complete

__all__ = [
    "QuoteEngine",
    "QuoteEngineConfig",
    "fee_mode",
    "is_curve_complete",
]
