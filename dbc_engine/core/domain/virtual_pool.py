"""
VirtualPoolState — снапшот состояния виртуального пула

Поставляется ledger-коллаборатором перед каждой котировкой.
"""

from pydantic import BaseModel, Field

from dbc_engine.core.domain.fees import VolatilityTracker


class VirtualPoolState(BaseModel):
    """Текущая цена, резервы и точка активации пула."""

    sqrt_price: int = Field(..., gt=0, description="Текущая sqrt цена (Q64.64)")
    base_reserve: int = Field(0, ge=0, description="Резерв base токена")
    quote_reserve: int = Field(0, ge=0, description="Резерв quote токена")
    activation_point: int = Field(0, ge=0, description="Slot/timestamp активации")
    volatility_tracker: VolatilityTracker = Field(default_factory=VolatilityTracker)

    model_config = {"frozen": True}
