"""
PoolConfig — конфигурация пула bonding curve

Immutable агрегат: кривая, стартовая цена, fee, порог миграции, границы
supply, vesting и параметры миграции. Создаётся один раз (CurveDesigner
или внешнее хранилище) и далее не изменяется.

Модель проверяет только типы и неотрицательность. Межполевые инварианты
(форма кривой, совместимость режимов, достаточность supply) проверяет
ConfigValidator.
"""

from typing import Optional

from pydantic import BaseModel, Field

from dbc_engine.core.domain.curve import Curve
from dbc_engine.core.domain.enums import (
    ActivationType,
    CollectFeeMode,
    MigrationFeeOption,
    MigrationOption,
    TokenType,
)
from dbc_engine.core.domain.fees import PoolFees
from dbc_engine.core.domain.vesting import LockedVestingSchedule


class TokenSupply(BaseModel):
    """Объявленные границы supply base токена (в минимальных единицах)."""

    pre_migration_token_supply: int = Field(..., ge=0)
    post_migration_token_supply: int = Field(..., ge=0)

    model_config = {"frozen": True}


class MigrationFee(BaseModel):
    """
    Fee, удерживаемый из quote reserve при миграции, и его раздел
    между creator и partner.
    """

    fee_percentage: int = Field(0, ge=0, le=100, description="Доля quote reserve (%)")
    creator_fee_percentage: int = Field(
        0, ge=0, le=100, description="Доля creator в migration fee (%)"
    )

    model_config = {"frozen": True}


class PoolConfig(BaseModel):
    """Полная конфигурация пула."""

    # Fee
    pool_fees: PoolFees
    collect_fee_mode: CollectFeeMode = CollectFeeMode.QUOTE_TOKEN

    # Миграция
    migration_option: MigrationOption = MigrationOption.MET_DAMM_V2
    migration_fee_option: MigrationFeeOption = MigrationFeeOption.FIXED_BPS_25
    migration_fee: MigrationFee = Field(default_factory=MigrationFee)
    migration_quote_threshold: int = Field(..., ge=0, description="Порог quote reserve")

    # Токен
    activation_type: ActivationType = ActivationType.SLOT
    token_type: TokenType = TokenType.SPL
    token_decimal: int = Field(..., ge=0, description="Decimals base токена")
    token_supply: Optional[TokenSupply] = None

    # Распределение LP после миграции
    partner_lp_percentage: int = Field(0, ge=0, le=100)
    creator_lp_percentage: int = Field(0, ge=0, le=100)
    partner_locked_lp_percentage: int = Field(0, ge=0, le=100)
    creator_locked_lp_percentage: int = Field(0, ge=0, le=100)
    creator_trading_fee_percentage: int = Field(0, ge=0)

    # Vesting
    locked_vesting: LockedVestingSchedule = Field(default_factory=LockedVestingSchedule)

    # Кривая
    sqrt_start_price: int = Field(..., ge=0, description="Стартовая sqrt цена (Q64.64)")
    curve: Curve

    model_config = {"frozen": True}

    @property
    def lp_percentage_total(self) -> int:
        return (
            self.partner_lp_percentage
            + self.creator_lp_percentage
            + self.partner_locked_lp_percentage
            + self.creator_locked_lp_percentage
        )
