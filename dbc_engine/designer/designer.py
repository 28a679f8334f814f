"""
CurveDesigner — сборка PoolConfig по человеческим параметрам

Фасад над стратегиями (strategies.py): стратегия строит кривую, стартовую
цену и supply, CurveDesigner добавляет fee, миграцию и LP-доли из
PoolParams и прогоняет результат через ConfigValidator. Наружу выходят
только конфигурации, прошедшие проверку.

Пример:
    designer = CurveDesigner()
    config = designer.build_curve_with_market_cap(
        params, total_token_supply=1_000_000_000,
        initial_market_cap=30, migration_market_cap=300,
    )
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Sequence

from pydantic import BaseModel, Field

from dbc_engine.core.domain.enums import (
    ActivationType,
    CollectFeeMode,
    MigrationFeeOption,
    MigrationOption,
    TokenType,
)
from dbc_engine.core.domain.fees import BaseFeeSchedule, PoolFees
from dbc_engine.core.domain.pool_config import MigrationFee, PoolConfig, TokenSupply
from dbc_engine.core.domain.vesting import LockedVestingSchedule
from dbc_engine.core.exceptions import InvalidConfiguration
from dbc_engine.core.math.decimal_math import DecimalLike
from dbc_engine.core.math.fee_params import (
    MAX_PRICE_CHANGE_BPS_DEFAULT,
    derive_dynamic_fee_params,
    min_base_fee_bps,
)
from dbc_engine.designer import strategies
from dbc_engine.designer.strategies import MID_PRICE_WEIGHTS_DEFAULT, CurveDesign
from dbc_engine.validation.config_validator import ConfigValidator

logger = logging.getLogger(__name__)


# =============================================================================
# PARAMS
# =============================================================================


class PoolParams(BaseModel):
    """
    Общие параметры пула, не зависящие от стратегии кривой.

    Суммы leftover — в человеческих единицах base; locked_vesting — в атомах
    (см. strategies.locked_vesting_params).
    """

    base_fee: BaseFeeSchedule
    dynamic_fee_enabled: bool = False
    protocol_fee_percent: int = Field(20, ge=0, le=100)
    referral_fee_percent: int = Field(20, ge=0, le=100)
    collect_fee_mode: CollectFeeMode = CollectFeeMode.QUOTE_TOKEN
    activation_type: ActivationType = ActivationType.SLOT

    migration_option: MigrationOption = MigrationOption.MET_DAMM_V2
    migration_fee_option: MigrationFeeOption = MigrationFeeOption.FIXED_BPS_25
    migration_fee: MigrationFee = Field(default_factory=MigrationFee)

    token_type: TokenType = TokenType.SPL
    token_base_decimal: int = Field(9, ge=0)
    token_quote_decimal: int = Field(9, ge=0)

    partner_lp_percentage: int = Field(0, ge=0, le=100)
    creator_lp_percentage: int = Field(0, ge=0, le=100)
    partner_locked_lp_percentage: int = Field(100, ge=0, le=100)
    creator_locked_lp_percentage: int = Field(0, ge=0, le=100)
    creator_trading_fee_percentage: int = Field(0, ge=0)

    leftover: int = Field(0, ge=0, description="Base, остающийся у создателя")
    locked_vesting: LockedVestingSchedule = Field(default_factory=LockedVestingSchedule)

    model_config = {"frozen": True}


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class DesignerConfig:
    """Конфигурация CurveDesigner."""

    # Калибровочное движение цены для dynamic fee (bps)
    max_price_change_bps: int = MAX_PRICE_CHANGE_BPS_DEFAULT

    # Веса кандидатов промежуточной цены двухсегментной кривой
    mid_price_weights: tuple[Decimal, ...] = MID_PRICE_WEIGHTS_DEFAULT


# =============================================================================
# DESIGNER
# =============================================================================


class CurveDesigner:
    """CurveDesigner — стратегии кривой + fee + проверка.

    Каждый метод возвращает PoolConfig, принятый ConfigValidator, либо
    поднимает InvalidConfiguration с причиной отказа.
    """

    def __init__(
        self,
        config: DesignerConfig | None = None,
        validator: ConfigValidator | None = None,
    ):
        """
        Args:
            config: конфигурация (опционально, используется default)
            validator: проверка результата (опционально, используется default)
        """
        self.config = config or DesignerConfig()
        self.validator = validator or ConfigValidator()

    # -------------------------------------------------------------------------
    # СТРАТЕГИИ
    # -------------------------------------------------------------------------

    def build_curve(
        self,
        params: PoolParams,
        total_token_supply: int,
        percentage_supply_on_migration: DecimalLike,
        migration_quote_threshold: DecimalLike,
    ) -> PoolConfig:
        design = strategies.build_curve(
            total_token_supply,
            percentage_supply_on_migration,
            migration_quote_threshold,
            params.migration_option,
            params.token_base_decimal,
            params.token_quote_decimal,
            params.locked_vesting,
            params.leftover,
            params.migration_fee.fee_percentage,
        )
        return self._finalize("build_curve", params, design)

    def build_curve_with_market_cap(
        self,
        params: PoolParams,
        total_token_supply: int,
        initial_market_cap: DecimalLike,
        migration_market_cap: DecimalLike,
    ) -> PoolConfig:
        design = strategies.build_curve_with_market_cap(
            total_token_supply,
            initial_market_cap,
            migration_market_cap,
            params.migration_option,
            params.token_base_decimal,
            params.token_quote_decimal,
            params.locked_vesting,
            params.leftover,
            params.migration_fee.fee_percentage,
        )
        return self._finalize("build_curve_with_market_cap", params, design)

    def build_curve_with_two_segments(
        self,
        params: PoolParams,
        total_token_supply: int,
        initial_market_cap: DecimalLike,
        migration_market_cap: DecimalLike,
        percentage_supply_on_migration: DecimalLike,
    ) -> PoolConfig:
        design = strategies.build_curve_with_two_segments(
            total_token_supply,
            initial_market_cap,
            migration_market_cap,
            percentage_supply_on_migration,
            params.migration_option,
            params.token_base_decimal,
            params.token_quote_decimal,
            params.locked_vesting,
            params.leftover,
            params.migration_fee.fee_percentage,
            self.config.mid_price_weights,
        )
        return self._finalize("build_curve_with_two_segments", params, design)

    def build_curve_with_liquidity_weights(
        self,
        params: PoolParams,
        total_token_supply: int,
        initial_market_cap: DecimalLike,
        migration_market_cap: DecimalLike,
        liquidity_weights: Sequence[DecimalLike],
    ) -> PoolConfig:
        design = strategies.build_curve_with_liquidity_weights(
            total_token_supply,
            initial_market_cap,
            migration_market_cap,
            liquidity_weights,
            params.migration_option,
            params.token_base_decimal,
            params.token_quote_decimal,
            params.locked_vesting,
            params.leftover,
            params.migration_fee.fee_percentage,
        )
        return self._finalize("build_curve_with_liquidity_weights", params, design)

    def design_constant_product_curve(
        self,
        params: PoolParams,
        total_token_supply: int,
        percentage_supply_on_migration: DecimalLike,
        start_price: DecimalLike,
        migration_price: Optional[DecimalLike] = None,
        percentage_supply_vesting: DecimalLike = 0,
        vesting_frequency: int = 0,
        vesting_number_of_period: int = 0,
    ) -> PoolConfig:
        """
        Constant product кривая.

        С migration_price — вариант с vesting (cliff unlock добирает всё,
        что не ушло в свопы, миграцию и порции). Без migration_price — цена
        миграции выводится из соотношения swap/migration supply.

        Без migration_price supply не имеет запаса: base, нужный для миграции
        в MET_DAMM_V2 (full-range позиция), немного (порядка 1e-9 supply) превышает
        долю миграции, и проверка отклоняет результат с token_supply_invalid
        (post-migration supply ниже минимума). Вариант с vesting этого не
        делает — расхождение поглощает cliff unlock.

        Raises:
            InvalidConfiguration: Если ConfigValidator отклоняет результат
        """
        if migration_price is None:
            design = strategies.design_constant_product_curve_without_lock_vesting(
                total_token_supply,
                percentage_supply_on_migration,
                start_price,
                params.token_base_decimal,
                params.token_quote_decimal,
            )
        else:
            design = strategies.design_constant_product_curve_with_lock_vesting(
                total_token_supply,
                percentage_supply_on_migration,
                percentage_supply_vesting,
                vesting_frequency,
                vesting_number_of_period,
                start_price,
                migration_price,
                params.migration_option,
                params.token_base_decimal,
                params.token_quote_decimal,
            )
        return self._finalize("design_constant_product_curve", params, design)

    def design_curve(
        self,
        params: PoolParams,
        total_token_supply: int,
        migration_quote_threshold: int,
        migration_base_percent: DecimalLike,
    ) -> PoolConfig:
        """Одна точка до MAX_SQRT_PRICE; supply конфигурации не задаётся."""
        design = strategies.design_curve(
            params.token_base_decimal,
            migration_quote_threshold,
            total_token_supply,
            migration_base_percent,
        )
        return self._finalize("design_curve", params, design)

    # -------------------------------------------------------------------------
    # СБОРКА
    # -------------------------------------------------------------------------

    def pool_fees(self, params: PoolParams) -> PoolFees:
        """Pool fees из PoolParams; dynamic fee калибруется по минимальному base fee."""
        dynamic_fee = None
        if params.dynamic_fee_enabled:
            dynamic_fee = derive_dynamic_fee_params(
                min_base_fee_bps(params.base_fee), self.config.max_price_change_bps
            )
        return PoolFees(
            base_fee=params.base_fee,
            dynamic_fee=dynamic_fee,
            protocol_fee_percent=params.protocol_fee_percent,
            referral_fee_percent=params.referral_fee_percent,
        )

    def assemble(self, params: PoolParams, design: CurveDesign) -> PoolConfig:
        """PoolConfig из результата стратегии и общих параметров (без проверки)."""
        token_supply = None
        if design.total_supply > 0:
            token_supply = TokenSupply(
                pre_migration_token_supply=design.total_supply,
                post_migration_token_supply=design.total_supply,
            )
        return PoolConfig(
            pool_fees=self.pool_fees(params),
            collect_fee_mode=params.collect_fee_mode,
            migration_option=params.migration_option,
            migration_fee_option=params.migration_fee_option,
            migration_fee=params.migration_fee,
            migration_quote_threshold=design.migration_quote_threshold,
            activation_type=params.activation_type,
            token_type=params.token_type,
            token_decimal=params.token_base_decimal,
            token_supply=token_supply,
            partner_lp_percentage=params.partner_lp_percentage,
            creator_lp_percentage=params.creator_lp_percentage,
            partner_locked_lp_percentage=params.partner_locked_lp_percentage,
            creator_locked_lp_percentage=params.creator_locked_lp_percentage,
            creator_trading_fee_percentage=params.creator_trading_fee_percentage,
            locked_vesting=design.locked_vesting,
            sqrt_start_price=design.sqrt_start_price,
            curve=design.curve,
        )

    def _finalize(self, strategy: str, params: PoolParams, design: CurveDesign) -> PoolConfig:
        pool_config = self.assemble(params, design)
        result = self.validator.evaluate(pool_config)
        if not result.accepted:
            logger.warning(
                "%s produced rejected config: %s (%s)",
                strategy,
                result.block_reason,
                result.details,
            )
            raise InvalidConfiguration(result.block_reason, result.details)

        logger.debug(
            "%s: sqrt_start_price=%d points=%d migration_quote_threshold=%d",
            strategy,
            pool_config.sqrt_start_price,
            len(pool_config.curve),
            pool_config.migration_quote_threshold,
        )
        return pool_config
