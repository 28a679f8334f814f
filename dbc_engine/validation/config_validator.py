"""
Config Validator — проверка конфигурации пула перед публикацией

Проверяет PoolConfig (или его сериализованный снапшот) на соответствие
ограничениям settlement-программы. Отказ — это результат, а не исключение:
ConfigValidationResult с машиночитаемой причиной (block_reason) и
человекочитаемыми деталями. Проверка останавливается на первой причине.

Порядок проверок:
1. pool_fees — base fee (расписание или rate limiter) и dynamic fee
2. collect_fee_mode — rate limiter только с QUOTE_TOKEN
3. migration_option/token_type — MET_DAMM только для SPL
4. migration_fee_option — из разрешённого списка
5. migration_fee — fee% <= 50, creator% <= 100
6. creator_trading_fee_percentage <= 100
7. token_decimal в [6, 9]
8. LP-доли в сумме 100
9. migration_quote_threshold > 0
10. sqrt_start_price в [MIN_SQRT_PRICE, MAX_SQRT_PRICE)
11. curve — 1..16 точек, строго возрастает, liquidity > 0, <= MAX_SQRT_PRICE
12. locked_vesting — frequency != 0 и total > 0, если задан
13. token_supply — покрывает swap (+ буфер), миграцию и vesting

Для dict сначала выполняется JSON Schema (core/contracts/schema/pool_config.json):
ошибка схемы отображается в причину по первому элементу пути.
"""

from dataclasses import dataclass
from typing import Any, Dict, Final, Optional, Union

from pydantic import ValidationError as ModelValidationError

from dbc_engine.core.contracts.validators import PoolConfigValidator
from dbc_engine.core.domain.curve import MAX_CURVE_POINT
from dbc_engine.core.domain.enums import (
    ActivationType,
    CollectFeeMode,
    MigrationFeeOption,
    MigrationOption,
    TokenType,
)
from dbc_engine.core.domain.fees import BaseFeeSchedule, DynamicFeeConfig
from dbc_engine.core.domain.pool_config import PoolConfig
from dbc_engine.core.exceptions import InsufficientLiquidity, InvalidConfiguration
from dbc_engine.core.math.curve_math import MAX_SQRT_PRICE, MIN_SQRT_PRICE
from dbc_engine.core.math.fee_params import BIN_STEP_BPS_DEFAULT, BIN_STEP_BPS_U128_DEFAULT
from dbc_engine.core.math.fee_scheduler import (
    FEE_DENOMINATOR,
    MAX_FEE_NUMERATOR,
    MIN_FEE_NUMERATOR,
    min_scheduler_fee_numerator,
)
from dbc_engine.core.math.rate_limiter import (
    fee_increment_numerator,
    is_zero_rate_limiter,
    max_rate_limiter_duration,
)
from dbc_engine.core.math.safe_math import BASIS_POINT_MAX, U24_MAX
from dbc_engine.core.math.supply import SWAP_BUFFER_PERCENTAGE, pool_config_supply_breakdown

# =============================================================================
# CONSTANTS
# =============================================================================

# Поле снапшота -> причина отказа при ошибке схемы
SCHEMA_FIELD_REASONS: Final[Dict[str, str]] = {
    "pool_fees": "pool_fees_invalid",
    "collect_fee_mode": "collect_fee_mode_invalid",
    "migration_option": "migration_token_type_invalid",
    "token_type": "migration_token_type_invalid",
    "activation_type": "activation_type_invalid",
    "migration_fee_option": "migration_fee_option_invalid",
    "migration_fee": "migration_fee_invalid",
    "creator_trading_fee_percentage": "creator_trading_fee_invalid",
    "token_decimal": "token_decimal_invalid",
    "partner_lp_percentage": "lp_percentage_invalid",
    "creator_lp_percentage": "lp_percentage_invalid",
    "partner_locked_lp_percentage": "lp_percentage_invalid",
    "creator_locked_lp_percentage": "lp_percentage_invalid",
    "migration_quote_threshold": "migration_quote_threshold_invalid",
    "sqrt_start_price": "sqrt_start_price_invalid",
    "curve": "curve_invalid",
    "locked_vesting": "locked_vesting_invalid",
    "token_supply": "token_supply_invalid",
}

SCHEMA_INVALID: Final[str] = "schema_invalid"


# =============================================================================
# RESULT
# =============================================================================


@dataclass(frozen=True)
class ConfigValidationResult:
    """Результат проверки конфигурации."""

    accepted: bool
    block_reason: str
    details: str


# =============================================================================
# CONFIG
# =============================================================================


@dataclass(frozen=True)
class ConfigValidatorConfig:
    """Конфигурация ConfigValidator.

    Границы совпадают с ограничениями settlement-программы.
    """

    # Разрешённые fee пула после миграции
    allowed_migration_fee_options: tuple[MigrationFeeOption, ...] = tuple(MigrationFeeOption)

    # Decimals base токена
    min_token_decimal: int = 6
    max_token_decimal: int = 9

    # Migration fee (%)
    max_migration_fee_percentage: int = 50
    max_migration_creator_fee_percentage: int = 100

    max_creator_trading_fee_percentage: int = 100

    # Буфер свопа при проверке supply (%)
    swap_buffer_percentage: int = SWAP_BUFFER_PERCENTAGE

    # JSON Schema для dict снапшотов
    schema_validation_enabled: bool = True


# =============================================================================
# FEE CHECKS
# =============================================================================


def _check_base_fee(
    base_fee: BaseFeeSchedule, activation_type: ActivationType
) -> Optional[str]:
    if base_fee.cliff_fee_numerator == 0:
        return "cliff_fee_numerator must be positive"

    if base_fee.is_rate_limiter:
        if not MIN_FEE_NUMERATOR <= base_fee.cliff_fee_numerator <= MAX_FEE_NUMERATOR:
            return (
                f"rate limiter cliff fee {base_fee.cliff_fee_numerator} outside "
                f"[{MIN_FEE_NUMERATOR}, {MAX_FEE_NUMERATOR}]"
            )
        if is_zero_rate_limiter(base_fee):
            return None
        if (
            base_fee.reference_amount == 0
            or base_fee.max_limiter_duration == 0
            or base_fee.fee_increment_bps == 0
        ):
            return "rate limiter parameters must be all zero or all positive"
        max_duration = max_rate_limiter_duration(activation_type)
        if base_fee.max_limiter_duration > max_duration:
            return f"max_limiter_duration {base_fee.max_limiter_duration} exceeds {max_duration}"
        if fee_increment_numerator(base_fee.fee_increment_bps) >= FEE_DENOMINATOR:
            return "fee increment must be below FEE_DENOMINATOR"
        return None

    if base_fee.cliff_fee_numerator > MAX_FEE_NUMERATOR:
        return f"cliff fee {base_fee.cliff_fee_numerator} exceeds {MAX_FEE_NUMERATOR}"
    min_fee_numerator = min_scheduler_fee_numerator(base_fee)
    if min_fee_numerator < MIN_FEE_NUMERATOR:
        return f"minimum scheduler fee {min_fee_numerator} below {MIN_FEE_NUMERATOR}"
    return None


def _check_dynamic_fee(dynamic_fee: DynamicFeeConfig) -> Optional[str]:
    if dynamic_fee.bin_step != BIN_STEP_BPS_DEFAULT:
        return f"bin_step must be {BIN_STEP_BPS_DEFAULT}"
    if dynamic_fee.bin_step_u128 != BIN_STEP_BPS_U128_DEFAULT:
        return f"bin_step_u128 must be {BIN_STEP_BPS_U128_DEFAULT}"
    if dynamic_fee.filter_period >= dynamic_fee.decay_period:
        return "filter_period must be below decay_period"
    if dynamic_fee.reduction_factor > BASIS_POINT_MAX:
        return f"reduction_factor exceeds {BASIS_POINT_MAX}"
    if dynamic_fee.variable_fee_control > U24_MAX:
        return f"variable_fee_control exceeds {U24_MAX}"
    if dynamic_fee.max_volatility_accumulator > U24_MAX:
        return f"max_volatility_accumulator exceeds {U24_MAX}"
    return None


# =============================================================================
# VALIDATOR
# =============================================================================


class ConfigValidator:
    """Config Validator — отказ по первой нарушенной причине.

    Принимает PoolConfig или dict снапшот. Для dict порядок:
    JSON Schema -> Pydantic модель -> проверки модели.
    """

    def __init__(self, config: ConfigValidatorConfig | None = None):
        """
        Args:
            config: конфигурация валидатора (опционально, используется default)
        """
        self.config = config or ConfigValidatorConfig()
        self._schema_validator = (
            PoolConfigValidator() if self.config.schema_validation_enabled else None
        )

    def evaluate(self, pool_config: Union[PoolConfig, Dict[str, Any]]) -> ConfigValidationResult:
        """
        Проверка конфигурации.

        Args:
            pool_config: PoolConfig или его dict снапшот

        Returns:
            ConfigValidationResult
        """
        if isinstance(pool_config, PoolConfig):
            return self._evaluate_model(pool_config)

        if self._schema_validator is not None:
            error = self._schema_validator.first_error(pool_config)
            if error is not None:
                field = self._schema_validator.error_field(error)
                return self._reject(
                    SCHEMA_FIELD_REASONS.get(field, SCHEMA_INVALID),
                    self._schema_validator.describe(error),
                )

        try:
            model = PoolConfig.model_validate(pool_config)
        except ModelValidationError as e:
            errors = e.errors()
            field = str(errors[0]["loc"][0]) if errors and errors[0]["loc"] else ""
            return self._reject(SCHEMA_FIELD_REASONS.get(field, SCHEMA_INVALID), str(e))

        return self._evaluate_model(model)

    def is_valid(self, pool_config: Union[PoolConfig, Dict[str, Any]]) -> bool:
        return self.evaluate(pool_config).accepted

    def validate_or_raise(self, pool_config: Union[PoolConfig, Dict[str, Any]]) -> None:
        """
        Raises:
            InvalidConfiguration: С block_reason отказа
        """
        result = self.evaluate(pool_config)
        if not result.accepted:
            raise InvalidConfiguration(result.block_reason, result.details)

    def _evaluate_model(self, pool_config: PoolConfig) -> ConfigValidationResult:
        cfg = self.config

        # 1. Pool fees
        details = _check_base_fee(pool_config.pool_fees.base_fee, pool_config.activation_type)
        if details is None and pool_config.pool_fees.dynamic_fee_enabled:
            details = _check_dynamic_fee(pool_config.pool_fees.dynamic_fee)
        if details is not None:
            return self._reject("pool_fees_invalid", details)

        # 2. Collect fee mode
        base_fee = pool_config.pool_fees.base_fee
        if (
            base_fee.is_rate_limiter
            and not is_zero_rate_limiter(base_fee)
            and pool_config.collect_fee_mode != CollectFeeMode.QUOTE_TOKEN
        ):
            return self._reject(
                "collect_fee_mode_invalid", "rate limiter requires QUOTE_TOKEN collect fee mode"
            )

        # 3. Migration option / token type
        if (
            pool_config.migration_option == MigrationOption.MET_DAMM
            and pool_config.token_type != TokenType.SPL
        ):
            return self._reject(
                "migration_token_type_invalid", "MET_DAMM migration supports only SPL tokens"
            )

        # 4. Migration fee option
        if pool_config.migration_fee_option not in cfg.allowed_migration_fee_options:
            return self._reject(
                "migration_fee_option_invalid",
                f"migration fee option {pool_config.migration_fee_option!r} not allowed",
            )

        # 5. Migration fee
        migration_fee = pool_config.migration_fee
        if migration_fee.fee_percentage > cfg.max_migration_fee_percentage:
            return self._reject(
                "migration_fee_invalid",
                f"fee_percentage {migration_fee.fee_percentage} exceeds "
                f"{cfg.max_migration_fee_percentage}",
            )
        if migration_fee.creator_fee_percentage > cfg.max_migration_creator_fee_percentage:
            return self._reject(
                "migration_fee_invalid",
                f"creator_fee_percentage {migration_fee.creator_fee_percentage} exceeds "
                f"{cfg.max_migration_creator_fee_percentage}",
            )

        # 6. Creator trading fee
        if pool_config.creator_trading_fee_percentage > cfg.max_creator_trading_fee_percentage:
            return self._reject(
                "creator_trading_fee_invalid",
                f"creator_trading_fee_percentage {pool_config.creator_trading_fee_percentage} "
                f"exceeds {cfg.max_creator_trading_fee_percentage}",
            )

        # 7. Token decimal
        if not cfg.min_token_decimal <= pool_config.token_decimal <= cfg.max_token_decimal:
            return self._reject(
                "token_decimal_invalid",
                f"token_decimal {pool_config.token_decimal} outside "
                f"[{cfg.min_token_decimal}, {cfg.max_token_decimal}]",
            )

        # 8. LP percentages
        if pool_config.lp_percentage_total != 100:
            return self._reject(
                "lp_percentage_invalid",
                f"LP percentages sum to {pool_config.lp_percentage_total}, expected 100",
            )

        # 9. Migration quote threshold
        if pool_config.migration_quote_threshold <= 0:
            return self._reject(
                "migration_quote_threshold_invalid", "migration_quote_threshold must be positive"
            )

        # 10. Start price
        if not MIN_SQRT_PRICE <= pool_config.sqrt_start_price < MAX_SQRT_PRICE:
            return self._reject(
                "sqrt_start_price_invalid",
                f"sqrt_start_price {pool_config.sqrt_start_price} outside "
                f"[{MIN_SQRT_PRICE}, {MAX_SQRT_PRICE})",
            )

        # 11. Curve
        details = self._check_curve(pool_config)
        if details is not None:
            return self._reject("curve_invalid", details)

        # 12. Locked vesting
        vesting = pool_config.locked_vesting
        if not vesting.is_default:
            if vesting.frequency == 0:
                return self._reject("locked_vesting_invalid", "frequency must be non-zero")
            if vesting.total_amount == 0:
                return self._reject(
                    "locked_vesting_invalid", "total vesting amount must be positive"
                )

        # 13. Token supply
        if pool_config.token_supply is not None:
            return self._check_token_supply(pool_config)

        return ConfigValidationResult(accepted=True, block_reason="", details="OK")

    @staticmethod
    def _check_curve(pool_config: PoolConfig) -> Optional[str]:
        curve = pool_config.curve
        if not 1 <= len(curve) <= MAX_CURVE_POINT:
            return f"curve must have 1..{MAX_CURVE_POINT} points, got {len(curve)}"

        first = curve.first
        if first.sqrt_price <= pool_config.sqrt_start_price:
            return "first curve point must be above sqrt_start_price"
        if first.liquidity == 0:
            return "first curve point liquidity must be positive"
        if first.sqrt_price > MAX_SQRT_PRICE:
            return "first curve point exceeds MAX_SQRT_PRICE"

        for i in range(1, len(curve)):
            if curve[i].sqrt_price <= curve[i - 1].sqrt_price:
                return f"curve point {i} is not strictly ascending"
            if curve[i].liquidity == 0:
                return f"curve point {i} liquidity must be positive"

        if curve.last.sqrt_price > MAX_SQRT_PRICE:
            return "last curve point exceeds MAX_SQRT_PRICE"
        return None

    def _check_token_supply(self, pool_config: PoolConfig) -> ConfigValidationResult:
        token_supply = pool_config.token_supply
        try:
            breakdown = pool_config_supply_breakdown(
                pool_config, self.config.swap_buffer_percentage
            )
        except InsufficientLiquidity as e:
            return self._reject("curve_invalid", str(e))

        pre_supply = token_supply.pre_migration_token_supply
        post_supply = token_supply.post_migration_token_supply

        if breakdown.minimum_supply_without_buffer > post_supply:
            return self._reject(
                "token_supply_invalid",
                f"post-migration supply {post_supply} below minimum "
                f"{breakdown.minimum_supply_without_buffer}",
            )
        if post_supply > pre_supply:
            return self._reject(
                "token_supply_invalid",
                f"post-migration supply {post_supply} exceeds pre-migration {pre_supply}",
            )
        if breakdown.minimum_supply_with_buffer > pre_supply:
            return self._reject(
                "token_supply_invalid",
                f"pre-migration supply {pre_supply} below buffered minimum "
                f"{breakdown.minimum_supply_with_buffer}",
            )
        return ConfigValidationResult(accepted=True, block_reason="", details="OK")

    @staticmethod
    def _reject(reason: str, details: str) -> ConfigValidationResult:
        return ConfigValidationResult(accepted=False, block_reason=reason, details=details)
