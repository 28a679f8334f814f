"""
Fee Params — вывод fee-параметров из человеческих величин

Стадия параметров: на входе bps, длительности и суммы в человеческих единицах,
на выходе — целочисленные BaseFeeSchedule и DynamicFeeConfig. Decimal
используется только для дробных степеней и корней; возврат в целые явный.

- derive_base_fee_params: linear/exponential расписание по start/end fee
- derive_rate_limiter_params: rate limiter по base fee, шагу и reference amount
- min_base_fee_bps: конечный fee расписания (база для dynamic fee)
- derive_dynamic_fee_params: надбавка, дающая 20% base fee при max движении цены
"""

from decimal import Decimal, localcontext
from typing import Final

from dbc_engine.core.domain.enums import ActivationType, BaseFeeMode
from dbc_engine.core.domain.fees import BaseFeeSchedule, DynamicFeeConfig
from dbc_engine.core.exceptions import InvalidConfiguration
from dbc_engine.core.math.decimal_math import (
    DECIMAL_PRECISION,
    DecimalLike,
    decimal_sqrt,
    decimal_to_int,
    to_decimal,
)
from dbc_engine.core.math.fee_scheduler import (
    FEE_DENOMINATOR,
    MAX_FEE_BPS,
    MAX_FEE_NUMERATOR,
    MIN_FEE_BPS,
    MIN_FEE_NUMERATOR,
    min_scheduler_fee_numerator,
)
from dbc_engine.core.math.rate_limiter import (
    fee_increment_numerator,
    max_rate_limiter_duration,
)
from dbc_engine.core.math.safe_math import BASIS_POINT_MAX, ONE_Q64

# =============================================================================
# DYNAMIC FEE DEFAULTS
# =============================================================================

DYNAMIC_FEE_FILTER_PERIOD_DEFAULT: Final[int] = 10
DYNAMIC_FEE_DECAY_PERIOD_DEFAULT: Final[int] = 120
DYNAMIC_FEE_REDUCTION_FACTOR_DEFAULT: Final[int] = 5_000

# 1 bps; bin_step << 64 / BASIS_POINT_MAX
BIN_STEP_BPS_DEFAULT: Final[int] = 1
BIN_STEP_BPS_U128_DEFAULT: Final[int] = 1_844_674_407_370_955

# Максимальное движение цены, под которое калибруется надбавка: 15%
MAX_PRICE_CHANGE_BPS_DEFAULT: Final[int] = 1_500

# Доля base fee, которую даёт надбавка при max движении цены
MAX_DYNAMIC_FEE_PERCENT: Final[int] = 20


# =============================================================================
# BPS <-> NUMERATOR
# =============================================================================


def bps_to_fee_numerator(bps: int) -> int:
    """
    Examples:
        >>> bps_to_fee_numerator(100)
        10000000
    """
    return bps * FEE_DENOMINATOR // BASIS_POINT_MAX


def fee_numerator_to_bps(fee_numerator: int) -> int:
    """
    Examples:
        >>> fee_numerator_to_bps(10_000_000)
        100
    """
    return fee_numerator * BASIS_POINT_MAX // FEE_DENOMINATOR


# =============================================================================
# BASE FEE
# =============================================================================


def derive_base_fee_params(
    starting_fee_bps: int,
    ending_fee_bps: int,
    base_fee_mode: BaseFeeMode,
    number_of_period: int,
    total_duration: int,
) -> BaseFeeSchedule:
    """
    Расписание base fee по начальному и конечному fee.

    Linear:      reduction_factor = (max - min) // number_of_period
    Exponential: (min / max) = (1 - reduction_factor / 10_000)^number_of_period,
                 reduction_factor = floor(10_000 * (1 - (min / max)^(1/n)))

    Args:
        starting_fee_bps: Fee в момент активации
        ending_fee_bps: Fee после последнего периода
        base_fee_mode: FEE_SCHEDULER_LINEAR или FEE_SCHEDULER_EXPONENTIAL
        number_of_period: Число периодов
        total_duration: Длительность расписания (slots/seconds)

    Returns:
        BaseFeeSchedule

    Raises:
        InvalidConfiguration: Если параметры противоречивы или вне границ
    """
    if not base_fee_mode.is_scheduler:
        raise InvalidConfiguration(
            "base_fee_invalid", "use derive_rate_limiter_params for rate limiter"
        )

    if starting_fee_bps == ending_fee_bps:
        if number_of_period != 0 or total_duration != 0:
            raise InvalidConfiguration(
                "base_fee_invalid",
                "number_of_period and total_duration must be 0 when fee is flat",
            )
        return BaseFeeSchedule.fee_scheduler(
            bps_to_fee_numerator(starting_fee_bps),
            exponential=base_fee_mode == BaseFeeMode.FEE_SCHEDULER_EXPONENTIAL,
        )

    if number_of_period <= 0:
        raise InvalidConfiguration("base_fee_invalid", "number_of_period must be positive")
    if total_duration <= 0:
        raise InvalidConfiguration("base_fee_invalid", "total_duration must be positive")
    if starting_fee_bps > MAX_FEE_BPS:
        raise InvalidConfiguration(
            "base_fee_invalid",
            f"starting fee {starting_fee_bps} bps exceeds {MAX_FEE_BPS} bps",
        )
    if ending_fee_bps < MIN_FEE_BPS:
        raise InvalidConfiguration(
            "base_fee_invalid", f"ending fee must be at least {MIN_FEE_BPS} bps"
        )
    if ending_fee_bps > starting_fee_bps:
        raise InvalidConfiguration(
            "base_fee_invalid", "ending fee must not exceed starting fee"
        )

    max_base_fee_numerator = bps_to_fee_numerator(starting_fee_bps)
    min_base_fee_numerator = bps_to_fee_numerator(ending_fee_bps)
    period_frequency = total_duration // number_of_period

    if base_fee_mode == BaseFeeMode.FEE_SCHEDULER_LINEAR:
        reduction_factor = (max_base_fee_numerator - min_base_fee_numerator) // number_of_period
    else:
        with localcontext() as ctx:
            ctx.prec = DECIMAL_PRECISION
            ratio = Decimal(min_base_fee_numerator) / Decimal(max_base_fee_numerator)
            decay_base = ratio ** (Decimal(1) / Decimal(number_of_period))
            reduction_factor = decimal_to_int(Decimal(BASIS_POINT_MAX) * (1 - decay_base))

    return BaseFeeSchedule.fee_scheduler(
        max_base_fee_numerator,
        number_of_period=number_of_period,
        period_frequency=period_frequency,
        reduction_factor=reduction_factor,
        exponential=base_fee_mode == BaseFeeMode.FEE_SCHEDULER_EXPONENTIAL,
    )


def derive_rate_limiter_params(
    base_fee_bps: int,
    fee_increment_bps: int,
    reference_amount: DecimalLike,
    max_limiter_duration: int,
    token_quote_decimal: int,
    activation_type: ActivationType,
) -> BaseFeeSchedule:
    """
    Rate limiter по человеческим параметрам.

    Args:
        base_fee_bps: Cliff fee (bps)
        fee_increment_bps: Прирост ставки на каждый reference_amount сверх первого
        reference_amount: Размер блока в человеческих единицах quote
        max_limiter_duration: Длина окна (slots/seconds)
        token_quote_decimal: Decimals quote токена
        activation_type: Единица измерения точек

    Returns:
        BaseFeeSchedule в режиме RATE_LIMITER

    Raises:
        InvalidConfiguration: Если параметры вне границ
    """
    reference_amount_raw = decimal_to_int(
        to_decimal(reference_amount) * Decimal(10) ** token_quote_decimal
    )
    cliff_fee_numerator = bps_to_fee_numerator(base_fee_bps)

    if (
        base_fee_bps <= 0
        or fee_increment_bps <= 0
        or reference_amount_raw <= 0
        or max_limiter_duration <= 0
    ):
        raise InvalidConfiguration("rate_limiter_invalid", "all parameters must be positive")

    max_duration = max_rate_limiter_duration(activation_type)
    if max_limiter_duration > max_duration:
        raise InvalidConfiguration(
            "rate_limiter_invalid",
            f"max_limiter_duration {max_limiter_duration} exceeds {max_duration}",
        )

    if fee_increment_numerator(fee_increment_bps) >= FEE_DENOMINATOR:
        raise InvalidConfiguration(
            "rate_limiter_invalid", "fee increment must be below FEE_DENOMINATOR"
        )

    if not MIN_FEE_NUMERATOR <= cliff_fee_numerator <= MAX_FEE_NUMERATOR:
        raise InvalidConfiguration(
            "rate_limiter_invalid",
            f"base fee {base_fee_bps} bps outside [{MIN_FEE_BPS}, {MAX_FEE_BPS}]",
        )

    return BaseFeeSchedule.rate_limiter(
        cliff_fee_numerator,
        fee_increment_bps=fee_increment_bps,
        max_limiter_duration=max_limiter_duration,
        reference_amount=reference_amount_raw,
    )


def min_base_fee_bps(schedule: BaseFeeSchedule) -> int:
    """
    Минимальный base fee расписания в bps.

    Для rate limiter минимальная ставка — cliff fee.
    """
    if schedule.is_rate_limiter:
        return fee_numerator_to_bps(schedule.cliff_fee_numerator)
    return fee_numerator_to_bps(min_scheduler_fee_numerator(schedule))


# =============================================================================
# DYNAMIC FEE
# =============================================================================


def derive_dynamic_fee_params(
    base_fee_bps: int,
    max_price_change_bps: int = MAX_PRICE_CHANGE_BPS_DEFAULT,
) -> DynamicFeeConfig:
    """
    Надбавка, дающая MAX_DYNAMIC_FEE_PERCENT% base fee при движении цены на
    max_price_change_bps.

    Шаги:
        sqrt_ratio   = floor(sqrt(1 + max_price_change_bps / 10_000) * 2^64)
        delta_bin_id = (sqrt_ratio - ONE_Q64) // BIN_STEP_BPS_U128_DEFAULT * 2
        max_va       = delta_bin_id * BASIS_POINT_MAX
        v_fee        = max_dynamic_fee * 1e11 - 99_999_999_999
        vfc          = v_fee // (max_va * bin_step)^2

    Args:
        base_fee_bps: База (обычно min_base_fee_bps расписания)
        max_price_change_bps: Калибровочное движение цены (<= 1500)

    Returns:
        DynamicFeeConfig с параметрами по умолчанию

    Raises:
        InvalidConfiguration: Если max_price_change_bps > 1500
    """
    if max_price_change_bps > MAX_PRICE_CHANGE_BPS_DEFAULT:
        raise InvalidConfiguration(
            "dynamic_fee_invalid",
            f"max_price_change_bps {max_price_change_bps} exceeds "
            f"{MAX_PRICE_CHANGE_BPS_DEFAULT}",
        )

    price_ratio = Decimal(max_price_change_bps) / Decimal(BASIS_POINT_MAX) + 1
    sqrt_price_ratio_q64 = decimal_to_int(decimal_sqrt(price_ratio) * Decimal(ONE_Q64))
    delta_bin_id = (sqrt_price_ratio_q64 - ONE_Q64) // BIN_STEP_BPS_U128_DEFAULT * 2

    max_volatility_accumulator = delta_bin_id * BASIS_POINT_MAX
    square_vfa_bin = (max_volatility_accumulator * BIN_STEP_BPS_DEFAULT) ** 2

    base_fee_numerator = bps_to_fee_numerator(base_fee_bps)
    max_dynamic_fee_numerator = base_fee_numerator * MAX_DYNAMIC_FEE_PERCENT // 100
    v_fee = max_dynamic_fee_numerator * 100_000_000_000 - 99_999_999_999

    variable_fee_control = v_fee // square_vfa_bin if square_vfa_bin else 0

    return DynamicFeeConfig(
        initialized=True,
        bin_step=BIN_STEP_BPS_DEFAULT,
        bin_step_u128=BIN_STEP_BPS_U128_DEFAULT,
        filter_period=DYNAMIC_FEE_FILTER_PERIOD_DEFAULT,
        decay_period=DYNAMIC_FEE_DECAY_PERIOD_DEFAULT,
        reduction_factor=DYNAMIC_FEE_REDUCTION_FACTOR_DEFAULT,
        max_volatility_accumulator=max_volatility_accumulator,
        variable_fee_control=max(variable_fee_control, 0),
    )
