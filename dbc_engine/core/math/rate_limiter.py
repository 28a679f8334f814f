"""
Rate Limiter — base fee, растущий с размером сделки

Маргинальная ставка fee растёт линейно с объёмом сверх reference amount x0:
первые x0 единиц идут по cliff fee c, каждый следующий блок из x0 единиц —
на i дороже, пока ставка не упрётся в MAX_FEE_NUMERATOR. Итоговый fee —
интеграл этой ставки, считается в замкнутой форме (без цикла по блокам):

    a <= x0:       fee = c
    d = a - x0, k = d // x0, r = d % x0, max_k = (MAX - c) // i
    k < max_k:     fee_currency = x0*(c + c*k + i*k*(k+1)/2) + r*(c + i*(k+1))
    k >= max_k:    fee_currency = x0*(c + c*max_k + i*max_k*(max_k+1)/2)
                                  + ((k - max_k)*x0 + r) * MAX
    trading_fee = fee_currency // FEE_DENOMINATOR
    numerator   = min(ceil(trading_fee * FEE_DENOMINATOR / a), MAX)

Применяется только к покупке (QuoteToBase) в окне
[activation_point, activation_point + max_limiter_duration].
"""

from typing import Final

from dbc_engine.core.domain.enums import ActivationType, Rounding, TradeDirection
from dbc_engine.core.domain.fees import BaseFeeSchedule
from dbc_engine.core.math.fee_scheduler import FEE_DENOMINATOR, MAX_FEE_NUMERATOR
from dbc_engine.core.math.safe_math import BASIS_POINT_MAX, div, mul_div, sub

# Максимальная длина окна rate limiter
MAX_RATE_LIMITER_DURATION_IN_SLOTS: Final[int] = 108_000
MAX_RATE_LIMITER_DURATION_IN_SECONDS: Final[int] = 43_200


def max_rate_limiter_duration(activation_type: ActivationType) -> int:
    """Предел max_limiter_duration для единицы измерения точек."""
    if activation_type == ActivationType.SLOT:
        return MAX_RATE_LIMITER_DURATION_IN_SLOTS
    return MAX_RATE_LIMITER_DURATION_IN_SECONDS


def fee_increment_numerator(fee_increment_bps: int) -> int:
    """Шаг ставки i в единицах FEE_DENOMINATOR."""
    return mul_div(fee_increment_bps, FEE_DENOMINATOR, BASIS_POINT_MAX, Rounding.DOWN)


def max_index(cliff_fee_numerator: int, fee_increment_bps: int) -> int:
    """
    Число блоков до насыщения ставки на MAX_FEE_NUMERATOR.

    Raises:
        DivisionByZero: Если шаг ставки нулевой
        MathUnderflow: Если cliff выше MAX_FEE_NUMERATOR
    """
    delta_numerator = sub(MAX_FEE_NUMERATOR, cliff_fee_numerator)
    return div(delta_numerator, fee_increment_numerator(fee_increment_bps))


def fee_numerator_on_rate_limiter(
    cliff_fee_numerator: int,
    reference_amount: int,
    fee_increment_bps: int,
    input_amount: int,
) -> int:
    """
    Эффективный fee numerator для сделки размера input_amount.

    Args:
        cliff_fee_numerator: Ставка c для первых reference_amount единиц
        reference_amount: Размер блока x0
        fee_increment_bps: Прирост ставки на блок (bps)
        input_amount: Размер сделки a

    Returns:
        Fee numerator в [cliff_fee_numerator, MAX_FEE_NUMERATOR]

    Raises:
        DivisionByZero: Если reference_amount или шаг ставки нулевые
    """
    if input_amount <= reference_amount:
        return cliff_fee_numerator

    c = cliff_fee_numerator
    x0 = reference_amount
    i = fee_increment_numerator(fee_increment_bps)
    k_max = max_index(cliff_fee_numerator, fee_increment_bps)

    diff = input_amount - reference_amount
    k = div(diff, x0)
    r = diff % x0

    if k < k_max:
        first_fee = x0 * (c + c * k + i * k * (k + 1) // 2)
        second_fee = r * (c + i * (k + 1))
    else:
        first_fee = x0 * (c + c * k_max + i * k_max * (k_max + 1) // 2)
        left_amount = (k - k_max) * x0 + r
        second_fee = left_amount * MAX_FEE_NUMERATOR

    trading_fee = (first_fee + second_fee) // FEE_DENOMINATOR

    fee_numerator = mul_div(trading_fee, FEE_DENOMINATOR, input_amount, Rounding.UP)
    return min(fee_numerator, MAX_FEE_NUMERATOR)


def is_zero_rate_limiter(schedule: BaseFeeSchedule) -> bool:
    return (
        schedule.reference_amount == 0
        and schedule.max_limiter_duration == 0
        and schedule.fee_increment_bps == 0
    )


def is_rate_limiter_applied(
    schedule: BaseFeeSchedule,
    current_point: int,
    activation_point: int,
    trade_direction: TradeDirection,
) -> bool:
    """
    Активен ли rate limiter для сделки.

    Неактивен для продажи base, для нулевых параметров, до активации и
    после окончания окна max_limiter_duration.
    """
    if is_zero_rate_limiter(schedule):
        return False
    if trade_direction == TradeDirection.BASE_TO_QUOTE:
        return False
    if current_point < activation_point:
        return False
    last_effective_point = activation_point + schedule.max_limiter_duration
    return current_point <= last_effective_point


def rate_limiter_fee_numerator(
    schedule: BaseFeeSchedule,
    current_point: int,
    activation_point: int,
    trade_direction: TradeDirection,
    input_amount: int,
) -> int:
    """Base fee numerator режима rate limiter (cliff вне окна)."""
    if is_rate_limiter_applied(schedule, current_point, activation_point, trade_direction):
        return fee_numerator_on_rate_limiter(
            schedule.cliff_fee_numerator,
            schedule.reference_amount,
            schedule.fee_increment_bps,
            input_amount,
        )
    return schedule.cliff_fee_numerator
