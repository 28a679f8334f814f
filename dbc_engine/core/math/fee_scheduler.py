"""
Fee Scheduler — затухающий base fee

Fee numerator уменьшается от cliff_fee_numerator по периодам, отсчитанным
от activation point:

    period = clamp((current_point - activation_point) // period_frequency,
                   0, number_of_period)

- Linear:      numerator = max(0, cliff - period * reduction_factor)
- Exponential: numerator = cliff * (1 - reduction_factor / 10_000)^period

До активации (current_point < activation_point) применяется period =
number_of_period, т.е. МИНИМАЛЬНЫЙ fee расписания. Поведение совпадает с
settlement-программой и намеренно сохранено.
"""

from typing import Final

from dbc_engine.core.domain.enums import BaseFeeMode, Rounding
from dbc_engine.core.domain.fees import BaseFeeSchedule
from dbc_engine.core.math.safe_math import (
    BASIS_POINT_MAX,
    ONE_Q64,
    RESOLUTION,
    div,
    mul_div,
    pow_q64,
    sub,
)

# =============================================================================
# FEE КОНСТАНТЫ
# =============================================================================

# Знаменатель fee numerator
FEE_DENOMINATOR: Final[int] = 1_000_000_000

# Максимальный fee: 50%
MAX_FEE_NUMERATOR: Final[int] = 500_000_000

# Минимальный fee: 1 bps
MIN_FEE_NUMERATOR: Final[int] = 100_000

MAX_FEE_BPS: Final[int] = 5_000
MIN_FEE_BPS: Final[int] = 1


# =============================================================================
# ПЕРИОД
# =============================================================================


def current_period(schedule: BaseFeeSchedule, current_point: int, activation_point: int) -> int:
    """
    Номер текущего периода расписания.

    Args:
        schedule: Расписание base fee (period_frequency > 0)
        current_point: Текущий slot/timestamp
        activation_point: Slot/timestamp активации пула

    Returns:
        Период в [0, number_of_period]; number_of_period до активации
    """
    if current_point < activation_point:
        return schedule.number_of_period

    elapsed = current_point - activation_point
    return min(div(elapsed, schedule.period_frequency), schedule.number_of_period)


# =============================================================================
# NUMERATOR
# =============================================================================


def fee_in_period(cliff_fee_numerator: int, reduction_factor: int, period: int) -> int:
    """
    Экспоненциальный fee numerator для заданного периода.

    Быстрые пути: period 0 — cliff; period 1 — cliff * (10_000 - rf) / 10_000.
    Для больших периодов: base = ONE_Q64 - (rf << 64) / 10_000,
    результат = cliff * base^period >> 64.

    Examples:
        >>> fee_in_period(1000, 100, 0)
        1000
        >>> fee_in_period(1000, 100, 1)
        990
    """
    if period == 0:
        return cliff_fee_numerator

    if period == 1:
        return mul_div(
            cliff_fee_numerator,
            sub(BASIS_POINT_MAX, reduction_factor),
            BASIS_POINT_MAX,
            Rounding.DOWN,
        )

    reduction_scaled = div(reduction_factor << RESOLUTION, BASIS_POINT_MAX)
    base = sub(ONE_Q64, reduction_scaled)
    result = pow_q64(base, period)
    return div(cliff_fee_numerator * result, ONE_Q64)


def linear_fee_numerator(cliff_fee_numerator: int, reduction_factor: int, period: int) -> int:
    """Линейный fee numerator, насыщается на 0."""
    reduction = period * reduction_factor
    if reduction > cliff_fee_numerator:
        return 0
    return cliff_fee_numerator - reduction


def scheduler_fee_numerator(
    schedule: BaseFeeSchedule,
    current_point: int,
    activation_point: int,
) -> int:
    """
    Base fee numerator расписания в текущей точке.

    Args:
        schedule: Расписание (linear или exponential)
        current_point: Текущий slot/timestamp
        activation_point: Slot/timestamp активации

    Returns:
        Fee numerator

    Raises:
        ValueError: Если режим расписания не linear/exponential
    """
    if schedule.period_frequency == 0:
        return schedule.cliff_fee_numerator

    period = current_period(schedule, current_point, activation_point)

    if schedule.base_fee_mode == BaseFeeMode.FEE_SCHEDULER_LINEAR:
        return linear_fee_numerator(
            schedule.cliff_fee_numerator, schedule.reduction_factor, period
        )
    if schedule.base_fee_mode == BaseFeeMode.FEE_SCHEDULER_EXPONENTIAL:
        return fee_in_period(schedule.cliff_fee_numerator, schedule.reduction_factor, period)

    raise ValueError(f"invalid fee scheduler mode: {schedule.base_fee_mode}")


def min_scheduler_fee_numerator(schedule: BaseFeeSchedule) -> int:
    """Fee numerator в последнем периоде расписания (минимальный)."""
    if schedule.period_frequency == 0:
        return schedule.cliff_fee_numerator
    if schedule.base_fee_mode == BaseFeeMode.FEE_SCHEDULER_LINEAR:
        return linear_fee_numerator(
            schedule.cliff_fee_numerator,
            schedule.reduction_factor,
            schedule.number_of_period,
        )
    return fee_in_period(
        schedule.cliff_fee_numerator, schedule.reduction_factor, schedule.number_of_period
    )
