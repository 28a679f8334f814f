"""
Fee Math — итоговый fee сделки

Композиция трёх слоёв:
1. Base fee: расписание (linear/exponential) или rate limiter
2. Dynamic fee: волатильностная надбавка ceil((va * bin_step)^2 * vfc / 1e11)
3. Cap: total = min(base + dynamic, MAX_FEE_NUMERATOR)

Разбивка trading fee:
    trading  = ceil(amount * numerator / FEE_DENOMINATOR)
    protocol = floor(trading * protocol_fee_percent / 100)
    referral = floor(protocol * referral_fee_percent / 100)  (если есть реферал)
    trading -= protocol; protocol -= referral

Обратный расчёт (exact-out): included = ceil(excluded * DEN / (DEN - num))
с прямой проверкой; для rate limiter numerator зависит от размера сделки,
поэтому included ищется бисекцией по монотонному прямому отображению.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. 0 <= total_fee_numerator <= MAX_FEE_NUMERATOR
2. Cap — документированная насыщающая политика, не ошибка
3. Инверсия fee никогда не возвращает сумму, не покрывающую excluded
"""

from typing import Callable, Final, Optional

from dbc_engine.core.domain.enums import BaseFeeMode, Rounding, TradeDirection
from dbc_engine.core.domain.fees import (
    BaseFeeSchedule,
    DynamicFeeConfig,
    PoolFees,
    VolatilityTracker,
)
from dbc_engine.core.domain.quote import FeeOnAmount
from dbc_engine.core.exceptions import FeeInversionError
from dbc_engine.core.math.fee_scheduler import (
    FEE_DENOMINATOR,
    MAX_FEE_NUMERATOR,
    scheduler_fee_numerator,
)
from dbc_engine.core.math.rate_limiter import rate_limiter_fee_numerator
from dbc_engine.core.math.safe_math import mul_div, sub

# Масштаб dynamic fee: (va * bin_step)^2 * vfc приводится к 1e9
DYNAMIC_FEE_SCALING: Final[int] = 100_000_000_000


# =============================================================================
# DYNAMIC FEE
# =============================================================================


def variable_fee(
    dynamic_fee: Optional[DynamicFeeConfig],
    volatility_tracker: VolatilityTracker,
) -> int:
    """
    Волатильностная надбавка к fee numerator.

    Args:
        dynamic_fee: Параметры надбавки (None — выключена)
        volatility_tracker: Снапшот внешнего трекера

    Returns:
        ceil((va * bin_step)^2 * variable_fee_control / 1e11);
        0 если надбавка не инициализирована или аккумулятор нулевой
    """
    if dynamic_fee is None or not dynamic_fee.initialized:
        return 0

    accumulator = volatility_tracker.volatility_accumulator
    if accumulator == 0:
        return 0

    square_vfa_bin = (accumulator * dynamic_fee.bin_step) ** 2
    v_fee = square_vfa_bin * dynamic_fee.variable_fee_control
    return (v_fee + DYNAMIC_FEE_SCALING - 1) // DYNAMIC_FEE_SCALING


# =============================================================================
# BASE FEE
# =============================================================================


def current_base_fee_numerator(
    schedule: BaseFeeSchedule,
    current_point: int,
    activation_point: int,
    trade_direction: Optional[TradeDirection] = None,
    input_amount: Optional[int] = None,
) -> int:
    """
    Base fee numerator в текущей точке.

    Для rate limiter нужен размер и направление сделки; без них (оценка
    вне контекста сделки) возвращается cliff fee.

    Args:
        schedule: Расписание base fee
        current_point: Текущий slot/timestamp
        activation_point: Slot/timestamp активации
        trade_direction: Направление сделки (только rate limiter)
        input_amount: Размер входа сделки (только rate limiter)

    Returns:
        Base fee numerator
    """
    if schedule.base_fee_mode == BaseFeeMode.RATE_LIMITER:
        if trade_direction is None or input_amount is None:
            return schedule.cliff_fee_numerator
        return rate_limiter_fee_numerator(
            schedule, current_point, activation_point, trade_direction, input_amount
        )
    return scheduler_fee_numerator(schedule, current_point, activation_point)


def total_fee_numerator(
    pool_fees: PoolFees,
    volatility_tracker: VolatilityTracker,
    current_point: int,
    activation_point: int,
    trade_direction: Optional[TradeDirection] = None,
    input_amount: Optional[int] = None,
) -> int:
    """Base + dynamic fee numerator с cap на MAX_FEE_NUMERATOR."""
    base = current_base_fee_numerator(
        pool_fees.base_fee, current_point, activation_point, trade_direction, input_amount
    )
    dynamic = variable_fee(pool_fees.dynamic_fee, volatility_tracker)
    return min(base + dynamic, MAX_FEE_NUMERATOR)


# =============================================================================
# FEE ON AMOUNT
# =============================================================================


def split_trading_fee(trading_fee: int, pool_fees: PoolFees, has_referral: bool) -> tuple[int, int, int]:
    """
    Разбивка trading fee на (trading, protocol, referral).

    Protocol fee берётся из trading fee, referral — из protocol fee;
    оба округлены вниз.
    """
    protocol_fee = mul_div(trading_fee, pool_fees.protocol_fee_percent, 100, Rounding.DOWN)
    trading_fee = sub(trading_fee, protocol_fee)

    referral_fee = 0
    if has_referral:
        referral_fee = mul_div(protocol_fee, pool_fees.referral_fee_percent, 100, Rounding.DOWN)
    protocol_fee = sub(protocol_fee, referral_fee)

    return trading_fee, protocol_fee, referral_fee


def fee_on_amount(
    amount: int,
    fee_numerator: int,
    pool_fees: PoolFees,
    has_referral: bool,
) -> FeeOnAmount:
    """
    Применение fee к сумме.

    Args:
        amount: Сумма до fee
        fee_numerator: Итоговый fee numerator (уже с cap)
        pool_fees: Fee-конфигурация (доли protocol/referral)
        has_referral: Есть ли реферальный аккаунт

    Returns:
        FeeOnAmount(amount после fee, trading_fee, protocol_fee, referral_fee)

    Examples:
        >>> fees = PoolFees(base_fee=BaseFeeSchedule(cliff_fee_numerator=10_000_000))
        >>> fee_on_amount(1_000_000, 10_000_000, fees, False)
        FeeOnAmount(amount=990000, trading_fee=8000, protocol_fee=2000, referral_fee=0)
    """
    trading_fee = mul_div(amount, fee_numerator, FEE_DENOMINATOR, Rounding.UP)
    amount_after_fee = sub(amount, trading_fee)
    trading, protocol, referral = split_trading_fee(trading_fee, pool_fees, has_referral)
    return FeeOnAmount(amount_after_fee, trading, protocol, referral)


# =============================================================================
# ИНВЕРСИЯ FEE
# =============================================================================


def excluded_fee_amount(included_amount: int, fee_numerator: int) -> int:
    """Сумма после вычета fee (fee округлён вверх)."""
    trading_fee = mul_div(included_amount, fee_numerator, FEE_DENOMINATOR, Rounding.UP)
    return sub(included_amount, trading_fee)


def included_fee_amount(excluded_amount: int, fee_numerator: int) -> int:
    """
    Минимальная сумма до fee, дающая после вычета fee excluded_amount.

    Формула: ceil(excluded * FEE_DENOMINATOR / (FEE_DENOMINATOR - numerator))

    Args:
        excluded_amount: Требуемая сумма после fee
        fee_numerator: Fee numerator (<= MAX_FEE_NUMERATOR)

    Returns:
        Сумма до fee

    Raises:
        FeeInversionError: Если прямая проверка не прошла
    """
    denominator = sub(FEE_DENOMINATOR, fee_numerator)
    included_amount = mul_div(excluded_amount, FEE_DENOMINATOR, denominator, Rounding.UP)

    if excluded_fee_amount(included_amount, fee_numerator) < excluded_amount:
        raise FeeInversionError(
            f"fee inversion undershoots: included={included_amount}, "
            f"excluded={excluded_amount}, numerator={fee_numerator}"
        )
    return included_amount


def included_fee_amount_by_search(
    excluded_amount: int,
    fee_numerator_for: Callable[[int], int],
) -> int:
    """
    Инверсия fee, numerator которого зависит от размера суммы до fee.

    Ищет минимальный x с x - ceil(x * n(x) / DEN) >= excluded бисекцией.
    Верхняя граница 2 * excluded достаточна, так как n(x) <= 50%.
    Число шагов ограничено битовой длиной excluded_amount.

    Args:
        excluded_amount: Требуемая сумма после fee
        fee_numerator_for: n(x) — fee numerator для суммы до fee x

    Returns:
        Сумма до fee

    Raises:
        FeeInversionError: Если найденная сумма не покрывает excluded
    """
    if excluded_amount == 0:
        return 0

    def _covers(amount: int) -> bool:
        return excluded_fee_amount(amount, fee_numerator_for(amount)) >= excluded_amount

    low = excluded_amount
    high = 2 * excluded_amount
    if _covers(low):
        return low

    while high - low > 1:
        mid = (low + high) // 2
        if _covers(mid):
            high = mid
        else:
            low = mid

    if not _covers(high):
        raise FeeInversionError(
            f"fee inversion by search failed: excluded={excluded_amount}, upper={high}"
        )
    return high
