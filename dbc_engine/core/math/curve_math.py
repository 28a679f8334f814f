"""
Curve Math — формулы constant-liquidity AMM

Цены хранятся как sqrt price в Q64.64, liquidity L масштабирована на 2^128
относительно количеств токенов:

    amount_base  = L * (1/sqrt(P_lower) - 1/sqrt(P_upper))
                 = L * (upper - lower) / (lower * upper)
    amount_quote = L * (upper - lower) / 2^128

Направление округления всегда выбирается в пользу пула: вход округляется
вверх, выход вниз, следующая цена не проходит через целевую.

КРИТИЧЕСКИЕ ИНВАРИАНТЫ:
1. Только целочисленная арифметика (совпадение с settlement до единицы)
2. Нулевая liquidity даёт нулевое количество без деления
3. Нулевая цена или liquidity в next_sqrt_price — ошибка, а не 0
"""

from typing import Final

from dbc_engine.core.domain.enums import Rounding
from dbc_engine.core.exceptions import DivisionByZero, InsufficientLiquidity
from dbc_engine.core.math.safe_math import (
    RESOLUTION,
    div,
    div_ceil,
    ensure_u128,
    mul_div,
    shl,
    sub,
)

# =============================================================================
# ГРАНИЦЫ ЦЕНЫ
# =============================================================================

MIN_SQRT_PRICE: Final[int] = 4_295_048_016
MAX_SQRT_PRICE: Final[int] = 79_226_673_521_066_979_257_578_248_091


# =============================================================================
# DELTA AMOUNTS
# =============================================================================


def amount_base_between(
    lower_sqrt_price: int,
    upper_sqrt_price: int,
    liquidity: int,
    rounding: Rounding,
) -> int:
    """
    Количество base токена в диапазоне цен.

    Формула: L * (upper - lower) / (lower * upper)

    Args:
        lower_sqrt_price: Нижняя граница (Q64.64)
        upper_sqrt_price: Верхняя граница (Q64.64)
        liquidity: Liquidity диапазона
        rounding: Направление округления

    Returns:
        Количество base токена

    Raises:
        DivisionByZero: Если одна из цен равна 0
        MathUnderflow: Если upper < lower

    Examples:
        >>> amount_base_between(1 << 64, 18448588748116922571, 0, Rounding.DOWN)
        0
    """
    if liquidity == 0:
        return 0

    denominator = lower_sqrt_price * upper_sqrt_price
    if denominator == 0:
        raise DivisionByZero("amount_base_between: sqrt price cannot be zero")

    numerator = liquidity * sub(upper_sqrt_price, lower_sqrt_price)

    if rounding == Rounding.UP:
        return div_ceil(numerator, denominator)
    return div(numerator, denominator)


def amount_quote_between(
    lower_sqrt_price: int,
    upper_sqrt_price: int,
    liquidity: int,
    rounding: Rounding,
) -> int:
    """
    Количество quote токена в диапазоне цен.

    Формула: L * (upper - lower) / 2^128

    Returns:
        Количество quote токена (0 если lower == upper или L == 0)

    Raises:
        MathUnderflow: Если upper < lower
    """
    if liquidity == 0:
        return 0

    product = liquidity * sub(upper_sqrt_price, lower_sqrt_price)
    shift = RESOLUTION * 2

    if rounding == Rounding.UP:
        denominator = 1 << shift
        return (product + denominator - 1) >> shift
    return product >> shift


# =============================================================================
# NEXT SQRT PRICE: EXACT IN
# =============================================================================


def next_sqrt_price_from_base_input(sqrt_price: int, liquidity: int, amount_in: int) -> int:
    """
    Цена после продажи base токена (цена падает).

    Формула: ceil(L * sqrt_price / (L + amount_in * sqrt_price))
    Округление вверх гарантирует, что цена не проходит целевую.
    """
    if amount_in == 0:
        return sqrt_price

    denominator = liquidity + amount_in * sqrt_price
    return mul_div(liquidity, sqrt_price, denominator, Rounding.UP)


def next_sqrt_price_from_quote_input(sqrt_price: int, liquidity: int, amount_in: int) -> int:
    """
    Цена после покупки за quote токен (цена растёт).

    Формула: floor(sqrt_price + (amount_in << 128) / L)
    """
    if amount_in == 0:
        return sqrt_price

    quotient = div(shl(amount_in, RESOLUTION * 2), liquidity)
    return sqrt_price + quotient


def next_sqrt_price_from_input(
    sqrt_price: int,
    liquidity: int,
    amount_in: int,
    base_for_quote: bool,
) -> int:
    """
    Цена после входа amount_in.

    Args:
        sqrt_price: Текущая sqrt цена
        liquidity: Liquidity активного сегмента
        amount_in: Входное количество
        base_for_quote: True — вход в base (продажа), False — вход в quote

    Raises:
        DivisionByZero: Если sqrt_price или liquidity равны 0
    """
    if sqrt_price == 0 or liquidity == 0:
        raise DivisionByZero("sqrt price and liquidity must be positive")

    if base_for_quote:
        return next_sqrt_price_from_base_input(sqrt_price, liquidity, amount_in)
    return next_sqrt_price_from_quote_input(sqrt_price, liquidity, amount_in)


# =============================================================================
# NEXT SQRT PRICE: EXACT OUT
# =============================================================================


def next_sqrt_price_from_base_output(sqrt_price: int, liquidity: int, amount_out: int) -> int:
    """
    Цена после получения amount_out base токена (цена растёт).

    Формула: ceil(L * sqrt_price / (L - amount_out * sqrt_price))

    Raises:
        InsufficientLiquidity: Если сегмент не содержит amount_out base
    """
    if amount_out == 0:
        return sqrt_price

    product = amount_out * sqrt_price
    if product >= liquidity:
        raise InsufficientLiquidity(
            "base output exceeds segment liquidity", amount_left=amount_out
        )
    return mul_div(liquidity, sqrt_price, liquidity - product, Rounding.UP)


def next_sqrt_price_from_quote_output(sqrt_price: int, liquidity: int, amount_out: int) -> int:
    """
    Цена после получения amount_out quote токена (цена падает).

    Формула: sqrt_price - ceil((amount_out << 128) / L)

    Raises:
        InsufficientLiquidity: Если цена ушла бы ниже нуля
    """
    if amount_out == 0:
        return sqrt_price

    quotient = div_ceil(shl(amount_out, RESOLUTION * 2), liquidity)
    if quotient >= sqrt_price:
        raise InsufficientLiquidity(
            "quote output exceeds segment liquidity", amount_left=amount_out
        )
    return sqrt_price - quotient


def next_sqrt_price_from_output(
    sqrt_price: int,
    liquidity: int,
    amount_out: int,
    base_for_quote: bool,
) -> int:
    """
    Цена после выхода amount_out.

    Args:
        base_for_quote: True — продажа base, выход в quote;
            False — покупка base, выход в base
    """
    if sqrt_price == 0 or liquidity == 0:
        raise DivisionByZero("sqrt price and liquidity must be positive")

    if base_for_quote:
        return next_sqrt_price_from_quote_output(sqrt_price, liquidity, amount_out)
    return next_sqrt_price_from_base_output(sqrt_price, liquidity, amount_out)


# =============================================================================
# LIQUIDITY
# =============================================================================


def initial_liquidity_from_delta_quote(
    quote_amount: int,
    sqrt_min_price: int,
    sqrt_price: int,
) -> int:
    """
    Liquidity, при которой диапазон [sqrt_min_price, sqrt_price] содержит
    quote_amount quote токена.

    Формула: (quote_amount << 128) / (sqrt_price - sqrt_min_price)
    """
    price_delta = sub(sqrt_price, sqrt_min_price)
    return div(shl(quote_amount, RESOLUTION * 2), price_delta)


def initial_liquidity_from_delta_base(
    base_amount: int,
    sqrt_max_price: int,
    sqrt_price: int,
) -> int:
    """
    Liquidity, при которой диапазон [sqrt_price, sqrt_max_price] содержит
    base_amount base токена.

    Формула: base_amount * sqrt_price * sqrt_max_price / (sqrt_max_price - sqrt_price)
    """
    price_delta = sub(sqrt_max_price, sqrt_price)
    return ensure_u128(
        div(base_amount * sqrt_price * sqrt_max_price, price_delta),
        "initial liquidity from base",
    )


def liquidity_buffer(liquidity: int, migration_sqrt_price: int, max_sqrt_price: int) -> int:
    """
    Liquidity буферного сегмента выше цены миграции.

    Формула: L * (max - mig) / (max * mig)
    """
    price_diff = sub(max_sqrt_price, migration_sqrt_price)
    return div(liquidity * price_diff, max_sqrt_price * migration_sqrt_price)


def initialize_amounts(
    sqrt_min_price: int,
    sqrt_max_price: int,
    sqrt_price: int,
    liquidity: int,
) -> tuple[int, int]:
    """
    Количества (base, quote) для открытия позиции full-range при sqrt_price.

    Base покрывает [sqrt_price, max], quote — [min, sqrt_price], оба
    округлены вверх.
    """
    amount_base = amount_base_between(sqrt_price, sqrt_max_price, liquidity, Rounding.UP)
    amount_quote = amount_quote_between(sqrt_min_price, sqrt_price, liquidity, Rounding.UP)
    return amount_base, amount_quote


def price_q64_from_sqrt_price(sqrt_price: int) -> int:
    """Цена в Q64.64 из sqrt цены: sqrt_price^2 >> 64."""
    return (sqrt_price * sqrt_price) >> RESOLUTION
